"""
Orders package: checkout, admin and per-user order routes.
"""
