"""
Storefront backend service.
"""
