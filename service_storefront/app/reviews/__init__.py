"""
Reviews package: customer reviews and admin-curated social posts.
"""

from .service import ReviewService, SocialPostService

__all__ = ["ReviewService", "SocialPostService"]
