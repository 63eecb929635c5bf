"""
Review and social post request models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewSort(str, Enum):
    LATEST = "latest"
    HIGHEST = "highest"
    LOWEST = "lowest"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReviewSort":
        """Unknown values sort by latest."""
        try:
            return cls(value)
        except ValueError:
            return cls.LATEST


class ReviewFilter(str, Enum):
    ALL = "all"
    PENDING = "pending"
    APPROVED = "approved"


class ReviewCreate(BaseModel):
    author_name: str = Field(..., min_length=1)
    author_email: str = Field(..., min_length=3)
    rating: int = Field(..., ge=1, le=5)
    review_text: str = Field(..., min_length=1)
    product_id: Optional[str] = None
    photo_url: str = ""


class SocialPostIn(BaseModel):
    """Admin-managed post; extra fields are kept as-is."""

    model_config = ConfigDict(extra="allow")

    is_active: bool = True
    display_order: int = 0
