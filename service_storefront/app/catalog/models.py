"""
Catalog request models.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, Field


def slugify(text: str) -> str:
    """Lowercase, dash-separated slug made of word characters."""
    slug = str(text).lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w\-]+", "", slug)
    return re.sub(r"-{2,}", "-", slug)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: str = ""
    price: float = Field(..., ge=0)
    discountedPrice: Optional[float] = Field(None, ge=0)
    category_id: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    in_stock: bool = True
    featured: bool = False


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    discountedPrice: Optional[float] = Field(None, ge=0)
    category_id: Optional[str] = None
    images: Optional[List[str]] = None
    in_stock: Optional[bool] = None
    featured: Optional[bool] = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: str = ""
    image_url: str = ""


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
