"""
Catalog operations: products and categories, admin and public views.
"""

import math
from typing import Any, Dict, Iterable, List, Optional

from shared.errors import NotFoundError, ValidationError
from shared.logging import get_logger
from ..caching import CacheInvalidator, EntityGroup, ReadThroughCache
from ..caching import keys
from ..persistence import DocumentStore, CATEGORIES, PRODUCTS, DESCENDING, ASCENDING
from .models import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate, slugify


def _category_ref(category: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not category:
        return None
    return {"_id": category["_id"], "name": category.get("name"), "slug": category.get("slug")}


def public_product(product: Dict[str, Any], category: Optional[Dict[str, Any]], detail: bool = False) -> Dict[str, Any]:
    """Storefront view of a product with its category embedded."""
    if detail:
        category_label = (category or {}).get("name") or ""
    else:
        category_label = ((category or {}).get("name") or (category or {}).get("slug") or "").lower()

    return {
        "id": product["_id"],
        "_id": product["_id"],
        "name": product.get("name"),
        "slug": product.get("slug"),
        "description": product.get("description", ""),
        "price": product.get("price"),
        "discountedPrice": product.get("discountedPrice") or None,
        "images": product.get("images", []),
        "in_stock": product.get("in_stock", True),
        "featured": product.get("featured", False),
        "category": category_label,
        "category_id": _category_ref(category),
    }


def public_category(category: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": category["_id"],
        "_id": category["_id"],
        "name": category.get("name"),
        "slug": category.get("slug"),
        "image_url": category.get("image_url") or "",
    }


class CatalogService:
    """Products and categories backed by the document store and read-through cache."""

    def __init__(self, store: DocumentStore, cache: ReadThroughCache, invalidator: CacheInvalidator):
        self.store = store
        self.cache = cache
        self.invalidator = invalidator
        self.logger = get_logger("storefront.catalog")

    async def _categories_by_id(self, category_ids: Iterable[Optional[str]]) -> Dict[str, Dict[str, Any]]:
        found = {}
        for category_id in {cid for cid in category_ids if cid}:
            category = await self.store.get(CATEGORIES, category_id)
            if category:
                found[category_id] = category
        return found

    async def _with_category(self, products: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Admin view: ``category_id`` replaced by the category document, if it exists."""
        categories = await self._categories_by_id(p.get("category_id") for p in products)
        return [{**p, "category_id": categories.get(p.get("category_id"))} for p in products]

    async def _ensure_category(self, category_id: str):
        if not await self.store.get(CATEGORIES, category_id):
            raise ValidationError("Invalid category_id", details={"category_id": category_id})

    async def _ensure_unique_slug(self, collection: str, slug: str, exclude_id: Optional[str] = None):
        existing = await self.store.find_one(collection, {"slug": slug})
        if existing and existing["_id"] != exclude_id:
            label = "Product" if collection == PRODUCTS else "Category"
            raise ValidationError(f"{label} with this slug already exists", details={"slug": slug})

    # Public views

    async def list_products(
        self,
        featured: Optional[str] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        async def produce():
            filters: Dict[str, Any] = {}
            if featured == "true":
                filters["featured"] = True
            if category:
                found = await self.store.find_one(CATEGORIES, {"slug": category})
                if found:
                    filters["category_id"] = found["_id"]

            products = await self.store.find(PRODUCTS, filters, sort=[("created_at", DESCENDING)], limit=limit)
            categories = await self._categories_by_id(p.get("category_id") for p in products)
            return [public_product(p, categories.get(p.get("category_id"))) for p in products]

        return await self.cache.cached(keys.content_products(featured, category, limit), produce, keys.CATALOG_TTL)

    async def get_product(self, slug: str) -> Dict[str, Any]:
        async def produce():
            product = await self.store.find_one(PRODUCTS, {"slug": slug})
            if not product:
                return None
            category = None
            if product.get("category_id"):
                category = await self.store.get(CATEGORIES, product["category_id"])
            return public_product(product, category, detail=True)

        product = await self.cache.cached(keys.content_product(slug), produce, keys.CATALOG_TTL)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    async def list_categories(self) -> List[Dict[str, Any]]:
        async def produce():
            categories = await self.store.find(CATEGORIES, sort=[("name", ASCENDING)])
            return [public_category(c) for c in categories]

        return await self.cache.cached(keys.CONTENT_CATEGORIES, produce, keys.CATALOG_TTL)

    # Admin products

    async def list_admin_products(self, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        async def produce():
            skip = (page - 1) * limit
            products = await self.store.find(PRODUCTS, sort=[("created_at", DESCENDING)], skip=skip, limit=limit)
            total = await self.store.count(PRODUCTS)
            return {
                "products": await self._with_category(products),
                "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
            }

        return await self.cache.cached(keys.admin_products_page(page, limit), produce, keys.CATALOG_TTL)

    async def get_admin_product(self, product_id: str) -> Dict[str, Any]:
        async def produce():
            product = await self.store.get(PRODUCTS, product_id)
            if not product:
                return None
            return (await self._with_category([product]))[0]

        product = await self.cache.cached(keys.admin_product(product_id), produce, keys.CATALOG_TTL)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    async def create_product(self, request: ProductCreate) -> Dict[str, Any]:
        data = request.model_dump()
        data["slug"] = data["slug"] or slugify(request.name)
        await self._ensure_unique_slug(PRODUCTS, data["slug"])
        if data["category_id"]:
            await self._ensure_category(data["category_id"])

        product = await self.store.insert(PRODUCTS, data)
        await self.invalidator.invalidate(EntityGroup.PRODUCTS, product["_id"])
        self.logger.info("Product created", product_id=product["_id"], slug=product["slug"])
        return (await self._with_category([product]))[0]

    async def update_product(self, product_id: str, request: ProductUpdate) -> Dict[str, Any]:
        product = await self.store.get(PRODUCTS, product_id)
        if not product:
            raise NotFoundError("Product not found")

        # discountedPrice may be cleared with null; other fields keep their value.
        changes = {
            k: v for k, v in request.model_dump(exclude_unset=True).items()
            if v is not None or k == "discountedPrice"
        }
        new_slug = changes.get("slug") or (slugify(changes["name"]) if changes.get("name") else product.get("slug"))
        if new_slug != product.get("slug"):
            await self._ensure_unique_slug(PRODUCTS, new_slug, exclude_id=product_id)
        changes["slug"] = new_slug

        category_id = changes.get("category_id")
        if category_id and category_id != product.get("category_id"):
            await self._ensure_category(category_id)

        updated = await self.store.update(PRODUCTS, product_id, changes)
        await self.invalidator.invalidate(EntityGroup.PRODUCTS, product_id)
        self.logger.info("Product updated", product_id=product_id, fields=sorted(changes))
        return (await self._with_category([updated]))[0]

    async def delete_product(self, product_id: str):
        if not await self.store.delete(PRODUCTS, product_id):
            raise NotFoundError("Product not found")
        await self.invalidator.invalidate(EntityGroup.PRODUCTS, product_id)
        self.logger.info("Product deleted", product_id=product_id)

    # Admin categories

    async def list_admin_categories(self) -> List[Dict[str, Any]]:
        async def produce():
            return await self.store.find(CATEGORIES)

        return await self.cache.cached(keys.ADMIN_CATEGORIES, produce, keys.CATALOG_TTL)

    async def create_category(self, request: CategoryCreate) -> Dict[str, Any]:
        data = request.model_dump()
        data["slug"] = data["slug"] or slugify(request.name)
        await self._ensure_unique_slug(CATEGORIES, data["slug"])

        category = await self.store.insert(CATEGORIES, data)
        await self.invalidator.invalidate(EntityGroup.CATEGORIES)
        self.logger.info("Category created", category_id=category["_id"], slug=category["slug"])
        return category

    async def update_category(self, category_id: str, request: CategoryUpdate) -> Dict[str, Any]:
        category = await self.store.get(CATEGORIES, category_id)
        if not category:
            raise NotFoundError("Category not found")

        changes = {k: v for k, v in request.model_dump(exclude_unset=True).items() if v is not None}
        if changes.get("slug") and changes["slug"] != category.get("slug"):
            await self._ensure_unique_slug(CATEGORIES, changes["slug"], exclude_id=category_id)

        updated = await self.store.update(CATEGORIES, category_id, changes)
        await self.invalidator.invalidate(EntityGroup.CATEGORIES)
        self.logger.info("Category updated", category_id=category_id, fields=sorted(changes))
        return updated

    async def delete_category(self, category_id: str):
        category = await self.store.get(CATEGORIES, category_id)
        if not category:
            raise NotFoundError("Category not found")

        if await self.store.count(PRODUCTS, {"category_id": category_id}):
            raise ValidationError("Cannot delete category with products", details={"category_id": category_id})

        await self.store.delete(CATEGORIES, category_id)
        await self.invalidator.invalidate(EntityGroup.CATEGORIES)
        self.logger.info("Category deleted", category_id=category_id)
