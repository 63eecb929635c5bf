"""
Storefront service: catalog, orders, reviews and Shiprocket shipment sync.
"""

from typing import Any, Dict, Optional

from fastapi import Body, Depends, Query, status

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import NotFoundError
from shared.retry import RetryConfig

from .auth import AuthContext, JWTAuthenticator
from .caching import CacheInvalidator, ReadThroughCache, RedisCacheStore
from .catalog import CatalogService
from .catalog.models import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate
from .orders.models import OrderCreateRequest, OrderStatusUpdate, display_id
from .orders.service import OrderService
from .persistence import DocumentStore, create_document_store
from .reviews import ReviewService, SocialPostService
from .reviews.models import ReviewCreate, ReviewFilter, ReviewSort, SocialPostIn
from .shipping import (
    PackageDefaults,
    ReconciliationScheduler,
    ShipmentDispatcher,
    ShipmentReconciler,
    ShiprocketClient,
)


class StorefrontService(BaseService):
    """Storefront service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        cache_store: Optional[RedisCacheStore] = None,
        document_store: Optional[DocumentStore] = None,
        shipment_client: Optional[ShiprocketClient] = None,
    ):
        super().__init__("storefront", 5001, config or get_config("storefront", 5001))

        # Infrastructure
        self.cache_store = cache_store or RedisCacheStore(self.config.redis_url)
        self.store = document_store or create_document_store(self.config.postgres_dsn)
        self.cache = ReadThroughCache(self.cache_store, metrics=self.metrics)
        self.invalidator = CacheInvalidator(self.cache_store, metrics=self.metrics)
        self.auth = JWTAuthenticator(self.config.jwt_secret, self.config.admin_emails)

        # Shipping
        self.shipment_client = shipment_client or ShiprocketClient(
            email=self.config.shiprocket_email,
            password=self.config.shiprocket_password,
            api_base=self.config.shiprocket_api_base,
            timeout=self.config.shiprocket_timeout_seconds,
        )
        self.reconciler = ShipmentReconciler(
            self.store,
            self.shipment_client,
            invalidator=self.invalidator if self.config.reconcile_invalidate_cache else None,
            metrics=self.metrics,
            skip_terminal=self.config.reconcile_skip_terminal,
        )
        self.scheduler = ReconciliationScheduler(
            self.reconciler.run,
            interval_seconds=self.config.reconcile_interval_seconds,
            run_on_start=self.config.reconcile_on_startup,
        )
        self.dispatcher = ShipmentDispatcher(
            self.store,
            self.shipment_client,
            invalidator=self.invalidator,
            reconciler=self.reconciler,
            metrics=self.metrics,
            retry_config=RetryConfig(
                max_attempts=self.config.dispatch_max_attempts,
                base_delay=self.config.dispatch_base_delay,
            ),
            dead_letter_capacity=self.config.dead_letter_capacity,
            package=PackageDefaults(
                pickup_location=self.config.shiprocket_pickup_location,
                length=self.config.shiprocket_package_length,
                breadth=self.config.shiprocket_package_breadth,
                height=self.config.shiprocket_package_height,
                weight=self.config.shiprocket_package_weight,
            ),
        )

        # Domain services
        self.catalog = CatalogService(self.store, self.cache, self.invalidator)
        self.orders = OrderService(self.store, self.cache, self.invalidator, dispatcher=self.dispatcher)
        self.reviews = ReviewService(self.store, self.cache, self.invalidator)
        self.social_posts = SocialPostService(self.store, self.cache, self.invalidator)

        @self.app.on_event("startup")
        async def _startup():
            await self.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.stop()

        self._setup_storefront_routes()
        self._setup_catalog_routes()
        self._setup_order_routes()
        self._setup_review_routes()
        self._setup_shipment_routes()

    def _setup_storefront_routes(self):
        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "storefront",
                "message": "Storefront backend",
                "version": "1.0.0",
                "capabilities": ["catalog", "orders", "reviews", "shipments", "caching"],
            }

    def _setup_catalog_routes(self):
        """Set up product and category routes."""

        @self.app.get("/api/products")
        async def list_products(
            featured: Optional[str] = Query(None),
            category: Optional[str] = Query(None),
            limit: Optional[int] = Query(None, ge=1),
        ):
            return await self.catalog.list_products(featured, category, limit)

        @self.app.get("/api/products/{slug}")
        async def get_product(slug: str):
            return await self.catalog.get_product(slug)

        @self.app.get("/api/categories")
        async def list_categories():
            return await self.catalog.list_categories()

        @self.app.get("/api/admin/products")
        async def admin_list_products(
            page: int = Query(1, ge=1),
            limit: int = Query(20, ge=1, le=100),
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            return await self.catalog.list_admin_products(page, limit)

        @self.app.get("/api/admin/products/{product_id}")
        async def admin_get_product(product_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            return await self.catalog.get_admin_product(product_id)

        @self.app.post("/api/admin/products", status_code=status.HTTP_201_CREATED)
        async def admin_create_product(
            request: ProductCreate,
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            product = await self.catalog.create_product(request)
            return {"message": "Product created successfully", "product": product}

        @self.app.put("/api/admin/products/{product_id}")
        async def admin_update_product(
            product_id: str,
            request: ProductUpdate,
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            product = await self.catalog.update_product(product_id, request)
            return {"message": "Product updated successfully", "product": product}

        @self.app.delete("/api/admin/products/{product_id}")
        async def admin_delete_product(product_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            await self.catalog.delete_product(product_id)
            return {"message": "Product deleted successfully"}

        @self.app.get("/api/admin/categories")
        async def admin_list_categories(auth_context: AuthContext = Depends(self.auth.require_admin)):
            return await self.catalog.list_admin_categories()

        @self.app.post("/api/admin/categories", status_code=status.HTTP_201_CREATED)
        async def admin_create_category(
            request: CategoryCreate,
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            category = await self.catalog.create_category(request)
            return {"message": "Category created", "category": category}

        @self.app.put("/api/admin/categories/{category_id}")
        async def admin_update_category(
            category_id: str,
            request: CategoryUpdate,
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            category = await self.catalog.update_category(category_id, request)
            return {"message": "Category updated", "category": category}

        @self.app.delete("/api/admin/categories/{category_id}")
        async def admin_delete_category(category_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            await self.catalog.delete_category(category_id)
            return {"message": "Category deleted successfully"}

    def _setup_order_routes(self):
        """Set up checkout, admin and customer order routes."""

        @self.app.post("/api/orders", status_code=status.HTTP_201_CREATED)
        async def create_order(request: OrderCreateRequest):
            """Create an order; the Shiprocket push happens in the background."""
            order = await self.orders.create_order(request)
            return {"id": display_id(order), "message": "Order created successfully"}

        @self.app.get("/api/orders/{order_id}")
        async def get_order(order_id: str):
            return await self.orders.get_order(order_id)

        @self.app.get("/api/admin/orders")
        async def admin_list_orders(auth_context: AuthContext = Depends(self.auth.require_admin)):
            return await self.orders.list_admin_orders()

        @self.app.get("/api/admin/orders/{order_id}")
        async def admin_get_order(order_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            return await self.orders.get_admin_order(order_id)

        @self.app.put("/api/admin/orders/{order_id}")
        async def admin_update_order(
            order_id: str,
            request: OrderStatusUpdate,
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            order = await self.orders.update_status(order_id, request.status)
            return {"message": "Order updated successfully", "order": order}

        @self.app.delete("/api/admin/orders/{order_id}")
        async def admin_delete_order(order_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            await self.orders.delete_order(order_id)
            return {"message": "Order deleted successfully"}

        @self.app.get("/api/user/orders")
        async def user_orders(auth_context: AuthContext = Depends(self.auth.authenticate)):
            return await self.orders.list_customer_orders(auth_context.email)

        @self.app.get("/api/user/orders/stats/summary")
        async def user_order_summary(auth_context: AuthContext = Depends(self.auth.authenticate)):
            return await self.orders.customer_summary(auth_context.email)

        @self.app.get("/api/user/orders/{order_id}")
        async def user_order(order_id: str, auth_context: AuthContext = Depends(self.auth.authenticate)):
            return await self.orders.get_customer_order(order_id, auth_context.email)

    def _setup_review_routes(self):
        """Set up review and social post routes."""

        @self.app.get("/api/reviews")
        async def list_reviews(sort_by: Optional[str] = Query("latest", alias="sortBy")):
            return await self.reviews.list_approved(ReviewSort.parse(sort_by))

        @self.app.post("/api/reviews", status_code=status.HTTP_201_CREATED)
        async def submit_review(request: ReviewCreate):
            review = await self.reviews.submit(request)
            return {"message": "Review submitted successfully and is pending approval", "review": review}

        @self.app.get("/api/admin/reviews")
        async def admin_list_reviews(
            review_filter: ReviewFilter = Query(ReviewFilter.ALL, alias="filter"),
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            return await self.reviews.list_all(review_filter)

        @self.app.patch("/api/admin/reviews/{review_id}/approve")
        async def approve_review(review_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            review = await self.reviews.set_approved(review_id, True)
            return {"message": "Review approved successfully", "review": review}

        @self.app.patch("/api/admin/reviews/{review_id}/reject")
        async def reject_review(review_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            review = await self.reviews.set_approved(review_id, False)
            return {"message": "Review rejected successfully", "review": review}

        @self.app.delete("/api/admin/reviews/{review_id}")
        async def delete_review(review_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            await self.reviews.delete(review_id)
            return {"message": "Review deleted successfully"}

        @self.app.get("/api/social-posts")
        async def list_social_posts():
            return await self.social_posts.list_active()

        @self.app.get("/api/admin/social-posts")
        async def admin_list_social_posts(auth_context: AuthContext = Depends(self.auth.require_admin)):
            return await self.social_posts.list_all()

        @self.app.post("/api/admin/social-posts", status_code=status.HTTP_201_CREATED)
        async def create_social_post(
            request: SocialPostIn,
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            return await self.social_posts.create(request)

        @self.app.put("/api/admin/social-posts/{post_id}")
        async def update_social_post(
            post_id: str,
            changes: Dict[str, Any] = Body(...),
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            return await self.social_posts.update(post_id, changes)

        @self.app.delete("/api/admin/social-posts/{post_id}")
        async def delete_social_post(post_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            await self.social_posts.delete(post_id)
            return {"message": "Social post deleted successfully"}

    def _setup_shipment_routes(self):
        """Set up admin shipment operations."""

        @self.app.post("/api/admin/shipments/sync")
        async def sync_shipments(auth_context: AuthContext = Depends(self.auth.require_admin)):
            """Run one status reconciliation pass now."""
            summary = await self.reconciler.run()
            return {"message": "Shipment status sync completed", "summary": summary.to_dict()}

        @self.app.post("/api/admin/shipments/rates")
        async def shipment_rates(
            rate_request: Dict[str, Any] = Body(...),
            auth_context: AuthContext = Depends(self.auth.require_admin),
        ):
            return await self.shipment_client.get_rates(rate_request)

        @self.app.get("/api/admin/shipments/dead-letters")
        async def list_dead_letters(auth_context: AuthContext = Depends(self.auth.require_admin)):
            return self.dispatcher.list_dead_letters()

        @self.app.post("/api/admin/shipments/dead-letters/{order_id}/retry", status_code=status.HTTP_202_ACCEPTED)
        async def retry_dead_letter(order_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            if not self.dispatcher.requeue(order_id):
                raise NotFoundError("No dead-lettered shipment for order", details={"order_id": order_id})
            return {"message": "Shipment dispatch requeued", "order_id": order_id}

        @self.app.get("/api/admin/shipments/track/awb/{awb}")
        async def track_awb(awb: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            return await self.shipment_client.track_by_awb(awb)

        @self.app.get("/api/admin/shipments/{shiprocket_order_id}/label")
        async def shipment_label(shiprocket_order_id: str, auth_context: AuthContext = Depends(self.auth.require_admin)):
            return await self.shipment_client.print_label(shiprocket_order_id)

    async def _check_dependencies(self):
        """Check storefront service dependencies."""
        dependencies = {}

        try:
            dependencies["redis"] = "ok" if await self.cache_store.health_check() else "error"
        except Exception:
            dependencies["redis"] = "error"

        try:
            dependencies["document_store"] = "ok" if await self.store.health_check() else "error"
        except Exception:
            dependencies["document_store"] = "error"

        return dependencies

    async def start(self):
        """Start storefront service components."""
        await self.store.start()
        await self.cache_store.start()
        await self.dispatcher.start()
        await self.scheduler.start()
        self.logger.info("Storefront service started")

    async def stop(self):
        """Stop storefront service components."""
        await self.scheduler.stop()
        await self.dispatcher.stop()
        await self.cache_store.stop()
        await self.store.stop()
        self.logger.info("Storefront service stopped")


def create_app():
    """Create storefront service application."""
    service = StorefrontService()
    return service.app


if __name__ == "__main__":
    service = StorefrontService()
    service.run()
