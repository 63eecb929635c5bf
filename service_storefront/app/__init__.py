"""
Storefront Service package.

The storefront serves the public catalog and checkout, admin catalog and
order management, reviews and social posts, and keeps order status in sync
with Shiprocket:
- Read-through caching over Redis with table-driven invalidation
- Document persistence in PostgreSQL (JSONB) or in memory
- Background shipment dispatch with retry and a dead-letter queue
- Periodic shipment status reconciliation
"""
