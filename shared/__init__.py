"""
Shared utilities for the Storefront backend.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators
- circuit_breaker: Resilient external call protection
- base_service: FastAPI service skeleton

Do not import from service_* packages into shared/.
"""
