"""API routes for the FastAPI application."""

from tollgate.api.router import TrailingSlashRouter
from tollgate.api.v1.endpoints import (
    checkout,
    health,
    plans,
    reports,
    resources,
    subscriptions,
    webhooks,
)

# Use our custom router that handles trailing slashes
api_router = TrailingSlashRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(plans.router, prefix="/plans", tags=["plans"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(checkout.router, prefix="/checkout", tags=["checkout"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(resources.router, tags=["resources"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
