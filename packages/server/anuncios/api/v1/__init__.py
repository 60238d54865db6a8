"""
API v1 Router

Every handler authenticates on its own and answers 401/403/404 with the
JSON error envelope; the page gate never redirects ``/api/*``.
"""

from fastapi import APIRouter

from . import admin, collections, flags, organizations, shared, subscriptions, webhooks
from .addons import catalog_router as addons_catalog_router
from .addons import user_router as user_addons_router

router = APIRouter()

# Registered first so "/collections/public" is not read as a collection id
router.include_router(shared.public_router, prefix="/collections/public", tags=["Collections"])
router.include_router(collections.router, prefix="/collections", tags=["Collections"])
router.include_router(shared.router, prefix="/shared", tags=["Collections"])
router.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
router.include_router(user_addons_router, prefix="/user/addons", tags=["Add-ons"])
router.include_router(addons_catalog_router, prefix="/addons", tags=["Add-ons"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
router.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
router.include_router(subscriptions.plans_router, prefix="/plans", tags=["Subscriptions"])
router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
router.include_router(flags.router, prefix="/flags", tags=["Feature flags"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/collections",
            "/collections/public",
            "/shared/{token}",
            "/organizations",
            "/user/addons",
            "/addons",
            "/admin",
            "/subscriptions/current",
            "/plans",
            "/webhooks/billing",
            "/flags",
        ],
    }
