"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from custody.app.api.v1.endpoints import auth, customer, rider, admin, tracking

router = APIRouter()

router.include_router(auth.router)
router.include_router(customer.router)
router.include_router(rider.router)
router.include_router(admin.router)
router.include_router(tracking.router)
