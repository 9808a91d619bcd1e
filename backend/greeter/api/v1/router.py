"""API v1 router aggregator.

All v1 endpoint routers are included here.
"""

from fastapi import APIRouter

from greeter.api.v1 import admin, events, onboarding

router = APIRouter()

# =============================================================================
# Platform events
# =============================================================================

router.include_router(events.router, prefix="/events", tags=["events"])

# =============================================================================
# Onboarding
# =============================================================================

router.include_router(onboarding.router, prefix="/onboarding", tags=["onboarding"])

# =============================================================================
# Admin
# =============================================================================

router.include_router(admin.router, prefix="/admin", tags=["admin"])
