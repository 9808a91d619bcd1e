"""Admin API router.

Administrative commands. All endpoints require the service token and the
admin token; the gateway checks the invoking member's platform privilege.

Endpoints:
- POST /catalog/refresh — recompute available roles from the platform
- POST /test-email — send a throwaway code to check email delivery
- POST /sweep — purge expired codes and orphaned sessions
"""

import structlog
from fastapi import APIRouter

from greeter.api.deps import AdminAuth, Flow, ServiceAuth
from greeter.core.responses import DataResponse
from greeter.schemas.admin import (
    CatalogRefreshResult,
    EmailCheckRequest,
    EmailCheckResult,
    SweepResult,
)

logger = structlog.get_logger()

router = APIRouter()


@router.post("/catalog/refresh")
async def refresh_catalog(
    flow: Flow,
    _auth: ServiceAuth,
    _admin: AdminAuth,
) -> DataResponse[CatalogRefreshResult]:
    """Rescan platform roles and replace the available-roles snapshot.

    Raises:
        TransportError: Platform roles could not be read (snapshot kept).
    """
    available = await flow.refresh_catalog()
    logger.info("admin_catalog_refresh", available=len(available))
    return DataResponse(
        data=CatalogRefreshResult(
            available_roles=sorted(available),
            offered_categories=flow.catalog.offered_categories(),
            missing_roles=flow.catalog.missing_roles(),
        )
    )


@router.post("/test-email")
async def send_test_email(
    body: EmailCheckRequest,
    flow: Flow,
    _auth: ServiceAuth,
    _admin: AdminAuth,
) -> DataResponse[EmailCheckResult]:
    """Send a test verification email.

    Raises:
        ValidationError: No address given and none configured.
        TransportError: Delivery failed.
    """
    address = str(body.email) if body.email is not None else None
    sent_to = await flow.send_test_email(address)
    return DataResponse(data=EmailCheckResult(sent_to=sent_to))


@router.post("/sweep")
async def sweep(
    flow: Flow,
    _auth: ServiceAuth,
    _admin: AdminAuth,
) -> DataResponse[SweepResult]:
    """Purge expired codes and orphaned or abandoned sessions."""
    challenges, sessions = flow.sweep()
    return DataResponse(
        data=SweepResult(challenges_removed=challenges, sessions_removed=sessions)
    )
