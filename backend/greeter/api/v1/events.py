"""Platform event router.

Endpoints:
- POST /member-join — a member joined the guild
"""

import structlog
from fastapi import APIRouter

from greeter.api.deps import Flow, ServiceAuth
from greeter.core.responses import DataResponse
from greeter.schemas.onboarding import MemberJoinEvent, RenderedView

logger = structlog.get_logger()

router = APIRouter()


@router.post("/member-join")
async def member_join(
    body: MemberJoinEvent,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Refresh the role catalog, grant the base role, return the welcome view."""
    logger.debug("member_join_event", user_id=body.user_id)
    return DataResponse(data=await flow.member_joined(body.user_id))
