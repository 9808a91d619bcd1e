"""Onboarding API router.

Entry points the chat gateway calls on behalf of a member. Every endpoint
returns the view to render next.

Endpoints:
- GET  /{user_id} — current view
- POST /{user_id}/start — begin (or resume) setup
- POST /{user_id}/profile — submit name and institutional email
- POST /{user_id}/code — submit verification code
- POST /{user_id}/code/resend — email a new code
- POST /{user_id}/category — pick the category to edit
- POST /{user_id}/back — back to category selection
- POST /{user_id}/roles/toggle — flip one role
- POST /{user_id}/complete — finish setup
"""

from fastapi import APIRouter, Request

from greeter.api.deps import Flow, PlatformUserId, ServiceAuth
from greeter.core.config import settings
from greeter.core.rate_limiting import limiter
from greeter.core.responses import DataResponse
from greeter.schemas.onboarding import (
    CategorySelection,
    CodeSubmission,
    ProfileSubmission,
    RenderedView,
    RoleToggleRequest,
)

router = APIRouter()


@router.get("/{user_id}")
async def get_current_view(
    user_id: PlatformUserId,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Re-render the member's current step."""
    return DataResponse(data=await flow.current_view(user_id))


@router.post("/{user_id}/start")
async def start_setup(
    user_id: PlatformUserId,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Begin setup, or resume it if the member is already verified."""
    return DataResponse(data=await flow.begin(user_id))


@router.post("/{user_id}/profile")
async def submit_profile(
    user_id: PlatformUserId,
    body: ProfileSubmission,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Submit name and institutional email; a code is emailed on success.

    Raises:
        ValidationError: Email domain not accepted (no session, no code).
        TransportError: Email could not be sent (use resend).
    """
    view = await flow.submit_info(user_id, body.full_name, str(body.email))
    return DataResponse(data=view)


@router.post("/{user_id}/code")
@limiter.limit(settings.rate_limit_code_submit)
async def submit_code(
    request: Request,  # noqa: ARG001
    user_id: PlatformUserId,
    body: CodeSubmission,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Submit the emailed verification code.

    Rate limit: per member, see RATE_LIMIT_CODE_SUBMIT.
    """
    return DataResponse(data=await flow.submit_code(user_id, body.code))


@router.post("/{user_id}/code/resend")
async def resend_code(
    user_id: PlatformUserId,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Email a new code; the previous one stops working.

    Raises:
        CooldownError: Inside the per-member resend cooldown.
    """
    return DataResponse(data=await flow.resend_code(user_id))


@router.post("/{user_id}/category")
async def select_category(
    user_id: PlatformUserId,
    body: CategorySelection,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Pick the one category whose roles the member wants to edit."""
    return DataResponse(data=await flow.select_category(user_id, body.category))


@router.post("/{user_id}/back")
async def go_back(
    user_id: PlatformUserId,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Return to category selection; toggled roles are kept."""
    return DataResponse(data=await flow.go_back(user_id))


@router.post("/{user_id}/roles/toggle")
async def toggle_role(
    user_id: PlatformUserId,
    body: RoleToggleRequest,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Flip one role in the active category."""
    return DataResponse(data=await flow.toggle_role(user_id, body.role_name))


@router.post("/{user_id}/complete")
async def complete_setup(
    user_id: PlatformUserId,
    flow: Flow,
    _auth: ServiceAuth,
) -> DataResponse[RenderedView]:
    """Finish setup: base restricted role removed, session deleted."""
    return DataResponse(data=await flow.complete(user_id))
