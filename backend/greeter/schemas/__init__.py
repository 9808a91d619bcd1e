"""Pydantic request/response schemas for API endpoints."""

from greeter.schemas.admin import (
    CatalogRefreshResult,
    EmailCheckRequest,
    EmailCheckResult,
    SweepResult,
)
from greeter.schemas.onboarding import (
    CategorySelection,
    CodeSubmission,
    MemberJoinEvent,
    OnboardingPhase,
    ProfileSubmission,
    RenderedView,
    RoleRow,
    RoleToggleRequest,
    ViewAction,
)

__all__ = [
    # Admin
    "CatalogRefreshResult",
    "EmailCheckRequest",
    "EmailCheckResult",
    "SweepResult",
    # Onboarding
    "CategorySelection",
    "CodeSubmission",
    "MemberJoinEvent",
    "OnboardingPhase",
    "ProfileSubmission",
    "RenderedView",
    "RoleRow",
    "RoleToggleRequest",
    "ViewAction",
]
