"""Onboarding request/response schemas.

The flow emits a ``RenderedView`` on every transition. The chat gateway
turns it into the platform's native interactive message (embed, buttons,
select menus) and routes the member's actions back to the API.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# =============================================================================
# Enums
# =============================================================================


class OnboardingPhase(str, Enum):
    """Where a member is in the onboarding flow.

    AWAITING_INFO has no stored session; COMPLETED is terminal and the
    session is deleted on entry. Only the phases in between are persisted.
    Verification is an entry action run inside submit_code, so it has no
    phase of its own: an accepted code lands in CATEGORY_SELECTING.
    """

    AWAITING_INFO = "awaiting_info"
    AWAITING_VERIFICATION = "awaiting_verification"
    CATEGORY_SELECTING = "category_selecting"
    ROLE_TOGGLING = "role_toggling"
    COMPLETED = "completed"


class ViewAction(str, Enum):
    """Navigation affordances the gateway renders as buttons/menus."""

    START = "start"
    SUBMIT_INFO = "submit_info"
    SUBMIT_CODE = "submit_code"
    RESEND = "resend"
    SELECT_CATEGORY = "select_category"
    TOGGLE_ROLE = "toggle_role"
    BACK = "back"
    COMPLETE = "complete"


# =============================================================================
# Response Schemas
# =============================================================================


class RoleRow(BaseModel):
    """One selectable row: a role (checked = held) or a category."""

    label: str
    checked: bool = False


class RenderedView(BaseModel):
    """Abstract view of the member's current onboarding step.

    Attributes:
        phase: Onboarding phase the view belongs to.
        title: Heading (embed title).
        description: Body text.
        rows: Selectable rows; roles in RoleToggling, categories in
            CategorySelecting, empty otherwise.
        actions: Affordances available from this view.
        category: Active category while toggling roles.
    """

    phase: OnboardingPhase
    title: str
    description: str
    rows: list[RoleRow] = Field(default_factory=list)
    actions: list[ViewAction] = Field(default_factory=list)
    category: str | None = None


# =============================================================================
# Request Schemas
# =============================================================================


class _StrictRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class ProfileSubmission(_StrictRequest):
    """Request body for POST /onboarding/{user_id}/profile."""

    full_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr


class CodeSubmission(_StrictRequest):
    """Request body for POST /onboarding/{user_id}/code."""

    code: str = Field(..., min_length=1, max_length=16)


class CategorySelection(_StrictRequest):
    """Request body for POST /onboarding/{user_id}/category."""

    category: str = Field(..., min_length=1, max_length=100)


class RoleToggleRequest(_StrictRequest):
    """Request body for POST /onboarding/{user_id}/roles/toggle."""

    role_name: str = Field(..., min_length=1, max_length=100)


class MemberJoinEvent(_StrictRequest):
    """Request body for POST /events/member-join."""

    user_id: str = Field(..., min_length=1, max_length=64)

    @field_validator("user_id")
    @classmethod
    def user_id_is_token(cls, v: str) -> str:
        """Reject ids containing whitespace or path separators."""
        if any(ch.isspace() or ch == "/" for ch in v):
            msg = "user_id must be an opaque identifier"
            raise ValueError(msg)
        return v
