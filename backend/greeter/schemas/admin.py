"""Admin command request/response schemas."""

from pydantic import BaseModel, ConfigDict, EmailStr


class EmailCheckRequest(BaseModel):
    """Request body for POST /admin/test-email.

    ``email`` defaults to ``Settings.test_email_address`` when omitted.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr | None = None


class CatalogRefreshResult(BaseModel):
    """Outcome of a catalog refresh."""

    available_roles: list[str]
    offered_categories: list[str]
    missing_roles: list[str]


class SweepResult(BaseModel):
    """Outcome of a housekeeping sweep."""

    challenges_removed: int
    sessions_removed: int


class EmailCheckResult(BaseModel):
    """Outcome of a test email."""

    sent_to: str
