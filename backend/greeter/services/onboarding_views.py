"""Builders for the views emitted at each onboarding step.

Pure functions: no store or platform access.
"""

from collections.abc import Iterable

from greeter.schemas.onboarding import OnboardingPhase, RenderedView, RoleRow, ViewAction


def welcome_view(accepted_domains: Iterable[str]) -> RenderedView:
    """AwaitingInfo: ask for name and institutional email."""
    domains = ", ".join(f"@{domain}" for domain in accepted_domains)
    return RenderedView(
        phase=OnboardingPhase.AWAITING_INFO,
        title="Welcome! Let's get you set up",
        description=(
            "Tell us your full name and your institutional email address "
            f"({domains}). We'll send you a 6-digit code to confirm it's yours."
        ),
        actions=[ViewAction.START, ViewAction.SUBMIT_INFO],
    )


def code_sent_view(email: str, ttl_minutes: int) -> RenderedView:
    """AwaitingVerification: the code is on its way."""
    return RenderedView(
        phase=OnboardingPhase.AWAITING_VERIFICATION,
        title="Check your inbox",
        description=(
            f"We sent a 6-digit code to {email}. Enter it within "
            f"{ttl_minutes} minutes. Didn't get it? Ask for a new one."
        ),
        actions=[ViewAction.SUBMIT_CODE, ViewAction.RESEND],
    )


def categories_view(full_name: str, categories: Iterable[str]) -> RenderedView:
    """CategorySelecting: pick one category to edit."""
    rows = [RoleRow(label=name) for name in categories]
    if rows:
        description = (
            f"You're verified, {full_name}! Pick a category to choose your roles. "
            "You can come back and pick another one at any time."
        )
    else:
        description = (
            f"You're verified, {full_name}! There are no self-assignable roles "
            "right now. Finish setup to get access to the server."
        )
    actions = [ViewAction.SELECT_CATEGORY] if rows else []
    actions.append(ViewAction.COMPLETE)
    return RenderedView(
        phase=OnboardingPhase.CATEGORY_SELECTING,
        title="Choose a category",
        description=description,
        rows=rows,
        actions=actions,
    )


def roles_view(category: str, roles: Iterable[str], held: set[str]) -> RenderedView:
    """RoleToggling: the category's roles with their current state."""
    return RenderedView(
        phase=OnboardingPhase.ROLE_TOGGLING,
        title=f"{category} roles",
        description=(
            "Click a role to add or remove it. Go back to pick another "
            "category, or finish when you're done."
        ),
        rows=[RoleRow(label=role, checked=role in held) for role in roles],
        actions=[ViewAction.TOGGLE_ROLE, ViewAction.BACK, ViewAction.COMPLETE],
        category=category,
    )


def completed_view(full_name: str) -> RenderedView:
    """Completed: terminal view."""
    return RenderedView(
        phase=OnboardingPhase.COMPLETED,
        title="You're all set!",
        description=f"Welcome aboard, {full_name}. You now have full access.",
    )
