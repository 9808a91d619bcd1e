"""Onboarding state machine.

Drives a member through:

    AwaitingInfo → AwaitingVerification → Verified → CategorySelecting
        ⇄ RoleToggling → Completed

Transitions:
- AwaitingInfo → AwaitingVerification: profile with an accepted email domain;
  session stored, code issued and emailed.
- AwaitingVerification → AwaitingVerification: wrong/expired code or resend.
- AwaitingVerification → Verified → CategorySelecting: matching code. Entry
  action sets the nickname and grants the email-identity role; failures of
  either are logged and do not roll verification back.
- CategorySelecting → RoleToggling: exactly one category picked.
- RoleToggling → CategorySelecting: back.
- CategorySelecting / RoleToggling → Completed: base restricted role
  removed, session deleted.

Every entry point for the same member runs under that member's lock. Every
failure is an APIError whose message is shown to the member as-is.
"""

import asyncio
import math
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

import structlog

from greeter.core.config import Settings, settings
from greeter.core.errors import (
    APIError,
    CooldownError,
    InvalidStateError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from greeter.providers.email.base import EmailTransport
from greeter.providers.errors import ProviderError
from greeter.providers.factory import get_directory, get_email_transport
from greeter.providers.platform.base import PlatformDirectory
from greeter.schemas.onboarding import OnboardingPhase, RenderedView
from greeter.services.onboarding_views import (
    categories_view,
    code_sent_view,
    completed_view,
    welcome_view,
)
from greeter.services.role_catalog import RoleCatalog
from greeter.services.role_toggle import RoleToggleEngine
from greeter.services.session_store import OnboardingSession, OnboardingSessionStore
from greeter.services.verification_store import (
    VerificationCodeStore,
    VerifiedIdentity,
    generate_code,
)

logger = structlog.get_logger()

_MAX_NAME_LENGTH = 50
_CODE_LENGTH = 6

_SESSION = "onboarding session"
_EMAIL_FAILED_MSG = (
    "We couldn't send the verification email. Please use resend to try again."
)
_PICK_CATEGORY_MSG = "Pick a category first."
_ALREADY_VERIFIED_MSG = "You're already verified. Continue choosing your roles."
_NOT_VERIFIED_MSG = "Please verify your email first."


def email_domain(email: str) -> str:
    """Lower-cased domain part of an address ('' if there is none)."""
    _, sep, domain = email.strip().lower().rpartition("@")
    return domain if sep else ""


def is_accepted_email(email: str, accepted_domains: Iterable[str]) -> bool:
    """Whether the address belongs to an accepted institutional domain.

    The lower-cased domain must equal an accepted domain or be a subdomain
    of one ("x@a.example.edu" is accepted for "example.edu";
    "x@evilexample.edu" is not).

    Args:
        email: Address as submitted.
        accepted_domains: Allow-listed domains, lower-cased.

    Returns:
        True if accepted.
    """
    local, sep, _ = email.strip().lower().rpartition("@")
    domain = email_domain(email)
    if not sep or not local or not domain or "@" in local:
        return False
    return any(
        domain == accepted or domain.endswith(f".{accepted}")
        for accepted in accepted_domains
    )


class OnboardingFlow:
    """Per-member onboarding state machine.

    Args:
        directory: Platform directory for roles and nicknames.
        email_transport: Delivers verification codes.
        catalog: Role catalog shared by all members.
        sessions: Session store.
        codes: Verification code store.
        accepted_domains: Institutional email domains, lower-cased.
        base_role_name: Restricted role removed on completion.
        code_ttl_minutes: Verification code lifetime (shown to the member).
        resend_cooldown_seconds: Minimum gap between two codes for a member.
        session_idle_timeout: Sessions idle this long are swept.
        test_email_address: Default recipient of the admin test email.
    """

    def __init__(
        self,
        *,
        directory: PlatformDirectory,
        email_transport: EmailTransport,
        catalog: RoleCatalog,
        sessions: OnboardingSessionStore,
        codes: VerificationCodeStore,
        accepted_domains: Iterable[str],
        base_role_name: str,
        code_ttl_minutes: int,
        resend_cooldown_seconds: int = 0,
        session_idle_timeout: timedelta = timedelta(hours=24),
        test_email_address: str = "",
    ) -> None:
        self.directory = directory
        self.email_transport = email_transport
        self.catalog = catalog
        self.sessions = sessions
        self.codes = codes
        self.toggle_engine = RoleToggleEngine(catalog, directory)
        self._accepted_domains = tuple(accepted_domains)
        self._base_role_name = base_role_name
        self._code_ttl_minutes = code_ttl_minutes
        self._resend_cooldown = timedelta(seconds=resend_cooldown_seconds)
        self._session_idle_timeout = session_idle_timeout
        self._test_email_address = test_email_address
        self._locks: dict[str, asyncio.Lock] = {}
        # Entry points holding or waiting on each member lock
        self._lock_users: dict[str, int] = {}

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        *,
        directory: PlatformDirectory,
        email_transport: EmailTransport,
    ) -> "OnboardingFlow":
        """Build a flow with fresh stores from application settings."""
        return cls(
            directory=directory,
            email_transport=email_transport,
            catalog=RoleCatalog(config.role_categories, config.protected_roles),
            sessions=OnboardingSessionStore(),
            codes=VerificationCodeStore(
                ttl_minutes=config.verification_code_ttl_minutes,
                max_attempts=config.max_code_attempts,
            ),
            accepted_domains=config.normalized_email_domains,
            base_role_name=config.base_role_name,
            code_ttl_minutes=config.verification_code_ttl_minutes,
            resend_cooldown_seconds=config.resend_cooldown_seconds,
            session_idle_timeout=timedelta(hours=config.session_idle_timeout_hours),
            test_email_address=config.test_email_address,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @asynccontextmanager
    async def _member_lock(self, user_id: str) -> AsyncIterator[None]:
        """Hold the member's lock; counted so sweep never drops one in use."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]

    def _require_session(
        self, user_id: str, *allowed: OnboardingPhase
    ) -> OnboardingSession:
        """Return the member's session if it is in one of ``allowed`` phases.

        Raises:
            NotFoundError: No session (setup never started or already done).
            InvalidStateError: Session is in another phase.
        """
        session = self.sessions.get(user_id)
        if session is None:
            raise NotFoundError(_SESSION)
        if session.phase not in allowed:
            if session.phase == OnboardingPhase.AWAITING_VERIFICATION:
                raise InvalidStateError(_NOT_VERIFIED_MSG)
            if allowed == (OnboardingPhase.AWAITING_VERIFICATION,):
                raise InvalidStateError(_ALREADY_VERIFIED_MSG)
            raise InvalidStateError(_PICK_CATEGORY_MSG)
        return session

    def _validate_profile(self, full_name: str, email: str) -> tuple[str, str]:
        """Normalise and check the profile form.

        Returns:
            (full_name, email) stripped; email lower-cased.

        Raises:
            ValidationError: Name empty/too long or email not accepted.
        """
        name = full_name.strip()
        if not name or len(name) > _MAX_NAME_LENGTH:
            raise ValidationError(
                f"Please enter your full name (1-{_MAX_NAME_LENGTH} characters).",
                details=[{"field": "full_name", "error": "INVALID_LENGTH"}],
            )

        address = email.strip().lower()
        if not is_accepted_email(address, self._accepted_domains):
            domains = ", ".join(f"@{d}" for d in self._accepted_domains)
            raise ValidationError(
                f"Please use your institutional email address ({domains}).",
                details=[{"field": "email", "error": "DOMAIN_NOT_ACCEPTED"}],
            )
        return name, address

    async def _issue_and_send(self, user_id: str, email: str, full_name: str) -> None:
        """Issue a fresh code and email it.

        On delivery failure the new challenge is discarded so no code exists
        that the member never received.

        Raises:
            TransportError: Email delivery failed.
        """
        issued = self.codes.issue(user_id, email, full_name)
        try:
            await self.email_transport.send_verification_code(
                to_address=email, code=issued.code, display_name=full_name
            )
        except ProviderError as e:
            self.codes.discard(user_id)
            logger.warning(
                "verification_email_failed",
                user_id=user_id,
                email_domain=email_domain(email),
                error_type=type(e).__name__,
            )
            raise TransportError(_EMAIL_FAILED_MSG) from e

        logger.info(
            "verification_code_sent",
            user_id=user_id,
            email_domain=email_domain(email),
            expires_at=issued.expires_at.isoformat(),
        )

    async def _enter_verified(self, user_id: str, identity: VerifiedIdentity) -> None:
        """Verified entry action: nickname and email-identity role.

        Both are cosmetic: failures are logged and the flow advances.
        The identity role is looked up by name before creation so re-running
        this never creates a duplicate.
        """
        try:
            await self.directory.set_nickname(user_id, identity.full_name)
        except ProviderError as e:
            logger.warning(
                "nickname_update_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )

        try:
            role = await self.directory.find_role_by_name(identity.email)
            if role is None:
                role = await self.directory.create_role(identity.email)
            await self.directory.grant_role(user_id, role)
        except ProviderError as e:
            logger.warning(
                "identity_role_grant_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _categories_view(self, session: OnboardingSession) -> RenderedView:
        return categories_view(session.full_name, self.catalog.offered_categories())

    # =========================================================================
    # Member entry points
    # =========================================================================

    async def member_joined(self, user_id: str) -> RenderedView:
        """A member joined the guild.

        Refreshes the catalog, clears leftovers of an earlier setup and
        grants the base restricted role. Platform failures are logged; the
        welcome view is returned regardless.
        """
        try:
            await self.catalog.refresh(self.directory)
        except TransportError:
            logger.warning("catalog_refresh_on_join_failed", user_id=user_id)

        async with self._member_lock(user_id):
            self.sessions.remove(user_id)
            self.codes.discard(user_id)

            try:
                base_role = await self.directory.find_role_by_name(self._base_role_name)
                if base_role is None:
                    logger.warning("base_role_missing", role=self._base_role_name)
                else:
                    await self.directory.grant_role(user_id, base_role)
            except ProviderError as e:
                logger.warning(
                    "base_role_grant_failed",
                    user_id=user_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        logger.info("member_joined", user_id=user_id)
        return welcome_view(self._accepted_domains)

    async def begin(self, user_id: str) -> RenderedView:
        """Member pressed "start setup".

        A setup that has not been verified yet restarts from scratch (its
        session and pending code are discarded). A verified setup resumes.
        """
        async with self._member_lock(user_id):
            session = self.sessions.get(user_id)
            if session is not None and session.phase != (
                OnboardingPhase.AWAITING_VERIFICATION
            ):
                return await self._render(session)

            self.sessions.remove(user_id)
            self.codes.discard(user_id)
            return welcome_view(self._accepted_domains)

    async def submit_info(self, user_id: str, full_name: str, email: str) -> RenderedView:
        """Profile form submitted.

        A rejected profile leaves no session and no pending code behind.

        Raises:
            ValidationError: Name or email rejected.
            InvalidStateError: Member is already verified.
            TransportError: Code could not be emailed (use resend).
        """
        async with self._member_lock(user_id):
            session = self.sessions.get(user_id)
            if session is not None and session.phase != (
                OnboardingPhase.AWAITING_VERIFICATION
            ):
                raise InvalidStateError(_ALREADY_VERIFIED_MSG)

            try:
                name, address = self._validate_profile(full_name, email)
            except ValidationError:
                self.sessions.remove(user_id)
                self.codes.discard(user_id)
                logger.info(
                    "profile_rejected",
                    user_id=user_id,
                    email_domain=email_domain(email),
                )
                raise

            self.sessions.put(user_id, name, address)
            await self._issue_and_send(user_id, address, name)
            return code_sent_view(address, self._code_ttl_minutes)

    async def resend_code(self, user_id: str) -> RenderedView:
        """Issue and email a new code; the previous one stops working.

        Raises:
            NotFoundError: No session.
            InvalidStateError: Member is already verified.
            CooldownError: Last code was sent too recently.
            TransportError: Code could not be emailed.
        """
        async with self._member_lock(user_id):
            session = self._require_session(
                user_id, OnboardingPhase.AWAITING_VERIFICATION
            )

            challenge = self.codes.get(user_id)
            if challenge is not None and self._resend_cooldown:
                elapsed = datetime.now(UTC) - challenge.issued_at
                if elapsed < self._resend_cooldown:
                    remaining = (self._resend_cooldown - elapsed).total_seconds()
                    raise CooldownError(max(1, math.ceil(remaining)))

            await self._issue_and_send(user_id, session.email, session.full_name)
            logger.info("verification_code_resent", user_id=user_id)
            return code_sent_view(session.email, self._code_ttl_minutes)

    async def submit_code(self, user_id: str, code: str) -> RenderedView:
        """Verification code submitted.

        Raises:
            NotFoundError: No session, or no pending code.
            InvalidStateError: Member is already verified.
            ValidationError: Not a 6-digit code.
            ExpiredError: Code expired (request a new one).
            MismatchError: Wrong code (try again or resend).
            TooManyAttemptsError: Attempt bound reached (request a new one).
        """
        async with self._member_lock(user_id):
            self._require_session(user_id, OnboardingPhase.AWAITING_VERIFICATION)

            submitted = code.strip()
            if len(submitted) != _CODE_LENGTH or not submitted.isdigit():
                raise ValidationError(
                    f"Verification codes are {_CODE_LENGTH} digits.",
                    details=[{"field": "code", "error": "INVALID_FORMAT"}],
                )

            try:
                identity = self.codes.validate(user_id, submitted)
            except APIError as e:
                logger.info("verification_code_rejected", user_id=user_id, reason=e.code)
                raise

            session = self.sessions.update(
                user_id,
                full_name=identity.full_name,
                verified_email=identity.email,
                phase=OnboardingPhase.CATEGORY_SELECTING,
                active_category=None,
            )
            if session is None:
                raise NotFoundError(_SESSION)
            await self._enter_verified(user_id, identity)

            logger.info(
                "member_verified",
                user_id=user_id,
                email_domain=email_domain(identity.email),
            )
            return self._categories_view(session)

    async def select_category(self, user_id: str, category: str) -> RenderedView:
        """Pick the one category to edit. No platform mutation.

        Raises:
            NotFoundError: No session.
            InvalidStateError: Member is not verified yet.
            ValidationError: Category is unknown or has no selectable roles.
            TransportError: Current roles could not be read.
        """
        async with self._member_lock(user_id):
            self._require_session(
                user_id,
                OnboardingPhase.CATEGORY_SELECTING,
                OnboardingPhase.ROLE_TOGGLING,
            )
            if category not in self.catalog.offered_categories():
                raise ValidationError(
                    "That category isn't available. Please pick another one.",
                    details=[{"field": "category", "error": "NOT_OFFERED"}],
                )

            view = await self.toggle_engine.render_category(user_id, category)
            self.sessions.update(
                user_id,
                phase=OnboardingPhase.ROLE_TOGGLING,
                active_category=category,
            )
            return view

    async def go_back(self, user_id: str) -> RenderedView:
        """Leave the active category and return to category selection.

        Roles toggled so far are kept.
        """
        async with self._member_lock(user_id):
            self._require_session(user_id, OnboardingPhase.ROLE_TOGGLING)
            session = self.sessions.update(
                user_id,
                phase=OnboardingPhase.CATEGORY_SELECTING,
                active_category=None,
            )
            if session is None:
                raise NotFoundError(_SESSION)
            return self._categories_view(session)

    async def toggle_role(self, user_id: str, role_name: str) -> RenderedView:
        """Flip one role within the member's active category.

        Raises:
            NotFoundError: No session.
            InvalidStateError: No active category.
            ProtectedRoleError, UnavailableRoleError, RoleNotFoundError,
            TransportError: see RoleToggleEngine.toggle.
        """
        async with self._member_lock(user_id):
            session = self._require_session(user_id, OnboardingPhase.ROLE_TOGGLING)
            if session.active_category is None:
                raise InvalidStateError(_PICK_CATEGORY_MSG)
            return await self.toggle_engine.toggle(
                user_id, session.active_category, role_name
            )

    async def complete(self, user_id: str) -> RenderedView:
        """Finish setup: remove the base restricted role, drop the session.

        Raises:
            NotFoundError: No session (already completed or never started).
            InvalidStateError: Member is not verified yet.
            TransportError: Base role could not be removed; the session is
                kept so the member can retry.
        """
        async with self._member_lock(user_id):
            session = self._require_session(
                user_id,
                OnboardingPhase.CATEGORY_SELECTING,
                OnboardingPhase.ROLE_TOGGLING,
            )

            try:
                base_role = await self.directory.find_role_by_name(self._base_role_name)
                if base_role is None:
                    logger.warning("base_role_missing", role=self._base_role_name)
                else:
                    await self.directory.revoke_role(user_id, base_role)
            except ProviderError as e:
                logger.error(
                    "base_role_revoke_failed",
                    user_id=user_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise TransportError(
                    "We couldn't finish your setup. Please try again."
                ) from e

            self.sessions.remove(user_id)
            self.codes.discard(user_id)
            logger.info("onboarding_completed", user_id=user_id)
            return completed_view(session.full_name)

    async def current_view(self, user_id: str) -> RenderedView:
        """Re-render the view for the member's current phase."""
        async with self._member_lock(user_id):
            session = self.sessions.get(user_id)
            if session is None:
                return welcome_view(self._accepted_domains)
            return await self._render(session)

    async def _render(self, session: OnboardingSession) -> RenderedView:
        if session.phase == OnboardingPhase.AWAITING_VERIFICATION:
            return code_sent_view(session.email, self._code_ttl_minutes)
        if (
            session.phase == OnboardingPhase.ROLE_TOGGLING
            and session.active_category is not None
        ):
            return await self.toggle_engine.render_category(
                session.user_id, session.active_category
            )
        return self._categories_view(session)

    # =========================================================================
    # Administrative operations
    # =========================================================================

    async def refresh_catalog(self) -> frozenset[str]:
        """Recompute the available roles from the platform."""
        return await self.catalog.refresh(self.directory)

    async def send_test_email(self, address: str | None = None) -> str:
        """Send a throwaway code to check email delivery.

        The code is not stored and cannot be used to verify anyone.

        Args:
            address: Recipient; defaults to the configured test address.

        Returns:
            The address the email was sent to.

        Raises:
            ValidationError: No address given and none configured.
            TransportError: Delivery failed.
        """
        recipient = (address or self._test_email_address).strip()
        if not recipient:
            raise ValidationError(
                "No test email address given and TEST_EMAIL_ADDRESS is not set."
            )
        try:
            await self.email_transport.send_verification_code(
                to_address=recipient,
                code=generate_code(),
                display_name="Test recipient",
            )
        except ProviderError as e:
            logger.warning(
                "test_email_failed",
                email_domain=email_domain(recipient),
                error_type=type(e).__name__,
            )
            raise TransportError(
                "Test email could not be sent. Check the email settings."
            ) from e
        logger.info("test_email_sent", email_domain=email_domain(recipient))
        return recipient

    def sweep(self) -> tuple[int, int]:
        """Purge expired challenges and orphaned or abandoned sessions.

        Returns:
            (challenges_removed, sessions_removed).
        """
        expired = self.codes.sweep_expired()
        sessions_removed = self.sessions.sweep(
            expired_challenge_user_ids=expired,
            idle_before=datetime.now(UTC) - self._session_idle_timeout,
        )
        for user_id in list(self._locks):
            if user_id not in self._lock_users and self.sessions.get(user_id) is None:
                del self._locks[user_id]

        if expired or sessions_removed:
            logger.info(
                "onboarding_sweep",
                challenges_removed=len(expired),
                sessions_removed=sessions_removed,
            )
        return len(expired), sessions_removed


# Singleton instance for the application
_flow: OnboardingFlow | None = None


def get_onboarding_flow() -> OnboardingFlow:
    """Get the singleton onboarding flow, wired from settings.

    Returns:
        The OnboardingFlow singleton.
    """
    global _flow
    if _flow is None:
        _flow = OnboardingFlow.from_settings(
            settings,
            directory=get_directory(),
            email_transport=get_email_transport(),
        )
    return _flow


def reset_onboarding_flow() -> None:
    """Reset the onboarding flow singleton (for testing)."""
    global _flow
    _flow = None
