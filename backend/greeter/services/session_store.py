"""In-memory store for onboarding sessions.

A session carries the profile captured at the start of setup (name, email)
plus the member's phase and active category across later steps. It has no
TTL of its own: it ends on completion or in a housekeeping sweep.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from greeter.schemas.onboarding import OnboardingPhase

# Fields callers may change through update(); identity fields are fixed.
_MUTABLE_FIELDS = frozenset(
    {"full_name", "email", "verified_email", "phase", "active_category"}
)


@dataclass(frozen=True)
class OnboardingSession:
    """Snapshot of one member's onboarding state.

    Snapshots are immutable; ``update`` stores a new one.

    Attributes:
        user_id: Platform user id.
        full_name: Name captured in the profile form (1..50 chars).
        email: Institutional address submitted for verification.
        verified_email: Set once the code was accepted.
        phase: Current onboarding phase.
        active_category: Category being edited while toggling roles.
        created_at: When the profile was submitted.
        updated_at: Last change.
    """

    user_id: str
    full_name: str
    email: str
    phase: OnboardingPhase = OnboardingPhase.AWAITING_VERIFICATION
    verified_email: str | None = None
    active_category: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class OnboardingSessionStore:
    """Keyed store of onboarding sessions.

    All operations hold a store-wide lock.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, OnboardingSession] = {}
        self._lock = threading.Lock()

    def put(
        self,
        user_id: str,
        full_name: str,
        email: str,
        *,
        phase: OnboardingPhase = OnboardingPhase.AWAITING_VERIFICATION,
    ) -> OnboardingSession:
        """Create or replace the member's session.

        Args:
            user_id: Member id.
            full_name: Name from the profile form.
            email: Address submitted for verification.
            phase: Initial phase.

        Returns:
            The stored session.
        """
        session = OnboardingSession(
            user_id=user_id, full_name=full_name, email=email, phase=phase
        )
        with self._lock:
            self._sessions[user_id] = session
        return session

    def get(self, user_id: str) -> OnboardingSession | None:
        """Return the member's session, or None."""
        with self._lock:
            return self._sessions.get(user_id)

    def update(self, user_id: str, /, **changes: Any) -> OnboardingSession | None:
        """Apply field changes to an existing session.

        Args:
            user_id: Member id.
            **changes: New values for full_name, email, verified_email,
                phase or active_category.

        Returns:
            The updated session, or None if the member has no session.

        Raises:
            ValueError: If a field is not updatable.
        """
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session fields: {sorted(unknown)}")

        with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                return None
            updated = replace(session, **changes, updated_at=datetime.now(UTC))
            self._sessions[user_id] = updated
            return updated

    def remove(self, user_id: str) -> bool:
        """Delete the member's session.

        Returns:
            True if a session was removed.
        """
        with self._lock:
            return self._sessions.pop(user_id, None) is not None

    def sweep(
        self,
        *,
        expired_challenge_user_ids: list[str],
        idle_before: datetime,
    ) -> int:
        """Remove orphaned and abandoned sessions.

        Removes sessions still awaiting verification whose challenge just
        expired, and any session not updated since ``idle_before``.

        Args:
            expired_challenge_user_ids: Members whose challenge was swept.
            idle_before: Sessions last updated before this are abandoned.

        Returns:
            Number of sessions removed.
        """
        orphaned = set(expired_challenge_user_ids)
        with self._lock:
            doomed = [
                user_id
                for user_id, session in self._sessions.items()
                if (
                    user_id in orphaned
                    and session.phase == OnboardingPhase.AWAITING_VERIFICATION
                )
                or session.updated_at < idle_before
            ]
            for user_id in doomed:
                del self._sessions[user_id]
        return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def clear(self) -> None:
        """Clear all sessions (for testing)."""
        with self._lock:
            self._sessions.clear()
