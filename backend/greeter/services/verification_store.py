"""In-memory store for one-time email verification codes.

Each member has at most one live challenge. Issuing a code (initial send or
resend) unconditionally replaces the previous one, so an older code can
never be accepted once a newer one exists.

WHY IN-MEMORY:
- Codes live for minutes; losing them on restart only forces a resend
- Can be replaced with Redis for multi-instance deployments later

Expiry is checked lazily on validation. ``sweep_expired`` is best-effort
housekeeping and is not needed for correctness.
"""

import hashlib
import secrets
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from greeter.core.errors import (
    ExpiredError,
    MismatchError,
    NotFoundError,
    TooManyAttemptsError,
)

DEFAULT_CODE_TTL_MINUTES = 10

# Codes are uniform over [100000, 999999]: always six digits, never zero-padded
_CODE_FLOOR = 100_000
_CODE_SPAN = 900_000

_CHALLENGE = "verification code"


def generate_code() -> str:
    """Return a uniformly random 6-digit code."""
    return str(secrets.randbelow(_CODE_SPAN) + _CODE_FLOOR)


def _hash_code(code: str) -> str:
    return hashlib.sha256(code.encode()).hexdigest()


@dataclass
class VerificationChallenge:
    """Pending code for one member.

    The plain code is never stored; only its SHA-256 digest.

    Attributes:
        user_id: Platform user id (same key space as the session store).
        code_hash: SHA-256 hex digest of the issued code.
        email: Address the code was sent to.
        full_name: Display name captured with the profile.
        issued_at: When the code was issued.
        expires_at: When the code stops being accepted.
        attempts: Number of mismatched submissions so far.
    """

    user_id: str
    code_hash: str
    email: str
    full_name: str
    issued_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    attempts: int = 0

    def is_expired(self, now: datetime) -> bool:
        """True once ``now`` is past the expiry instant."""
        return now > self.expires_at


@dataclass(frozen=True)
class IssuedCode:
    """Result of ``issue``: the plain code to deliver and its expiry."""

    code: str
    expires_at: datetime


@dataclass(frozen=True)
class VerifiedIdentity:
    """Denormalized identity returned by a successful validation."""

    email: str
    full_name: str


class VerificationCodeStore:
    """Keyed store of verification challenges.

    All operations hold a store-wide lock, so each is atomic with respect
    to every other, from coroutines and threads alike.

    Args:
        ttl_minutes: Code lifetime.
        max_attempts: Mismatches allowed per challenge; the submission that
            reaches the bound discards the challenge. 0 means unbounded.
    """

    def __init__(
        self,
        ttl_minutes: int = DEFAULT_CODE_TTL_MINUTES,
        max_attempts: int = 0,
    ) -> None:
        self._challenges: dict[str, VerificationChallenge] = {}
        self._ttl = timedelta(minutes=ttl_minutes)
        self._max_attempts = max_attempts
        self._lock = threading.Lock()

    def issue(self, user_id: str, email: str, full_name: str) -> IssuedCode:
        """Create a fresh challenge, replacing any existing one.

        Args:
            user_id: Member the code is for.
            email: Address the code will be sent to.
            full_name: Member's display name.

        Returns:
            IssuedCode with the plain code (for delivery) and expiry.
        """
        code = generate_code()
        now = datetime.now(UTC)
        challenge = VerificationChallenge(
            user_id=user_id,
            code_hash=_hash_code(code),
            email=email,
            full_name=full_name,
            issued_at=now,
            expires_at=now + self._ttl,
        )
        with self._lock:
            self._challenges[user_id] = challenge
        return IssuedCode(code=code, expires_at=challenge.expires_at)

    def validate(self, user_id: str, submitted_code: str) -> VerifiedIdentity:
        """Check a submitted code and consume the challenge on success.

        Args:
            user_id: Member submitting the code.
            submitted_code: Code as typed by the member.

        Returns:
            VerifiedIdentity with the email and name captured at issue time.

        Raises:
            NotFoundError: No challenge for this member (never issued,
                already consumed, or discarded).
            ExpiredError: Challenge past its expiry; it is discarded.
            MismatchError: Wrong code; the challenge is kept.
            TooManyAttemptsError: Wrong code that reached the attempt bound;
                the challenge is discarded.
        """
        with self._lock:
            challenge = self._challenges.get(user_id)
            if challenge is None:
                raise NotFoundError(
                    _CHALLENGE,
                    message="No pending verification code. Please request a new code.",
                )

            if challenge.is_expired(datetime.now(UTC)):
                del self._challenges[user_id]
                raise ExpiredError()

            if not secrets.compare_digest(
                challenge.code_hash, _hash_code(submitted_code)
            ):
                challenge.attempts += 1
                if self._max_attempts and challenge.attempts >= self._max_attempts:
                    del self._challenges[user_id]
                    raise TooManyAttemptsError()
                remaining = (
                    self._max_attempts - challenge.attempts
                    if self._max_attempts
                    else None
                )
                raise MismatchError(attempts_remaining=remaining)

            del self._challenges[user_id]
            return VerifiedIdentity(email=challenge.email, full_name=challenge.full_name)

    def get(self, user_id: str) -> VerificationChallenge | None:
        """Return the member's live challenge, or None.

        Expired challenges are discarded and reported as None.
        """
        with self._lock:
            challenge = self._challenges.get(user_id)
            if challenge is None:
                return None
            if challenge.is_expired(datetime.now(UTC)):
                del self._challenges[user_id]
                return None
            return challenge

    def discard(self, user_id: str) -> bool:
        """Remove the member's challenge.

        Returns:
            True if a challenge was removed.
        """
        with self._lock:
            return self._challenges.pop(user_id, None) is not None

    def sweep_expired(self) -> list[str]:
        """Remove all expired challenges.

        Returns:
            User ids whose challenges were removed.
        """
        now = datetime.now(UTC)
        with self._lock:
            expired = [
                user_id
                for user_id, challenge in self._challenges.items()
                if challenge.is_expired(now)
            ]
            for user_id in expired:
                del self._challenges[user_id]
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)

    def clear(self) -> None:
        """Clear all challenges (for testing)."""
        with self._lock:
            self._challenges.clear()
