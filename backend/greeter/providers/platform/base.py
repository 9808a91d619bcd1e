"""Abstract base class and types for the chat-platform directory.

The onboarding flow reads and mutates guild roles and member nicknames only
through this interface. Adapters map platform-specific failures onto
``greeter.providers.errors``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PlatformRole:
    """A role that exists on the platform.

    Attributes:
        role_id: Opaque platform identifier (Discord snowflake).
        name: Display name; the catalog refers to roles by name.
    """

    role_id: str
    name: str


class PlatformDirectory(ABC):
    """Abstract base class for platform directory adapters.

    WHY ABSTRACT:
    - The flow is testable without a live guild
    - Swap Discord for another platform without touching the flow

    Contract:
    - grant_role on an already-held role and revoke_role on an unheld role
      must not raise.
    - Every method may raise a ProviderError subclass.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return backend identifier (e.g., 'discord', 'memory')."""
        ...

    @abstractmethod
    async def list_roles(self) -> list[PlatformRole]:
        """Return every role that currently exists on the platform."""
        ...

    @abstractmethod
    async def create_role(self, name: str) -> PlatformRole:
        """Create a role with the given name and return it."""
        ...

    @abstractmethod
    async def grant_role(self, user_id: str, role: PlatformRole) -> None:
        """Add the role to the member (no-op if already held)."""
        ...

    @abstractmethod
    async def revoke_role(self, user_id: str, role: PlatformRole) -> None:
        """Remove the role from the member (no-op if not held)."""
        ...

    @abstractmethod
    async def member_role_ids(self, user_id: str) -> set[str]:
        """Return the ids of the roles the member currently holds."""
        ...

    @abstractmethod
    async def set_nickname(self, user_id: str, nickname: str) -> None:
        """Set the member's display name within the guild."""
        ...

    async def list_existing_role_names(self) -> set[str]:
        """Return the names of every role on the platform."""
        return {role.name for role in await self.list_roles()}

    async def find_role_by_name(self, name: str) -> PlatformRole | None:
        """Return the first role with exactly this name, or None.

        Args:
            name: Role name (case-sensitive, as on the platform).

        Returns:
            The matching role, or None when no such role exists.
        """
        for role in await self.list_roles():
            if role.name == name:
                return role
        return None
