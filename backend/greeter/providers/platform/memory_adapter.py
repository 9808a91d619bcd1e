"""In-memory platform directory for development and testing.

Holds guild roles and member role sets in dictionaries. Unit tests use it
to observe exactly which platform mutations the flow performed.
"""

import itertools
from typing import Any

from greeter.providers.errors import ProviderError
from greeter.providers.platform.base import PlatformDirectory, PlatformRole


class MemoryDirectory(PlatformDirectory):
    """Directory backed by dictionaries.

    WHY IN-MEMORY:
    - Unit tests shouldn't hit a real guild (speed, flakiness)
    - Enables deterministic testing
    - Can simulate failures per method

    Attributes:
        calls: Record of every method invocation for test assertions.
        failures: Method name -> exception raised on every call to it.
        nicknames: user_id -> last nickname set.
    """

    def __init__(self, role_names: list[str] | None = None) -> None:
        """Initialize with optional pre-existing roles.

        Args:
            role_names: Names of roles that already exist on the platform.
        """
        self._ids = itertools.count(1000)
        self._roles: dict[str, PlatformRole] = {}
        self._members: dict[str, set[str]] = {}
        self.nicknames: dict[str, str] = {}
        self.calls: list[dict[str, Any]] = []
        self.failures: dict[str, ProviderError] = {}
        for name in role_names or []:
            self.add_role(name)

    @property
    def backend_name(self) -> str:
        """Return 'memory'."""
        return "memory"

    def add_role(self, name: str) -> PlatformRole:
        """Create a role directly (test setup, not recorded as a call)."""
        role = PlatformRole(role_id=str(next(self._ids)), name=name)
        self._roles[role.role_id] = role
        return role

    def delete_role(self, name: str) -> None:
        """Delete a role by name (simulates an admin removing it)."""
        for role_id, role in list(self._roles.items()):
            if role.name == name:
                del self._roles[role_id]
                for held in self._members.values():
                    held.discard(role_id)

    def role_names_of(self, user_id: str) -> set[str]:
        """Names of the roles the member holds (test helper)."""
        held = self._members.get(user_id, set())
        return {self._roles[role_id].name for role_id in held if role_id in self._roles}

    def mutation_calls(self) -> list[dict[str, Any]]:
        """Recorded grant/revoke calls only."""
        return [c for c in self.calls if c["method"] in ("grant_role", "revoke_role")]

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append({"method": method, **kwargs})
        failure = self.failures.get(method)
        if failure is not None:
            raise failure

    async def list_roles(self) -> list[PlatformRole]:
        """Return every role."""
        self._record("list_roles")
        return list(self._roles.values())

    async def create_role(self, name: str) -> PlatformRole:
        """Create a role (duplicates allowed, as on Discord)."""
        self._record("create_role", name=name)
        return self.add_role(name)

    async def grant_role(self, user_id: str, role: PlatformRole) -> None:
        """Add the role to the member."""
        self._record("grant_role", user_id=user_id, role=role.name)
        self._members.setdefault(user_id, set()).add(role.role_id)

    async def revoke_role(self, user_id: str, role: PlatformRole) -> None:
        """Remove the role from the member."""
        self._record("revoke_role", user_id=user_id, role=role.name)
        self._members.setdefault(user_id, set()).discard(role.role_id)

    async def member_role_ids(self, user_id: str) -> set[str]:
        """Return the member's role ids."""
        self._record("member_role_ids", user_id=user_id)
        return set(self._members.get(user_id, set()))

    async def set_nickname(self, user_id: str, nickname: str) -> None:
        """Record the nickname."""
        self._record("set_nickname", user_id=user_id, nickname=nickname)
        self.nicknames[user_id] = nickname
