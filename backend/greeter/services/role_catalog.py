"""Role catalog: category configuration plus the roles that exist on the platform.

The category → roles mapping and the protected set are fixed configuration.
``available_roles`` is recomputed by scanning the platform's role list; each
refresh builds a new frozenset and swaps it in with one assignment, so a
reader sees either the old snapshot or the new one, never a partial update.
Refreshes are serialised by a single-writer lock.
"""

import asyncio
from collections.abc import Iterable, Mapping

import structlog

from greeter.core.errors import TransportError
from greeter.providers.errors import ProviderError
from greeter.providers.platform.base import PlatformDirectory

logger = structlog.get_logger()


class RoleCatalog:
    """Process-wide role catalog.

    Args:
        categories: Ordered category name -> ordered role names.
        protected_roles: Roles self-service must never grant or revoke.
    """

    def __init__(
        self,
        categories: Mapping[str, Iterable[str]],
        protected_roles: Iterable[str] = (),
    ) -> None:
        self._categories: dict[str, tuple[str, ...]] = {
            name: tuple(roles) for name, roles in categories.items()
        }
        self._protected: frozenset[str] = frozenset(protected_roles)
        self._available: frozenset[str] = frozenset()
        self._refresh_lock = asyncio.Lock()

    @property
    def categories(self) -> dict[str, tuple[str, ...]]:
        """Configured categories in display order."""
        return dict(self._categories)

    @property
    def protected_roles(self) -> frozenset[str]:
        """Roles the toggle engine must never touch."""
        return self._protected

    @property
    def available_roles(self) -> frozenset[str]:
        """Catalog roles confirmed to exist on the platform (snapshot)."""
        return self._available

    @property
    def all_catalog_roles(self) -> frozenset[str]:
        """Every role named in any category."""
        return frozenset(role for roles in self._categories.values() for role in roles)

    def is_protected(self, role_name: str) -> bool:
        return role_name in self._protected

    def is_available(self, role_name: str) -> bool:
        return role_name in self._available

    def roles_for(self, category: str) -> list[str]:
        """Selectable roles of a category, in catalog order.

        Only roles that are in the category's catalog entry, exist on the
        platform and are not protected.

        Args:
            category: Category name.

        Returns:
            Role names (empty for unknown categories).
        """
        available = self._available
        return [
            role
            for role in self._categories.get(category, ())
            if role in available and role not in self._protected
        ]

    def offered_categories(self) -> list[str]:
        """Categories with at least one selectable role, in catalog order."""
        return [name for name in self._categories if self.roles_for(name)]

    def replace_available(self, role_names: Iterable[str]) -> frozenset[str]:
        """Swap in a new snapshot computed from platform role names.

        Args:
            role_names: Names of roles existing on the platform.

        Returns:
            The new available-roles snapshot.
        """
        existing = set(role_names)
        snapshot = frozenset(
            role for role in self.all_catalog_roles if role in existing
        )
        self._available = snapshot
        return snapshot

    async def refresh(self, directory: PlatformDirectory) -> frozenset[str]:
        """Recompute ``available_roles`` from the platform.

        On failure the previous snapshot stays in place.

        Args:
            directory: Platform directory to scan.

        Returns:
            The new available-roles snapshot.

        Raises:
            TransportError: If the platform role list could not be read.
        """
        async with self._refresh_lock:
            try:
                existing = await directory.list_existing_role_names()
            except ProviderError as e:
                logger.error(
                    "catalog_refresh_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise TransportError(
                    "Could not read roles from the platform. Please try again."
                ) from e

            snapshot = self.replace_available(existing)

        missing = sorted(self.all_catalog_roles - snapshot)
        logger.info(
            "catalog_refreshed",
            available=len(snapshot),
            missing=missing,
        )
        return snapshot

    def missing_roles(self) -> list[str]:
        """Catalog roles not found on the platform at the last refresh."""
        return sorted(self.all_catalog_roles - self._available)
