"""Role toggle engine.

A toggle flips one role for one member: revoke if held, grant otherwise.
It is not a set-to operation, so two rapid clicks are two independent
flips. Membership is re-read immediately before acting to keep the race
window small; the platform's grant/revoke being idempotent keeps the
remaining race harmless.

Check order:
1. Protected roles are rejected before any platform call.
2. Roles not selectable in the category are rejected.
3. Roles that no longer resolve on the platform are rejected.
"""

import structlog

from greeter.core.errors import (
    ProtectedRoleError,
    RoleNotFoundError,
    TransportError,
    UnavailableRoleError,
)
from greeter.providers.errors import ProviderError
from greeter.providers.platform.base import PlatformDirectory
from greeter.schemas.onboarding import RenderedView
from greeter.services.onboarding_views import roles_view
from greeter.services.role_catalog import RoleCatalog

logger = structlog.get_logger()

_ROLE_UPDATE_FAILED_MSG = "Could not update your roles right now. Please try again."


class RoleToggleEngine:
    """Computes and applies single-role flips within a category.

    Args:
        catalog: Role catalog (categories, protected set, available snapshot).
        directory: Platform directory used for membership and mutations.
    """

    def __init__(self, catalog: RoleCatalog, directory: PlatformDirectory) -> None:
        self._catalog = catalog
        self._directory = directory

    async def held_role_names(self, user_id: str) -> set[str]:
        """Names of the roles the member currently holds.

        Raises:
            TransportError: If the platform could not be read.
        """
        try:
            held_ids = await self._directory.member_role_ids(user_id)
            roles = await self._directory.list_roles()
        except ProviderError as e:
            logger.error(
                "member_roles_read_failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransportError(_ROLE_UPDATE_FAILED_MSG) from e
        return {role.name for role in roles if role.role_id in held_ids}

    async def render_category(self, user_id: str, category: str) -> RenderedView:
        """Build the role view for a category from live membership."""
        held = await self.held_role_names(user_id)
        return roles_view(category, self._catalog.roles_for(category), held)

    async def toggle(self, user_id: str, category: str, role_name: str) -> RenderedView:
        """Flip the member's membership of one role.

        Args:
            user_id: Member id.
            category: Category the member is editing.
            role_name: Role to flip.

        Returns:
            Freshly computed view of the category.

        Raises:
            ProtectedRoleError: Role is staff/leadership only.
            UnavailableRoleError: Role is not selectable in this category.
            RoleNotFoundError: Role is in the catalog but gone from the platform.
            TransportError: A platform call failed.
        """
        if self._catalog.is_protected(role_name):
            logger.warning("protected_role_toggle_denied", user_id=user_id, role=role_name)
            raise ProtectedRoleError(role_name)

        if not self._catalog.is_available(role_name) or role_name not in (
            self._catalog.roles_for(category)
        ):
            raise UnavailableRoleError(role_name)

        try:
            role = await self._directory.find_role_by_name(role_name)
        except ProviderError as e:
            logger.error("role_lookup_failed", role=role_name, error=str(e))
            raise TransportError(_ROLE_UPDATE_FAILED_MSG) from e
        if role is None:
            logger.warning("catalog_role_missing_on_platform", role=role_name)
            raise RoleNotFoundError(role_name)

        try:
            held = role.role_id in await self._directory.member_role_ids(user_id)
            if held:
                await self._directory.revoke_role(user_id, role)
            else:
                await self._directory.grant_role(user_id, role)
        except ProviderError as e:
            logger.error(
                "role_toggle_failed",
                user_id=user_id,
                role=role_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TransportError(_ROLE_UPDATE_FAILED_MSG) from e

        logger.info(
            "role_toggled",
            user_id=user_id,
            category=category,
            role=role_name,
            granted=not held,
        )
        return await self.render_category(user_id, category)
