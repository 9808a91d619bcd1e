"""Platform directory module.

Guild role and member nickname access for the onboarding flow.
"""

from greeter.providers.platform.base import PlatformDirectory, PlatformRole
from greeter.providers.platform.discord_adapter import DiscordDirectory
from greeter.providers.platform.memory_adapter import MemoryDirectory

__all__ = [
    # Base types
    "PlatformDirectory",
    "PlatformRole",
    # Adapters
    "DiscordDirectory",
    "MemoryDirectory",
]
