"""Provider factory functions.

Singleton pattern for the platform directory and email transport.
"""

from greeter.core.config import Settings, settings
from greeter.providers.email.base import EmailTransport
from greeter.providers.email.memory_adapter import MemoryEmailTransport
from greeter.providers.email.resend_adapter import ResendEmailTransport
from greeter.providers.platform.base import PlatformDirectory
from greeter.providers.platform.discord_adapter import DiscordDirectory
from greeter.providers.platform.memory_adapter import MemoryDirectory

_directory: PlatformDirectory | None = None
_email_transport: EmailTransport | None = None


def get_directory(config: Settings | None = None) -> PlatformDirectory:
    """Get or create the platform directory singleton.

    WHY SINGLETON:
    - Reuses HTTP connections (performance)
    - The memory backend must be shared to behave like one guild

    Args:
        config: Optional settings. If None, uses the application settings.

    Returns:
        PlatformDirectory instance.

    Raises:
        ValueError: If the configured backend is unknown.
    """
    global _directory

    if _directory is None:
        config = config or settings

        if config.platform_backend == "discord":
            _directory = DiscordDirectory(
                bot_token=config.discord_bot_token.get_secret_value(),
                guild_id=config.discord_guild_id,
                base_url=config.discord_api_base_url,
                timeout_seconds=config.discord_timeout_seconds,
            )
        elif config.platform_backend == "memory":
            _directory = MemoryDirectory(
                role_names=[
                    config.base_role_name,
                    *(
                        role
                        for roles in config.role_categories.values()
                        for role in roles
                    ),
                ]
            )
        else:
            raise ValueError(f"Unknown platform backend: {config.platform_backend}")

    return _directory


def get_email_transport(config: Settings | None = None) -> EmailTransport:
    """Get or create the email transport singleton.

    Args:
        config: Optional settings. If None, uses the application settings.

    Returns:
        EmailTransport instance.

    Raises:
        ValueError: If the configured backend is unknown.
    """
    global _email_transport

    if _email_transport is None:
        config = config or settings

        if config.email_backend == "resend":
            _email_transport = ResendEmailTransport(
                api_key=config.resend_api_key.get_secret_value(),
                sender=config.email_from,
                ttl_minutes=config.verification_code_ttl_minutes,
            )
        elif config.email_backend == "memory":
            _email_transport = MemoryEmailTransport()
        else:
            raise ValueError(f"Unknown email backend: {config.email_backend}")

    return _email_transport


async def close_providers() -> None:
    """Release network resources held by the providers (app shutdown)."""
    if isinstance(_directory, DiscordDirectory):
        await _directory.aclose()


def reset_providers() -> None:
    """Reset provider singletons.

    Used in tests to ensure isolation between test cases.
    """
    global _directory, _email_transport
    _directory = None
    _email_transport = None
