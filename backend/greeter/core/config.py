"""Application configuration loaded from environment variables.

Settings for the platform directory, email delivery, the onboarding flow and
the HTTP API. Uses pydantic-settings for validation and .env file support.

Missing credentials for the selected backends are a fatal startup error:
``settings = Settings()`` raises at import time, before any event is accepted.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Minimum length for service/admin tokens in production (256 bits as hex)
_MIN_TOKEN_LENGTH = 32

_DEFAULT_ROLE_CATEGORIES: dict[str, list[str]] = {
    "Programme Level": [
        "Foundation",
        "Diploma in Programming",
        "Diploma in Data Science",
        "BSc Degree",
        "BS Degree",
    ],
    "Interests": [
        "Machine Learning",
        "Web Development",
        "Competitive Programming",
        "Open Source",
        "Research",
    ],
    "Community": [
        "Study Groups",
        "Events",
        "Placements",
        "Alumni Connect",
    ],
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Gateway / admin authentication
    # The chat gateway authenticates with X-Service-Token, admin commands
    # additionally with X-Admin-Token. Empty tokens are only accepted outside
    # production.
    service_token: SecretStr = SecretStr("")
    admin_token: SecretStr = SecretStr("")

    # Platform directory
    platform_backend: Literal["discord", "memory"] = "memory"
    discord_bot_token: SecretStr = SecretStr("")
    discord_guild_id: str = ""
    discord_api_base_url: str = "https://discord.com/api/v10"
    discord_timeout_seconds: float = 10.0

    # Email delivery
    email_backend: Literal["resend", "memory"] = "memory"
    email_from: str = "noreply@example.org"
    resend_api_key: SecretStr = SecretStr("")
    test_email_address: str = ""

    # Onboarding flow
    accepted_email_domains: list[str] = [
        "ds.study.iitm.ac.in",
        "es.study.iitm.ac.in",
    ]
    base_role_name: str = "Unverified"
    verification_code_ttl_minutes: int = 10
    max_code_attempts: int = 5  # 0 disables the bound
    resend_cooldown_seconds: int = 30
    session_idle_timeout_hours: int = 24
    sweep_interval_seconds: int = 15 * 60  # 0 disables the background sweep

    # Role catalog
    role_categories: dict[str, list[str]] = _DEFAULT_ROLE_CATEGORIES
    protected_roles: list[str] = [
        "Admin",
        "Moderator",
        "Core Team",
        "Leadership",
        "Staff",
    ]

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_code_submit: str = "10/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def normalized_email_domains(self) -> tuple[str, ...]:
        """Accepted domains lower-cased and stripped of a leading '@'."""
        return tuple(
            domain.strip().lower().lstrip("@")
            for domain in self.accepted_email_domains
            if domain.strip()
        )

    @model_validator(mode="after")
    def check_required_configuration(self) -> "Settings":
        """Validate that the selected backends are fully configured.

        Checks:
        - Flow timing values are positive / non-negative
        - At least one accepted email domain is configured
        - Discord backend: bot token, guild id and onboarding channel id
        - Resend backend: API key and sender address
        - Production: service and admin tokens set and long enough
        """
        if self.verification_code_ttl_minutes <= 0:
            msg = (
                "VERIFICATION_CODE_TTL_MINUTES must be positive. "
                f"Got: {self.verification_code_ttl_minutes}"
            )
            raise ValueError(msg)
        if self.max_code_attempts < 0:
            msg = f"MAX_CODE_ATTEMPTS cannot be negative. Got: {self.max_code_attempts}"
            raise ValueError(msg)
        if self.resend_cooldown_seconds < 0:
            msg = (
                "RESEND_COOLDOWN_SECONDS cannot be negative. "
                f"Got: {self.resend_cooldown_seconds}"
            )
            raise ValueError(msg)

        if not self.normalized_email_domains:
            msg = "ACCEPTED_EMAIL_DOMAINS must contain at least one domain."
            raise ValueError(msg)

        if self.platform_backend == "discord":
            missing = [
                name
                for name, value in (
                    ("DISCORD_BOT_TOKEN", self.discord_bot_token.get_secret_value()),
                    ("DISCORD_GUILD_ID", self.discord_guild_id),
                )
                if not value
            ]
            if missing:
                msg = (
                    "Missing required Discord configuration: "
                    f"{', '.join(missing)}. Set them or use PLATFORM_BACKEND=memory."
                )
                raise ValueError(msg)

        if self.email_backend == "resend":
            if not self.resend_api_key.get_secret_value():
                msg = "RESEND_API_KEY must be set when EMAIL_BACKEND=resend."
                raise ValueError(msg)
            if not self.email_from:
                msg = "EMAIL_FROM must be set when EMAIL_BACKEND=resend."
                raise ValueError(msg)

        if self.environment == "production":
            for name, token in (
                ("SERVICE_TOKEN", self.service_token),
                ("ADMIN_TOKEN", self.admin_token),
            ):
                if len(token.get_secret_value()) < _MIN_TOKEN_LENGTH:
                    msg = (
                        f"{name} must be at least {_MIN_TOKEN_LENGTH} characters "
                        'in production. Generate with: python -c "import secrets; '
                        'print(secrets.token_hex(32))"'
                    )
                    raise ValueError(msg)

        return self


settings = Settings()
