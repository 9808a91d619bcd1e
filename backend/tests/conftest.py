from collections.abc import AsyncGenerator, Iterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from greeter.api.deps import get_flow
from greeter.main import create_app
from greeter.providers.email.memory_adapter import MemoryEmailTransport
from greeter.providers.factory import reset_providers
from greeter.providers.platform.memory_adapter import MemoryDirectory
from greeter.services.onboarding_flow import OnboardingFlow, reset_onboarding_flow
from greeter.services.role_catalog import RoleCatalog
from greeter.services.session_store import OnboardingSessionStore
from greeter.services.verification_store import VerificationCodeStore

# =============================================================================
# Test constants
# =============================================================================

TEST_USER_ID = "412345678901234567"
OTHER_USER_ID = "512345678901234567"

ACCEPTED_DOMAINS = ("ds.study.iitm.ac.in", "es.study.iitm.ac.in")
VALID_EMAIL = "a.kumar@ds.study.iitm.ac.in"
VALID_NAME = "A. Kumar"
BASE_ROLE = "Unverified"

TEST_CATEGORIES: dict[str, list[str]] = {
    "Programme Level": ["Foundation", "Diploma"],
    "Interests": ["Machine Learning", "Web Development", "Admin"],
    "Community": ["Retired Club"],
}
TEST_PROTECTED = ("Admin", "Moderator")

# Roles that exist on the platform. "Retired Club" is in the catalog but
# missing, so the Community category is never offered.
PLATFORM_ROLES = [
    BASE_ROLE,
    "Foundation",
    "Diploma",
    "Machine Learning",
    "Web Development",
    "Admin",
    "Moderator",
]


# =============================================================================
# Global isolation
# =============================================================================


@pytest.fixture(autouse=True)
def reset_singletons() -> Iterator[None]:
    """Reset provider and flow singletons between tests.

    Yields:
        None (autouse fixture).
    """
    reset_providers()
    reset_onboarding_flow()
    yield
    reset_providers()
    reset_onboarding_flow()


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Rate limiting is tested separately; disable for other tests
    to avoid flaky failures from rate limit triggers.

    Yields:
        None (autouse fixture).
    """
    from greeter.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled


# =============================================================================
# Onboarding fixtures
# =============================================================================


@pytest.fixture
def directory() -> MemoryDirectory:
    """In-memory guild with the base role and most catalog roles."""
    return MemoryDirectory(role_names=list(PLATFORM_ROLES))


@pytest.fixture
def email_transport() -> MemoryEmailTransport:
    """Email transport that records messages instead of sending them."""
    return MemoryEmailTransport()


@pytest.fixture
def catalog() -> RoleCatalog:
    """Catalog whose available snapshot matches the in-memory guild."""
    role_catalog = RoleCatalog(TEST_CATEGORIES, TEST_PROTECTED)
    role_catalog.replace_available(PLATFORM_ROLES)
    return role_catalog


@pytest.fixture
def flow(
    directory: MemoryDirectory,
    email_transport: MemoryEmailTransport,
    catalog: RoleCatalog,
) -> OnboardingFlow:
    """Onboarding flow over in-memory adapters, no resend cooldown."""
    return OnboardingFlow(
        directory=directory,
        email_transport=email_transport,
        catalog=catalog,
        sessions=OnboardingSessionStore(),
        codes=VerificationCodeStore(ttl_minutes=10, max_attempts=5),
        accepted_domains=ACCEPTED_DOMAINS,
        base_role_name=BASE_ROLE,
        code_ttl_minutes=10,
        resend_cooldown_seconds=0,
    )


@pytest.fixture
async def verified_user(
    flow: OnboardingFlow, email_transport: MemoryEmailTransport
) -> str:
    """A member who joined, submitted a valid profile and the right code.

    Returns:
        The member's user id (session in CATEGORY_SELECTING).
    """
    await flow.member_joined(TEST_USER_ID)
    await flow.submit_info(TEST_USER_ID, VALID_NAME, VALID_EMAIL)
    assert email_transport.last is not None
    await flow.submit_code(TEST_USER_ID, email_transport.last.code)
    return TEST_USER_ID


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture
def app(flow: OnboardingFlow) -> Iterator[FastAPI]:
    """Application wired to the test flow."""
    application = create_app()
    application.dependency_overrides[get_flow] = lambda: flow
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the test application."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
