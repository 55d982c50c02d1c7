"""Pytest fixtures for testing."""

import os
import secrets
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-the-test-suite-only")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from impactos.api.deps import get_mailer
from impactos.core.database import get_db
from impactos.core.errors import EmailDeliveryFailed
from impactos.core.security import create_session_token
from impactos.main import app
from impactos.models.base import Base
from impactos.models.enums import MemberRole
from impactos.models.invitation import Invitation
from impactos.models.membership import OrganizationMember
from impactos.models.organization import Organization
from impactos.models.user import User
from impactos.services.email_service import EmailMessage, EmailSender, LoggingEmailSender
from impactos.services.identity_provider import LocalIdentityProvider
from impactos.services.org_service import OrganizationService

TEST_PASSWORD = "TestPass123!"

# One shared in-memory database per test
test_engine = create_async_engine(
    "sqlite+aiosqlite://",
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)


@event.listens_for(test_engine.sync_engine, "connect")
def _sqlite_on_connect(dbapi_connection, connection_record):
    # Let SQLAlchemy own BEGIN so SAVEPOINT (begin_nested) works
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(test_engine.sync_engine, "begin")
def _sqlite_on_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class FailingEmailSender(EmailSender):
    """Transport that always fails, for compensation tests."""

    def __init__(self):
        self.attempts: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> str | None:
        self.attempts.append(message)
        raise EmailDeliveryFailed("Failed to send email: provider unavailable")


@pytest.fixture
def failing_mailer(client: AsyncClient) -> FailingEmailSender:
    """Swap the email transport for one that always fails."""
    sender = FailingEmailSender()
    app.dependency_overrides[get_mailer] = lambda: sender
    return sender


@pytest_asyncio.fixture(scope="function")
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Create test database session.

    Creates all tables before each test and drops them after.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture()
def outbox() -> LoggingEmailSender:
    """Recording email sender; messages land in ``outbox.outbox``."""
    return LoggingEmailSender()


@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession, outbox: LoggingEmailSender) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and email dependency overrides.

    Args:
        db: Test database session
        outbox: Recording email sender

    Yields:
        AsyncClient configured for testing
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: outbox

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_user(
    db: AsyncSession,
    email: str,
    password: str = TEST_PASSWORD,
    first_name: str = "",
    last_name: str = "",
) -> User:
    """Create a confirmed account and return its profile."""
    user_id = await LocalIdentityProvider(db).create_user_pre_confirmed(
        email, password, first_name, last_name
    )
    await db.flush()
    return await db.get(User, user_id)


async def add_member(
    db: AsyncSession, user: User, organization: Organization, role: MemberRole
) -> OrganizationMember:
    membership = OrganizationMember(user_id=user.id, organization_id=organization.id, role=role)
    db.add(membership)
    await db.flush()
    return membership


def auth_headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token(user.id, user.email)}"}


@pytest_asyncio.fixture
async def test_owner_user(db: AsyncSession) -> User:
    return await create_user(db, "owner@test.com", first_name="Olivia", last_name="Owner")


@pytest_asyncio.fixture
async def test_org(db: AsyncSession, test_owner_user: User) -> Organization:
    """Organization created the way onboarding does it (owner, config, session)."""
    organization = await OrganizationService(db, LocalIdentityProvider(db)).create(
        test_owner_user, "Test Organization"
    )
    await db.commit()
    return organization


@pytest_asyncio.fixture
async def test_admin_user(db: AsyncSession, test_org: Organization) -> User:
    user = await create_user(db, "admin@test.com")
    await add_member(db, user, test_org, MemberRole.ADMIN)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def test_editor_user(db: AsyncSession, test_org: Organization) -> User:
    user = await create_user(db, "editor@test.com")
    await add_member(db, user, test_org, MemberRole.EDITOR)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def test_viewer_user(db: AsyncSession, test_org: Organization) -> User:
    user = await create_user(db, "viewer@test.com")
    await add_member(db, user, test_org, MemberRole.VIEWER)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def test_outsider_user(db: AsyncSession) -> User:
    """Confirmed user without any membership."""
    user = await create_user(db, "outsider@test.com")
    await db.commit()
    return user


@pytest.fixture
def owner_headers(test_owner_user: User) -> dict[str, str]:
    return auth_headers_for(test_owner_user)


@pytest.fixture
def admin_headers(test_admin_user: User) -> dict[str, str]:
    return auth_headers_for(test_admin_user)


@pytest.fixture
def editor_headers(test_editor_user: User) -> dict[str, str]:
    return auth_headers_for(test_editor_user)


@pytest.fixture
def viewer_headers(test_viewer_user: User) -> dict[str, str]:
    return auth_headers_for(test_viewer_user)


@pytest.fixture
def outsider_headers(test_outsider_user: User) -> dict[str, str]:
    return auth_headers_for(test_outsider_user)


@pytest.fixture
def headers_for():
    """``headers_for(user)`` -> Bearer headers for that user."""
    return auth_headers_for


@pytest.fixture
def make_user(db: AsyncSession):
    """Factory fixture: ``await make_user("a@example.com")`` -> confirmed User."""

    async def _make(email: str, **kwargs) -> User:
        user = await create_user(db, email, **kwargs)
        await db.commit()
        return user

    return _make


@pytest.fixture
def make_member(db: AsyncSession):
    """Factory fixture adding a membership and committing it."""

    async def _make(user: User, organization: Organization, role: MemberRole) -> OrganizationMember:
        membership = await add_member(db, user, organization, role)
        await db.commit()
        return membership

    return _make


@pytest.fixture
def make_invitation(db: AsyncSession):
    """Factory fixture inserting an invitation row directly (no email)."""

    async def _make(
        organization: Organization,
        email: str,
        role: MemberRole = MemberRole.EDITOR,
        expires_in: timedelta = timedelta(days=7),
        accepted: bool = False,
        invited_by: User | None = None,
    ) -> Invitation:
        now = datetime.now(UTC)
        invitation = Invitation(
            organization_id=organization.id,
            email=email,
            role=role,
            token=secrets.token_urlsafe(32),
            invited_by=invited_by.id if invited_by else None,
            expires_at=now + expires_in,
            accepted_at=now if accepted else None,
        )
        db.add(invitation)
        await db.commit()
        return invitation

    return _make
