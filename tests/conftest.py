"""
RDC Portal Test Configuration and Fixtures
Shared pytest fixtures for all test modules.
"""
import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import tempfile
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator, Iterable
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from backend.api.deps import create_access_token
from backend.core.config import settings
from backend.core.permissions import get_default_modules_for_role
from backend.delivery.models import DeliveryState, DeliveryStatus, EmailContent
from backend.models import Base, User, UserRole
from backend.services.email import EmailService
from backend.services.storage import StorageClient

TEST_CRON_SECRET = "test-cron-secret-value"


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create an async SQLite engine for testing."""
    # Use a unique temp file for each test to ensure complete isolation
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest_asyncio.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create an async session for testing."""
    async_session_maker = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
def sync_engine():
    """Create a sync SQLite engine for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()

    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture(scope="function")
def sync_session(sync_engine) -> Generator[Session, None, None]:
    """Create a sync session for testing."""
    SessionLocal = sessionmaker(bind=sync_engine, autocommit=False, autoflush=False)
    session = SessionLocal()

    yield session

    session.rollback()
    session.close()


# =============================================================================
# User Fixtures
# =============================================================================


async def create_user(
    session: AsyncSession,
    email: str,
    name: str,
    role: UserRole = UserRole.FACULTY,
    **fields,
) -> User:
    """Insert and commit a user whose modules are the role defaults."""
    user = User(
        email=email,
        password_hash="$2b$12$notarealhashnotarealhashnotarealhashnotarealhashnotar",
        name=name,
        role=role.value,
        allowed_modules=get_default_modules_for_role(role, fields.get("designation")),
        **fields,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def faculty_user(async_session: AsyncSession) -> User:
    return await create_user(
        async_session,
        "asha.patel@university.edu",
        "Dr. Asha Patel",
        UserRole.FACULTY,
        designation="Assistant Professor",
        faculty="Faculty of Management Studies",
        institute="Institute of Management",
        department="Finance",
        mis_id="MIS1001",
        bank_details={
            "beneficiary_name": "Asha Patel",
            "account_number": "123456789012",
            "ifsc_code": "SBIN0000001",
            "branch_name": "Vadodara Main",
        },
    )


@pytest_asyncio.fixture
async def co_investigator(async_session: AsyncSession) -> User:
    return await create_user(
        async_session,
        "ravi.shah@university.edu",
        "Dr. Ravi Shah",
        UserRole.FACULTY,
        designation="Associate Professor",
        faculty="Faculty of Management Studies",
        institute="Institute of Management",
        department="Marketing",
    )


@pytest_asyncio.fixture
async def evaluator_user(async_session: AsyncSession) -> User:
    return await create_user(
        async_session,
        "meera.iyer@university.edu",
        "Prof. Meera Iyer",
        UserRole.EVALUATOR,
        designation="Professor",
    )


@pytest_asyncio.fixture
async def cro_user(async_session: AsyncSession) -> User:
    return await create_user(async_session, "cro@university.edu", "Research Officer", UserRole.CRO)


@pytest_asyncio.fixture
async def admin_user(async_session: AsyncSession) -> User:
    return await create_user(async_session, "rdc.admin@university.edu", "RDC Admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def super_admin_user(async_session: AsyncSession) -> User:
    return await create_user(async_session, "director.rdc@university.edu", "RDC Director", UserRole.SUPER_ADMIN)


def auth_headers_for(user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Factory for bearer headers: ``auth_headers(user)``."""
    return auth_headers_for


# =============================================================================
# Email Fixtures
# =============================================================================


class FakeChannel:
    """Records outgoing mail instead of calling SendGrid."""

    def __init__(self, configured: bool = True, fail_for: Iterable[str] = ()):
        self.configured = configured
        self.fail_for = set(fail_for)
        self.sent: list[EmailContent] = []

    def is_configured(self) -> bool:
        return self.configured

    async def send(self, content: EmailContent) -> DeliveryStatus:
        if content.to_email in self.fail_for:
            return DeliveryStatus(
                to_email=content.to_email,
                status=DeliveryState.FAILED,
                error_message="HTTP 400: Bad Request",
            )
        self.sent.append(content)
        return DeliveryStatus(
            to_email=content.to_email,
            status=DeliveryState.SENT,
            sent_at=datetime.now(timezone.utc),
            provider_message_id="test-message-id",
        )

    @property
    def recipients(self) -> list[str]:
        return [content.to_email for content in self.sent]

    def subjects_to(self, address: str) -> list[str]:
        return [content.subject for content in self.sent if content.to_email == address]


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def email_service(async_session: AsyncSession, fake_channel: FakeChannel) -> EmailService:
    return EmailService(async_session, channel=fake_channel)


@pytest.fixture
def mock_sendgrid():
    """Mock SendGrid client for email testing."""
    with patch("backend.delivery.channels.SendGridAPIClient") as mock:
        instance = MagicMock()
        instance.send = MagicMock(
            return_value=MagicMock(status_code=202, headers={"X-Message-Id": "sg-message-id"})
        )
        mock.return_value = instance
        yield mock


# =============================================================================
# Storage and Template Fixtures
# =============================================================================


@pytest.fixture
def tmp_storage(tmp_path) -> StorageClient:
    return StorageClient(backend="local", root=tmp_path / "uploads", public_url="http://files.test")


@pytest.fixture
def templates_dir(tmp_path, monkeypatch):
    """Empty document template directory wired into settings."""
    directory = tmp_path / "document-templates"
    directory.mkdir()
    monkeypatch.setattr(settings, "document_templates_dir", str(directory))
    return directory


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest.fixture
def cron_secret(monkeypatch) -> str:
    monkeypatch.setattr(settings, "cron_secret", TEST_CRON_SECRET)
    return TEST_CRON_SECRET


@pytest_asyncio.fixture
async def client(async_engine, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with every request on the test database."""
    from backend.database import get_db
    from backend.main import app

    monkeypatch.setattr(settings, "rate_limit_enabled", False)
    session_maker = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
