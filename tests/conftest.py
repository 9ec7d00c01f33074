import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from typing import AsyncGenerator, List  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.v1.user_imports.schemas import ImportJob, WelcomeNotification  # noqa: E402
from app.auth.models import Role, User, UserRole  # noqa: E402
from app.core.exceptions import NotificationError  # noqa: E402
from app.core.models import Tenant  # noqa: E402
from app.db.session import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
# SQLite has no schemas: map auth.* and core.* onto the default one.
SCHEMA_TRANSLATE_MAP = {"auth": None, "core": None}


def make_test_engine(url: str = TEST_DATABASE_URL, **kwargs) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=False,
        future=True,
        execution_options={"schema_translate_map": SCHEMA_TRANSLATE_MAP},
        **kwargs,
    )


class FakeNotifier:
    """Records outgoing mail instead of sending it."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: List[dict] = []
        self.fail = fail

    def send(self, to_email: str, subject: str, body: str) -> None:
        if self.fail:
            raise NotificationError("mail server unavailable")
        self.sent.append({"to": to_email, "subject": subject, "body": body})


class FakeQueue:
    """Collects welcome tasks submitted by the import."""

    def __init__(self) -> None:
        self.submitted: List[WelcomeNotification] = []

    def __call__(self, notification: WelcomeNotification) -> None:
        self.submitted.append(notification)


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite DB with all tables, one per test."""
    test_engine = make_test_engine(
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def tenant(db_session: AsyncSession) -> Tenant:
    """A school with the usual roles."""
    school = Tenant(organization_name="Lincoln High", organization_type="School")
    db_session.add(school)
    await db_session.flush()
    for name, permissions in (
        ("SUPER_ADMIN", {}),
        ("admin", {"users": {"create": True, "read": True, "import": True}}),
        ("teacher", {"grades": {"read": True, "update": True}}),
        ("staff", {"users": {"read": True}}),
    ):
        db_session.add(Role(tenant_id=school.id, name=name, permissions=permissions))
    await db_session.commit()
    return school


async def create_user(
    db: AsyncSession,
    tenant_id: UUID,
    email: str,
    role_names: List[str] = (),
    first_name: str = "Ada",
    last_name: str = "Admin",
) -> User:
    user = User(
        tenant_id=tenant_id,
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash="not-a-real-hash",
    )
    db.add(user)
    await db.flush()
    for name in role_names:
        role = (await db.execute(select(Role).where(Role.tenant_id == tenant_id, Role.name == name))).scalar_one()
        db.add(UserRole(user_id=user.id, role_id=role.id))
    await db.commit()
    return user


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture()
def make_job(tenant: Tenant):
    def _make(content: str, filename: str = "users.csv") -> ImportJob:
        return ImportJob(
            tenant_id=tenant.id,
            initiator_id=tenant.id,
            initiator_email="principal@lincoln-high.org",
            initiator_name="Pat Principal",
            filename=filename,
            content=content,
        )

    return _make


@pytest.fixture()
def failing_notifier() -> FakeNotifier:
    return FakeNotifier(fail=True)


@pytest.fixture()
def make_user(db_session: AsyncSession):
    async def _make(tenant_id: UUID, email: str, role_names: List[str] = (), **kwargs) -> User:
        return await create_user(db_session, tenant_id, email, role_names, **kwargs)

    return _make
