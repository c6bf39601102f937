"""
Shared fixtures: fresh in-memory database per test, fake mail sender,
HTTP client bound to the app with both overridden.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sorvx.core.security import create_session_token
from sorvx.db.base import Base
from sorvx.db.session import get_db
from sorvx.main import app
from sorvx.services.mailer import get_notification_sender
from sorvx.services.users import create_user


class FakeSender:
    """Records every send; `result` decides what send() reports."""

    def __init__(self, result: bool = True):
        self.result = result
        self.sent: list[tuple[str, str]] = []

    async def send(self, email: str, reset_link: str) -> bool:
        self.sent.append((email, reset_link))
        return self.result


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def sender():
    return FakeSender()


@pytest_asyncio.fixture
async def client(session_maker, sender):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sender] = lambda: sender
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def alice(db_session):
    return await create_user(db_session, "alice@example.com", "old-password")


@pytest_asyncio.fixture
async def bob(db_session):
    return await create_user(db_session, "bob@example.com", "bobs-password")


@pytest.fixture
def auth_headers():
    """Bearer header factory for a user."""

    def make(user) -> dict:
        return {"Authorization": f"Bearer {create_session_token(user.id)}"}

    return make
