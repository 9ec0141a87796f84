"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from custody.app.main import app
from custody.app.db.session import get_db, Base
from custody.app.core.dependencies import get_change_feed
from custody.app.core.jwt import create_access_token
from custody.app.domain.custody.actor import Actor
from custody.app.domain.custody.locking import PackageLockRegistry
from custody.app.domain.custody.state_machine import PackageStateMachine, Route
from custody.app.models.account import Account
from custody.app.models.enums import ActorRole
from custody.app.models.package_enums import Zone
from custody.app.services.change_feed import ChangeFeed

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class RecordingChangeFeed(ChangeFeed):
    """Keeps every published change record in memory."""

    def __init__(self):
        self.changes = []

    async def publish(self, change):
        self.changes.append(change)
        return True

    def events(self):
        return [c["event"] for c in self.changes]


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def change_feed():
    return RecordingChangeFeed()


@pytest.fixture
def state_machine(db_session, change_feed):
    return PackageStateMachine(db_session, locks=PackageLockRegistry(), change_feed=change_feed)


@pytest.fixture
async def client(session_factory, change_feed):
    """Async client for testing."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_change_feed] = lambda: change_feed
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}


# Accounts

async def create_account(db_session, name, phone, role, home_zone=None, is_active=True) -> Actor:
    account = Account(name=name, phone=phone, role=role, home_zone=home_zone, is_active=is_active)
    db_session.add(account)
    await db_session.commit()
    return Actor.from_account(account)


@pytest.fixture
async def customer(db_session):
    return await create_account(db_session, "Amina Hassan", "+254700000002", ActorRole.CUSTOMER)


@pytest.fixture
async def other_customer(db_session):
    return await create_account(db_session, "Otieno Were", "+254700000003", ActorRole.CUSTOMER)


@pytest.fixture
async def admin(db_session):
    return await create_account(db_session, "Hub Admin", "+254700000001", ActorRole.ADMIN)


@pytest.fixture
async def rider(db_session):
    return await create_account(db_session, "James Mwangi", "+254711000001", ActorRole.RIDER, Zone.WESTLANDS)


@pytest.fixture
async def other_rider(db_session):
    return await create_account(db_session, "Grace Wanjiru", "+254711000002", ActorRole.RIDER, Zone.WESTLANDS)


@pytest.fixture
async def karen_rider(db_session):
    return await create_account(db_session, "Mercy Njeri", "+254711000003", ActorRole.RIDER, Zone.KAREN)


def auth_headers(actor: Actor) -> dict:
    token = create_access_token(data={"sub": actor.name, "user_id": actor.id})
    return {"Authorization": f"Bearer {token}"}


# Packages

WESTLANDS_ROUTE = Route(
    pickup_address="Kenyatta Ave 12, CBD",
    delivery_address="Woodvale Grove 4, Westlands",
    delivery_zone=Zone.WESTLANDS,
)


async def book(state_machine, customer, declared_value=3000, route=WESTLANDS_ROUTE):
    return await state_machine.create_package(
        customer, route, description="Laptop bag", declared_value=declared_value,
    )


async def bring_to_hub(state_machine, customer, rider, declared_value=3000, route=WESTLANDS_ROUTE):
    package = await book(state_machine, customer, declared_value, route)
    await state_machine.accept_collection(rider, package.id)
    return await state_machine.mark_at_warehouse(rider, package.id)
