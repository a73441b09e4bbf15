import os

# must be set before household.core.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-that-is-long-enough-for-hs256-signing"
os.environ["LOG_JSON"] = "false"

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import household.models  # noqa: F401
from household.db.session import Base, get_db
from household.main import app
from household.models.group import Group
from household.models.group_member import GroupMember
from household.models.user import User


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_user(db, username: str) -> User:
    # hashing is skipped here, API tests go through /register
    user = User(username=username, email=f"{username}@example.com", password_hash="not-a-real-hash")
    db.add(user)
    await db.commit()
    return user


async def make_group(db, name: str, admin: User, *members: User):
    """Create a group whose first member is an admin, returns (group, memberships)."""
    group = Group(name=name, created_by=admin.id)
    db.add(group)
    await db.flush()

    rows = [GroupMember(group_id=group.id, user_id=admin.id, is_admin=True)]
    rows += [GroupMember(group_id=group.id, user_id=m.id, is_admin=False) for m in members]
    db.add_all(rows)
    await db.commit()
    return group, rows


@pytest_asyncio.fixture
async def flat(db):
    """Alice (admin) and Bob share "Flat 5"; Carol is a stranger."""
    alice = await make_user(db, "alice")
    bob = await make_user(db, "bob")
    carol = await make_user(db, "carol")
    group, (alice_m, bob_m) = await make_group(db, "Flat 5", alice, bob)

    return {
        "alice": alice,
        "bob": bob,
        "carol": carol,
        "group": group,
        "alice_m": alice_m,
        "bob_m": bob_m,
    }


@pytest_asyncio.fixture
async def user_factory(db):
    async def factory(username: str) -> User:
        return await make_user(db, username)
    return factory
