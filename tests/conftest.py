# tests/conftest.py
from __future__ import annotations

import os
import tempfile
from datetime import timedelta
from typing import Any, AsyncIterator

_TEST_DIR = tempfile.mkdtemp(prefix="minichat-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["REDIS_URL"] = ""
os.environ["UPLOAD_DIRECTORY"] = os.path.join(_TEST_DIR, "uploads")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from minichat.auth import create_user_token, get_password_hash
from minichat.database import AsyncSessionLocal, async_engine
from minichat.main import app
from minichat.models import Base, Group, GroupMember, Message, User
from minichat.models.base import utcnow

TEST_PASSWORD = "password123"


class RecordingHub:
    """Stand-in for the connection manager that remembers what was published."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    async def publish(self, event_type, conversation, recipients, data) -> None:
        self.events.append({
            "type": event_type,
            "conversation": conversation,
            "recipients": sorted(set(recipients)),
            "data": data,
        })


class FailingHub:
    async def publish(self, event_type, conversation, recipients, data) -> None:
        raise ConnectionError("real-time transport is down")


@pytest_asyncio.fixture()
async def db_engine() -> AsyncIterator[Any]:
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_engine
    finally:
        await async_engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine) -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture()
async def client(db_engine) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def hub() -> RecordingHub:
    return RecordingHub()


async def create_user(session: AsyncSession, name: str, email: str, password: str = TEST_PASSWORD) -> User:
    user = User(name=name, email=email, hashed_password=get_password_hash(password))
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def create_message(
    session: AsyncSession,
    sender: User,
    content: str | None,
    *,
    receiver: User | None = None,
    group: Group | None = None,
    minutes_ago: float = 0,
    file_path: str | None = None,
) -> Message:
    """Insert a message row directly with a controlled timestamp."""
    message = Message(
        sender_id=sender.id,
        receiver_id=receiver.id if receiver else None,
        group_id=group.id if group else None,
        content=content,
        file_path=file_path,
        timestamp=utcnow() - timedelta(minutes=minutes_ago),
    )
    session.add(message)
    await session.commit()
    await session.refresh(message)
    return message


@pytest_asyncio.fixture()
async def alice(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Alice", "alice@example.com")


@pytest_asyncio.fixture()
async def bob(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Bob", "bob@example.com")


@pytest_asyncio.fixture()
async def carol(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Carol", "carol@example.com")


@pytest_asyncio.fixture()
async def group(db_session: AsyncSession, alice: User, bob: User) -> Group:
    """Group owned by Alice (admin) with Bob as a plain member, created an hour ago."""
    created = utcnow() - timedelta(hours=1)
    group = Group(name="Team")
    db_session.add(group)
    await db_session.flush()
    db_session.add_all([
        GroupMember(group_id=group.id, user_id=alice.id, is_admin=True, chat_history_visible_from=created),
        GroupMember(group_id=group.id, user_id=bob.id, is_admin=False, chat_history_visible_from=created),
    ])
    await db_session.commit()
    await db_session.refresh(group)
    return group


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_user_token(user)}"}
