# backend/tests/conftest.py
"""
Pytest configuration for the GreyCat channel backend.

Every test runs inside one outer transaction on a shared in-memory
SQLite engine. The session joins it with SAVEPOINTs, so service-level
commits and rollbacks behave normally and everything is discarded when
the test ends.
"""

import os
import sys

# Set testing mode BEFORE any greycat imports
os.environ["is_testing"] = "true"
os.environ["broadcast_url"] = ""

backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from greycat.core.config import settings  # noqa: E402

settings.is_testing = True

from typing import Callable, Dict, Generator, List, Tuple  # noqa: E402

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from greycat.auth import create_access_token  # noqa: E402
from greycat.database import Base, build_engine, get_db  # noqa: E402
from greycat.main import create_app  # noqa: E402
import greycat.models  # noqa: F401,E402
from greycat.models.user import User  # noqa: E402
from greycat.services.channel_service import ChannelService  # noqa: E402
from greycat.services.message_service import MessageService  # noqa: E402
from greycat.services.messaging.hub import BroadcastHub, Connection  # noqa: E402
from greycat.services.user_directory import UserDirectory  # noqa: E402


@pytest.fixture(scope="session")
def _engine() -> Generator[Engine, None, None]:
    engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(_engine: Engine) -> Generator[Session, None, None]:
    """
    Provide a transactional session bound to the shared in-memory engine.
    """
    connection = _engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        expire_on_commit=False,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


# ============================================================================
# Users
# ============================================================================


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(username: str = "", name: str = "", photo: str = "") -> User:
        counter["n"] += 1
        handle = username or f"user{counter['n']}"
        user = User(
            username=handle,
            name=name or handle.title(),
            photo=photo or f"https://cdn.greycat.test/avatars/{handle}.png",
        )
        db.add(user)
        # Committed so a later service rollback cannot take it away
        db.commit()
        return user

    return _make


@pytest.fixture
def alice(make_user: Callable[..., User]) -> User:
    return make_user("alice", "Alice Liddell")


@pytest.fixture
def bob(make_user: Callable[..., User]) -> User:
    return make_user("bob", "Bob Marley")


@pytest.fixture
def carol(make_user: Callable[..., User]) -> User:
    return make_user("carol", "Carol Danvers")


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture
def listen(hub: BroadcastHub) -> Callable[[str], Connection]:
    """Register a loop-less in-memory connection subscribed to a channel."""

    def _listen(channel_id: str) -> Connection:
        connection = hub.register(Connection())
        hub.subscribe(connection.id, channel_id)
        return connection

    return _listen


def _drain(connection: Connection) -> List[Dict]:
    frames = []
    while not connection.queue.empty():
        frames.append(connection.queue.get_nowait())
    return frames


@pytest.fixture
def drain() -> Callable[[Connection], List[Dict]]:
    """Pop every frame queued on a connection."""
    return _drain


@pytest.fixture
def channel_service(db: Session) -> ChannelService:
    return ChannelService(db, users=UserDirectory(db))


@pytest.fixture
def message_service(db: Session, hub: BroadcastHub, channel_service: ChannelService) -> MessageService:
    return MessageService(db, hub=hub, users=channel_service.users, channels=channel_service)


@pytest.fixture
def public_channel(channel_service: ChannelService, alice: User) -> Dict:
    return channel_service.create(name="team-chat", creator_id=alice.id, title="Team Chat")


@pytest.fixture
def private_channel(channel_service: ChannelService, alice: User) -> Dict:
    return channel_service.create(name="secret", creator_id=alice.id, is_private=True)


# ============================================================================
# HTTP
# ============================================================================


def _auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    return _auth_headers


@pytest.fixture
def app(db: Session, hub: BroadcastHub) -> FastAPI:
    application = create_app(hub=hub, create_tables=False)

    def override_get_db() -> Generator[Session, None, None]:
        yield db

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def users_with_headers(alice: User, bob: User, carol: User) -> Tuple[Dict, Dict, Dict]:
    return _auth_headers(alice), _auth_headers(bob), _auth_headers(carol)
