"""Shared pytest fixtures."""

import copy
from typing import Any

import pytest

from insidemeter.client.config import ClientConfig
from insidemeter.client.platform import EnvironmentSnapshot
from insidemeter.client.storage import MemoryStore
from insidemeter.client.token_store import TokenStore
from insidemeter.config import Config
from insidemeter.core.modules.token.codec import TokenCodec
from insidemeter.core.modules.user.models import User

TEST_SECRET = "test-secret-key"
IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Mobile/15E148"
DESKTOP_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15"


class FakeCursor:
    """Async iterator over documents, standing in for a pymongo cursor."""

    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs

    def __aiter__(self) -> "FakeCursor":
        return self

    async def __anext__(self) -> dict[str, Any]:
        if not self._docs:
            raise StopAsyncIteration
        return self._docs.pop(0)


class FakeCollection:
    """In-memory collection supporting the operations the services use."""

    def __init__(self) -> None:
        self.docs: list[dict[str, Any]] = []

    def _match(self, doc: dict[str, Any], query: dict[str, Any]) -> bool:
        return all(doc.get(key) == value for key, value in query.items())

    async def create_index(self, *args: Any, **kwargs: Any) -> str:
        return "index"

    async def insert_one(self, doc: dict[str, Any]) -> None:
        self.docs.append(copy.deepcopy(doc))

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        doc = next((d for d in self.docs if self._match(d, query)), None)
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, query: dict[str, Any] | None = None) -> FakeCursor:
        return FakeCursor([copy.deepcopy(d) for d in self.docs if self._match(d, query or {})])

    async def update_one(self, query: dict[str, Any], update: dict[str, Any]) -> None:
        for doc in self.docs:
            if self._match(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                return

    async def delete_one(self, query: dict[str, Any]) -> None:
        self.docs = [d for d in self.docs if not self._match(d, query)]

    async def find_one_and_update(self, query: dict[str, Any], update: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        doc = next((d for d in self.docs if self._match(d, query)), None)
        if doc is None:
            doc = dict(query)
            self.docs.append(doc)
        for key, delta in update.get("$inc", {}).items():
            doc[key] = doc.get(key, 0) + delta
        return copy.deepcopy(doc)


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())

    async def command(self, name: str) -> dict[str, Any]:
        return {"ok": 1.0}


class FakeMongoClient:
    """Replaces AsyncMongoClient so Core runs without a MongoDB server."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.database = FakeDatabase()

    def get_database(self, name: str) -> FakeDatabase:
        return self.database

    async def aclose(self) -> None:
        pass


@pytest.fixture
def fake_mongo(monkeypatch):
    """Route Core's MongoDB client to in-memory collections."""
    monkeypatch.setattr("insidemeter.core.core.AsyncMongoClient", FakeMongoClient)


@pytest.fixture
def config():
    """Server configuration for tests."""
    return Config(
        database_url="mongodb://localhost:27017/insidemeter_test",
        host="127.0.0.1",
        port=3100,
        debug=True,
        session_secret_key=TEST_SECRET,
    )


@pytest.fixture
def codec():
    """Token codec using the test secret."""
    return TokenCodec(TEST_SECRET)


@pytest.fixture
def mock_user():
    """Create a mock user for testing."""
    return User(
        id=42,
        username="moonchild",
        email="moonchild@example.com",
        name="Moon Child",
        password_hash="$2b$12$hashed_password_here",
    )


@pytest.fixture
def client_config():
    """Client configuration with defaults (production API)."""
    return ClientConfig()


@pytest.fixture
def primary_store():
    return MemoryStore()


@pytest.fixture
def secondary_store():
    return MemoryStore()


@pytest.fixture
def token_store(primary_store, secondary_store):
    return TokenStore(primary_store, secondary_store)


@pytest.fixture
def native_env():
    """Snapshot of the iOS app shell."""
    return EnvironmentSnapshot(
        bridge_platform="ios",
        is_native_platform=True,
        has_bridge_plugins=True,
        url="capacitor://localhost/",
        user_agent=IPHONE_UA,
    )


@pytest.fixture
def browser_env():
    """Snapshot of a desktop browser on the production site."""
    return EnvironmentSnapshot(bridge_platform="web", url="https://insidemeter.com/", user_agent=DESKTOP_UA)
