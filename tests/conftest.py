"""Shared pytest fixtures.

The store is an in-memory stand-in for the subset of the async pymongo
collection API the services use; Telegram applications are replaced by a
recording fake so no test touches the network.
"""

import asyncio
import copy
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from types import SimpleNamespace
from typing import Any
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from uidkeeper.app import App
from uidkeeper.config import Config
from uidkeeper.core.core import Core
from uidkeeper.core.modules.bot.service import BotService
from uidkeeper.web.server import create_fastapi_app

START_TIME = 1_700_000_000


def _compare(op: str, value: Any, operand: Any) -> bool:
    if value is None:
        return False
    if op == "$gt":
        return bool(value > operand)
    if op == "$gte":
        return bool(value >= operand)
    if op == "$lt":
        return bool(value < operand)
    if op == "$lte":
        return bool(value <= operand)
    raise NotImplementedError(op)


def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, condition in query.items():
        value = doc.get(key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_compare(op, value, operand) for op, operand in condition.items()):
                return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[dict[str, Any]]:
        for doc in self._docs:
            yield doc


class FakeCollection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: list[dict[str, Any]] = []
        self.unique_fields: list[str] = []
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _check_unique(self, candidate: dict[str, Any], ignore: dict[str, Any] | None = None) -> None:
        for field in self.unique_fields:
            for doc in self.docs:
                if doc is not ignore and field in candidate and doc.get(field) == candidate[field]:
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {field}_1")

    async def create_index(self, keys: list[tuple[str, int]], unique: bool = False, **_: Any) -> str:
        self._check()
        if unique and len(keys) == 1:
            self.unique_fields.append(keys[0][0])
        return "_".join(f"{field}_{direction}" for field, direction in keys)

    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        self._check()
        doc = copy.deepcopy(document)
        doc.setdefault("_id", uuid4())
        self._check_unique(doc)
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        self._check()
        doc = next((d for d in self.docs if _matches(d, query)), None)
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, query: dict[str, Any] | None = None, projection: dict[str, Any] | None = None) -> FakeCursor:
        self._check()
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, query or {})])

    async def count_documents(self, query: dict[str, Any]) -> int:
        self._check()
        return sum(1 for d in self.docs if _matches(d, query))

    async def update_one(self, query: dict[str, Any], update: dict[str, Any], upsert: bool = False) -> SimpleNamespace:
        self._check()
        doc = next((d for d in self.docs if _matches(d, query)), None)
        if doc is not None:
            updated = {**doc, **update.get("$set", {})}
            self._check_unique(updated, ignore=doc)
            doc.update(update.get("$set", {}))
            return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        new_doc = {key: value for key, value in query.items() if not isinstance(value, dict)}
        new_doc.update(update.get("$setOnInsert", {}))
        new_doc.update(update.get("$set", {}))
        result = await self.insert_one(new_doc)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=result.inserted_id)

    async def delete_one(self, query: dict[str, Any]) -> SimpleNamespace:
        self._check()
        for doc in self.docs:
            if _matches(doc, query):
                self.docs.remove(doc)
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query: dict[str, Any]) -> SimpleNamespace:
        self._check()
        before = len(self.docs)
        self.docs = [d for d in self.docs if not _matches(d, query)]
        return SimpleNamespace(deleted_count=before - len(self.docs))


class FakeDatabase:
    def __init__(self, name: str = "uidkeeper_test") -> None:
        self.name = name
        self._collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        return self._collections.setdefault(name, FakeCollection(name))


class FakeClock:
    """Replaces unix_now(); starts at a fixed instant and only moves when told to."""

    def __init__(self, start: int = START_TIME) -> None:
        self.value = start

    def __call__(self) -> int:
        return self.value

    def advance(self, seconds: int) -> None:
        self.value += seconds


class FakeUpdater:
    def __init__(self) -> None:
        self.running = False

    async def start_polling(self, **_: Any) -> None:
        self.running = True

    async def stop(self) -> None:
        self.running = False


class FakeTelegramBot:
    def __init__(self, telegram: "FakeTelegram") -> None:
        self._telegram = telegram
        self.commands: list[Any] = []

    async def set_my_commands(self, commands: list[Any]) -> None:
        self.commands = commands

    async def get_me(self) -> SimpleNamespace:
        if self._telegram.heartbeat_failures > 0:
            self._telegram.heartbeat_failures -= 1
            raise self._telegram.heartbeat_error
        return SimpleNamespace(username="fake_bot")


class FakeApplication:
    def __init__(self, telegram: "FakeTelegram", token: str, dispatch: Callable[..., Awaitable[str]]) -> None:
        self.token = token
        self.dispatch = dispatch
        self.connect_error = telegram.connect_errors.pop(0) if telegram.connect_errors else None
        self.bot = FakeTelegramBot(telegram)
        self.updater = None if telegram.without_updater else FakeUpdater()
        self.running = False
        self.initialized = False
        self.shut_down = False

    async def initialize(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.initialized = True

    async def start(self) -> None:
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def shutdown(self) -> None:
        self.shut_down = True


class FakeTelegram:
    """Application factory recording every application it builds."""

    def __init__(self) -> None:
        self.applications: list[FakeApplication] = []
        self.connect_errors: list[Exception] = []
        self.heartbeat_failures = 0
        self.without_updater = False
        self.heartbeat_error: Exception = RuntimeError("heartbeat_error not configured")

    def __call__(self, token: str, dispatch: Callable[..., Awaitable[str]]) -> FakeApplication:
        application = FakeApplication(self, token, dispatch)
        self.applications.append(application)
        return application


async def _eventually(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    """Await until a condition holds, failing after a timeout."""
    return _eventually


@pytest.fixture
def config() -> Config:
    return Config(
        database_url="mongodb://localhost:27017/uidkeeper_test",
        host="127.0.0.1",
        port=8000,
        debug=True,
        bot_autostart=False,
        bot_connect_timeout_seconds=1,
        bot_heartbeat_interval_seconds=3600,
        bot_reconnect_attempts=2,
        bot_reconnect_delay_seconds=0,
        bot_startup_stagger_seconds=0,
    )


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Freeze the ledger's clock."""
    fake = FakeClock()
    monkeypatch.setattr("uidkeeper.core.modules.uid.service.unix_now", fake)
    return fake


@pytest.fixture
def fake_telegram(monkeypatch: pytest.MonkeyPatch) -> FakeTelegram:
    """Route every bot connection to a fake Telegram application."""
    telegram = FakeTelegram()
    monkeypatch.setattr(BotService, "application_factory", staticmethod(telegram))
    return telegram


@pytest.fixture
async def core(config: Config, database: FakeDatabase, fake_telegram: FakeTelegram) -> AsyncIterator[Core]:
    core = Core(config, database)  # type: ignore[arg-type]
    await core.on_start()
    yield core
    await core.on_stop()


@pytest.fixture
def app_instance(config: Config, database: FakeDatabase, fake_telegram: FakeTelegram) -> App:
    return App(config, database)  # type: ignore[arg-type]


@pytest.fixture
def client(app_instance: App, config: Config) -> Iterator[TestClient]:
    with TestClient(create_fastapi_app(app_instance, config)) as test_client:
        yield test_client


def _login(client: TestClient, username: str, password: str) -> dict[str, str]:
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def admin_headers(client: TestClient) -> dict[str, str]:
    return _login(client, "admin", "admin")


@pytest.fixture
def user_headers(client: TestClient, admin_headers: dict[str, str]) -> dict[str, str]:
    response = client.post("/api/auth/create-user", json={"username": "alice", "password": "secret"}, headers=admin_headers)
    assert response.status_code == 200, response.text
    return _login(client, "alice", "secret")
