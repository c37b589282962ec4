# tests/conftest.py
import asyncio
import logging
import os
import uuid
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
import motor.motor_asyncio
from bson import ObjectId
from pymongo import MongoClient
from pymongo import _csot
from pymongo.errors import ConnectionFailure, ExecutionTimeout, PyMongoError
from pymongo.results import (DeleteResult, InsertManyResult, InsertOneResult,
                             UpdateResult)

# Silence verbose loggers
logging.getLogger("pymongo").setLevel(logging.ERROR)
logging.getLogger("motor").setLevel(logging.ERROR)


# --- Constants ---
MONGO_URI = os.getenv("TEST_MONGO_URI", "mongodb://localhost:27017")


# --- Availability Checks ---
def is_mongodb_available():
    """Check if MongoDB is available (basic check)."""
    client = None
    try:
        client = MongoClient(MONGO_URI, serverSelectionTimeoutMS=1000)
        client.admin.command("ping")
        logging.info(f"MongoDB found and responsive at {MONGO_URI}")
        return True
    except ConnectionFailure:
        logging.warning(
            f"MongoDB not found or not responsive at {MONGO_URI}. "
            "Skipping MongoDB tests."
        )
        return False
    except PyMongoError as e:
        logging.warning(
            f"Error checking MongoDB connection at {MONGO_URI}: {e}. "
            "Skipping MongoDB tests."
        )
        return False
    finally:
        if client is not None:
            client.close()


MONGODB_AVAILABLE = is_mongodb_available()


# --- In-memory stand-ins for Motor objects ---


async def _server_latency(delay: float) -> None:
    """
    Sleeps like a slow server. When the active `pymongo.timeout` runs out
    first, fails the way the driver does and reports the operation aborted.
    """
    remaining = _csot.remaining()
    if remaining is not None and delay > remaining:
        await asyncio.sleep(max(remaining, 0))
        raise ExecutionTimeout("operation exceeded time limit", 50)
    await asyncio.sleep(delay)


class FakeCursor:
    """Async cursor over a fixed list of documents."""

    def __init__(
        self,
        documents: List[Dict[str, Any]],
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self._documents = list(documents)
        self._error = error
        self._delay = delay
        self._position = 0
        self.closed = False
        self.deadlines: List[Optional[float]] = []

    async def next(self) -> Dict[str, Any]:
        self.deadlines.append(_csot.get_timeout())
        if self._delay:
            await _server_latency(self._delay)
        if self._error is not None:
            raise self._error
        if self._position >= len(self._documents):
            raise StopAsyncIteration
        document = self._documents[self._position]
        self._position += 1
        return document

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        self.deadlines.append(_csot.get_timeout())
        if self._delay:
            await _server_latency(self._delay)
        if self._error is not None:
            raise self._error
        remaining = self._documents[self._position:]
        self._position = len(self._documents)
        return remaining

    async def close(self) -> None:
        self.closed = True


class FakeCollection:
    """
    Records every call made to it and answers with `documents`.

    Set `error` to make every operation fail, or `delay` to make it slow.
    Filters are recorded, not evaluated. `deadlines` holds the
    `pymongo.timeout` active during each call.
    """

    def __init__(self, name: str):
        self.name = name
        self.calls: List[tuple] = []
        self.documents: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None
        self.delay: float = 0.0
        self.deadlines: List[Optional[float]] = []
        self.cursors: List[FakeCursor] = []

    def calls_to(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    def _cursor(self) -> FakeCursor:
        cursor = FakeCursor(self.documents, self.error, self.delay)
        self.cursors.append(cursor)
        return cursor

    async def _respond(self) -> None:
        self.deadlines.append(_csot.get_timeout())
        if self.delay:
            await _server_latency(self.delay)
        if self.error is not None:
            raise self.error

    async def insert_one(self, document, **kwargs):
        self.calls.append(("insert_one", (document,), kwargs))
        await self._respond()
        return InsertOneResult(ObjectId(), True)

    async def insert_many(self, documents, **kwargs):
        self.calls.append(("insert_many", (documents,), kwargs))
        await self._respond()
        return InsertManyResult([ObjectId() for _ in documents], True)

    async def find_one(self, query_filter, **kwargs):
        self.calls.append(("find_one", (query_filter,), kwargs))
        await self._respond()
        return self.documents[0] if self.documents else None

    def find(self, query_filter, **kwargs):
        self.calls.append(("find", (query_filter,), kwargs))
        return self._cursor()

    def aggregate(self, pipeline, **kwargs):
        self.calls.append(("aggregate", (pipeline,), kwargs))
        return self._cursor()

    async def count_documents(self, query_filter, **kwargs):
        self.calls.append(("count_documents", (query_filter,), kwargs))
        await self._respond()
        return len(self.documents)

    async def update_one(self, query_filter, update, **kwargs):
        self.calls.append(("update_one", (query_filter, update), kwargs))
        await self._respond()
        return UpdateResult({"n": 1, "nModified": 1}, True)

    async def update_many(self, query_filter, update, **kwargs):
        self.calls.append(("update_many", (query_filter, update), kwargs))
        await self._respond()
        n = len(self.documents)
        return UpdateResult({"n": n, "nModified": n}, True)

    async def delete_one(self, query_filter, **kwargs):
        self.calls.append(("delete_one", (query_filter,), kwargs))
        await self._respond()
        return DeleteResult({"n": 1}, True)

    async def delete_many(self, query_filter, **kwargs):
        self.calls.append(("delete_many", (query_filter,), kwargs))
        await self._respond()
        return DeleteResult({"n": len(self.documents)}, True)

    async def create_index(self, keys, **kwargs):
        self.calls.append(("create_index", (keys,), kwargs))
        await self._respond()
        return "_".join(f"{field}_{direction}" for field, direction in keys)


class FakeDatabase:
    """Hands out one FakeCollection per name, like `database[name]` in Motor."""

    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}
        self.deadlines: List[Optional[float]] = []

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def list_collection_names(self, **kwargs) -> List[str]:
        self.deadlines.append(_csot.get_timeout())
        return sorted(self.collections)


# --- Fixtures ---


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest_asyncio.fixture(scope="function")
async def mongo_db():
    """Provides a real, freshly named Motor database that is dropped afterwards."""
    if not MONGODB_AVAILABLE:
        pytest.skip("MongoDB not available or connection failed.")

    client = motor.motor_asyncio.AsyncIOMotorClient(MONGO_URI)
    name = f"pytest_mongo_queryset_{uuid.uuid4().hex[:12]}"
    try:
        yield client[name]
    finally:
        await client.drop_database(name)
        client.close()


# --- Logger Fixture ---


@pytest.fixture(scope="session")
def logger():
    """Create a test logger."""
    _logger = logging.getLogger("test_queryset_logger")
    if not _logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        _logger.addHandler(handler)
        _logger.setLevel(logging.DEBUG)
        _logger.propagate = False
    return logging.LoggerAdapter(_logger, {})
