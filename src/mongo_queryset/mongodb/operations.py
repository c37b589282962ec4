# src/mongo_queryset/mongodb/operations.py
"""
Thin helpers around Motor collection operations.

Every helper takes an already-connected database, a collection name and,
where it filters, a QuerySet. Each store call runs under its own driver-side
deadline (see `resolve_timeout` and `with_deadline`). Errors reported by the
driver propagate unchanged; the only normalization is `get_document`
returning None when nothing matches.
"""

import logging
import os
from logging import LoggerAdapter
from typing import (Any, AsyncGenerator, Dict, List, Mapping, Optional,
                    Sequence, Tuple, Union)

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.results import (DeleteResult, InsertManyResult, InsertOneResult,
                             UpdateResult)

from mongo_queryset.base.query import QuerySet
from mongo_queryset.config import DEFAULT_MONGO_URI, MONGO_URI_ENV
from mongo_queryset.mongodb.deadline import (next_with_deadline,
                                             resolve_timeout, with_deadline)
from mongo_queryset.mongodb.joins import materialize_filter

base_logger = logging.getLogger(__name__)

IndexKeys = Union[Mapping[str, int], Sequence[Tuple[str, int]]]


def get_database(
    uri: Optional[str] = None, name: str = "test", **client_kwargs: Any
) -> AsyncIOMotorDatabase:
    """
    Creates a Motor client for `uri` and returns the named database.

    Without an explicit URI the `MONGO_QUERYSET_URI` environment variable is
    used, then `mongodb://localhost:27017`. Motor connects lazily, so no I/O
    happens here.
    """
    effective_uri = uri or os.getenv(MONGO_URI_ENV, DEFAULT_MONGO_URI)
    client = AsyncIOMotorClient(effective_uri, **client_kwargs)
    base_logger.debug(f"Created Motor client for database '{name}'.")
    return client[name]


# --- Insert ---


async def insert_document(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    document: Mapping[str, Any],
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> InsertOneResult:
    log = logger or base_logger
    result = await with_deadline(
        lambda: database[collection_name].insert_one(document),
        resolve_timeout(timeout),
        f"insert_one on {collection_name}",
    )
    log.info(f"Inserted document {result.inserted_id} into '{collection_name}'.")
    return result


async def insert_documents(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    documents: Sequence[Mapping[str, Any]],
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> InsertManyResult:
    log = logger or base_logger
    result = await with_deadline(
        lambda: database[collection_name].insert_many(list(documents)),
        resolve_timeout(timeout),
        f"insert_many on {collection_name}",
    )
    log.info(
        f"Inserted {len(result.inserted_ids)} document(s) into '{collection_name}'."
    )
    return result


# --- Read ---


async def _iterate(
    cursor: Any, deadline: float, operation: str
) -> AsyncGenerator[Dict[str, Any], None]:
    """
    Yields the documents of a Motor cursor, each fetch under `deadline`.

    The cursor is closed whether iteration runs to the end or stops early.
    """
    try:
        while True:
            try:
                document = await next_with_deadline(cursor, deadline, operation)
            except StopAsyncIteration:
                break
            yield document
    finally:
        await cursor.close()


async def get_document(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    query: QuerySet,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> Optional[Dict[str, Any]]:
    """
    Returns the first document matching `query`, or None when nothing matches.

    Only the projection of the query's find options applies here.
    """
    log = logger or base_logger
    deadline = resolve_timeout(timeout, query)
    query_filter = await materialize_filter(database, query, deadline, logger)
    kwargs = {}
    if query.find_options is not None and query.find_options.projection is not None:
        kwargs["projection"] = dict(query.find_options.projection)
    log.debug(f"MongoDB find_one on '{collection_name}' filter: {query_filter}")
    document = await with_deadline(
        lambda: database[collection_name].find_one(query_filter, **kwargs),
        deadline,
        f"find_one on {collection_name}",
    )
    if document is None:
        log.debug(f"No document in '{collection_name}' matched {query_filter}.")
    return document


async def get_documents(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    query: QuerySet,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> AsyncGenerator[Dict[str, Any], None]:
    """
    Yields every document matching `query`, honouring its limit, skip, sort
    and projection when set. The sequence is lazy and single-pass; each batch
    fetch runs under the deadline.
    """
    log = logger or base_logger
    deadline = resolve_timeout(timeout, query)
    query_filter = await materialize_filter(database, query, deadline, logger)
    kwargs = query.find_options.to_kwargs() if query.find_options else {}
    log.debug(
        f"MongoDB find on '{collection_name}' filter: {query_filter}, options: {kwargs}"
    )
    cursor = database[collection_name].find(query_filter, **kwargs)
    async for document in _iterate(
        cursor, deadline, f"find on {collection_name}"
    ):
        yield document


async def count_documents(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    query: QuerySet,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> int:
    log = logger or base_logger
    deadline = resolve_timeout(timeout, query)
    query_filter = await materialize_filter(database, query, deadline, logger)
    log.debug(f"MongoDB count on '{collection_name}' filter: {query_filter}")
    count = await with_deadline(
        lambda: database[collection_name].count_documents(query_filter),
        deadline,
        f"count_documents on {collection_name}",
    )
    return int(count)


async def aggregate_documents(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    pipeline: Sequence[Mapping[str, Any]],
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> AsyncGenerator[Dict[str, Any], None]:
    """Runs `pipeline` unmodified and yields the resulting documents."""
    log = logger or base_logger
    deadline = resolve_timeout(timeout)
    log.debug(f"MongoDB aggregate on '{collection_name}' pipeline: {pipeline}")
    cursor = database[collection_name].aggregate(pipeline)
    async for document in _iterate(
        cursor, deadline, f"aggregate on {collection_name}"
    ):
        yield document


# --- Update ---


async def _update(
    method: str,
    database: AsyncIOMotorDatabase,
    collection_name: str,
    query: QuerySet,
    update: Any,
    timeout: Optional[float],
    logger: Optional[LoggerAdapter],
) -> UpdateResult:
    log = logger or base_logger
    deadline = resolve_timeout(timeout, query)
    query_filter = await materialize_filter(database, query, deadline, logger)
    kwargs = query.update_options.to_kwargs() if query.update_options else {}
    log.debug(
        f"MongoDB {method} on '{collection_name}' filter: {query_filter}, "
        f"update: {update}, options: {kwargs}"
    )
    collection = database[collection_name]
    result = await with_deadline(
        lambda: getattr(collection, method)(query_filter, update, **kwargs),
        deadline,
        f"{method} on {collection_name}",
    )
    log.info(
        f"{method} on '{collection_name}' matched {result.matched_count}, "
        f"modified {result.modified_count}."
    )
    return result


async def update_document(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    query: QuerySet,
    update: Any,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> UpdateResult:
    return await _update(
        "update_one", database, collection_name, query, update, timeout, logger
    )


async def update_documents(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    query: QuerySet,
    update: Any,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> UpdateResult:
    return await _update(
        "update_many", database, collection_name, query, update, timeout, logger
    )


# --- Delete ---


async def _delete(
    method: str,
    database: AsyncIOMotorDatabase,
    collection_name: str,
    query: QuerySet,
    timeout: Optional[float],
    logger: Optional[LoggerAdapter],
) -> DeleteResult:
    log = logger or base_logger
    deadline = resolve_timeout(timeout, query)
    query_filter = await materialize_filter(database, query, deadline, logger)
    kwargs = query.delete_options.to_kwargs() if query.delete_options else {}
    log.debug(
        f"MongoDB {method} on '{collection_name}' filter: {query_filter}, "
        f"options: {kwargs}"
    )
    collection = database[collection_name]
    result = await with_deadline(
        lambda: getattr(collection, method)(query_filter, **kwargs),
        deadline,
        f"{method} on {collection_name}",
    )
    log.info(f"{method} on '{collection_name}' removed {result.deleted_count}.")
    return result


async def delete_document(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    query: QuerySet,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> DeleteResult:
    return await _delete(
        "delete_one", database, collection_name, query, timeout, logger
    )


async def delete_documents(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    query: QuerySet,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> DeleteResult:
    return await _delete(
        "delete_many", database, collection_name, query, timeout, logger
    )


# --- Indexes and collections ---


def _index_keys(keys: IndexKeys) -> List[Tuple[str, int]]:
    pairs = list(keys.items()) if isinstance(keys, Mapping) else list(keys)
    if not pairs:
        raise ValueError("At least one field is required to create an index.")
    for field, direction in pairs:
        if direction not in (ASCENDING, DESCENDING):
            raise ValueError(
                f"Index direction for '{field}' must be ASCENDING (1) or "
                f"DESCENDING (-1), got {direction!r}."
            )
    return pairs


async def create_indexes(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    keys: IndexKeys,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> str:
    """
    Creates one unique compound index over `keys` and returns its name.

    Fails (and does not retry) when existing documents violate uniqueness.
    """
    log = logger or base_logger
    index_keys = _index_keys(keys)
    log.debug(f"Creating unique index on '{collection_name}' keys: {index_keys}")
    name = await with_deadline(
        lambda: database[collection_name].create_index(index_keys, unique=True),
        resolve_timeout(timeout),
        f"create_index on {collection_name}",
    )
    log.info(f"Index '{name}' ensured on '{collection_name}'.")
    return name


async def create_index(
    database: AsyncIOMotorDatabase,
    collection_name: str,
    field: str,
    direction: int = ASCENDING,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> str:
    """Creates a unique index on a single field."""
    return await create_indexes(
        database, collection_name, [(field, direction)], timeout, logger
    )


async def list_collections(
    database: AsyncIOMotorDatabase,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> List[str]:
    log = logger or base_logger
    names = await with_deadline(
        database.list_collection_names,
        resolve_timeout(timeout),
        "list_collection_names",
    )
    log.debug(f"Database has {len(names)} collection(s).")
    return names
