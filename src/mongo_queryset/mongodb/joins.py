# src/mongo_queryset/mongodb/joins.py
"""
Emulated joins: a declared relationship is resolved with a lookup on the
foreign collection, and the collected keys become an `$in` constraint on the
outer query.

Limitations:
- The foreign lookup is neither paginated nor streamed. Every matching
  foreign key is held in memory, so large foreign result sets are slow.
- Lookups run one after another, so a query with k joins pays k round trips
  before the outer query even starts.
- A failing lookup is fail-open: it is logged and contributes no constraint,
  which means the outer query may return more documents than intended.
"""

import logging
from logging import LoggerAdapter
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from mongo_queryset.base.query import JoinDeclaration, QuerySet
from mongo_queryset.base.utils import get_path_values
from mongo_queryset.mongodb.deadline import resolve_timeout, with_deadline

base_logger = logging.getLogger(__name__)


async def evaluate_join(
    database: AsyncIOMotorDatabase,
    join: JoinDeclaration,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> Optional[Dict[str, Any]]:
    """
    Resolves one join into `{local_field: {"$in": [...]}}`.

    The lookup runs under the foreign QuerySet's own timeout when it has one,
    otherwise under `timeout`. Returns None when the lookup fails for any
    reason.
    """
    log = logger or base_logger
    foreign_query = join.foreign_query
    if foreign_query.timeout_seconds is not None:
        deadline = foreign_query.timeout_seconds
    else:
        deadline = resolve_timeout(timeout)
    try:
        foreign_filter = await materialize_filter(
            database, foreign_query, timeout=deadline, logger=logger
        )
        log.debug(
            f"Join lookup on '{join.foreign_collection}' for field "
            f"'{join.foreign_field}' with filter: {foreign_filter}"
        )
        cursor = database[join.foreign_collection].find(
            foreign_filter, projection={join.foreign_field: 1}
        )
        documents = await with_deadline(
            lambda: cursor.to_list(length=None),
            deadline,
            f"join lookup on {join.foreign_collection}",
        )
    except Exception as e:
        log.warning(
            f"Join lookup on '{join.foreign_collection}' failed, ignoring the "
            f"constraint on '{join.local_field}': {e}",
            exc_info=True,
        )
        return None

    values: List[Any] = []
    for document in documents:
        # Arrays of subdocuments along the path yield one value per element.
        values.extend(get_path_values(document, join.foreign_field))

    log.debug(
        f"Join on '{join.local_field}' resolved to {len(values)} value(s) "
        f"from '{join.foreign_collection}'."
    )
    return {join.local_field: {"$in": values}}


async def materialize_filter(
    database: AsyncIOMotorDatabase,
    query: QuerySet,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> Dict[str, Any]:
    """
    Builds the final filter for `query`, first resolving its joins in
    declaration order. The QuerySet itself is left untouched.
    """
    if not query.joins:
        return query.build()

    fragments = []
    for join in list(query.joins):
        fragment = await evaluate_join(database, join, timeout, logger)
        if fragment is not None:
            fragments.append(fragment)
    return query.build(extra=fragments)
