# src/mongo_queryset/base/query.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .options import DeleteOptions, FindOptions, SortOrder, UpdateOptions

# --- Setup Logging ---
log = logging.getLogger(__name__)

Fragment = Mapping[str, Any]


@dataclass(frozen=True)
class JoinDeclaration:
    """
    A planned cross-collection membership lookup.

    At build time the documents of `foreign_collection` matching
    `foreign_query` are fetched, their `foreign_field` values collected, and
    the outer query is constrained to documents whose `local_field` is one of
    those values.
    """

    local_field: str
    foreign_field: str
    foreign_collection: str
    foreign_query: "QuerySet"


class QuerySet:
    """
    Accumulates AND-ed filter fragments and optional per-operation settings
    using a fluent API.

    Every mutating method returns the same instance, so calls can be chained:

        qs = QuerySet().filter({"age": {"$gte": 18}}).exclude({"banned": True}).limit(10)

    A QuerySet is meant to be built up and consumed by a single caller. Use
    `copy()` to fork a chain instead of sharing one instance between two.
    Filter fragments are MongoDB query documents and are not validated here;
    malformed fragments are reported by the server when the query runs.
    """

    filters: List[Fragment]
    find_options: Optional[FindOptions]
    update_options: Optional[UpdateOptions]
    delete_options: Optional[DeleteOptions]
    joins: List[JoinDeclaration]

    def __init__(self, *fragments: Fragment):
        self.filters = []
        self.find_options = None
        self.update_options = None
        self.delete_options = None
        self.joins = []
        self._timeout: Optional[float] = None
        if fragments:
            self.filter(*fragments)

    # --- Filters ---

    def filter(self, *fragments: Fragment) -> "QuerySet":
        """Adds filter fragments; each one is AND-ed with the preceding ones."""
        self.filters.extend(fragments)
        log.debug(f"Added {len(fragments)} filter fragment(s): {fragments!r}")
        return self

    def exclude(self, *fragments: Fragment) -> "QuerySet":
        """Adds a single fragment matching documents that match none of `fragments`."""
        if not fragments:
            log.debug("exclude() called without fragments, nothing to add.")
            return self
        self.filters.append({"$nor": list(fragments)})
        log.debug(f"Added exclusion over {len(fragments)} fragment(s): {fragments!r}")
        return self

    def join(
        self,
        local_field: str,
        foreign_collection: str,
        foreign_field: str,
        foreign_query: Optional["QuerySet"] = None,
    ) -> "QuerySet":
        """
        Declares a membership lookup against another collection.

        The foreign query is copied, so later changes to the caller's instance
        do not leak into this declaration.
        """
        foreign = foreign_query.copy() if foreign_query is not None else QuerySet()
        self.joins.append(
            JoinDeclaration(
                local_field=local_field,
                foreign_field=foreign_field,
                foreign_collection=foreign_collection,
                foreign_query=foreign,
            )
        )
        log.debug(
            f"Declared join {local_field} -> {foreign_collection}.{foreign_field}"
        )
        return self

    def build(self, extra: Iterable[Fragment] = ()) -> Dict[str, Any]:
        """
        Returns the logical AND of every accumulated fragment, followed by
        `extra`, in order. Never mutates the QuerySet.

        With nothing to combine, returns the empty filter `{}`, which matches
        every document (MongoDB rejects an empty `$and`).
        """
        fragments = list(self.filters)
        fragments.extend(extra)
        if not fragments:
            return {}
        return {"$and": fragments}

    # --- Find options ---

    def _find_options(self) -> FindOptions:
        if self.find_options is None:
            self.find_options = FindOptions()
        return self.find_options

    def _update_options(self) -> UpdateOptions:
        if self.update_options is None:
            self.update_options = UpdateOptions()
        return self.update_options

    def _delete_options(self) -> DeleteOptions:
        if self.delete_options is None:
            self.delete_options = DeleteOptions()
        return self.delete_options

    def limit(self, num: int) -> "QuerySet":
        """Sets the maximum number of documents a find returns."""
        if not isinstance(num, int) or isinstance(num, bool) or num < 0:
            raise ValueError("Limit must be a non-negative integer.")
        self._find_options().limit = num
        log.debug(f"Query limit set to: {num}")
        return self

    def skip(self, num: int) -> "QuerySet":
        """Sets the number of documents a find skips."""
        if not isinstance(num, int) or isinstance(num, bool) or num < 0:
            raise ValueError("Skip must be a non-negative integer.")
        self._find_options().skip = num
        log.debug(f"Query skip set to: {num}")
        return self

    def sort(self, order: SortOrder) -> "QuerySet":
        """
        Sets the sort order. Accepts a field name, a mapping of field to
        direction, or a sequence of (field, direction) pairs.
        """
        self._find_options().sort = order
        log.debug(f"Query sort set to: {order!r}")
        return self

    def fields(self, *names: str) -> "QuerySet":
        """Returns only the named fields (plus `_id`). No names is a no-op."""
        if not names:
            log.debug("fields() called without names, projection left unchanged.")
            return self
        self._find_options().projection = {name: 1 for name in names}
        return self

    def exclude_fields(self, *names: str) -> "QuerySet":
        """Returns every field except the named ones. No names is a no-op."""
        if not names:
            log.debug(
                "exclude_fields() called without names, projection left unchanged."
            )
            return self
        self._find_options().projection = {name: 0 for name in names}
        return self

    # --- Update / delete options ---

    def upsert(self, flag: bool = True) -> "QuerySet":
        self._update_options().upsert = flag
        return self

    def array_filters(self, filters: Sequence[Fragment]) -> "QuerySet":
        self._update_options().array_filters = list(filters)
        return self

    def hint(self, index: Any) -> "QuerySet":
        """Sets the index hint used by update and delete operations."""
        self._update_options().hint = index
        self._delete_options().hint = index
        return self

    # --- Deadline ---

    @property
    def timeout_seconds(self) -> Optional[float]:
        return self._timeout

    def timeout(self, seconds: Optional[float]) -> "QuerySet":
        """Sets the deadline, in seconds, for operations run with this query."""
        if seconds is not None and (
            not isinstance(seconds, (int, float))
            or isinstance(seconds, bool)
            or seconds < 0
        ):
            raise ValueError("Timeout must be a non-negative number or None.")
        self._timeout = seconds
        log.debug(f"Query timeout set to: {seconds}")
        return self

    # --- Misc ---

    def copy(self) -> "QuerySet":
        """Returns an independent snapshot of this QuerySet."""
        clone = QuerySet()
        clone.filters = list(self.filters)
        clone.find_options = self.find_options.copy() if self.find_options else None
        clone.update_options = (
            self.update_options.copy() if self.update_options else None
        )
        clone.delete_options = (
            self.delete_options.copy() if self.delete_options else None
        )
        # Declarations are frozen and own their foreign query.
        clone.joins = list(self.joins)
        clone._timeout = self._timeout
        return clone

    def __repr__(self) -> str:
        parts = [f"filters={self.filters!r}"]
        if self.find_options is not None:
            parts.append(f"find_options={self.find_options!r}")
        if self.update_options is not None:
            parts.append(f"update_options={self.update_options!r}")
        if self.delete_options is not None:
            parts.append(f"delete_options={self.delete_options!r}")
        if self.joins:
            parts.append(f"joins={self.joins!r}")
        if self._timeout is not None:
            parts.append(f"timeout={self._timeout!r}")
        return f"QuerySet({', '.join(parts)})"


def create_query(*fragments: Fragment) -> QuerySet:
    """Creates a QuerySet holding an initial set of filter fragments."""
    return QuerySet(*fragments)


def paginate_query(
    query: QuerySet, skip: Optional[int] = None, limit: Optional[int] = None
) -> QuerySet:
    """Applies `skip` and `limit` to `query`, leaving either untouched when None."""
    if skip is not None:
        query.skip(skip)
    if limit is not None:
        query.limit(limit)
    return query
