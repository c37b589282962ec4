# src/mongo_queryset/base/options.py
"""
Per-operation settings carried by a QuerySet.

Each bag is created lazily by the QuerySet the first time one of its settings
is touched. A bag that was never created, or a field left as None, means the
driver's default applies.
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pymongo import ASCENDING

SortOrder = Union[str, Mapping[str, Any], Sequence[Tuple[str, Any]]]


def normalize_sort(sort: SortOrder) -> List[Tuple[str, Any]]:
    """Converts a sort order into PyMongo's list of (key, direction) pairs."""
    if isinstance(sort, str):
        return [(sort, ASCENDING)]
    if isinstance(sort, Mapping):
        return list(sort.items())
    pairs = []
    for item in sort:
        if isinstance(item, str):
            pairs.append((item, ASCENDING))
        else:
            key, direction = item
            pairs.append((key, direction))
    return pairs


@dataclass
class FindOptions:
    """Options for find operations."""

    limit: Optional[int] = None
    skip: Optional[int] = None
    sort: Optional[SortOrder] = None
    projection: Optional[Dict[str, int]] = None

    def to_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self.limit is not None:
            kwargs["limit"] = self.limit
        if self.skip is not None:
            kwargs["skip"] = self.skip
        if self.sort is not None:
            kwargs["sort"] = normalize_sort(self.sort)
        if self.projection is not None:
            kwargs["projection"] = dict(self.projection)
        return kwargs

    def copy(self) -> "FindOptions":
        return copy.deepcopy(self)


@dataclass
class UpdateOptions:
    """Options for update_one / update_many."""

    upsert: Optional[bool] = None
    array_filters: Optional[List[Mapping[str, Any]]] = None
    hint: Optional[Union[str, Sequence[Tuple[str, Any]]]] = None

    def to_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self.upsert is not None:
            kwargs["upsert"] = self.upsert
        if self.array_filters is not None:
            kwargs["array_filters"] = list(self.array_filters)
        if self.hint is not None:
            kwargs["hint"] = self.hint
        return kwargs

    def copy(self) -> "UpdateOptions":
        return copy.deepcopy(self)


@dataclass
class DeleteOptions:
    """Options for delete_one / delete_many."""

    hint: Optional[Union[str, Sequence[Tuple[str, Any]]]] = None

    def to_kwargs(self) -> Dict[str, Any]:
        if self.hint is None:
            return {}
        return {"hint": self.hint}

    def copy(self) -> "DeleteOptions":
        return copy.deepcopy(self)
