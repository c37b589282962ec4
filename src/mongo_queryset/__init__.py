# src/mongo_queryset/__init__.py

"""
Mongo QuerySet Library Initialization.

This package provides a fluent query builder for MongoDB together with thin
async helpers that dispatch built queries through Motor.

It initializes a logger with a NullHandler and makes the QuerySet builder,
join evaluation, data-access helpers and model persistence helpers available
at the top level.
"""

import logging

# --------------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------------
# Library logs are discarded unless the consuming application configures
# logging for the "mongo_queryset" logger.
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
logger.propagate = False

# --------------------------------------------------------------------------
# Query Building Exports
# --------------------------------------------------------------------------
from .base.query import QuerySet, JoinDeclaration, create_query, paginate_query
from .base.options import FindOptions, UpdateOptions, DeleteOptions
from .base.exceptions import DeadlineExceeded
from .config import DEFAULT_OPERATION_TIMEOUT

# --------------------------------------------------------------------------
# MongoDB Exports
# --------------------------------------------------------------------------
from .mongodb.joins import evaluate_join, materialize_filter
from .mongodb.operations import (
    get_database,
    insert_document,
    insert_documents,
    get_document,
    get_documents,
    update_document,
    update_documents,
    delete_document,
    delete_documents,
    count_documents,
    aggregate_documents,
    create_index,
    create_indexes,
    list_collections,
)
from .mongodb.models import Model, Document, NIL_OBJECT_ID, save_model, delete_model

__all__ = [
    # Query
    "QuerySet",
    "JoinDeclaration",
    "create_query",
    "paginate_query",
    "FindOptions",
    "UpdateOptions",
    "DeleteOptions",
    # Exceptions
    "DeadlineExceeded",
    # Config
    "DEFAULT_OPERATION_TIMEOUT",
    # Joins
    "evaluate_join",
    "materialize_filter",
    # Operations
    "get_database",
    "insert_document",
    "insert_documents",
    "get_document",
    "get_documents",
    "update_document",
    "update_documents",
    "delete_document",
    "delete_documents",
    "count_documents",
    "aggregate_documents",
    "create_index",
    "create_indexes",
    "list_collections",
    # Models
    "Model",
    "Document",
    "NIL_OBJECT_ID",
    "save_model",
    "delete_model",
    # Logging
    "logger",
]

__version__ = "0.1.0"
