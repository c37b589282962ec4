# src/mongo_queryset/mongodb/models.py
import logging
from abc import ABC, abstractmethod
from logging import LoggerAdapter
from typing import Any, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, ConfigDict, Field
from pymongo.results import DeleteResult

from mongo_queryset.base.query import QuerySet
from mongo_queryset.base.utils import model_to_document
from mongo_queryset.mongodb.operations import (delete_document,
                                               insert_document,
                                               update_document)

base_logger = logging.getLogger(__name__)

# The all-zero ObjectId marks a model that has not been stored yet.
NIL_OBJECT_ID = ObjectId("0" * 24)


def is_absent_id(value: Optional[ObjectId]) -> bool:
    return value is None or value == NIL_OBJECT_ID


class Model(ABC):
    """
    Anything that can be stored as a document: it must report and accept its
    `_id` value.
    """

    @abstractmethod
    def get_id(self) -> Optional[ObjectId]:
        """Returns the document `_id`, or NIL_OBJECT_ID / None when unsaved."""
        pass

    @abstractmethod
    def set_id(self, value: ObjectId) -> None:
        """Stores the `_id` assigned by the database."""
        pass


class Document(BaseModel, Model):
    """
    Pydantic base class implementing Model.

    The `id` attribute is stored as `_id`:

        class Author(Document):
            name: str

        author = Author(name="Ann")
        await save_model(author, db, "authors")
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        validate_assignment=True,
    )

    id: ObjectId = Field(default=NIL_OBJECT_ID, alias="_id")

    def get_id(self) -> ObjectId:
        return self.id

    def set_id(self, value: ObjectId) -> None:
        self.id = value


def _fields_without_id(instance: Model) -> Dict[str, Any]:
    document = model_to_document(instance)
    document.pop("_id", None)
    return document


async def save_model(
    instance: Model,
    database: AsyncIOMotorDatabase,
    collection_name: str,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> None:
    """
    Inserts `instance` when it has no `_id` yet, assigning the generated one
    back onto it; otherwise `$set`s its current fields on the stored document.
    """
    log = logger or base_logger
    doc_id = instance.get_id()
    fields = _fields_without_id(instance)

    if is_absent_id(doc_id):
        result = await insert_document(
            database, collection_name, fields, timeout=timeout, logger=logger
        )
        instance.set_id(result.inserted_id)
        log.debug(
            f"Saved new {type(instance).__name__} with _id {result.inserted_id}."
        )
        return

    query = QuerySet().filter({"_id": doc_id})
    await update_document(
        database,
        collection_name,
        query,
        {"$set": fields},
        timeout=timeout,
        logger=logger,
    )
    log.debug(f"Updated {type(instance).__name__} with _id {doc_id}.")


async def delete_model(
    instance: Model,
    database: AsyncIOMotorDatabase,
    collection_name: str,
    timeout: Optional[float] = None,
    logger: Optional[LoggerAdapter] = None,
) -> Optional[DeleteResult]:
    """Deletes the stored document of `instance`. Unsaved models are a no-op."""
    doc_id = instance.get_id()
    if is_absent_id(doc_id):
        return None

    query = QuerySet().filter({"_id": doc_id})
    return await delete_document(
        database, collection_name, query, timeout=timeout, logger=logger
    )
