from dataclasses import asdict, is_dataclass
from typing import Any, Iterator, List, Mapping


def prepare_for_storage(data: Any) -> Any:
    """
    Recursively convert Pydantic models, dataclasses and plain objects to
    documents the driver can encode.

    It handles:
    - Pydantic BaseModel instances, dumped by alias so `_id` survives
    - Python dataclasses
    - Dictionaries (processing values recursively)
    - Lists, tuples and sets (processing each item)

    BSON-native values such as ObjectId and datetime are returned untouched
    and left to the driver.

    Args:
        data: The data to convert

    Returns:
        The converted data, ready for storage
    """
    if data is None:
        return None

    if is_dataclass(data) and not isinstance(data, type):
        return prepare_for_storage(asdict(data))

    if hasattr(data, "model_dump") and callable(getattr(data, "model_dump")):
        # Python mode keeps ObjectId and datetime values as they are.
        return prepare_for_storage(data.model_dump(mode="python", by_alias=True))

    if isinstance(data, dict):
        return {k: prepare_for_storage(v) for k, v in data.items()}

    if isinstance(data, list):
        return [prepare_for_storage(item) for item in data]

    if isinstance(data, tuple):
        return tuple(prepare_for_storage(item) for item in data)

    if isinstance(data, (set, frozenset)):
        return [prepare_for_storage(item) for item in data]

    return data


def model_to_document(instance: Any) -> dict:
    """Serializes an arbitrary model object into a document dict."""
    prepared = prepare_for_storage(instance)
    if isinstance(prepared, dict):
        return prepared
    if hasattr(instance, "__dict__"):
        return {
            k: prepare_for_storage(v)
            for k, v in vars(instance).items()
            if not k.startswith("_") or k == "_id"
        }
    raise TypeError(f"Cannot serialize model of type {type(instance).__name__}")


def get_path_values(document: Mapping[str, Any], path: str) -> List[Any]:
    """
    Resolves a dotted field path ("owners.id") inside a document the way
    MongoDB does: a segment that meets an array of subdocuments is looked up
    in every element, and numeric segments index into arrays.

    Returns every value found, in document order. An empty list means the
    path is missing.
    """
    return list(_walk_path(document, path.split(".")))


def _walk_path(current: Any, parts: List[str]) -> Iterator[Any]:
    if not parts:
        yield current
        return
    part, rest = parts[0], parts[1:]
    if isinstance(current, Mapping):
        if part in current:
            yield from _walk_path(current[part], rest)
    elif isinstance(current, (list, tuple)):
        if part.isdigit():
            if int(part) < len(current):
                yield from _walk_path(current[int(part)], rest)
            return
        for item in current:
            if isinstance(item, Mapping):
                yield from _walk_path(item, parts)
