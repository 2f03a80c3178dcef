"""Document conversion between Pydantic models and MongoDB"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel

from ..utils.time import ensure_utc

ModelT = TypeVar("ModelT", bound=BaseModel)


def as_storage_datetime(value: Optional[datetime]) -> Optional[datetime]:
    """MongoDB keeps naive UTC; normalising here keeps stored values and query bounds comparable"""
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_storage_datetime(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_plain(v) for v in value]
    return value


def to_document(model: BaseModel, id_field: str) -> Dict[str, Any]:
    """
    Dump a model for storage.

    Datetimes stay native (naive UTC) so range queries and sorting work
    server-side; mode="json" would turn them into strings. Enums are stored by value.
    """
    doc = _plain(model.model_dump())
    doc["_id"] = doc[id_field]
    return doc


def from_document(model_cls: Type[ModelT], doc: Optional[Dict[str, Any]]) -> Optional[ModelT]:
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return model_cls.model_validate(doc)
