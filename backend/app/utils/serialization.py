"""JSON-safe snapshots of ORM rows for webhook payloads and storage uploads."""

import enum
import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import inspect


def _json_value(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


def serialize_model(obj: Any, exclude: Iterable[str] = ()) -> Optional[Dict[str, Any]]:
    """
    Column values of a mapped instance as a plain dict.

    Only reads what is already loaded (instance __dict__), so it never
    triggers a lazy load on an async session.
    """
    if obj is None:
        return None
    skip = set(exclude)
    data: Dict[str, Any] = {}
    for attr in inspect(obj).mapper.column_attrs:
        if attr.key in skip or attr.key not in obj.__dict__:
            continue
        data[attr.key] = _json_value(obj.__dict__[attr.key])
    return data


def serialize_many(objs: Iterable[Any], exclude: Iterable[str] = ()) -> List[Dict[str, Any]]:
    return [serialize_model(obj, exclude) for obj in objs]
