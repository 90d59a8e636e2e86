"""UUID coercion for ids arriving as path params, JSON strings or UUIDs."""

import uuid
from typing import Any


def as_uuid(value: Any) -> uuid.UUID:
    """Raises ValueError for malformed ids."""
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
