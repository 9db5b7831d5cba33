"""Turn engine records into JSON-ready values.

Money stays exact: ``Decimal`` is written as its string form (``"3000.00"``),
never as a float. Dates and datetimes use ISO-8601 and enums their wire value.
"""

import json
from dataclasses import fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any


def serialize_value(value: Any) -> Any:
    """Recursively convert ``value`` into JSON-compatible primitives."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    # datetime is a date subclass
    if isinstance(value, date):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: serialize_value(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [serialize_value(v) for v in value]
    return value


def to_dict(record: Any) -> dict[str, Any]:
    """Serialize a plan, receipt, distribution, event or mapping.

    Anything that is neither a dataclass nor a mapping is wrapped as
    ``{"value": str(record)}``.
    """
    if (is_dataclass(record) and not isinstance(record, type)) or isinstance(record, dict):
        return serialize_value(record)
    return {"value": str(record)}


def to_json(record: Any, pretty: bool = False) -> str:
    """One record as a JSON string, indented when ``pretty``."""
    return json.dumps(to_dict(record), indent=2 if pretty else None, ensure_ascii=False, default=str)
