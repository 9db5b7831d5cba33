"""Logging setup for payplan.

Engine log lines carry the ids of the records they touch as ``extra``
attributes (see ``entity_context``). The JSON formatter lifts those onto the
top level of each entry so a log pipeline can filter by plan or distribution.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

# Record attributes copied into JSON entries when present
ENTITY_FIELDS = (
    "plan_id",
    "installment_id",
    "receipt_id",
    "property_id",
    "investor_id",
    "distribution_id",
)

STANDARD_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

QUIET_LIBRARIES = ("confluent_kafka", "faker")


def setup_logging(
    level: str = "INFO",
    format_type: str = "standard",
    stream: IO[str] | None = None,
) -> None:
    """Route payplan logs to a single stream handler on the root logger.

    Parameters
    ----------
    level : str
        Log level name; unknown names fall back to INFO.
    format_type : str
        ``"standard"`` for pipe-separated text or ``"json"`` for one JSON
        object per line.
    stream : IO[str] | None
        Destination, stdout by default.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    if format_type == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(STANDARD_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logging.getLogger("payplan").setLevel(log_level)
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def entity_context(**ids: str | None) -> dict[str, Any]:
    """Build the ``extra`` mapping for a log call, dropping empty ids.

    >>> entity_context(plan_id="plan_1", installment_id=None)
    {'plan_id': 'plan_1'}
    """
    unknown = set(ids) - set(ENTITY_FIELDS)
    if unknown:
        raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
    return {name: value for name, value in ids.items() if value}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with entity ids at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in ENTITY_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # Decimal amounts and dates are written as strings
        return json.dumps(entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Parameters
    ----------
    name : str
        Logger name (usually __name__).

    Returns
    -------
    logging.Logger
        Logger under the ``payplan`` hierarchy when ``name`` is a module path.
    """
    return logging.getLogger(name)
