"""Output sinks for publishing engine events."""

from payplan.sinks.console import ConsoleSink
from payplan.sinks.json_file import JsonFileSink
from payplan.sinks.kafka import KafkaSink

__all__ = ["ConsoleSink", "JsonFileSink", "KafkaSink"]
