"""JSON Lines file sink for exporting events."""

import logging
from pathlib import Path
from typing import Any

from payplan.exceptions import SinkError
from payplan.sinks.serialization import to_json

logger = logging.getLogger(__name__)


class JsonFileSink:
    """Append events to one JSON Lines file per topic."""

    def __init__(self, output_dir: str | Path, pretty: bool = False) -> None:
        """Initialize JSON file sink.

        Parameters
        ----------
        output_dir : str | Path
            Directory to write ``<topic>.jsonl`` files into.
        pretty : bool
            Indent each record. Off by default since indented records span
            several lines.
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def path_for(self, topic: str) -> Path:
        """File backing a topic (dots become underscores)."""
        return self.output_dir / (topic.replace(".", "_") + ".jsonl")

    def write_batch(self, topic: str, records: list[Any]) -> None:
        """Append a batch of records to the topic's file."""
        file_path = self.path_for(topic)
        try:
            with open(file_path, "a", encoding="utf-8") as f:
                for record in records:
                    f.write(to_json(record, self.pretty) + "\n")
        except OSError as exc:
            raise SinkError(f"Cannot write to {file_path}: {exc}") from exc

        self._counts[topic] = self._counts.get(topic, 0) + len(records)

    def close(self) -> None:
        """Log a summary."""
        logger.info("JSON files written to: %s", self.output_dir)
        for topic, count in self._counts.items():
            logger.info("  %s: %d records", topic, count)
