"""Console sink for following engine events during development."""

from collections import Counter
from typing import Any

from payplan.models.event import Event
from payplan.sinks.serialization import to_json


class ConsoleSink:
    """Print each event as a one-line header followed by its payload.

    Parameters
    ----------
    pretty : bool
        Indent payloads.
    max_records : int | None
        Print at most this many records per batch (None for all).
    show_data : bool
        Print payloads at all; headers only when False.
    """

    def __init__(
        self,
        pretty: bool = True,
        max_records: int | None = None,
        show_data: bool = True,
    ) -> None:
        self.pretty = pretty
        self.max_records = max_records
        self.show_data = show_data
        self._counts: Counter[str] = Counter()

    def write_batch(self, topic: str, records: list[Any]) -> None:
        """Print a batch published on ``topic``."""
        shown = records[: self.max_records] if self.max_records else records

        for record in shown:
            if isinstance(record, Event):
                when = f"{record.event_time:%Y-%m-%d %H:%M:%S}"
                print(f"[{topic}] {record.event_type} {record.subject} @ {when}")
                payload = record.data
            else:
                print(f"[{topic}]")
                payload = record
            if self.show_data:
                print(to_json(payload, self.pretty))

        if self.max_records and len(records) > self.max_records:
            print(f"[{topic}] ... and {len(records) - self.max_records} more records")

        for record in records:
            self._counts[record.event_type if isinstance(record, Event) else topic] += 1

    def close(self) -> None:
        """Print how many events of each type were seen."""
        print("=" * 60)
        print(f"Console sink: {sum(self._counts.values())} events")
        for name, count in sorted(self._counts.items()):
            print(f"  {name}: {count}")
