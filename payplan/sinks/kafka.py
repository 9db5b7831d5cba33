"""Kafka sink for streaming engine events to Kafka topics."""

import logging
from dataclasses import dataclass, field
from typing import Any

from confluent_kafka import KafkaException, Producer

from payplan.config import KafkaConfig
from payplan.exceptions import SinkError
from payplan.models.event import Event
from payplan.sinks.serialization import to_json

logger = logging.getLogger(__name__)


@dataclass
class ProducerStats:
    """Delivery counters for one sink, plus the topics that saw failures."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0
    failed_topics: set[str] = field(default_factory=set)

    @property
    def success_rate(self) -> float:
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0


def event_headers(event: Event) -> list[tuple[str, bytes]]:
    """Kafka headers that let consumers route without parsing the payload."""
    return [
        ("event_type", event.event_type.encode("utf-8")),
        ("event_id", event.event_id.encode("utf-8")),
        ("source", event.source.encode("utf-8")),
    ]


class KafkaSink:
    """Publish events to Kafka, keyed by the entity they concern.

    Events for one plan or distribution share ``Event.subject`` as their
    key and so land on one partition in publish order. Plain records
    (dicts, other dataclasses) are sent unkeyed and without headers.

    Parameters
    ----------
    config : KafkaConfig | str
        Producer configuration or a bootstrap servers string.
    flush_timeout : float
        Seconds to wait for outstanding deliveries after each batch.
    """

    def __init__(self, config: KafkaConfig | str, flush_timeout: float = 30.0) -> None:
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.flush_timeout = flush_timeout
        self.producer = Producer(config.to_dict())
        self.stats = ProducerStats()

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        if err:
            self.stats.failed += 1
            self.stats.failed_topics.add(msg.topic())
            logger.error("Delivery to %s failed: %s", msg.topic(), err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def send(self, topic: str, record: Any, key: str | None = None) -> None:
        """Produce one record; ``key`` overrides the event subject."""
        headers = None
        if isinstance(record, Event):
            key = key or record.subject
            headers = event_headers(record)

        payload = to_json(record)
        try:
            self.producer.produce(
                topic=topic,
                key=key.encode("utf-8") if key else None,
                value=payload.encode("utf-8"),
                headers=headers,
                callback=self._delivery_callback,
            )
        except (KafkaException, BufferError) as exc:
            raise SinkError(f"Cannot produce to {topic}: {exc}") from exc
        self.stats.sent += 1
        self.producer.poll(0)

    def write_batch(self, topic: str, records: list[Any]) -> None:
        """Produce every record, then wait for delivery.

        Raises
        ------
        SinkError
            If a record cannot be queued or deliveries are still pending
            when the flush times out.
        """
        for record in records:
            self.send(topic, record)

        pending = self.producer.flush(self.flush_timeout)
        if pending:
            raise SinkError(f"{pending} messages to {topic} still pending after flush")

    def close(self) -> None:
        """Flush and log delivery totals."""
        self.producer.flush(self.flush_timeout)
        logger.info(
            "Kafka sink closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
        if self.stats.failed_topics:
            logger.warning("Failed deliveries on: %s", ", ".join(sorted(self.stats.failed_topics)))
