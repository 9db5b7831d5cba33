"""Configuration management for payplan."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from payplan.exceptions import ConfigurationError
from payplan.models.enums import AllocationPolicy


@dataclass
class LedgerConfig:
    """Payment ledger behaviour."""

    # Reject overpayments and payments against completed plans
    strict_payments: bool = False
    money_quantum: Decimal = Decimal("0.01")


@dataclass
class ReceiptConfig:
    """Receipt numbering (``RCP-YYMM-NNNN``)."""

    prefix: str = "RCP"
    sequence_width: int = 4


@dataclass
class DistributionConfig:
    """Sale distribution policy."""

    allocation_policy: AllocationPolicy = AllocationPolicy.PER_INVESTMENT
    share_tolerance: Decimal = Decimal("0.01")  # Percentage points


@dataclass
class KafkaConfig:
    """Kafka producer settings.

    Events for one plan share a key, and the idempotent producer keeps them
    in publish order across retries. librdkafka only allows idempotence with
    ``acks=all``, so it is switched off for weaker ack settings.
    """

    bootstrap_servers: str = "localhost:9092"
    client_id: str = "payplan-engine"
    enable_idempotence: bool = True
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        """Producer config dict in confluent-kafka key names."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "client.id": self.client_id,
            "acks": self.acks,
            "enable.idempotence": self.enable_idempotence and self.acks in ("all", "-1"),
            "batch.size": self.batch_size,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class OutputConfig:
    """Output configuration."""

    json_output_dir: Path = field(default_factory=lambda: Path("output"))
    pretty_json: bool = False


@dataclass
class EngineConfig:
    """Main configuration for the payment plan engine."""

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    receipts: ReceiptConfig = field(default_factory=ReceiptConfig)
    distribution: DistributionConfig = field(default_factory=DistributionConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    topic_prefix: str = "dev.payplan"
    seed: int | None = None
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables."""
        import os

        try:
            ledger = LedgerConfig(
                strict_payments=os.getenv("PAYPLAN_STRICT_PAYMENTS", "false").lower() == "true",
                money_quantum=Decimal(os.getenv("PAYPLAN_MONEY_QUANTUM", "0.01")),
            )
            receipts = ReceiptConfig(
                prefix=os.getenv("PAYPLAN_RECEIPT_PREFIX", "RCP"),
                sequence_width=int(os.getenv("PAYPLAN_RECEIPT_WIDTH", "4")),
            )
            distribution = DistributionConfig(
                allocation_policy=AllocationPolicy(
                    os.getenv("PAYPLAN_ALLOCATION_POLICY", AllocationPolicy.PER_INVESTMENT.value)
                ),
                share_tolerance=Decimal(os.getenv("PAYPLAN_SHARE_TOLERANCE", "0.01")),
            )
            seed = int(os.getenv("SEED")) if os.getenv("SEED") else None
        except (ValueError, InvalidOperation) as exc:
            raise ConfigurationError(f"Invalid payplan environment setting: {exc}") from exc

        if receipts.sequence_width < 1:
            raise ConfigurationError("PAYPLAN_RECEIPT_WIDTH must be at least 1")

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
            client_id=os.getenv("KAFKA_CLIENT_ID", "payplan-engine"),
        )

        output = OutputConfig(
            json_output_dir=Path(os.getenv("OUTPUT_DIR", "output")),
            pretty_json=os.getenv("PRETTY_JSON", "false").lower() == "true",
        )

        return cls(
            ledger=ledger,
            receipts=receipts,
            distribution=distribution,
            kafka=kafka,
            output=output,
            topic_prefix=os.getenv("TOPIC_PREFIX", "dev.payplan"),
            seed=seed,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
