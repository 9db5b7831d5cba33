"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal
from typing import Any

import pytest

from payplan import PaymentPlanEngine
from payplan.config import EngineConfig
from payplan.exceptions import SinkError
from payplan.ids import IdFactory
from payplan.investments import StakeRequest
from payplan.models import InstallmentPlan
from payplan.plans import InstallmentPlanGenerator


class RecordingSink:
    """Sink that keeps every published batch in memory."""

    def __init__(self) -> None:
        self.batches: list[tuple[str, list[Any]]] = []

    def write_batch(self, topic: str, records: list[Any]) -> None:
        self.batches.append((topic, list(records)))

    @property
    def event_types(self) -> list[str]:
        return [r.event_type for _, records in self.batches for r in records]


class UnreachableSink(RecordingSink):
    """Sink that records every attempt and rejects it while ``down``."""

    def __init__(self) -> None:
        super().__init__()
        self.down = True

    def write_batch(self, topic: str, records: list[Any]) -> None:
        super().write_batch(topic, records)
        if self.down:
            raise SinkError(f"{topic} unreachable")


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def ids(seed: int) -> IdFactory:
    """Seeded id factory."""
    return IdFactory(seed=seed)


@pytest.fixture
def generator(ids: IdFactory) -> InstallmentPlanGenerator:
    """Plan generator sharing the seeded id factory."""
    return InstallmentPlanGenerator(ids=ids)


@pytest.fixture
def sample_plan(generator: InstallmentPlanGenerator) -> InstallmentPlan:
    """10,000 sale, 1,000 down, 3 monthly installments from 2025-01-15."""
    return generator.create_plan(
        Decimal("10000"),
        Decimal("1000"),
        3,
        date(2025, 1, 15),
        "monthly",
        sale_cycle_id="cycle-001",
        property_id="prop-001",
        buyer_id="buyer-001",
        buyer_name="Test Buyer",
    )


@pytest.fixture
def sink() -> RecordingSink:
    """In-memory event sink."""
    return RecordingSink()


@pytest.fixture
def engine(seed: int, sink: RecordingSink) -> PaymentPlanEngine:
    """Engine with an empty store and a recording sink."""
    return PaymentPlanEngine(config=EngineConfig(seed=seed), sink=sink)


@pytest.fixture
def stakes() -> list[StakeRequest]:
    """Three investors holding 50/30/20 of a 1,000,000 purchase."""
    return [
        StakeRequest("inv-a", "Investor A", Decimal("50"), Decimal("500000")),
        StakeRequest("inv-b", "Investor B", Decimal("30"), Decimal("300000")),
        StakeRequest("inv-c", "Investor C", Decimal("20"), Decimal("200000")),
    ]


@pytest.fixture
def investor_engine(engine: PaymentPlanEngine, stakes: list[StakeRequest]) -> PaymentPlanEngine:
    """Engine with property ``prop-inv`` split between three investors."""
    engine.register_property("prop-inv", "Investor Villa", "1 Harbour Road")
    engine.allocate_shares("prop-inv", stakes, investment_date=date(2024, 1, 1))
    return engine


@pytest.fixture
def unreachable_sink() -> UnreachableSink:
    """Sink that fails every write until ``down`` is cleared."""
    return UnreachableSink()
