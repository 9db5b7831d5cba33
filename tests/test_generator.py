"""Tests for InstallmentPlanGenerator."""

from datetime import date
from decimal import Decimal

import pytest

from payplan.dates import FREQUENCY_MONTHS
from payplan.exceptions import ValidationError
from payplan.models import InstallmentPlan, InstallmentStatus, PlanFrequency, PlanStatus
from payplan.plans import InstallmentPlanGenerator


class TestCreatePlan:
    """Tests for plan creation."""

    def test_basic_plan(self, sample_plan: InstallmentPlan) -> None:
        assert sample_plan.status == PlanStatus.ACTIVE
        assert sample_plan.version == 1
        assert sample_plan.total_amount == Decimal("10000.00")
        assert sample_plan.down_payment == Decimal("1000.00")
        assert sample_plan.remaining_amount == Decimal("9000.00")
        assert sample_plan.installment_amount == Decimal("3000.00")
        assert sample_plan.frequency == PlanFrequency.MONTHLY
        assert [i.due_date for i in sample_plan.installments] == [
            date(2025, 1, 15),
            date(2025, 2, 15),
            date(2025, 3, 15),
        ]

    def test_installments_start_pending(self, sample_plan: InstallmentPlan) -> None:
        for number, installment in enumerate(sample_plan.installments, start=1):
            assert installment.installment_number == number
            assert installment.status == InstallmentStatus.PENDING
            assert installment.paid_amount == Decimal("0")
            assert installment.receipt_id is None
            assert installment.installment_id.startswith("inst_")
        assert sample_plan.plan_id.startswith("plan_")

    def test_installment_count_matches(self, generator: InstallmentPlanGenerator) -> None:
        plan = generator.create_plan(120000, 20000, 24, "2025-01-01", "quarterly")

        assert len(plan.installments) == plan.number_of_installments == 24

    @pytest.mark.parametrize("count", [1, 3, 7, 11, 36])
    def test_amounts_sum_to_remaining(
        self, generator: InstallmentPlanGenerator, count: int
    ) -> None:
        plan = generator.create_plan(Decimal("100000.01"), Decimal("333.33"), count, date(2025, 1, 1), "monthly")

        assert sum(i.amount for i in plan.installments) == plan.remaining_amount

    def test_remainder_on_last_installment(self, generator: InstallmentPlanGenerator) -> None:
        plan = generator.create_plan(100, 0, 3, date(2025, 1, 1), "monthly")

        assert [i.amount for i in plan.installments] == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]
        assert plan.installment_amount == Decimal("33.33")

    def test_month_end_start_clamps_without_drift(
        self, generator: InstallmentPlanGenerator
    ) -> None:
        plan = generator.create_plan(3000, 0, 3, date(2025, 1, 31), "monthly")

        assert [i.due_date for i in plan.installments] == [
            date(2025, 1, 31),
            date(2025, 2, 28),
            date(2025, 3, 31),
        ]

    @pytest.mark.parametrize("frequency", list(FREQUENCY_MONTHS))
    def test_due_dates_step_by_frequency(
        self, generator: InstallmentPlanGenerator, frequency: PlanFrequency
    ) -> None:
        plan = generator.create_plan(50000, 5000, 12, date(2024, 8, 31), frequency)
        dates = [i.due_date for i in plan.installments]

        for earlier, later in zip(dates, dates[1:]):
            assert earlier < later
            months = (later.year - earlier.year) * 12 + later.month - earlier.month
            assert months == FREQUENCY_MONTHS[frequency]

    def test_ten_monthly_installments(self, generator: InstallmentPlanGenerator) -> None:
        plan = generator.create_plan(1200000, 200000, 10, "2025-01-01", "monthly")

        assert [i.amount for i in plan.installments] == [Decimal("100000.00")] * 10
        assert [i.due_date for i in plan.installments] == [date(2025, m, 1) for m in range(1, 11)]

    def test_custom_dates(self, generator: InstallmentPlanGenerator) -> None:
        plan = generator.create_plan(
            9000,
            0,
            2,
            "2025-01-01",
            PlanFrequency.CUSTOM,
            custom_dates=["2025-03-10", "2025-08-20", "2025-12-01"],
        )

        assert [i.due_date for i in plan.installments] == [date(2025, 3, 10), date(2025, 8, 20)]

    def test_carries_sale_context(self, sample_plan: InstallmentPlan) -> None:
        assert sample_plan.sale_cycle_id == "cycle-001"
        assert sample_plan.property_id == "prop-001"
        assert sample_plan.buyer_name == "Test Buyer"
        assert sample_plan.created_at is not None

    def test_seeded_generators_agree(self) -> None:
        first = InstallmentPlanGenerator(seed=7).create_plan(1000, 0, 2, date(2025, 1, 1), "monthly")
        second = InstallmentPlanGenerator(seed=7).create_plan(1000, 0, 2, date(2025, 1, 1), "monthly")

        assert first.plan_id == second.plan_id
        assert [i.installment_id for i in first.installments] == [
            i.installment_id for i in second.installments
        ]


class TestCreatePlanValidation:
    """Precondition failures."""

    @pytest.mark.parametrize(
        ("total", "down", "count"),
        [
            (0, 0, 3),
            (-100, 0, 3),
            (1000, -1, 3),
            (1000, 1000, 3),
            (1000, 1500, 3),
            (1000, 0, 0),
            (1000, 0, -2),
            (1000, 0, 2.5),
            (1000, 0, True),
        ],
    )
    def test_rejected(
        self, generator: InstallmentPlanGenerator, total: int, down: int, count: object
    ) -> None:
        with pytest.raises(ValidationError):
            generator.create_plan(total, down, count, date(2025, 1, 1), "monthly")  # type: ignore[arg-type]

    def test_unknown_frequency(self, generator: InstallmentPlanGenerator) -> None:
        with pytest.raises(ValidationError, match="Unknown plan frequency"):
            generator.create_plan(1000, 0, 2, date(2025, 1, 1), "weekly")

    def test_custom_without_enough_dates(self, generator: InstallmentPlanGenerator) -> None:
        with pytest.raises(ValidationError):
            generator.create_plan(1000, 0, 3, date(2025, 1, 1), "custom", custom_dates=["2025-02-01"])

    def test_bad_start_date(self, generator: InstallmentPlanGenerator) -> None:
        with pytest.raises(ValidationError):
            generator.create_plan(1000, 0, 3, "next tuesday", "monthly")
