"""Tests for the sale distribution calculator and distribution lifecycle."""

from datetime import date
from decimal import Decimal

import pytest

from payplan import PaymentPlanEngine
from payplan.distribution import (
    DistributionLedger,
    SaleDistributionCalculator,
    investor_total_returns,
    property_distribution_summary,
)
from payplan.exceptions import (
    DomainInvariantError,
    InvalidTransitionError,
    ReferentialIntegrityError,
    ValidationError,
)
from payplan.ids import IdFactory
from payplan.models import (
    AllocationPolicy,
    DistributionStatus,
    InvestmentStatus,
    InvestorInvestment,
    InvestorTransaction,
    InvestorTransactionType,
    OwnershipType,
    PaymentMethod,
    Property,
)

PROP = Property("prop-inv", "Investor Villa", "1 Harbour Road", OwnershipType.INVESTOR)


def stake(
    investment_id: str,
    share: str,
    amount: str,
    rental_income: str = "0",
    total_expenses: str = "0",
) -> InvestorInvestment:
    return InvestorInvestment(
        investment_id=investment_id,
        investor_id=f"investor-{investment_id}",
        investor_name=f"Investor {investment_id}",
        property_id=PROP.property_id,
        share_percentage=Decimal(share),
        investment_amount=Decimal(amount),
        investment_date=date(2024, 1, 1),
        rental_income=Decimal(rental_income),
        total_expenses=Decimal(total_expenses),
    )


def transaction(kind: InvestorTransactionType, amount: str, property_id: str = "prop-inv") -> InvestorTransaction:
    return InvestorTransaction(
        transaction_id=f"txn-{kind.value}-{amount}",
        property_id=property_id,
        transaction_type=kind,
        amount=Decimal(amount),
        transaction_date=date(2024, 6, 1),
        description="test",
    )


def seed_income(engine: PaymentPlanEngine) -> None:
    engine.record_investor_transaction("prop-inv", "rental-income", 12000, "Annual rent")
    engine.record_investor_transaction("prop-inv", "expense-tax", 2000, "Property tax")


class TestCalculator:
    """Tests for SaleDistributionCalculator."""

    def test_capital_gain_split_by_share(self) -> None:
        stakes = [stake("a", "50", "500000"), stake("b", "30", "300000"), stake("c", "20", "200000")]

        result = SaleDistributionCalculator().calculate(PROP, stakes, [], 1300000, "2025-06-30")

        assert result.total_purchase_price == Decimal("1000000")
        assert result.capital_gain == Decimal("300000.00")
        assert result.net_profit == Decimal("300000.00")
        assert result.sale_date == date(2025, 6, 30)
        assert [b.capital_gain for b in result.investor_breakdowns] == [
            Decimal("150000.00"),
            Decimal("90000.00"),
            Decimal("60000.00"),
        ]
        assert [b.sale_price_share for b in result.investor_breakdowns] == [
            Decimal("650000.00"),
            Decimal("390000.00"),
            Decimal("260000.00"),
        ]
        assert [b.roi for b in result.investor_breakdowns] == [Decimal("30.0000")] * 3

    def test_capital_gain_shares_sum_exactly(self) -> None:
        stakes = [
            stake("a", "33.3333", "1000"),
            stake("b", "33.3333", "1000"),
            stake("c", "33.3334", "1000"),
        ]

        result = SaleDistributionCalculator().calculate(PROP, stakes, [], "3100.00", date(2025, 1, 1))

        gains = [b.capital_gain for b in result.investor_breakdowns]
        assert sum(gains) == result.capital_gain == Decimal("100.00")
        assert gains == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]

    def test_loss_is_split_too(self) -> None:
        stakes = [stake("a", "60", "600"), stake("b", "40", "400")]

        result = SaleDistributionCalculator().calculate(PROP, stakes, [], 900, date(2025, 1, 1))

        assert [b.capital_gain for b in result.investor_breakdowns] == [
            Decimal("-60.00"),
            Decimal("-40.00"),
        ]
        assert result.investor_breakdowns[0].roi == Decimal("-10.0000")

    def test_totals_scoped_to_property(self) -> None:
        stakes = [stake("a", "100", "1000")]
        transactions = [
            transaction(InvestorTransactionType.RENTAL_INCOME, "500"),
            transaction(InvestorTransactionType.EXPENSE_REPAIR, "120"),
            transaction(InvestorTransactionType.EXPENSE_TAX, "30"),
            transaction(InvestorTransactionType.RENTAL_INCOME, "9999", property_id="other"),
        ]

        result = SaleDistributionCalculator().calculate(PROP, stakes, transactions, 1000, date(2025, 1, 1))

        assert result.total_income == Decimal("500")
        assert result.total_expenses == Decimal("150")
        assert result.net_profit == Decimal("350.00")

    def test_per_investment_uses_own_totals(self) -> None:
        stakes = [
            stake("a", "50", "1000", rental_income="800", total_expenses="100"),
            stake("b", "50", "1000", rental_income="200", total_expenses="100"),
        ]
        transactions = [
            transaction(InvestorTransactionType.RENTAL_INCOME, "1000"),
            transaction(InvestorTransactionType.EXPENSE_OTHER, "200"),
        ]

        result = SaleDistributionCalculator().calculate(PROP, stakes, transactions, 2000, date(2025, 1, 1))

        assert result.allocation_policy == AllocationPolicy.PER_INVESTMENT
        assert [b.rental_income for b in result.investor_breakdowns] == [Decimal("800"), Decimal("200")]
        assert [b.total_profit for b in result.investor_breakdowns] == [Decimal("700.00"), Decimal("100.00")]

    def test_pooled_scales_property_totals(self) -> None:
        stakes = [
            stake("a", "50", "1000", rental_income="800", total_expenses="100"),
            stake("b", "50", "1000", rental_income="200", total_expenses="100"),
        ]
        transactions = [
            transaction(InvestorTransactionType.RENTAL_INCOME, "1000"),
            transaction(InvestorTransactionType.EXPENSE_OTHER, "200"),
        ]
        calculator = SaleDistributionCalculator(policy="pooled")

        result = calculator.calculate(PROP, stakes, transactions, 2000, date(2025, 1, 1))

        assert [b.rental_income for b in result.investor_breakdowns] == [Decimal("500.00")] * 2
        assert [b.expenses for b in result.investor_breakdowns] == [Decimal("100.00")] * 2
        assert [b.total_return for b in result.investor_breakdowns] == [Decimal("1400.00")] * 2

    def test_exited_stakes_ignored(self) -> None:
        exited = stake("old", "100", "500")
        exited.status = InvestmentStatus.EXITED

        result = SaleDistributionCalculator().calculate(
            PROP, [exited, stake("a", "100", "1000")], [], 1500, date(2025, 1, 1)
        )

        assert [b.investment_id for b in result.investor_breakdowns] == ["a"]

    def test_no_active_investors(self) -> None:
        with pytest.raises(DomainInvariantError, match="No active investments"):
            SaleDistributionCalculator().calculate(PROP, [], [], 1000, date(2025, 1, 1))

    def test_shares_must_total_hundred(self) -> None:
        stakes = [stake("a", "50", "500"), stake("b", "40", "400")]

        with pytest.raises(DomainInvariantError, match="not 100"):
            SaleDistributionCalculator().calculate(PROP, stakes, [], 1000, date(2025, 1, 1))

    def test_agency_property_rejected(self) -> None:
        agency = Property("prop-ag", "Listing", "2 Market St", OwnershipType.AGENCY)

        with pytest.raises(DomainInvariantError):
            SaleDistributionCalculator().calculate(agency, [], [], 1000, date(2025, 1, 1))

    @pytest.mark.parametrize("price", [0, -1])
    def test_non_positive_price(self, price: int) -> None:
        with pytest.raises(ValidationError):
            SaleDistributionCalculator().calculate(
                PROP, [stake("a", "100", "1000")], [], price, date(2025, 1, 1)
            )

    def test_inputs_not_mutated(self) -> None:
        stakes = [stake("a", "100", "1000")]

        SaleDistributionCalculator().calculate(PROP, stakes, [], 1500, date(2025, 1, 1))

        assert stakes[0].status == InvestmentStatus.ACTIVE
        assert stakes[0].exit_value is None


class TestDistributionLedger:
    """Tests for DistributionLedger transitions."""

    @pytest.fixture
    def built(self, ids: IdFactory):
        stakes = [stake("a", "60", "600"), stake("b", "40", "400")]
        calculation = SaleDistributionCalculator().calculate(PROP, stakes, [], 1500, date(2025, 3, 1))
        ledger = DistributionLedger(ids=ids)
        distributions, exited = ledger.build(calculation, PROP, stakes, "mgr-1", "Manager")
        return ledger, distributions, exited

    def test_build(self, built) -> None:
        _, distributions, exited = built

        assert [d.distribution_status for d in distributions] == [DistributionStatus.PENDING] * 2
        assert distributions[0].property_title == "Investor Villa"
        assert distributions[0].processed_by == "mgr-1"
        assert distributions[0].sale_price == Decimal("900.00")
        for distribution, investment in zip(distributions, exited):
            assert investment.status == InvestmentStatus.EXITED
            assert investment.exit_date == date(2025, 3, 1)
            assert investment.exit_value == distribution.total_return
            assert investment.realized_profit == distribution.net_profit
            assert investment.distribution_id == distribution.distribution_id

    def test_build_missing_stake(self, ids: IdFactory) -> None:
        stakes = [stake("a", "100", "1000")]
        calculation = SaleDistributionCalculator().calculate(PROP, stakes, [], 1500, date(2025, 3, 1))

        with pytest.raises(ReferentialIntegrityError):
            DistributionLedger(ids=ids).build(calculation, PROP, [], "mgr-1", "Manager")

    def test_approve_keeps_pending(self, built) -> None:
        ledger, distributions, _ = built

        approved = ledger.approve(distributions[0], "finance-1")

        assert approved.distribution_status == DistributionStatus.PENDING
        assert approved.approved_by == "finance-1"
        assert approved.approved_at is not None
        assert distributions[0].approved_by is None

    def test_mark_paid(self, built) -> None:
        ledger, distributions, _ = built

        paid = ledger.mark_paid(distributions[0], "2025-03-05", "bank-transfer", "TRX-77")

        assert paid.distribution_status == DistributionStatus.PAID
        assert paid.distribution_date == date(2025, 3, 5)
        assert paid.payment_method == PaymentMethod.BANK_TRANSFER
        assert paid.payment_reference == "TRX-77"

    def test_cancel_reverts_stake(self, built) -> None:
        ledger, distributions, exited = built

        cancelled, reverted = ledger.cancel(distributions[0], exited[0], "Buyer withdrew")

        assert cancelled.distribution_status == DistributionStatus.CANCELLED
        assert cancelled.cancellation_reason == "Buyer withdrew"
        assert cancelled.notes == "Cancelled: Buyer withdrew"
        assert reverted.status == InvestmentStatus.ACTIVE
        assert reverted.exit_date is None
        assert reverted.exit_value is None
        assert reverted.realized_profit is None
        assert reverted.roi is None
        assert reverted.distribution_id is None

    def test_cancel_appends_to_notes(self, built) -> None:
        ledger, distributions, _ = built
        distributions[0].notes = "Closing batch 4"

        cancelled, reverted = ledger.cancel(distributions[0], None, "Duplicate")

        assert cancelled.notes == "Closing batch 4\n\nCancelled: Duplicate"
        assert reverted is None

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_cancel_requires_reason(self, built, reason: str) -> None:
        ledger, distributions, exited = built

        with pytest.raises(ValidationError):
            ledger.cancel(distributions[0], exited[0], reason)

    def test_terminal_states(self, built) -> None:
        ledger, distributions, exited = built
        paid = ledger.mark_paid(distributions[0], date(2025, 3, 5), "cash")
        cancelled, _ = ledger.cancel(distributions[1], exited[1], "Error")

        for terminal in (paid, cancelled):
            with pytest.raises(InvalidTransitionError):
                ledger.mark_paid(terminal, date(2025, 3, 6), "cash")
            with pytest.raises(InvalidTransitionError):
                ledger.cancel(terminal, None, "Again")
            with pytest.raises(InvalidTransitionError):
                ledger.approve(terminal, "finance-1")

    def test_unknown_payment_method(self, built) -> None:
        ledger, distributions, _ = built

        with pytest.raises(ValidationError):
            ledger.mark_paid(distributions[0], date(2025, 3, 5), "gold")


class TestSummaries:
    """Tests for distribution summaries."""

    def test_property_summary(self, built_statuses) -> None:
        summary = property_distribution_summary(built_statuses)

        assert summary.total_investors == 3
        assert summary.pending_count == 1
        assert summary.paid_count == 1
        assert summary.cancelled_count == 1
        assert summary.total_distributed == sum(d.total_return for d in built_statuses)
        assert summary.paid_amount == built_statuses[1].total_return

    def test_investor_returns_count_paid_only(self, built_statuses) -> None:
        returns = investor_total_returns(built_statuses)

        assert returns.distribution_count == 1
        assert returns.total_invested == built_statuses[1].investment_amount
        assert returns.total_returned == built_statuses[1].total_return
        assert returns.average_roi == built_statuses[1].roi

    def test_empty(self) -> None:
        returns = investor_total_returns([])

        assert returns.distribution_count == 0
        assert returns.average_roi == Decimal("0")
        assert property_distribution_summary([]).total_distributed == Decimal("0")

    @pytest.fixture
    def built_statuses(self, ids: IdFactory):
        stakes = [stake("a", "50", "500"), stake("b", "30", "300"), stake("c", "20", "200")]
        calculation = SaleDistributionCalculator().calculate(PROP, stakes, [], 1200, date(2025, 3, 1))
        ledger = DistributionLedger(ids=ids)
        distributions, exited = ledger.build(calculation, PROP, stakes, "mgr-1", "Manager")
        paid = ledger.mark_paid(distributions[1], date(2025, 3, 2), "cash")
        cancelled, _ = ledger.cancel(distributions[2], exited[2], "Error")
        return [distributions[0], paid, cancelled]


class TestEngineSaleDistribution:
    """End to end through the engine."""

    def test_calculate_does_not_write(self, investor_engine: PaymentPlanEngine) -> None:
        seed_income(investor_engine)

        result = investor_engine.calculate_sale_distribution("prop-inv", 1300000, "2025-06-30")

        assert result.net_profit == Decimal("310000.00")
        assert [b.total_profit for b in result.investor_breakdowns] == [
            Decimal("155000.00"),
            Decimal("93000.00"),
            Decimal("62000.00"),
        ]
        assert [b.roi for b in result.investor_breakdowns] == [Decimal("31.0000")] * 3
        assert investor_engine.list_distributions() == []

    def test_execute(self, investor_engine: PaymentPlanEngine, sink) -> None:
        seed_income(investor_engine)

        distributions = investor_engine.execute_sale_distribution(
            "prop-inv", 1300000, "2025-06-30", "mgr-1", "Manager", deal_id="deal-9"
        )

        assert len(distributions) == 3
        assert all(d.deal_id == "deal-9" for d in distributions)
        for distribution in distributions:
            investment = investor_engine.store.get_investment(distribution.investment_id)
            assert investment.status == InvestmentStatus.EXITED
            assert investment.exit_value == distribution.total_return
            assert investment.distribution_id == distribution.distribution_id
        assert sink.event_types.count("distribution.created") == 3

    def test_execute_is_atomic(
        self, investor_engine: PaymentPlanEngine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = investor_engine.store
        original = store.add_distribution
        calls = []

        def failing_add(distribution) -> None:
            calls.append(distribution)
            if len(calls) == 2:
                raise ReferentialIntegrityError("simulated failure")
            original(distribution)

        monkeypatch.setattr(store, "add_distribution", failing_add)

        with pytest.raises(ReferentialIntegrityError):
            investor_engine.execute_sale_distribution(
                "prop-inv", 1300000, "2025-06-30", "mgr-1", "Manager"
            )

        assert investor_engine.list_distributions() == []
        assert all(
            i.status == InvestmentStatus.ACTIVE for i in store.list_investments(property_id="prop-inv")
        )

    def test_lifecycle(self, investor_engine: PaymentPlanEngine, sink) -> None:
        first, second, third = investor_engine.execute_sale_distribution(
            "prop-inv", 1300000, date(2025, 6, 30), "mgr-1", "Manager"
        )

        investor_engine.approve_distribution(first.distribution_id, "finance-1")
        paid = investor_engine.mark_distribution_paid(
            first.distribution_id, date(2025, 7, 1), "bank-transfer", "TRX-1"
        )
        investor_engine.cancel_distribution(second.distribution_id, "Investor disputes figures")
        investor_engine.reject_distribution(third.distribution_id, "Not approved")

        assert paid.approved_by == "finance-1"
        assert investor_engine.get_distribution(first.distribution_id).distribution_status == (
            DistributionStatus.PAID
        )
        reverted = investor_engine.store.get_investment(second.investment_id)
        assert reverted.status == InvestmentStatus.ACTIVE
        assert reverted.roi is None

        summary = investor_engine.property_distribution_summary("prop-inv")
        assert (summary.paid_count, summary.cancelled_count, summary.pending_count) == (1, 2, 0)

        returns = investor_engine.investor_total_returns(first.investor_id)
        assert returns.distribution_count == 1
        assert returns.total_returned == first.total_return

        assert "distribution.paid" in sink.event_types
        assert sink.event_types.count("distribution.cancelled") == 2

        with pytest.raises(InvalidTransitionError):
            investor_engine.cancel_distribution(first.distribution_id, "Too late")

    def test_partial_cancel_blocks_resale(self, investor_engine: PaymentPlanEngine) -> None:
        distributions = investor_engine.execute_sale_distribution(
            "prop-inv", 1300000, date(2025, 6, 30), "mgr-1", "Manager"
        )
        investor_engine.cancel_distribution(distributions[0].distribution_id, "Error")

        with pytest.raises(DomainInvariantError):
            investor_engine.calculate_sale_distribution("prop-inv", 1400000, date(2025, 7, 1))

    def test_list_filters(self, investor_engine: PaymentPlanEngine) -> None:
        distributions = investor_engine.execute_sale_distribution(
            "prop-inv", 1300000, date(2025, 6, 30), "mgr-1", "Manager"
        )

        assert len(investor_engine.list_distributions(property_id="prop-inv")) == 3
        assert investor_engine.list_distributions(investor_id="inv-b") == [distributions[1]]
        assert investor_engine.list_distributions(status=DistributionStatus.PAID) == []
