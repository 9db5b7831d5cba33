"""Investor distribution records and their status transitions.

A distribution starts ``pending`` and ends either ``paid`` or ``cancelled``;
both end states are terminal. Cancelling hands the investor's stake back to
``active``.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from payplan.dates import parse_date
from payplan.exceptions import InvalidTransitionError, ReferentialIntegrityError, ValidationError
from payplan.ids import IdFactory
from payplan.models.distribution import (
    InvestorDistribution,
    InvestorReturns,
    PropertyDistributionSummary,
    SaleDistributionCalculation,
)
from payplan.models.enums import DistributionStatus, InvestmentStatus, PaymentMethod
from payplan.models.investment import InvestorInvestment, Property

logger = logging.getLogger(__name__)


class DistributionLedger:
    """Create distribution records from a calculation and move them along."""

    def __init__(self, ids: IdFactory | None = None) -> None:
        self.ids = ids or IdFactory()

    def build(
        self,
        calculation: SaleDistributionCalculation,
        prop: Property,
        stakes: Sequence[InvestorInvestment],
        actor_id: str,
        actor_name: str,
        deal_id: str | None = None,
        notes: str | None = None,
    ) -> tuple[list[InvestorDistribution], list[InvestorInvestment]]:
        """Turn a calculation into pending distributions and exited stakes.

        Returns
        -------
        tuple[list[InvestorDistribution], list[InvestorInvestment]]
            New distributions and exited copies of the stakes, index-aligned.
        """
        by_id = {s.investment_id: s for s in stakes}
        now = datetime.now()
        distributions: list[InvestorDistribution] = []
        exited: list[InvestorInvestment] = []

        for row in calculation.investor_breakdowns:
            stake = by_id.get(row.investment_id)
            if stake is None:
                raise ReferentialIntegrityError(f"Investment {row.investment_id} not found")

            distribution = InvestorDistribution(
                distribution_id=self.ids.new_id("dist"),
                investor_id=row.investor_id,
                investor_name=row.investor_name,
                investment_id=row.investment_id,
                property_id=prop.property_id,
                property_title=prop.title,
                property_address=prop.address,
                share_percentage=row.share_percentage,
                investment_amount=row.investment_amount,
                sale_price=row.sale_price_share,
                sale_date=calculation.sale_date,
                capital_gain=row.capital_gain,
                rental_income=row.rental_income,
                total_expenses=row.expenses,
                net_profit=row.total_profit,
                total_return=row.total_return,
                roi=row.roi,
                distribution_status=DistributionStatus.PENDING,
                deal_id=deal_id,
                notes=notes,
                processed_by=actor_id,
                processed_by_name=actor_name,
                created_at=now,
                updated_at=now,
            )

            stake = copy.deepcopy(stake)
            stake.status = InvestmentStatus.EXITED
            stake.exit_date = calculation.sale_date
            stake.exit_value = row.total_return
            stake.realized_profit = row.total_profit
            stake.roi = row.roi
            stake.distribution_id = distribution.distribution_id
            stake.updated_at = now

            distributions.append(distribution)
            exited.append(stake)

        return distributions, exited

    def approve(self, distribution: InvestorDistribution, approver: str) -> InvestorDistribution:
        """Stamp an approval on a pending distribution; status is unchanged."""
        _require_pending(distribution, "approve")
        updated = copy.deepcopy(distribution)
        updated.approved_by = approver
        updated.approved_at = datetime.now()
        updated.updated_at = updated.approved_at
        return updated

    def mark_paid(
        self,
        distribution: InvestorDistribution,
        payment_date: date | str,
        payment_method: PaymentMethod | str,
        payment_reference: str | None = None,
    ) -> InvestorDistribution:
        """``pending -> paid``."""
        _require_pending(distribution, "pay")
        try:
            method = PaymentMethod(payment_method)
        except ValueError as exc:
            raise ValidationError(f"Unknown payment method: {payment_method!r}") from exc

        updated = copy.deepcopy(distribution)
        updated.distribution_status = DistributionStatus.PAID
        updated.distribution_date = parse_date(payment_date)
        updated.payment_method = method
        updated.payment_reference = payment_reference
        updated.updated_at = datetime.now()
        return updated

    def cancel(
        self,
        distribution: InvestorDistribution,
        investment: InvestorInvestment | None,
        reason: str,
    ) -> tuple[InvestorDistribution, InvestorInvestment | None]:
        """``pending -> cancelled``, reverting the stake to ``active``."""
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")
        _require_pending(distribution, "cancel")

        now = datetime.now()
        updated = copy.deepcopy(distribution)
        updated.distribution_status = DistributionStatus.CANCELLED
        updated.cancellation_reason = reason
        note = f"Cancelled: {reason}"
        updated.notes = f"{updated.notes}\n\n{note}" if updated.notes else note
        updated.updated_at = now

        reverted = None
        if investment is not None:
            reverted = copy.deepcopy(investment)
            reverted.status = InvestmentStatus.ACTIVE
            reverted.exit_date = None
            reverted.exit_value = None
            reverted.realized_profit = None
            reverted.roi = None
            reverted.distribution_id = None
            reverted.updated_at = now
        else:
            logger.warning(
                "Distribution %s cancelled without a linked investment %s",
                distribution.distribution_id,
                distribution.investment_id,
            )
        return updated, reverted


def _require_pending(distribution: InvestorDistribution, action: str) -> None:
    if distribution.distribution_status != DistributionStatus.PENDING:
        raise InvalidTransitionError(
            f"Cannot {action} distribution {distribution.distribution_id}: "
            f"status is {distribution.distribution_status.value}"
        )


def property_distribution_summary(
    distributions: Sequence[InvestorDistribution],
) -> PropertyDistributionSummary:
    """Counts and ``total_return`` amounts by status."""
    pending = [d for d in distributions if d.distribution_status == DistributionStatus.PENDING]
    paid = [d for d in distributions if d.distribution_status == DistributionStatus.PAID]
    cancelled = [d for d in distributions if d.distribution_status == DistributionStatus.CANCELLED]

    return PropertyDistributionSummary(
        total_distributed=sum((d.total_return for d in distributions), Decimal("0")),
        total_investors=len(distributions),
        pending_count=len(pending),
        paid_count=len(paid),
        cancelled_count=len(cancelled),
        pending_amount=sum((d.total_return for d in pending), Decimal("0")),
        paid_amount=sum((d.total_return for d in paid), Decimal("0")),
    )


def investor_total_returns(distributions: Sequence[InvestorDistribution]) -> InvestorReturns:
    """Realised returns over the paid distributions only."""
    paid = [d for d in distributions if d.distribution_status == DistributionStatus.PAID]
    average_roi = Decimal("0")
    if paid:
        average_roi = (sum((d.roi for d in paid), Decimal("0")) / len(paid)).quantize(
            Decimal("0.0001"), rounding=ROUND_HALF_UP
        )

    return InvestorReturns(
        total_invested=sum((d.investment_amount for d in paid), Decimal("0")),
        total_returned=sum((d.total_return for d in paid), Decimal("0")),
        total_profit=sum((d.net_profit for d in paid), Decimal("0")),
        average_roi=average_roi,
        distribution_count=len(paid),
    )
