"""Profit calculation for the sale of an investor-owned property."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from payplan.amounts import CENT, HUNDRED, percentage_of, to_money
from payplan.dates import parse_date
from payplan.exceptions import DomainInvariantError, ValidationError
from payplan.investments import active_investments, require_investor_owned
from payplan.models.distribution import InvestorShareBreakdown, SaleDistributionCalculation
from payplan.models.enums import AllocationPolicy, InvestorTransactionType
from payplan.models.investment import InvestorInvestment, InvestorTransaction, Property

logger = logging.getLogger(__name__)

ROI_PLACES = Decimal("0.0001")


class SaleDistributionCalculator:
    """Work out what each investor receives when a property is sold.

    Capital gain is always the pooled gain (sale price minus the summed
    investment amounts) split by share percentage. How income and expenses
    are split depends on ``policy``:

    - ``per-investment``: each stake's own running ``rental_income`` and
      ``total_expenses`` are used as recorded.
    - ``pooled``: the property's transaction totals are scaled by share.

    Parameters
    ----------
    policy : AllocationPolicy
        Income/expense allocation rule.
    share_tolerance : Decimal
        Allowed deviation from 100 percent for the active shares.
    """

    def __init__(
        self,
        policy: AllocationPolicy = AllocationPolicy.PER_INVESTMENT,
        share_tolerance: Decimal = Decimal("0.01"),
        quantum: Decimal = CENT,
    ) -> None:
        self.policy = AllocationPolicy(policy)
        self.share_tolerance = share_tolerance
        self.quantum = quantum

    def calculate(
        self,
        prop: Property,
        investments: Iterable[InvestorInvestment],
        transactions: Iterable[InvestorTransaction],
        sale_price: Decimal | int | float | str,
        sale_date: date | str,
    ) -> SaleDistributionCalculation:
        """Compute totals and the per-investor breakdown. Nothing is mutated.

        Raises
        ------
        ValidationError
            If the sale price is not positive.
        DomainInvariantError
            If the property is not investor-owned, has no active stakes, or
            the active shares do not sum to 100.
        """
        require_investor_owned(prop)
        price = to_money(sale_price, self.quantum)
        if price <= 0:
            raise ValidationError("Sale price must be positive")
        when = parse_date(sale_date)

        stakes = active_investments(investments, prop.property_id)
        if not stakes:
            raise DomainInvariantError(
                f"No active investments found for property {prop.property_id}"
            )
        share_total = sum((s.share_percentage for s in stakes), Decimal("0"))
        if abs(share_total - HUNDRED) > self.share_tolerance:
            raise DomainInvariantError(
                f"Active shares on property {prop.property_id} total {share_total}%, not 100%"
            )

        total_purchase = sum((s.investment_amount for s in stakes), Decimal("0"))
        capital_gain = price - total_purchase

        scoped = [t for t in transactions if t.property_id == prop.property_id]
        total_income = sum(
            (t.amount for t in scoped if t.transaction_type == InvestorTransactionType.RENTAL_INCOME),
            Decimal("0"),
        )
        total_expenses = sum(
            (t.amount for t in scoped if t.transaction_type.is_expense), Decimal("0")
        )
        net_profit = capital_gain + total_income - total_expenses

        shares = [s.share_percentage for s in stakes]
        gains = self._split(capital_gain, shares)
        sale_shares = self._split(price, shares)
        if self.policy == AllocationPolicy.POOLED:
            incomes = self._split(total_income, shares)
            expenses = self._split(total_expenses, shares)
        else:
            incomes = [s.rental_income for s in stakes]
            expenses = [s.total_expenses for s in stakes]

        breakdowns = [
            _breakdown(stake, sale_share, gain, income, expense)
            for stake, sale_share, gain, income, expense in zip(
                stakes, sale_shares, gains, incomes, expenses
            )
        ]

        logger.debug(
            "Sale of %s at %s: gain=%s net=%s across %d investors (%s)",
            prop.property_id,
            price,
            capital_gain,
            net_profit,
            len(breakdowns),
            self.policy.value,
        )
        return SaleDistributionCalculation(
            property_id=prop.property_id,
            sale_date=when,
            allocation_policy=self.policy,
            total_purchase_price=total_purchase,
            total_sale_price=price,
            capital_gain=capital_gain,
            total_income=total_income,
            total_expenses=total_expenses,
            net_profit=net_profit,
            investor_breakdowns=breakdowns,
        )

    def _split(self, total: Decimal, shares: Sequence[Decimal]) -> list[Decimal]:
        # Normalised by the share total; the last investor absorbs the residue
        share_total = sum(shares, Decimal("0"))
        parts = [percentage_of(total, s * HUNDRED / share_total, self.quantum) for s in shares]
        parts[-1] = total - sum(parts[:-1], Decimal("0"))
        return parts


def _breakdown(
    stake: InvestorInvestment,
    sale_share: Decimal,
    capital_gain: Decimal,
    rental_income: Decimal,
    expenses: Decimal,
) -> InvestorShareBreakdown:
    total_profit = capital_gain + rental_income - expenses
    roi = (total_profit / stake.investment_amount * HUNDRED).quantize(
        ROI_PLACES, rounding=ROUND_HALF_UP
    )
    return InvestorShareBreakdown(
        investment_id=stake.investment_id,
        investor_id=stake.investor_id,
        investor_name=stake.investor_name,
        share_percentage=stake.share_percentage,
        investment_amount=stake.investment_amount,
        sale_price_share=sale_share,
        capital_gain=capital_gain,
        rental_income=rental_income,
        expenses=expenses,
        total_profit=total_profit,
        total_return=stake.investment_amount + total_profit,
        roi=roi,
    )
