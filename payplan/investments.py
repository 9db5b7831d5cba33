"""Investor stakes in properties and the income/expense attributed to them."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from payplan.amounts import CENT, HUNDRED, apportion, to_money
from payplan.dates import parse_date
from payplan.exceptions import DomainInvariantError, ValidationError
from payplan.ids import IdFactory
from payplan.models.enums import InvestmentStatus, InvestorTransactionType, OwnershipType
from payplan.models.investment import (
    InvestorAttribution,
    InvestorInvestment,
    InvestorTransaction,
    Property,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StakeRequest:
    """One investor's requested stake in a multi-investor purchase."""

    investor_id: str
    investor_name: str
    share_percentage: Decimal
    investment_amount: Decimal


def active_investments(
    investments: Iterable[InvestorInvestment], property_id: str
) -> list[InvestorInvestment]:
    """Active stakes on a property, in input order."""
    return [
        inv
        for inv in investments
        if inv.property_id == property_id and inv.status == InvestmentStatus.ACTIVE
    ]


def active_share_total(investments: Iterable[InvestorInvestment], property_id: str) -> Decimal:
    """Sum of active share percentages on a property."""
    return sum(
        (inv.share_percentage for inv in active_investments(investments, property_id)),
        Decimal("0"),
    )


def require_investor_owned(prop: Property) -> None:
    if prop.ownership_type != OwnershipType.INVESTOR:
        raise DomainInvariantError(f"Property {prop.property_id} is not investor-owned")


class InvestmentBook:
    """Create stakes and attribute property income and expenses to them.

    Parameters
    ----------
    ids : IdFactory | None
        Shared id factory.
    share_tolerance : Decimal
        Allowed deviation, in percentage points, when checking that shares
        sum to 100.
    """

    def __init__(
        self,
        ids: IdFactory | None = None,
        share_tolerance: Decimal = Decimal("0.01"),
        quantum: Decimal = CENT,
    ) -> None:
        self.ids = ids or IdFactory()
        self.share_tolerance = share_tolerance
        self.quantum = quantum

    def add_investment(
        self,
        prop: Property,
        existing: Sequence[InvestorInvestment],
        investor_id: str,
        investor_name: str,
        share_percentage: Decimal | int | float | str,
        investment_amount: Decimal | int | float | str,
        investment_date: date | str | None = None,
        acquisition_price: Decimal | int | float | str | None = None,
    ) -> InvestorInvestment:
        """Create a stake, refusing to push the property past 100 percent.

        Raises
        ------
        ValidationError
            If the share is outside (0, 100] or the amount is not positive.
        DomainInvariantError
            If the property is not investor-owned or the active shares
            would exceed 100.
        """
        require_investor_owned(prop)
        share = _share(share_percentage)
        amount = to_money(investment_amount, self.quantum)
        if amount <= 0:
            raise ValidationError("Investment amount must be positive")

        current = active_share_total(existing, prop.property_id)
        if current + share > HUNDRED + self.share_tolerance:
            raise DomainInvariantError(
                f"Shares on property {prop.property_id} would total {current + share}%"
            )

        now = datetime.now()
        investment = InvestorInvestment(
            investment_id=self.ids.new_id("investment"),
            investor_id=investor_id,
            investor_name=investor_name,
            property_id=prop.property_id,
            share_percentage=share,
            investment_amount=amount,
            investment_date=parse_date(investment_date) if investment_date else now.date(),
            acquisition_price=(
                to_money(acquisition_price, self.quantum) if acquisition_price is not None else None
            ),
            created_at=now,
            updated_at=now,
        )
        logger.debug(
            "Investor %s takes %s%% of property %s", investor_id, share, prop.property_id
        )
        return investment

    def allocate_shares(
        self,
        prop: Property,
        existing: Sequence[InvestorInvestment],
        stakes: Sequence[StakeRequest],
        investment_date: date | str | None = None,
        acquisition_price: Decimal | int | float | str | None = None,
    ) -> list[InvestorInvestment]:
        """Create every stake of a multi-investor purchase at once.

        The property must have no active stakes and the requested shares
        must sum to 100.
        """
        require_investor_owned(prop)
        if not stakes:
            raise ValidationError("At least one stake is required")
        if active_investments(existing, prop.property_id):
            raise DomainInvariantError(f"Property {prop.property_id} already has active investors")

        total = sum((_share(s.share_percentage) for s in stakes), Decimal("0"))
        if abs(total - HUNDRED) > self.share_tolerance:
            raise DomainInvariantError(f"Shares must total 100%, got {total}%")

        created: list[InvestorInvestment] = []
        for stake in stakes:
            created.append(
                self.add_investment(
                    prop,
                    created,
                    stake.investor_id,
                    stake.investor_name,
                    stake.share_percentage,
                    stake.investment_amount,
                    investment_date=investment_date,
                    acquisition_price=acquisition_price,
                )
            )
        logger.info("Allocated property %s to %d investors", prop.property_id, len(created))
        return created

    def record_transaction(
        self,
        prop: Property,
        investments: Sequence[InvestorInvestment],
        transaction_type: InvestorTransactionType | str,
        amount: Decimal | int | float | str,
        description: str,
        recorded_by: str = "",
        transaction_date: date | str | None = None,
        notes: str | None = None,
    ) -> tuple[InvestorTransaction, list[InvestorInvestment]]:
        """Record income or an expense and attribute it by share.

        Returns
        -------
        tuple[InvestorTransaction, list[InvestorInvestment]]
            The transaction and updated copies of the active stakes it
            touched.
        """
        require_investor_owned(prop)
        try:
            kind = InvestorTransactionType(transaction_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown transaction type: {transaction_type!r}") from exc
        value = to_money(amount, self.quantum)
        if value <= 0:
            raise ValidationError("Transaction amount must be positive")

        stakes = active_investments(investments, prop.property_id)
        if not stakes:
            raise DomainInvariantError(f"Property {prop.property_id} has no active investors")

        shares = apportion(value, [s.share_percentage for s in stakes], self.quantum)
        now = datetime.now()
        transaction = InvestorTransaction(
            transaction_id=self.ids.new_id("inv-txn"),
            property_id=prop.property_id,
            transaction_type=kind,
            amount=value,
            transaction_date=parse_date(transaction_date) if transaction_date else now.date(),
            description=description,
            attributions=[
                InvestorAttribution(
                    investor_id=s.investor_id,
                    investment_id=s.investment_id,
                    percentage=s.share_percentage,
                    amount=share,
                )
                for s, share in zip(stakes, shares)
            ],
            recorded_by=recorded_by,
            notes=notes,
            created_at=now,
        )

        updated: list[InvestorInvestment] = []
        for stake, share in zip(stakes, shares):
            stake = copy.deepcopy(stake)
            if kind.is_expense:
                stake.total_expenses += share
            elif kind == InvestorTransactionType.RENTAL_INCOME:
                stake.rental_income += share
            stake.linked_transaction_ids.append(transaction.transaction_id)
            stake.updated_at = now
            updated.append(stake)

        logger.debug(
            "Recorded %s of %s on property %s", kind.value, value, prop.property_id
        )
        return transaction, updated


def _share(value: Decimal | int | float | str) -> Decimal:
    share = to_money(value, Decimal("0.0001"))
    if share <= 0 or share > HUNDRED:
        raise ValidationError(f"Share percentage must be in (0, 100], got {value}")
    return share
