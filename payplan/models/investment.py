"""Investor ownership models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from payplan.models.enums import InvestmentStatus, InvestorTransactionType, OwnershipType


@dataclass
class Property:
    """Property whose sale is being financed or distributed."""

    property_id: str
    title: str
    address: str
    ownership_type: OwnershipType
    created_at: datetime | None = None


@dataclass
class InvestorInvestment:
    """One investor's fractional stake in one property."""

    investment_id: str
    investor_id: str
    investor_name: str
    property_id: str
    share_percentage: Decimal  # 0-100
    investment_amount: Decimal
    investment_date: date
    status: InvestmentStatus = InvestmentStatus.ACTIVE
    acquisition_price: Decimal | None = None
    rental_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    linked_transaction_ids: list[str] = field(default_factory=list)
    # Set when the stake is exited through a sale distribution
    exit_date: date | None = None
    exit_value: Decimal | None = None
    realized_profit: Decimal | None = None
    roi: Decimal | None = None
    distribution_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class InvestorAttribution:
    """Portion of a property transaction attributed to one investor."""

    investor_id: str
    investment_id: str
    percentage: Decimal
    amount: Decimal


@dataclass
class InvestorTransaction:
    """Income or expense recorded against an investor-owned property."""

    transaction_id: str
    property_id: str
    transaction_type: InvestorTransactionType
    amount: Decimal
    transaction_date: date
    description: str
    attributions: list[InvestorAttribution] = field(default_factory=list)
    recorded_by: str = ""
    notes: str | None = None
    created_at: datetime | None = None
