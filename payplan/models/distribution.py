"""Sale distribution models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from payplan.models.enums import AllocationPolicy, DistributionStatus, PaymentMethod


@dataclass(frozen=True)
class InvestorShareBreakdown:
    """One investor's slice of a sale calculation."""

    investment_id: str
    investor_id: str
    investor_name: str
    share_percentage: Decimal
    investment_amount: Decimal
    sale_price_share: Decimal
    capital_gain: Decimal
    rental_income: Decimal
    expenses: Decimal
    total_profit: Decimal
    total_return: Decimal  # investment_amount + total_profit
    roi: Decimal  # Percent


@dataclass(frozen=True)
class SaleDistributionCalculation:
    """Advisory result of a sale calculation; nothing is persisted."""

    property_id: str
    sale_date: date
    allocation_policy: AllocationPolicy
    total_purchase_price: Decimal
    total_sale_price: Decimal
    capital_gain: Decimal
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    investor_breakdowns: list[InvestorShareBreakdown] = field(default_factory=list)


@dataclass
class InvestorDistribution:
    """Payout record for one investor from one property sale."""

    distribution_id: str
    investor_id: str
    investor_name: str
    investment_id: str
    property_id: str
    property_title: str
    property_address: str
    share_percentage: Decimal
    investment_amount: Decimal
    sale_price: Decimal  # Investor's share of the sale price
    sale_date: date
    capital_gain: Decimal
    rental_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    total_return: Decimal
    roi: Decimal
    distribution_status: DistributionStatus = DistributionStatus.PENDING
    deal_id: str | None = None
    notes: str | None = None
    processed_by: str = ""
    processed_by_name: str = ""
    approved_by: str | None = None
    approved_at: datetime | None = None
    distribution_date: date | None = None
    payment_method: PaymentMethod | None = None
    payment_reference: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PropertyDistributionSummary:
    """Distribution totals for a single property."""

    total_distributed: Decimal
    total_investors: int
    pending_count: int
    paid_count: int
    cancelled_count: int
    pending_amount: Decimal
    paid_amount: Decimal


@dataclass(frozen=True)
class InvestorReturns:
    """Realised returns for one investor across paid distributions."""

    total_invested: Decimal
    total_returned: Decimal
    total_profit: Decimal
    average_roi: Decimal
    distribution_count: int
