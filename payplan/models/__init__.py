"""Domain models for payment plans, receipts, investments and distributions."""

from payplan.models.event import Event
from payplan.models.distribution import (
    InvestorDistribution,
    InvestorReturns,
    InvestorShareBreakdown,
    PropertyDistributionSummary,
    SaleDistributionCalculation,
)
from payplan.models.enums import (
    AllocationPolicy,
    DistributionStatus,
    InstallmentStatus,
    InvestmentStatus,
    InvestorTransactionType,
    OwnershipType,
    PaymentMethod,
    PlanFrequency,
    PlanStatus,
    ReceiptPurpose,
)
from payplan.models.investment import (
    InvestorAttribution,
    InvestorInvestment,
    InvestorTransaction,
    Property,
)
from payplan.models.plan import Installment, InstallmentPlan, PlanStats
from payplan.models.receipt import PaymentReceipt, ReceiptStats

__all__ = [
    "AllocationPolicy",
    "DistributionStatus",
    "Event",
    "Installment",
    "InstallmentPlan",
    "InstallmentStatus",
    "InvestmentStatus",
    "InvestorAttribution",
    "InvestorDistribution",
    "InvestorInvestment",
    "InvestorReturns",
    "InvestorShareBreakdown",
    "InvestorTransaction",
    "InvestorTransactionType",
    "OwnershipType",
    "PaymentMethod",
    "PaymentReceipt",
    "PlanFrequency",
    "PlanStats",
    "PlanStatus",
    "Property",
    "PropertyDistributionSummary",
    "ReceiptPurpose",
    "ReceiptStats",
    "SaleDistributionCalculation",
]
