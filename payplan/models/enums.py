"""Enumeration types for plan, ledger and distribution entities."""

from enum import Enum


class PlanFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BI_ANNUAL = "bi-annual"
    ANNUAL = "annual"
    CUSTOM = "custom"


class PlanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank-transfer"
    CHEQUE = "cheque"
    ONLINE = "online"
    OTHER = "other"


class ReceiptPurpose(str, Enum):
    TOKEN = "token"
    DOWN_PAYMENT = "down-payment"
    INSTALLMENT = "installment"
    FINAL_PAYMENT = "final-payment"
    OTHER = "other"


class OwnershipType(str, Enum):
    AGENCY = "agency"
    CLIENT = "client"
    INVESTOR = "investor"


class InvestmentStatus(str, Enum):
    ACTIVE = "active"
    EXITED = "exited"


class InvestorTransactionType(str, Enum):
    RENTAL_INCOME = "rental-income"
    EXPENSE_MAINTENANCE = "expense-maintenance"
    EXPENSE_REPAIR = "expense-repair"
    EXPENSE_TAX = "expense-tax"
    EXPENSE_UTILITY = "expense-utility"
    EXPENSE_INSURANCE = "expense-insurance"
    EXPENSE_MANAGEMENT = "expense-management"
    EXPENSE_OTHER = "expense-other"

    @property
    def is_expense(self) -> bool:
        return self.value.startswith("expense-")


class DistributionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class AllocationPolicy(str, Enum):
    """How income and expenses are split between investors at sale time."""

    PER_INVESTMENT = "per-investment"  # Each stake's own running totals
    POOLED = "pooled"  # Property totals scaled by share percentage
