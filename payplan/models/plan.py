"""Installment plan models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from payplan.models.enums import InstallmentStatus, PaymentMethod, PlanFrequency, PlanStatus


@dataclass
class Installment:
    """One scheduled payment within a plan."""

    installment_id: str
    installment_number: int  # 1, 2, 3, ...
    due_date: date
    amount: Decimal  # Amount owed
    paid_amount: Decimal = Decimal("0")  # Cumulative amount received
    status: InstallmentStatus = InstallmentStatus.PENDING
    paid_date: date | None = None
    payment_method: PaymentMethod | None = None
    notes: str | None = None
    receipt_id: str | None = None

    @property
    def outstanding(self) -> Decimal:
        """Amount still owed, never negative."""
        return max(self.amount - self.paid_amount, Decimal("0"))


@dataclass
class InstallmentPlan:
    """Full installment schedule for one property sale."""

    plan_id: str
    sale_cycle_id: str
    property_id: str
    buyer_id: str
    buyer_name: str
    total_amount: Decimal  # Sale price
    down_payment: Decimal
    remaining_amount: Decimal  # total_amount - down_payment
    number_of_installments: int
    installment_amount: Decimal  # Nominal equal share
    start_date: date
    frequency: PlanFrequency
    installments: list[Installment] = field(default_factory=list)
    status: PlanStatus = PlanStatus.ACTIVE
    created_by: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 1  # Optimistic concurrency counter

    def find_installment(self, installment_id: str) -> Installment | None:
        """Return the installment with the given id, if any."""
        for installment in self.installments:
            if installment.installment_id == installment_id:
                return installment
        return None


@dataclass(frozen=True)
class PlanStats:
    """Aggregated view of a plan's payment progress."""

    total_amount: Decimal
    down_payment: Decimal
    total_installment_amount: Decimal
    total_paid: Decimal  # Includes the down payment
    remaining_amount: Decimal
    completion_percentage: Decimal
    installment_count: int
    paid_count: int
    partial_count: int
    overdue_count: int
    pending_count: int
    next_due: Installment | None
