"""Payment receipt model."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from payplan.models.enums import PaymentMethod, ReceiptPurpose


@dataclass(frozen=True)
class PaymentReceipt:
    """Immutable record of a single payment event."""

    receipt_id: str
    receipt_number: str  # RCP-YYMM-NNNN
    sale_cycle_id: str
    property_id: str
    from_name: str
    from_contact: str
    to_name: str
    to_contact: str
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    purpose: ReceiptPurpose
    issued_by: str
    issued_by_name: str
    created_at: datetime
    installment_plan_id: str | None = None
    installment_id: str | None = None
    reference_number: str | None = None
    cheque_number: str | None = None
    cheque_bank: str | None = None
    cheque_date: date | None = None
    bank_name: str | None = None
    account_number: str | None = None
    transaction_id: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class ReceiptStats:
    """Totals over a set of receipts."""

    total_receipts: int
    total_collected: Decimal
    by_purpose: dict[str, Decimal] = field(default_factory=dict)
    by_payment_method: dict[str, Decimal] = field(default_factory=dict)
    latest_receipt: PaymentReceipt | None = None
