"""Payment receipt issuing and numbering."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal

from payplan.amounts import CENT, to_money
from payplan.config import ReceiptConfig
from payplan.dates import parse_date
from payplan.exceptions import ValidationError
from payplan.ids import IdFactory
from payplan.models.enums import PaymentMethod, ReceiptPurpose
from payplan.models.receipt import PaymentReceipt, ReceiptStats

logger = logging.getLogger(__name__)


class ReceiptBook:
    """Issue receipts with sequential ``RCP-YYMM-NNNN`` numbers.

    The sequence counts every receipt ever issued (not per month). When it
    outgrows ``sequence_width`` digits the number widens instead of wrapping,
    so ``RCP-2501-9999`` is followed by ``RCP-2501-10000``.
    """

    def __init__(
        self,
        config: ReceiptConfig | None = None,
        ids: IdFactory | None = None,
        quantum: Decimal = CENT,
    ) -> None:
        self.config = config or ReceiptConfig()
        self.ids = ids or IdFactory()
        self.quantum = quantum

    def next_receipt_number(self, existing_count: int, today: date | None = None) -> str:
        """Format the number for the receipt after ``existing_count`` others."""
        today = today or date.today()
        sequence = str(existing_count + 1).zfill(self.config.sequence_width)
        return f"{self.config.prefix}-{today:%y%m}-{sequence}"

    def create_receipt(
        self,
        existing_count: int,
        *,
        sale_cycle_id: str,
        property_id: str,
        from_name: str,
        from_contact: str,
        to_name: str,
        to_contact: str,
        amount: Decimal | int | float | str,
        payment_date: date | str,
        payment_method: PaymentMethod | str,
        purpose: ReceiptPurpose | str,
        issued_by: str,
        issued_by_name: str,
        installment_plan_id: str | None = None,
        installment_id: str | None = None,
        reference_number: str | None = None,
        cheque_number: str | None = None,
        cheque_bank: str | None = None,
        cheque_date: date | str | None = None,
        bank_name: str | None = None,
        account_number: str | None = None,
        transaction_id: str | None = None,
        description: str | None = None,
        issued_at: datetime | None = None,
    ) -> PaymentReceipt:
        """Build a receipt after validating the method-specific fields.

        Raises
        ------
        ValidationError
            On a non-positive amount, unknown method or purpose, or a
            missing field required by the payment method.
        """
        value = to_money(amount, self.quantum)
        if value <= 0:
            raise ValidationError("Receipt amount must be positive")
        try:
            method = PaymentMethod(payment_method)
        except ValueError as exc:
            raise ValidationError(f"Unknown payment method: {payment_method!r}") from exc
        try:
            receipt_purpose = ReceiptPurpose(purpose)
        except ValueError as exc:
            raise ValidationError(f"Unknown receipt purpose: {purpose!r}") from exc
        if (installment_plan_id is None) != (installment_id is None):
            raise ValidationError("Plan and installment ids must be given together")

        _check_method_fields(method, cheque_number, cheque_bank, bank_name, transaction_id)

        issued_at = issued_at or datetime.now()
        receipt = PaymentReceipt(
            receipt_id=self.ids.new_id("rcpt"),
            receipt_number=self.next_receipt_number(existing_count, issued_at.date()),
            sale_cycle_id=sale_cycle_id,
            property_id=property_id,
            from_name=from_name,
            from_contact=from_contact,
            to_name=to_name,
            to_contact=to_contact,
            amount=value,
            payment_date=parse_date(payment_date),
            payment_method=method,
            purpose=receipt_purpose,
            issued_by=issued_by,
            issued_by_name=issued_by_name,
            created_at=issued_at,
            installment_plan_id=installment_plan_id,
            installment_id=installment_id,
            reference_number=reference_number,
            cheque_number=cheque_number,
            cheque_bank=cheque_bank,
            cheque_date=parse_date(cheque_date) if cheque_date is not None else None,
            bank_name=bank_name,
            account_number=account_number,
            transaction_id=transaction_id,
            description=description,
        )
        logger.debug("Issued receipt %s for %s", receipt.receipt_number, value)
        return receipt


def _check_method_fields(
    method: PaymentMethod,
    cheque_number: str | None,
    cheque_bank: str | None,
    bank_name: str | None,
    transaction_id: str | None,
) -> None:
    if method == PaymentMethod.CHEQUE:
        if not cheque_number or not cheque_bank:
            raise ValidationError("Cheque payments need a cheque number and bank")
    elif method == PaymentMethod.BANK_TRANSFER:
        if not bank_name and not transaction_id:
            raise ValidationError("Bank transfers need a bank name or transaction id")
    elif method == PaymentMethod.ONLINE:
        if not transaction_id:
            raise ValidationError("Online payments need a transaction id")


def receipt_stats(receipts: Sequence[PaymentReceipt]) -> ReceiptStats:
    """Totals by purpose and by payment method, in issue order."""
    by_purpose: dict[str, Decimal] = {}
    by_method: dict[str, Decimal] = {}
    for receipt in receipts:
        purpose = receipt.purpose.value
        method = receipt.payment_method.value
        by_purpose[purpose] = by_purpose.get(purpose, Decimal("0")) + receipt.amount
        by_method[method] = by_method.get(method, Decimal("0")) + receipt.amount

    return ReceiptStats(
        total_receipts=len(receipts),
        total_collected=sum((r.amount for r in receipts), Decimal("0")),
        by_purpose=by_purpose,
        by_payment_method=by_method,
        latest_receipt=receipts[-1] if receipts else None,
    )
