"""Recording payments against installment plans."""

from __future__ import annotations

import copy
import logging
from datetime import date, datetime
from decimal import Decimal

from payplan.amounts import CENT, to_money
from payplan.dates import parse_date
from payplan.exceptions import DomainInvariantError, EntityNotFoundError, ValidationError
from payplan.models.enums import InstallmentStatus, PaymentMethod, PlanStatus
from payplan.models.plan import Installment, InstallmentPlan

logger = logging.getLogger(__name__)


def derive_installment_status(installment: Installment) -> InstallmentStatus:
    """Status implied by the amount received so far.

    ``paid`` once the amount due is covered, ``partial`` for any smaller
    positive amount, otherwise the current status is kept (so ``pending``
    and ``overdue`` survive a zero balance).
    """
    if installment.paid_amount >= installment.amount:
        return InstallmentStatus.PAID
    if installment.paid_amount > 0:
        return InstallmentStatus.PARTIAL
    return installment.status


def derive_plan_status(plan: InstallmentPlan) -> PlanStatus:
    """``completed`` iff every installment is paid."""
    if plan.installments and all(i.status == InstallmentStatus.PAID for i in plan.installments):
        return PlanStatus.COMPLETED
    return PlanStatus.ACTIVE


class PaymentLedger:
    """Apply payments to plans.

    Every operation returns a new plan; the plan passed in is left
    untouched so callers can persist the result with a version check.

    Parameters
    ----------
    strict : bool
        Reject payments larger than the installment's outstanding balance
        and payments against completed plans. Off by default: excess is
        accepted and simply raises ``paid_amount`` past the amount due.
    quantum : Decimal
        Money rounding unit.
    """

    def __init__(self, strict: bool = False, quantum: Decimal = CENT) -> None:
        self.strict = strict
        self.quantum = quantum

    def record_payment(
        self,
        plan: InstallmentPlan,
        installment_id: str,
        amount: Decimal | int | float | str,
        payment_date: date | str,
        method: PaymentMethod | str,
        notes: str | None = None,
    ) -> InstallmentPlan:
        """Record a full or partial payment on one installment.

        Returns
        -------
        InstallmentPlan
            Updated copy with a bumped version.

        Raises
        ------
        EntityNotFoundError
            If the installment is not part of the plan.
        ValidationError
            If the amount is not positive or the method is unknown.
        DomainInvariantError
            In strict mode, on overpayment or a completed plan.
        """
        paid = to_money(amount, self.quantum)
        if paid <= 0:
            raise ValidationError("Payment amount must be positive")
        try:
            method = PaymentMethod(method)
        except ValueError as exc:
            raise ValidationError(f"Unknown payment method: {method!r}") from exc
        when = parse_date(payment_date)

        updated = copy.deepcopy(plan)
        installment = updated.find_installment(installment_id)
        if installment is None:
            raise EntityNotFoundError(
                f"Installment {installment_id} not found in plan {plan.plan_id}"
            )

        if self.strict:
            if updated.status == PlanStatus.COMPLETED:
                raise DomainInvariantError(f"Plan {plan.plan_id} is already completed")
            if paid > installment.outstanding:
                raise DomainInvariantError(
                    f"Payment {paid} exceeds outstanding balance {installment.outstanding} "
                    f"on installment #{installment.installment_number}"
                )

        installment.paid_amount += paid
        installment.paid_date = when
        installment.payment_method = method
        installment.notes = notes
        installment.status = derive_installment_status(installment)

        updated.status = derive_plan_status(updated)
        updated.updated_at = datetime.now()
        updated.version += 1

        logger.debug(
            "Plan %s installment #%d: +%s -> %s (%s)",
            updated.plan_id,
            installment.installment_number,
            paid,
            installment.paid_amount,
            installment.status.value,
        )
        return updated

    def link_receipt(
        self, plan: InstallmentPlan, installment_id: str, receipt_id: str | None
    ) -> InstallmentPlan:
        """Return a copy of ``plan`` with the receipt linked to the installment."""
        updated = copy.deepcopy(plan)
        installment = updated.find_installment(installment_id)
        if installment is None:
            raise EntityNotFoundError(
                f"Installment {installment_id} not found in plan {plan.plan_id}"
            )
        installment.receipt_id = receipt_id
        updated.updated_at = datetime.now()
        updated.version += 1
        return updated
