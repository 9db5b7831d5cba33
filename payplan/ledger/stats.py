"""Plan statistics."""

from decimal import Decimal

from payplan.amounts import percent
from payplan.models.enums import InstallmentStatus
from payplan.models.plan import InstallmentPlan, PlanStats


def get_plan_stats(plan: InstallmentPlan) -> PlanStats:
    """Aggregate a plan's payment progress.

    ``total_paid`` includes the down payment; ``completion_percentage`` only
    counts installment payments against ``total - down_payment``. ``next_due``
    is the earliest pending or overdue installment, ties broken by number.
    """
    installment_paid = sum((i.paid_amount for i in plan.installments), Decimal("0"))
    total_due = sum((i.amount for i in plan.installments), Decimal("0"))

    counts = {status: 0 for status in InstallmentStatus}
    for installment in plan.installments:
        counts[installment.status] += 1

    open_items = [
        i
        for i in plan.installments
        if i.status in (InstallmentStatus.PENDING, InstallmentStatus.OVERDUE)
    ]
    next_due = min(open_items, key=lambda i: (i.due_date, i.installment_number), default=None)

    return PlanStats(
        total_amount=plan.total_amount,
        down_payment=plan.down_payment,
        total_installment_amount=total_due,
        total_paid=installment_paid + plan.down_payment,
        remaining_amount=total_due - installment_paid,
        completion_percentage=percent(installment_paid, plan.total_amount - plan.down_payment),
        installment_count=len(plan.installments),
        paid_count=counts[InstallmentStatus.PAID],
        partial_count=counts[InstallmentStatus.PARTIAL],
        overdue_count=counts[InstallmentStatus.OVERDUE],
        pending_count=counts[InstallmentStatus.PENDING],
        next_due=next_due,
    )
