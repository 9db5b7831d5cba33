"""Overdue sweep over installment plans."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from datetime import date, datetime

from payplan.dates import parse_date
from payplan.models.enums import InstallmentStatus, PlanStatus
from payplan.models.plan import InstallmentPlan

logger = logging.getLogger(__name__)


def sweep_overdue(
    plans: Iterable[InstallmentPlan],
    reference_date: date | str,
) -> list[InstallmentPlan]:
    """Flag pending installments that fell due before ``reference_date``.

    Only active plans are touched and only ``pending`` installments change;
    partial and paid ones keep their status. Input plans are not mutated:
    unchanged plans are returned as-is, changed ones as bumped copies.
    """
    reference = parse_date(reference_date)
    result: list[InstallmentPlan] = []
    flipped = 0

    for plan in plans:
        if plan.status != PlanStatus.ACTIVE:
            result.append(plan)
            continue

        stale = [
            i.installment_id
            for i in plan.installments
            if i.status == InstallmentStatus.PENDING and i.due_date < reference
        ]
        if not stale:
            result.append(plan)
            continue

        updated = copy.deepcopy(plan)
        for installment in updated.installments:
            if installment.installment_id in stale:
                installment.status = InstallmentStatus.OVERDUE
        updated.updated_at = datetime.now()
        updated.version += 1
        flipped += len(stale)
        result.append(updated)

    if flipped:
        logger.info("Overdue sweep as of %s flagged %d installments", reference, flipped)
    return result
