"""Installment plan generator."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from payplan.amounts import CENT, split_evenly, to_money
from payplan.dates import due_dates, parse_date
from payplan.exceptions import ValidationError
from payplan.ids import IdFactory
from payplan.models.enums import InstallmentStatus, PlanFrequency, PlanStatus
from payplan.models.plan import Installment, InstallmentPlan

logger = logging.getLogger(__name__)


class InstallmentPlanGenerator:
    """Build installment schedules from sale terms.

    The generator is pure: it returns a fully materialised plan and never
    touches a store.

    Parameters
    ----------
    seed : int | None
        Seed for the id factory. Ignored when ``ids`` is given.
    ids : IdFactory | None
        Shared id factory.
    quantum : Decimal
        Smallest money unit installment amounts are rounded to.
    """

    def __init__(
        self,
        seed: int | None = None,
        ids: IdFactory | None = None,
        quantum: Decimal = CENT,
    ) -> None:
        self.ids = ids or IdFactory(seed=seed)
        self.quantum = quantum

    def create_plan(
        self,
        total_amount: Decimal | int | float | str,
        down_payment: Decimal | int | float | str,
        number_of_installments: int,
        start_date: date | str,
        frequency: PlanFrequency | str,
        custom_dates: list[date | str] | None = None,
        *,
        sale_cycle_id: str = "",
        property_id: str = "",
        buyer_id: str = "",
        buyer_name: str = "",
        created_by: str = "",
    ) -> InstallmentPlan:
        """Create an installment plan.

        Parameters
        ----------
        total_amount
            Sale price; must be positive.
        down_payment
            Paid up front; ``0 <= down_payment < total_amount``.
        number_of_installments : int
            At least one.
        start_date
            Due date of the first installment.
        frequency
            Stepping between due dates.
        custom_dates
            Due dates for ``custom`` frequency; the first
            ``number_of_installments`` are used verbatim.

        Returns
        -------
        InstallmentPlan
            Active plan with every installment pending.

        Raises
        ------
        ValidationError
            If any precondition fails.
        """
        total = to_money(total_amount, self.quantum)
        down = to_money(down_payment, self.quantum)
        frequency = _coerce_frequency(frequency)

        if total <= 0:
            raise ValidationError("Total amount must be positive")
        if down < 0:
            raise ValidationError("Down payment cannot be negative")
        if down >= total:
            raise ValidationError("Down payment must be less than the total amount")
        if isinstance(number_of_installments, bool) or not isinstance(number_of_installments, int):
            raise ValidationError("Number of installments must be an integer")
        if number_of_installments < 1:
            raise ValidationError("Number of installments must be at least 1")

        start = parse_date(start_date)
        parsed_custom = [parse_date(d) for d in custom_dates] if custom_dates is not None else None
        schedule = due_dates(start, number_of_installments, frequency, parsed_custom)

        remaining = total - down
        amounts = split_evenly(remaining, number_of_installments, self.quantum)

        installments = [
            Installment(
                installment_id=self.ids.new_id("inst"),
                installment_number=i + 1,
                due_date=due,
                amount=amount,
                paid_amount=Decimal("0"),
                status=InstallmentStatus.PENDING,
            )
            for i, (due, amount) in enumerate(zip(schedule, amounts))
        ]

        now = datetime.now()
        plan = InstallmentPlan(
            plan_id=self.ids.new_id("plan"),
            sale_cycle_id=sale_cycle_id,
            property_id=property_id,
            buyer_id=buyer_id,
            buyer_name=buyer_name,
            total_amount=total,
            down_payment=down,
            remaining_amount=remaining,
            number_of_installments=number_of_installments,
            installment_amount=amounts[0],
            start_date=start,
            frequency=frequency,
            installments=installments,
            status=PlanStatus.ACTIVE,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )

        logger.debug(
            "Generated plan %s: %d x %s (%s)",
            plan.plan_id,
            number_of_installments,
            plan.installment_amount,
            frequency.value,
        )
        return plan


def _coerce_frequency(frequency: PlanFrequency | str) -> PlanFrequency:
    try:
        return PlanFrequency(frequency)
    except ValueError as exc:
        raise ValidationError(f"Unknown plan frequency: {frequency!r}") from exc
