"""Decimal money arithmetic shared by the plan, ledger and distribution code."""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation

from payplan.exceptions import ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | float | str, quantum: Decimal = CENT) -> Decimal:
    """Convert a number to a Decimal rounded half-up to ``quantum``.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Not a monetary amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Not a monetary amount: {value!r}")
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)


def split_evenly(total: Decimal, parts: int, quantum: Decimal = CENT) -> list[Decimal]:
    """Split ``total`` into ``parts`` equal amounts that sum exactly to it.

    Every part is the equal share rounded down to ``quantum``; the residue
    lands on the last part.

    Examples
    --------
    >>> split_evenly(Decimal("100.00"), 3)
    [Decimal('33.33'), Decimal('33.33'), Decimal('33.34')]
    """
    if parts < 1:
        raise ValidationError("Cannot split into fewer than one part")
    share = (total / parts).quantize(quantum, rounding=ROUND_DOWN)
    amounts = [share] * parts
    amounts[-1] = total - share * (parts - 1)
    return amounts


def percentage_of(amount: Decimal, percentage: Decimal, quantum: Decimal = CENT) -> Decimal:
    """Return ``percentage`` percent of ``amount``."""
    return (amount * percentage / HUNDRED).quantize(quantum, rounding=ROUND_HALF_UP)


def percent(part: Decimal, whole: Decimal, places: Decimal = Decimal("0.0001")) -> Decimal:
    """Return ``part / whole * 100``; zero when ``whole`` is zero."""
    if whole == 0:
        return Decimal("0")
    return (part / whole * HUNDRED).quantize(places, rounding=ROUND_HALF_UP)


def apportion(
    total: Decimal, percentages: list[Decimal], quantum: Decimal = CENT
) -> list[Decimal]:
    """Split ``total`` by percentage.

    When the percentages add up to exactly 100 the last part absorbs the
    rounding residue, so the parts sum to ``total``.
    """
    parts = [percentage_of(total, p, quantum) for p in percentages]
    if parts and sum(percentages, Decimal("0")) == HUNDRED:
        parts[-1] = total - sum(parts[:-1], Decimal("0"))
    return parts
