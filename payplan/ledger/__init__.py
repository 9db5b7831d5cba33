"""Payment ledger: payment recording, overdue sweeps and plan statistics."""

from payplan.ledger.overdue import sweep_overdue
from payplan.ledger.payments import (
    PaymentLedger,
    derive_installment_status,
    derive_plan_status,
)
from payplan.ledger.stats import get_plan_stats

__all__ = [
    "PaymentLedger",
    "derive_installment_status",
    "derive_plan_status",
    "get_plan_stats",
    "sweep_overdue",
]
