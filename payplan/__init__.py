"""Payment plan, ledger and sale distribution engine for property back offices."""

from payplan.engine import PaymentPlanEngine

__all__ = ["PaymentPlanEngine"]

__version__ = "0.1.0"
