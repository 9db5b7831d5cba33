"""Sale distribution: profit calculation and investor payout records."""

from payplan.distribution.calculator import SaleDistributionCalculator
from payplan.distribution.lifecycle import (
    DistributionLedger,
    investor_total_returns,
    property_distribution_summary,
)

__all__ = [
    "DistributionLedger",
    "SaleDistributionCalculator",
    "investor_total_returns",
    "property_distribution_summary",
]
