"""Installment plan generation."""

from payplan.plans.generator import InstallmentPlanGenerator

__all__ = ["InstallmentPlanGenerator"]
