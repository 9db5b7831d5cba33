"""In-memory repository store with versioned plans and atomic batches."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from payplan.exceptions import (
    ConcurrencyError,
    DomainInvariantError,
    EntityNotFoundError,
    ReferentialIntegrityError,
)
from payplan.models import (
    DistributionStatus,
    InstallmentPlan,
    InvestmentStatus,
    InvestorDistribution,
    InvestorInvestment,
    InvestorTransaction,
    PaymentReceipt,
    PlanStatus,
    Property,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdempotencyRecord:
    """Outcome remembered for a client-supplied idempotency key."""

    fingerprint: tuple
    plan_id: str
    plan_version: int


@dataclass
class EngineDataStore:
    """In-memory store for engine entities with relationship tracking.

    Plans carry a version; ``save_plan`` refuses a write whose expected
    version is stale. ``transaction()`` makes a block of writes all-or-nothing.
    Entities are replaced on write and never edited in place; the
    transaction undo log relies on that.
    """

    # Primary entities
    plans: dict[str, InstallmentPlan] = field(default_factory=dict)
    receipts: dict[str, PaymentReceipt] = field(default_factory=dict)
    properties: dict[str, Property] = field(default_factory=dict)
    investments: dict[str, InvestorInvestment] = field(default_factory=dict)
    distributions: dict[str, InvestorDistribution] = field(default_factory=dict)

    # Events
    investor_transactions: list[InvestorTransaction] = field(default_factory=list)

    # Relationship indexes
    _sale_cycle_plans: dict[str, list[str]] = field(default_factory=dict)
    _property_investments: dict[str, list[str]] = field(default_factory=dict)
    _property_distributions: dict[str, list[str]] = field(default_factory=dict)

    _idempotency: dict[str, IdempotencyRecord] = field(default_factory=dict)
    # Total receipts ever issued; deletions do not rewind numbering
    _receipts_issued: int = 0

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)
    # Undo steps of the open transaction, None outside one
    _undo: list[Callable[[], None]] | None = field(default=None, repr=False, compare=False)

    @contextmanager
    def transaction(self) -> Iterator[EngineDataStore]:
        """Apply the enclosed writes atomically.

        Each write inside the block logs how to undo itself; if the block
        raises, the log is replayed in reverse. Rolling back costs as much as
        the writes made, not the size of the store. Nested transactions join
        the outer one.
        """
        with self._lock:
            if self._undo is not None:
                yield self
                return
            self._undo = []
            try:
                yield self
            except BaseException:
                steps = self._undo
                self._undo = None
                for step in reversed(steps):
                    step()
                logger.warning("Store transaction rolled back (%d writes undone)", len(steps))
                raise
            self._undo = None

    def _keep_entry(self, mapping: dict, key: Any) -> None:
        """Log the current value of ``mapping[key]`` before it is written."""
        if self._undo is None:
            return
        if key in mapping:
            previous = mapping[key]
            self._undo.append(lambda: mapping.__setitem__(key, previous))
        else:
            self._undo.append(lambda: mapping.pop(key, None))

    def _keep_order(self, mapping: dict) -> None:
        """Log a whole mapping before a delete so its order comes back too."""
        if self._undo is None:
            return
        items = list(mapping.items())

        def restore() -> None:
            mapping.clear()
            mapping.update(items)

        self._undo.append(restore)

    def _keep_length(self, items: list) -> None:
        """Log the length of ``items`` before an append."""
        if self._undo is None:
            return
        size = len(items)
        self._undo.append(lambda: items.__delitem__(slice(size, None)))

    def _index(self, index: dict[str, list[str]], key: str, value: str) -> None:
        self._keep_entry(index, key)
        entries = index.setdefault(key, [])
        self._keep_length(entries)
        entries.append(value)
    # Plans
    def add_plan(self, plan: InstallmentPlan) -> None:
        """Add a new plan to the store."""
        with self._lock:
            if plan.plan_id in self.plans:
                raise DomainInvariantError(f"Plan {plan.plan_id} already exists")
            if plan.property_id and plan.property_id not in self.properties:
                raise ReferentialIntegrityError(f"Property {plan.property_id} not found")
            self._keep_entry(self.plans, plan.plan_id)
            self.plans[plan.plan_id] = plan
            self._index(self._sale_cycle_plans, plan.sale_cycle_id, plan.plan_id)

    def get_plan(self, plan_id: str) -> InstallmentPlan:
        """Get a plan by id."""
        plan = self.plans.get(plan_id)
        if plan is None:
            raise EntityNotFoundError(f"Installment plan {plan_id} not found")
        return plan

    def save_plan(self, plan: InstallmentPlan, expected_version: int) -> None:
        """Replace a plan if the stored version still matches."""
        with self._lock:
            current = self.get_plan(plan.plan_id)
            if current.version != expected_version:
                raise ConcurrencyError(
                    f"Plan {plan.plan_id} is at version {current.version}, "
                    f"expected {expected_version}"
                )
            self._keep_entry(self.plans, plan.plan_id)
            self.plans[plan.plan_id] = plan

    def list_plans(
        self,
        sale_cycle_id: str | None = None,
        status: PlanStatus | None = None,
    ) -> list[InstallmentPlan]:
        """List plans, optionally filtered by sale cycle and status."""
        if sale_cycle_id is not None:
            plans = [self.plans[pid] for pid in self._sale_cycle_plans.get(sale_cycle_id, [])]
        else:
            plans = list(self.plans.values())
        if status is not None:
            plans = [p for p in plans if p.status == status]
        return plans

    # Receipts
    def add_receipt(self, receipt: PaymentReceipt) -> None:
        """Add a receipt to the store."""
        with self._lock:
            if receipt.installment_plan_id and receipt.installment_plan_id not in self.plans:
                raise ReferentialIntegrityError(
                    f"Installment plan {receipt.installment_plan_id} not found"
                )
            self._keep_entry(self.receipts, receipt.receipt_id)
            self.receipts[receipt.receipt_id] = receipt
            if self._undo is not None:
                issued = self._receipts_issued
                self._undo.append(lambda: setattr(self, "_receipts_issued", issued))
            self._receipts_issued += 1

    def get_receipt(self, receipt_id: str) -> PaymentReceipt:
        """Get a receipt by id."""
        receipt = self.receipts.get(receipt_id)
        if receipt is None:
            raise EntityNotFoundError(f"Receipt {receipt_id} not found")
        return receipt

    def delete_receipt(self, receipt_id: str) -> PaymentReceipt:
        """Remove a receipt and return it."""
        with self._lock:
            receipt = self.get_receipt(receipt_id)
            self._keep_order(self.receipts)
            del self.receipts[receipt_id]
            return receipt

    def list_receipts(self, sale_cycle_id: str | None = None) -> list[PaymentReceipt]:
        """List receipts in issue order."""
        receipts = list(self.receipts.values())
        if sale_cycle_id is not None:
            receipts = [r for r in receipts if r.sale_cycle_id == sale_cycle_id]
        return receipts

    @property
    def receipts_issued(self) -> int:
        return self._receipts_issued

    # Properties and investments
    def add_property(self, prop: Property) -> None:
        """Add a property to the store."""
        with self._lock:
            if prop.created_at is None:
                prop.created_at = datetime.now()
            self._keep_entry(self.properties, prop.property_id)
            self.properties[prop.property_id] = prop
            for index in (self._property_investments, self._property_distributions):
                if prop.property_id not in index:
                    self._keep_entry(index, prop.property_id)
                    index[prop.property_id] = []

    def get_property(self, property_id: str) -> Property:
        """Get a property by id."""
        prop = self.properties.get(property_id)
        if prop is None:
            raise EntityNotFoundError(f"Property {property_id} not found")
        return prop

    def add_investment(self, investment: InvestorInvestment) -> None:
        """Add a new investor stake."""
        with self._lock:
            if investment.property_id not in self.properties:
                raise ReferentialIntegrityError(f"Property {investment.property_id} not found")
            self._keep_entry(self.investments, investment.investment_id)
            self.investments[investment.investment_id] = investment
            self._index(self._property_investments, investment.property_id, investment.investment_id)

    def save_investment(self, investment: InvestorInvestment) -> None:
        """Replace an existing investor stake."""
        with self._lock:
            self.get_investment(investment.investment_id)
            self._keep_entry(self.investments, investment.investment_id)
            self.investments[investment.investment_id] = investment

    def get_investment(self, investment_id: str) -> InvestorInvestment:
        """Get an investor stake by id."""
        investment = self.investments.get(investment_id)
        if investment is None:
            raise EntityNotFoundError(f"Investment {investment_id} not found")
        return investment

    def list_investments(
        self,
        property_id: str | None = None,
        investor_id: str | None = None,
        status: InvestmentStatus | None = None,
    ) -> list[InvestorInvestment]:
        """List investor stakes with optional filters."""
        if property_id is not None:
            ids = self._property_investments.get(property_id, [])
            investments = [self.investments[iid] for iid in ids]
        else:
            investments = list(self.investments.values())
        if investor_id is not None:
            investments = [i for i in investments if i.investor_id == investor_id]
        if status is not None:
            investments = [i for i in investments if i.status == status]
        return investments

    def add_investor_transaction(self, transaction: InvestorTransaction) -> None:
        """Add an income or expense record."""
        with self._lock:
            if transaction.property_id not in self.properties:
                raise ReferentialIntegrityError(f"Property {transaction.property_id} not found")
            self._keep_length(self.investor_transactions)
            self.investor_transactions.append(transaction)

    def list_investor_transactions(self, property_id: str | None = None) -> list[InvestorTransaction]:
        """List income and expense records."""
        if property_id is None:
            return list(self.investor_transactions)
        return [t for t in self.investor_transactions if t.property_id == property_id]

    # Distributions
    def add_distribution(self, distribution: InvestorDistribution) -> None:
        """Add a new distribution record."""
        with self._lock:
            if distribution.property_id not in self.properties:
                raise ReferentialIntegrityError(f"Property {distribution.property_id} not found")
            if distribution.investment_id not in self.investments:
                raise ReferentialIntegrityError(f"Investment {distribution.investment_id} not found")
            self._keep_entry(self.distributions, distribution.distribution_id)
            self.distributions[distribution.distribution_id] = distribution
            self._index(
                self._property_distributions, distribution.property_id, distribution.distribution_id
            )

    def save_distribution(self, distribution: InvestorDistribution) -> None:
        """Replace an existing distribution record."""
        with self._lock:
            self.get_distribution(distribution.distribution_id)
            self._keep_entry(self.distributions, distribution.distribution_id)
            self.distributions[distribution.distribution_id] = distribution

    def get_distribution(self, distribution_id: str) -> InvestorDistribution:
        """Get a distribution by id."""
        distribution = self.distributions.get(distribution_id)
        if distribution is None:
            raise EntityNotFoundError(f"Distribution {distribution_id} not found")
        return distribution

    def list_distributions(
        self,
        property_id: str | None = None,
        investor_id: str | None = None,
        status: DistributionStatus | None = None,
    ) -> list[InvestorDistribution]:
        """List distributions with optional filters."""
        if property_id is not None:
            ids = self._property_distributions.get(property_id, [])
            distributions = [self.distributions[did] for did in ids]
        else:
            distributions = list(self.distributions.values())
        if investor_id is not None:
            distributions = [d for d in distributions if d.investor_id == investor_id]
        if status is not None:
            distributions = [d for d in distributions if d.distribution_status == status]
        return distributions

    # Idempotency
    def get_idempotency(self, key: str) -> IdempotencyRecord | None:
        """Look up a previously recorded idempotency key."""
        return self._idempotency.get(key)

    def remember_idempotency(self, key: str, record: IdempotencyRecord) -> None:
        """Remember the outcome of a keyed request."""
        with self._lock:
            self._keep_entry(self._idempotency, key)
            self._idempotency[key] = record

    def summary(self) -> dict[str, int]:
        """Return summary counts of all entities."""
        return {
            "plans": len(self.plans),
            "installments": sum(len(p.installments) for p in self.plans.values()),
            "receipts": len(self.receipts),
            "properties": len(self.properties),
            "investments": len(self.investments),
            "investor_transactions": len(self.investor_transactions),
            "distributions": len(self.distributions),
        }
