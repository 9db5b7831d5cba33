"""Payment plan engine: the entry point host applications call into."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from payplan.amounts import to_money
from payplan.config import EngineConfig
from payplan.dates import parse_date
from payplan.distribution import (
    DistributionLedger,
    SaleDistributionCalculator,
    investor_total_returns,
    property_distribution_summary,
)
from payplan.exceptions import IdempotencyConflictError, SinkError
from payplan.ids import IdFactory
from payplan.investments import InvestmentBook, StakeRequest
from payplan.ledger import PaymentLedger, get_plan_stats, sweep_overdue
from payplan.logging import entity_context
from payplan.models import (
    DistributionStatus,
    Event,
    InstallmentPlan,
    InvestmentStatus,
    InvestorDistribution,
    InvestorInvestment,
    InvestorReturns,
    InvestorTransaction,
    InvestorTransactionType,
    OwnershipType,
    PaymentMethod,
    PaymentReceipt,
    PlanFrequency,
    PlanStats,
    PlanStatus,
    Property,
    PropertyDistributionSummary,
    ReceiptStats,
    SaleDistributionCalculation,
)
from payplan.plans import InstallmentPlanGenerator
from payplan.receipts import ReceiptBook, receipt_stats
from payplan.sinks.serialization import to_dict
from payplan.store import EngineDataStore, IdempotencyRecord

logger = logging.getLogger(__name__)

# Log context field named by each event entity's subject
SUBJECT_FIELDS = {
    "plan": "plan_id",
    "installment": "plan_id",
    "receipt": "receipt_id",
    "distribution": "distribution_id",
}


class PaymentPlanEngine:
    """Coordinate plans, payments, receipts, investments and distributions.

    Every write goes through the store: payments are checked against the
    plan version they were computed from and serialised per plan, and
    multi-record operations run inside ``store.transaction()``. Domain
    events are published to ``sink`` after the write commits; events the
    sink rejects wait in ``undelivered`` until ``republish()``.

    Parameters
    ----------
    store : EngineDataStore | None
        Backing store (a fresh in-memory store by default).
    config : EngineConfig | None
        Engine configuration.
    sink : Any
        Optional event sink exposing ``write_batch(topic, records)``.
    ids : IdFactory | None
        Id factory; seeded from ``config.seed`` by default.
    """

    def __init__(
        self,
        store: EngineDataStore | None = None,
        config: EngineConfig | None = None,
        sink: Any = None,
        ids: IdFactory | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.store = store if store is not None else EngineDataStore()
        self.sink = sink
        self.ids = ids or IdFactory(seed=self.config.seed)

        quantum = self.config.ledger.money_quantum
        self.generator = InstallmentPlanGenerator(ids=self.ids, quantum=quantum)
        self.ledger = PaymentLedger(strict=self.config.ledger.strict_payments, quantum=quantum)
        self.receipts = ReceiptBook(config=self.config.receipts, ids=self.ids, quantum=quantum)
        self.investments = InvestmentBook(
            ids=self.ids,
            share_tolerance=self.config.distribution.share_tolerance,
            quantum=quantum,
        )
        self.calculator = SaleDistributionCalculator(
            policy=self.config.distribution.allocation_policy,
            share_tolerance=self.config.distribution.share_tolerance,
            quantum=quantum,
        )
        self.distributions = DistributionLedger(ids=self.ids)

        self._plan_locks: dict[str, threading.Lock] = {}
        self._plan_locks_guard = threading.Lock()
        # Committed events the sink rejected
        self.undelivered: list[Event] = []

    @contextmanager
    def _plan_lock(self, plan_id: str) -> Iterator[None]:
        with self._plan_locks_guard:
            lock = self._plan_locks.setdefault(plan_id, threading.Lock())
        with lock:
            yield

    def _publish(self, event_type: str, subject: str, data: Any) -> None:
        """Hand one committed change to the sink.

        The write has already committed, so a sink failure is logged and the
        event is kept in ``undelivered`` for ``republish``; it never turns a
        committed operation into an error for the caller.
        """
        if self.sink is None:
            return
        event = Event(
            event_id=self.ids.new_id("evt"),
            event_type=event_type,
            event_time=datetime.now(),
            subject=subject,
            data=to_dict(data),
        )
        self._deliver(event)

    def _deliver(self, event: Event) -> bool:
        try:
            self.sink.write_batch(event.topic(self.config.topic_prefix), [event])
        except SinkError:
            logger.exception(
                "Could not publish %s for %s",
                event.event_type,
                event.subject,
                extra=entity_context(**{SUBJECT_FIELDS[event.entity]: event.subject}),
            )
            self.undelivered.append(event)
            return False
        return True

    def republish(self) -> int:
        """Retry events the sink rejected earlier, oldest first.

        Returns
        -------
        int
            Number of events still undelivered.
        """
        pending, self.undelivered = self.undelivered, []
        for event in pending:
            self._deliver(event)
        return len(self.undelivered)

    # Plans and payments
    def create_plan(
        self,
        sale_cycle_id: str,
        property_id: str,
        buyer_id: str,
        buyer_name: str,
        total_amount: Decimal | int | float | str,
        down_payment: Decimal | int | float | str,
        number_of_installments: int,
        start_date: date | str,
        frequency: PlanFrequency | str,
        custom_dates: list[date | str] | None = None,
        created_by: str = "",
    ) -> InstallmentPlan:
        """Generate and store a new installment plan."""
        plan = self.generator.create_plan(
            total_amount,
            down_payment,
            number_of_installments,
            start_date,
            frequency,
            custom_dates,
            sale_cycle_id=sale_cycle_id,
            property_id=property_id,
            buyer_id=buyer_id,
            buyer_name=buyer_name,
            created_by=created_by,
        )
        self.store.add_plan(plan)
        logger.info(
            "Created plan %s for sale cycle %s: %d installments",
            plan.plan_id,
            sale_cycle_id,
            plan.number_of_installments,
            extra=entity_context(plan_id=plan.plan_id, property_id=property_id),
        )
        self._publish("plan.created", plan.plan_id, plan)
        return plan

    def get_plan(self, plan_id: str) -> InstallmentPlan:
        return self.store.get_plan(plan_id)

    def list_plans(self, sale_cycle_id: str | None = None) -> list[InstallmentPlan]:
        return self.store.list_plans(sale_cycle_id=sale_cycle_id)

    def record_payment(
        self,
        plan_id: str,
        installment_id: str,
        amount: Decimal | int | float | str,
        payment_date: date | str,
        payment_method: PaymentMethod | str,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> InstallmentPlan:
        """Record a payment and persist the updated plan.

        A repeated ``idempotency_key`` with the same payload returns the
        current plan without crediting the installment again.

        Raises
        ------
        IdempotencyConflictError
            If the key was already used for a different payment.
        ConcurrencyError
            If the plan changed underneath the write.
        """
        fingerprint = (
            plan_id,
            installment_id,
            str(to_money(amount, self.config.ledger.money_quantum)),
            parse_date(payment_date).isoformat(),
            str(getattr(payment_method, "value", payment_method)),
        )

        with self._plan_lock(plan_id):
            if idempotency_key is not None:
                seen = self.store.get_idempotency(idempotency_key)
                if seen is not None:
                    if seen.fingerprint != fingerprint:
                        raise IdempotencyConflictError(
                            f"Idempotency key {idempotency_key} was used for a different payment"
                        )
                    logger.info(
                        "Replayed payment %s on plan %s (version %d)",
                        idempotency_key,
                        plan_id,
                        seen.plan_version,
                        extra=entity_context(plan_id=plan_id, installment_id=installment_id),
                    )
                    return self.store.get_plan(seen.plan_id)

            plan = self.store.get_plan(plan_id)
            updated = self.ledger.record_payment(
                plan, installment_id, amount, payment_date, payment_method, notes
            )
            with self.store.transaction():
                self.store.save_plan(updated, expected_version=plan.version)
                if idempotency_key is not None:
                    self.store.remember_idempotency(
                        idempotency_key,
                        IdempotencyRecord(fingerprint, plan_id, updated.version),
                    )

        installment = updated.find_installment(installment_id)
        logger.info(
            "Recorded payment of %s on plan %s installment #%d (%s)",
            amount,
            plan_id,
            installment.installment_number,
            installment.status.value,
            extra=entity_context(plan_id=plan_id, installment_id=installment_id),
        )
        self._publish(f"installment.{installment.status.value}", plan_id, installment)
        if plan.status != PlanStatus.COMPLETED and updated.status == PlanStatus.COMPLETED:
            logger.info("Plan %s completed", plan_id, extra=entity_context(plan_id=plan_id))
            self._publish("plan.completed", plan_id, {"plan_id": plan_id})
        return updated

    def sweep_overdue(self, reference_date: date | str | None = None) -> list[InstallmentPlan]:
        """Flag overdue installments on every active plan.

        Returns
        -------
        list[InstallmentPlan]
            The plans that changed.
        """
        reference = parse_date(reference_date) if reference_date is not None else date.today()
        changed: list[InstallmentPlan] = []

        for plan_id in [p.plan_id for p in self.store.list_plans(status=PlanStatus.ACTIVE)]:
            with self._plan_lock(plan_id):
                plan = self.store.get_plan(plan_id)
                (swept,) = sweep_overdue([plan], reference)
                if swept is plan:
                    continue
                self.store.save_plan(swept, expected_version=plan.version)
            changed.append(swept)

            for before, after in zip(plan.installments, swept.installments):
                if before.status != after.status:
                    self._publish("installment.overdue", plan_id, after)

        return changed

    def get_plan_stats(self, plan_id: str) -> PlanStats:
        return get_plan_stats(self.store.get_plan(plan_id))

    # Receipts
    def issue_receipt(self, **fields: Any) -> PaymentReceipt:
        """Issue a receipt and link it to its installment when one is given.

        Keyword arguments are those of ``ReceiptBook.create_receipt``
        except ``existing_count``, which the store supplies.
        """
        plan_id = fields.get("installment_plan_id")
        installment_id = fields.get("installment_id")

        if plan_id is not None:
            with self._plan_lock(plan_id):
                receipt = self._issue_receipt(fields, plan_id, installment_id)
        else:
            receipt = self._issue_receipt(fields, None, None)

        logger.info(
            "Issued receipt %s (%s)",
            receipt.receipt_number,
            receipt.amount,
            extra=entity_context(receipt_id=receipt.receipt_id, plan_id=plan_id),
        )
        self._publish("receipt.issued", receipt.receipt_id, receipt)
        return receipt

    def _issue_receipt(
        self, fields: dict[str, Any], plan_id: str | None, installment_id: str | None
    ) -> PaymentReceipt:
        with self.store.transaction():
            receipt = self.receipts.create_receipt(self.store.receipts_issued, **fields)
            self.store.add_receipt(receipt)
            if plan_id is not None:
                plan = self.store.get_plan(plan_id)
                linked = self.ledger.link_receipt(plan, installment_id, receipt.receipt_id)
                self.store.save_plan(linked, expected_version=plan.version)
        return receipt

    def delete_receipt(self, receipt_id: str) -> PaymentReceipt:
        """Delete a receipt and unlink it from its installment."""
        receipt = self.store.get_receipt(receipt_id)
        plan_id = receipt.installment_plan_id

        if plan_id is None:
            self.store.delete_receipt(receipt_id)
        else:
            with self._plan_lock(plan_id), self.store.transaction():
                self.store.delete_receipt(receipt_id)
                plan = self.store.get_plan(plan_id)
                installment = plan.find_installment(receipt.installment_id)
                if installment is not None and installment.receipt_id == receipt_id:
                    unlinked = self.ledger.link_receipt(plan, receipt.installment_id, None)
                    self.store.save_plan(unlinked, expected_version=plan.version)

        logger.info(
            "Deleted receipt %s",
            receipt.receipt_number,
            extra=entity_context(receipt_id=receipt_id, plan_id=plan_id),
        )
        return receipt

    def receipt_stats(self, sale_cycle_id: str | None = None) -> ReceiptStats:
        return receipt_stats(self.store.list_receipts(sale_cycle_id))

    # Properties, investments and property ledgers
    def register_property(
        self,
        property_id: str,
        title: str,
        address: str,
        ownership_type: OwnershipType | str = OwnershipType.INVESTOR,
    ) -> Property:
        prop = Property(
            property_id=property_id,
            title=title,
            address=address,
            ownership_type=OwnershipType(ownership_type),
        )
        self.store.add_property(prop)
        return prop

    def add_investment(
        self,
        property_id: str,
        investor_id: str,
        investor_name: str,
        share_percentage: Decimal | int | float | str,
        investment_amount: Decimal | int | float | str,
        investment_date: date | str | None = None,
        acquisition_price: Decimal | int | float | str | None = None,
    ) -> InvestorInvestment:
        """Give an investor a stake, keeping the property at or below 100%."""
        with self.store.transaction():
            prop = self.store.get_property(property_id)
            investment = self.investments.add_investment(
                prop,
                self.store.list_investments(property_id=property_id),
                investor_id,
                investor_name,
                share_percentage,
                investment_amount,
                investment_date=investment_date,
                acquisition_price=acquisition_price,
            )
            self.store.add_investment(investment)
        logger.info(
            "Investor %s holds %s%% of property %s",
            investor_id,
            investment.share_percentage,
            property_id,
            extra=entity_context(investor_id=investor_id, property_id=property_id),
        )
        return investment

    def allocate_shares(
        self,
        property_id: str,
        stakes: Sequence[StakeRequest],
        investment_date: date | str | None = None,
        acquisition_price: Decimal | int | float | str | None = None,
    ) -> list[InvestorInvestment]:
        """Create all stakes of a multi-investor purchase (shares total 100%)."""
        with self.store.transaction():
            prop = self.store.get_property(property_id)
            created = self.investments.allocate_shares(
                prop,
                self.store.list_investments(property_id=property_id),
                stakes,
                investment_date=investment_date,
                acquisition_price=acquisition_price,
            )
            for investment in created:
                self.store.add_investment(investment)
        return created

    def record_investor_transaction(
        self,
        property_id: str,
        transaction_type: InvestorTransactionType | str,
        amount: Decimal | int | float | str,
        description: str,
        recorded_by: str = "",
        transaction_date: date | str | None = None,
        notes: str | None = None,
    ) -> InvestorTransaction:
        """Record property income or an expense and credit it to each stake."""
        with self.store.transaction():
            prop = self.store.get_property(property_id)
            transaction, updated = self.investments.record_transaction(
                prop,
                self.store.list_investments(property_id=property_id),
                transaction_type,
                amount,
                description,
                recorded_by=recorded_by,
                transaction_date=transaction_date,
                notes=notes,
            )
            self.store.add_investor_transaction(transaction)
            for investment in updated:
                self.store.save_investment(investment)
        logger.info(
            "Recorded %s of %s on property %s",
            transaction.transaction_type.value,
            transaction.amount,
            property_id,
        )
        return transaction

    # Sale distributions
    def calculate_sale_distribution(
        self,
        property_id: str,
        sale_price: Decimal | int | float | str,
        sale_date: date | str,
    ) -> SaleDistributionCalculation:
        """Preview a sale distribution without writing anything."""
        prop = self.store.get_property(property_id)
        return self.calculator.calculate(
            prop,
            self.store.list_investments(property_id=property_id),
            self.store.list_investor_transactions(property_id),
            sale_price,
            sale_date,
        )

    def execute_sale_distribution(
        self,
        property_id: str,
        sale_price: Decimal | int | float | str,
        sale_date: date | str,
        actor_id: str,
        actor_name: str,
        deal_id: str | None = None,
        notes: str | None = None,
    ) -> list[InvestorDistribution]:
        """Create one pending distribution per active stake and exit the stakes.

        All records are written in one store transaction: either every
        distribution exists and every stake is exited, or nothing changed.
        """
        with self.store.transaction():
            calculation = self.calculate_sale_distribution(property_id, sale_price, sale_date)
            prop = self.store.get_property(property_id)
            stakes = self.store.list_investments(
                property_id=property_id, status=InvestmentStatus.ACTIVE
            )
            distributions, exited = self.distributions.build(
                calculation, prop, stakes, actor_id, actor_name, deal_id=deal_id, notes=notes
            )
            for distribution, investment in zip(distributions, exited):
                self.store.add_distribution(distribution)
                self.store.save_investment(investment)

        logger.info(
            "Sale distribution executed for %d investors on property %s: sale=%s net=%s",
            len(distributions),
            property_id,
            calculation.total_sale_price,
            calculation.net_profit,
            extra=entity_context(property_id=property_id),
        )
        for distribution in distributions:
            self._publish("distribution.created", distribution.distribution_id, distribution)
        return distributions

    def get_distribution(self, distribution_id: str) -> InvestorDistribution:
        return self.store.get_distribution(distribution_id)

    def list_distributions(
        self,
        property_id: str | None = None,
        investor_id: str | None = None,
        status: DistributionStatus | None = None,
    ) -> list[InvestorDistribution]:
        return self.store.list_distributions(
            property_id=property_id, investor_id=investor_id, status=status
        )

    def approve_distribution(self, distribution_id: str, approver: str) -> InvestorDistribution:
        """Record approval of a pending distribution."""
        with self.store.transaction():
            approved = self.distributions.approve(
                self.store.get_distribution(distribution_id), approver
            )
            self.store.save_distribution(approved)
        logger.info(
            "Distribution %s approved by %s",
            distribution_id,
            approver,
            extra=entity_context(distribution_id=distribution_id),
        )
        return approved

    def mark_distribution_paid(
        self,
        distribution_id: str,
        payment_date: date | str,
        payment_method: PaymentMethod | str,
        payment_reference: str | None = None,
    ) -> InvestorDistribution:
        """Move a pending distribution to ``paid``."""
        with self.store.transaction():
            paid = self.distributions.mark_paid(
                self.store.get_distribution(distribution_id),
                payment_date,
                payment_method,
                payment_reference,
            )
            self.store.save_distribution(paid)
        logger.info(
            "Distribution %s marked as paid",
            distribution_id,
            extra=entity_context(distribution_id=distribution_id, investor_id=paid.investor_id),
        )
        self._publish("distribution.paid", distribution_id, paid)
        return paid

    def cancel_distribution(self, distribution_id: str, reason: str) -> InvestorDistribution:
        """Cancel a pending distribution and reactivate the investor's stake."""
        with self.store.transaction():
            distribution = self.store.get_distribution(distribution_id)
            investment = self.store.investments.get(distribution.investment_id)
            cancelled, reverted = self.distributions.cancel(distribution, investment, reason)
            self.store.save_distribution(cancelled)
            if reverted is not None:
                self.store.save_investment(reverted)
        logger.warning(
            "Distribution %s cancelled: %s",
            distribution_id,
            reason,
            extra=entity_context(distribution_id=distribution_id, investor_id=cancelled.investor_id),
        )
        self._publish("distribution.cancelled", distribution_id, cancelled)
        return cancelled

    def reject_distribution(self, distribution_id: str, reason: str) -> InvestorDistribution:
        """Reject a pending distribution during approval; same effect as cancelling."""
        return self.cancel_distribution(distribution_id, reason)

    def property_distribution_summary(self, property_id: str) -> PropertyDistributionSummary:
        return property_distribution_summary(self.store.list_distributions(property_id=property_id))

    def investor_total_returns(self, investor_id: str) -> InvestorReturns:
        return investor_total_returns(self.store.list_distributions(investor_id=investor_id))

