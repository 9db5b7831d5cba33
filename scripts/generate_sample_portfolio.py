#!/usr/bin/env python3
"""Run a sample back-office portfolio through the engine.

Creates buyers with installment plans, records payments and receipts,
sells an investor-owned property and pays out the distributions. Every
domain event is written to JSON Lines files under the output directory,
or to the console or Kafka when asked.
"""

import argparse
import random
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from faker import Faker

from payplan import PaymentPlanEngine
from payplan.config import EngineConfig
from payplan.investments import StakeRequest
from payplan.logging import get_logger, setup_logging
from payplan.models import InstallmentStatus, InvestorTransactionType, OwnershipType
from payplan.sinks import ConsoleSink, JsonFileSink, KafkaSink

logger = get_logger(__name__)

FREQUENCIES = ["monthly", "quarterly", "bi-annual", "annual"]
EXPENSES = [
    InvestorTransactionType.EXPENSE_MAINTENANCE,
    InvestorTransactionType.EXPENSE_TAX,
    InvestorTransactionType.EXPENSE_UTILITY,
]


def build_buyer_plans(engine: PaymentPlanEngine, fake: Faker, num_plans: int) -> None:
    """Create plans for agency-listed properties and pay some installments."""
    for n in range(num_plans):
        property_id = f"prop-sale-{n:03d}"
        engine.register_property(
            property_id, fake.street_name(), fake.address(), OwnershipType.AGENCY
        )

        total = Decimal(random.randint(40, 300) * 50_000)
        down = (total * Decimal(random.choice(["0.10", "0.20", "0.25"]))).quantize(Decimal("1"))
        buyer_name = fake.name()
        plan = engine.create_plan(
            sale_cycle_id=f"cycle-{n:03d}",
            property_id=property_id,
            buyer_id=f"buyer-{n:03d}",
            buyer_name=buyer_name,
            total_amount=total,
            down_payment=down,
            number_of_installments=random.choice([4, 6, 12, 24]),
            start_date=date.today() - timedelta(days=random.randint(60, 400)),
            frequency=random.choice(FREQUENCIES),
            created_by="agent-001",
        )

        for installment in plan.installments[: random.randint(0, len(plan.installments))]:
            if installment.due_date > date.today():
                break
            amount = installment.amount
            if random.random() < 0.2:
                amount = (amount / 2).quantize(Decimal("0.01"))
            engine.record_payment(
                plan.plan_id,
                installment.installment_id,
                amount,
                installment.due_date,
                "bank-transfer",
                idempotency_key=f"{plan.plan_id}:{installment.installment_number}",
            )
            engine.issue_receipt(
                sale_cycle_id=plan.sale_cycle_id,
                property_id=property_id,
                installment_plan_id=plan.plan_id,
                installment_id=installment.installment_id,
                from_name=buyer_name,
                from_contact=fake.phone_number(),
                to_name="Agency Accounts",
                to_contact="accounts@example.com",
                amount=amount,
                payment_date=installment.due_date,
                payment_method="bank-transfer",
                bank_name=fake.company(),
                purpose="installment",
                issued_by="agent-001",
                issued_by_name="Front Desk",
            )

    swept = engine.sweep_overdue()
    logger.info("Overdue sweep touched %d plans", len(swept))


def build_investor_sale(engine: PaymentPlanEngine, fake: Faker) -> None:
    """Syndicate one property across investors, book income, then sell it."""
    property_id = "prop-inv-001"
    engine.register_property(property_id, "Investor Residence", fake.address())

    shares = [Decimal("50"), Decimal("30"), Decimal("20")]
    price = Decimal("20000000")
    engine.allocate_shares(
        property_id,
        [
            StakeRequest(
                investor_id=f"inv-{i:02d}",
                investor_name=fake.name(),
                share_percentage=share,
                investment_amount=price * share / 100,
            )
            for i, share in enumerate(shares)
        ],
        acquisition_price=price,
    )

    for _ in range(12):
        engine.record_investor_transaction(
            property_id, InvestorTransactionType.RENTAL_INCOME, 150_000, "Monthly rent"
        )
    for kind in EXPENSES:
        engine.record_investor_transaction(
            property_id, kind, random.randint(10, 80) * 1_000, kind.value.replace("-", " ")
        )

    distributions = engine.execute_sale_distribution(
        property_id,
        sale_price=Decimal("24500000"),
        sale_date=date.today(),
        actor_id="manager-001",
        actor_name="Portfolio Manager",
    )
    for distribution in distributions:
        engine.approve_distribution(distribution.distribution_id, "finance-001")
        engine.mark_distribution_paid(
            distribution.distribution_id, date.today(), "bank-transfer", fake.bothify("TRX-####")
        )

    summary = engine.property_distribution_summary(property_id)
    logger.info(
        "Distributed %s to %d investors", summary.total_distributed, summary.total_investors
    )


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run a sample portfolio through payplan")
    parser.add_argument("--plans", type=int, default=10, help="Number of buyer plans")
    parser.add_argument("--output", type=Path, default=None, help="Output directory")
    parser.add_argument("--console", action="store_true", help="Print events instead")
    parser.add_argument("--kafka", action="store_true", help="Publish events to Kafka (KAFKA_* settings)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    config = EngineConfig.from_env()
    config.seed = args.seed
    setup_logging(config.log_level, config.log_format)

    random.seed(args.seed)
    fake = Faker()
    fake.seed_instance(args.seed)

    if args.kafka:
        sink = KafkaSink(config.kafka)
    elif args.console:
        sink = ConsoleSink(pretty=False)
    else:
        sink = JsonFileSink(args.output or config.output.json_output_dir, config.output.pretty_json)

    engine = PaymentPlanEngine(config=config, sink=sink)
    build_buyer_plans(engine, fake, args.plans)
    build_investor_sale(engine, fake)
    sink.close()

    overdue = sum(
        1
        for plan in engine.list_plans()
        for i in plan.installments
        if i.status == InstallmentStatus.OVERDUE
    )
    logger.info("Store summary: %s (overdue installments: %d)", engine.store.summary(), overdue)


if __name__ == "__main__":
    main()
