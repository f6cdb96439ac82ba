"""Seed demo data for trying the proposal page end to end.

Creates staff users, the standard financing plans, a follow-up sequence
and a handful of three-tier estimates whose proposal links can be opened
and signed from the SPA.
"""

from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from core.verification import build_proposal_url

DEMO_PASSWORD = "demo-pass-123"

PLANS = [
    # plan_code, label, fee_pct, months, apr, is_default
    ("SAC-12", "12 months same as cash", Decimal("0.0600"), 12, Decimal("0"), False),
    ("60-MONTH", "60 months at 7.99% APR", Decimal("0.0300"), 60, Decimal("7.990"), True),
    ("120-MONTH", "120 months at 9.99% APR", Decimal("0.0850"), 120, Decimal("9.990"), False),
]

TIERS = [
    # tier, name, equipment, unit price, unit cost
    (1, "Good", "14.3 SEER2 heat pump system", Decimal("7450.00"), Decimal("4100.00")),
    (2, "Better", "16 SEER2 two-stage heat pump system", Decimal("10900.00"), Decimal("6150.00")),
    (3, "Best", "Variable speed inverter heat pump system", Decimal("14800.00"), Decimal("8300.00")),
]

ADDONS = [
    ("Smart thermostat", Decimal("395.00"), Decimal("160.00")),
    ("Whole-home surge protector", Decimal("289.00"), Decimal("95.00")),
    ("MERV 13 media filter cabinet", Decimal("549.00"), Decimal("210.00")),
]

CUSTOMERS = [
    ("Jordan Miller", "jordan.miller@example.com", "+14255550100"),
    ("Priya Natarajan", "priya.n@example.com", "+14255550141"),
    ("Luis Herrera", "luis.herrera@example.com", "+14255550177"),
    ("Emma Thompson", "emma.t@example.com", "+14255550112"),
]


class Command(BaseCommand):
    help = "Seed demo staff, financing plans and estimates with live proposal links."

    def add_arguments(self, parser):
        parser.add_argument(
            "--estimates",
            type=int,
            default=4,
            help="How many estimates to generate (default: 4).",
        )
        parser.add_argument(
            "--seed",
            type=int,
            default=42,
            help="Random seed for reproducible demo generation (default: 42).",
        )
        parser.add_argument(
            "--tax-rate",
            default="0.092",
            help="Sales tax rate applied to the demo estimates (default: 0.092).",
        )

    def handle(self, *args, **options):
        from accounts.models import User
        from customers.models import Customer
        from estimates.models import Estimate, EstimateLineItem, FinancingPlan, FollowUpSequence

        rng = random.Random(options["seed"])
        tax_rate = Decimal(options["tax_rate"])
        today = timezone.localdate()

        with transaction.atomic():
            admin, admin_created = User.objects.get_or_create(
                email="admin@demo.local",
                defaults={"first_name": "Avery", "last_name": "Admin", "role": User.Role.ADMIN, "is_staff": True},
            )
            pro, pro_created = User.objects.get_or_create(
                email="pro@demo.local",
                defaults={"first_name": "Dana", "last_name": "Reyes", "role": User.Role.COMFORT_PRO},
            )
            for user, is_new in ((admin, admin_created), (pro, pro_created)):
                if is_new:
                    user.set_password(DEMO_PASSWORD)
                    user.save(update_fields=["password"])

            for order, (code, label, fee_pct, months, apr, is_default) in enumerate(PLANS):
                FinancingPlan.objects.update_or_create(
                    plan_code=code,
                    defaults={
                        "label": label,
                        "fee_pct": fee_pct,
                        "months": months,
                        "apr": apr,
                        "is_default": is_default,
                        "display_order": order,
                    },
                )

            sequence, _ = FollowUpSequence.objects.get_or_create(
                name="Standard 14-day follow-up",
                defaults={
                    "is_default": True,
                    "steps": [
                        {"day_offset": 1, "channel": "email", "template": "Thanks for meeting with us"},
                        {"day_offset": 3, "channel": "sms", "template": "Any questions about your options?"},
                        {"day_offset": 7, "channel": "call", "template": "Check-in call"},
                        {"day_offset": 14, "channel": "email", "template": "Your proposal expires soon"},
                    ],
                },
            )

            created = []
            start = Estimate.objects.count() + 1
            for offset in range(options["estimates"]):
                name, email, phone = CUSTOMERS[offset % len(CUSTOMERS)]
                customer, _ = Customer.objects.get_or_create(email=email, defaults={"name": name, "phone": phone})
                sent = today - timedelta(days=rng.randint(0, 10))
                estimate = Estimate.objects.create(
                    estimate_number=f"DEMO-{start + offset:04d}",
                    customer=customer,
                    assigned_to=pro,
                    status=Estimate.Status.ACTIVE,
                    hcp_estimate_id=f"demo-est-{start + offset}",
                    tax_rate=tax_rate,
                    sent_date=sent,
                    auto_decline_date=sent + timedelta(days=30),
                    sequence=sequence,
                    payment_schedule_type=rng.choice(Estimate.PaymentSchedule.values),
                    tier_metadata=[
                        {"tier_number": tier, "tier_name": tier_name, "is_recommended": tier == 2}
                        for tier, tier_name, *_ in TIERS
                    ],
                )
                for tier, _, equipment, price, cost in TIERS:
                    EstimateLineItem.objects.create(
                        estimate=estimate,
                        option_group=tier,
                        display_name=equipment,
                        unit_price=price,
                        cost=cost,
                        sort_order=1,
                        hcp_option_id=f"demo-opt-{start + offset}-{tier}",
                    )
                for sort_order, (addon, price, cost) in enumerate(ADDONS, start=10):
                    EstimateLineItem.objects.create(
                        estimate=estimate,
                        option_group=1,
                        display_name=addon,
                        unit_price=price,
                        cost=cost,
                        is_addon=True,
                        sort_order=sort_order,
                    )
                created.append(estimate)

        for estimate in created:
            self.stdout.write(f"{estimate.estimate_number}: {build_proposal_url(estimate.proposal_token)}")
        self.stdout.write(self.style.SUCCESS(
            f"Seeded {len(created)} estimates, {len(PLANS)} financing plans. "
            f"Staff logins use password '{DEMO_PASSWORD}'."
        ))
