from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from customers.models import Customer
from estimates.models import Estimate, EstimateLineItem, FinancingPlan, FollowUpEvent, FollowUpSequence
from fieldservice.client import FieldServiceError

SIGNATURE = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUg=="
FAKE_PDF = b"%PDF-1.4 signed proposal"


class FakeFieldServiceClient:
    """Records every call; individual methods can be told to fail."""

    def __init__(self):
        self.calls = []
        self.fail_on = set()

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise FieldServiceError(f"{name} exploded")

    def approve_option(self, option_id):
        self._record("approve", option_id)
        return "job-1"

    def decline_options(self, option_ids):
        self._record("decline", list(option_ids))
        return {}

    def upload_option_attachment(self, estimate_id, option_id, content, filename):
        self._record("attachment", estimate_id, option_id, filename)
        return {}

    def add_option_note(self, estimate_id, option_id, content):
        self._record("note", estimate_id, option_id, content)
        return {}

    @property
    def call_names(self):
        return [call[0] for call in self.calls]


@pytest.fixture(autouse=True)
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / "media")
    return settings.MEDIA_ROOT


@pytest.fixture(autouse=True)
def fake_pdf(monkeypatch):
    """WeasyPrint is not exercised by the test-suite."""
    rendered = []

    def render(template_name, context):
        rendered.append((template_name, context))
        return FAKE_PDF

    monkeypatch.setattr("proposals.documents.render_pdf_bytes", render)
    return rendered


@pytest.fixture
def field_service(monkeypatch):
    client = FakeFieldServiceClient()
    monkeypatch.setattr("proposals.fanout.get_client", lambda: client)
    monkeypatch.setattr("estimates.services.get_client", lambda: client)
    return client


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@test.com",
        password="testpass123",
        first_name="Admin",
        last_name="User",
        role=User.Role.ADMIN,
    )


@pytest.fixture
def comfort_pro(db):
    return User.objects.create_user(
        email="pro@test.com",
        password="testpass123",
        first_name="Dana",
        last_name="Reyes",
        role=User.Role.COMFORT_PRO,
    )


@pytest.fixture
def other_comfort_pro(db):
    return User.objects.create_user(
        email="pro2@test.com",
        password="testpass123",
        first_name="Sam",
        last_name="Ortiz",
        role=User.Role.COMFORT_PRO,
    )


@pytest.fixture
def csr_user(db):
    return User.objects.create_user(
        email="csr@test.com",
        password="testpass123",
        first_name="Casey",
        last_name="Lee",
        role=User.Role.CSR,
    )


@pytest.fixture
def customer(db):
    return Customer.objects.create(
        name="Jordan Miller",
        email="jordan.miller@test.com",
        phone="+14255550100",
        address="12 Main St, Monroe, WA",
    )


@pytest.fixture
def financing_plan(db):
    return FinancingPlan.objects.create(
        plan_code="60-MONTH",
        label="60 months",
        fee_pct=Decimal("0.0300"),
        months=60,
        is_default=True,
    )


@pytest.fixture
def sequence(db):
    return FollowUpSequence.objects.create(
        name="Standard follow-up",
        is_default=True,
        steps=[
            {"day_offset": 1, "channel": "email", "template": "Checking in"},
            {"day_offset": 3, "channel": "sms", "template": "Any questions?"},
            {"day_offset": 7, "channel": "call", "template": "Call"},
        ],
    )


@pytest.fixture
def estimate(customer, comfort_pro, sequence):
    return Estimate.objects.create(
        estimate_number="EST-1001",
        customer=customer,
        assigned_to=comfort_pro,
        status=Estimate.Status.ACTIVE,
        hcp_estimate_id="hcp-est-1",
        tax_rate=Decimal("0.08500"),
        sent_date=timezone.localdate(),
        auto_decline_date=timezone.localdate() + timedelta(days=30),
        sequence=sequence,
        tier_metadata=[
            {"tier_number": 1, "tier_name": "Good", "is_recommended": False},
            {"tier_number": 2, "tier_name": "Better", "is_recommended": True},
            {"tier_number": 3, "tier_name": "Best", "is_recommended": False},
        ],
    )


@pytest.fixture
def line_items(estimate):
    def item(**kwargs):
        return EstimateLineItem.objects.create(estimate=estimate, **kwargs)

    return {
        "tier1_unit": item(
            option_group=1, display_name="Heat pump 3 ton", unit_price=Decimal("3700.00"),
            cost=Decimal("2100.00"), sort_order=1, hcp_option_id="opt-1",
        ),
        "tier1_labor": item(
            option_group=1, display_name="Installation labor", unit_price=Decimal("500.00"),
            cost=Decimal("250.00"), sort_order=2, hcp_option_id="opt-1",
        ),
        "tier2_unit": item(
            option_group=2, display_name="Variable speed heat pump", unit_price=Decimal("6900.00"),
            sort_order=1, hcp_option_id="opt-2",
        ),
        "tier3_unit": item(
            option_group=3, display_name="Premium heat pump", unit_price=Decimal("9800.00"),
            sort_order=1, hcp_option_id="opt-3",
        ),
        "thermostat": item(
            option_group=1, display_name="Smart thermostat", unit_price=Decimal("300.00"),
            cost=Decimal("120.00"), is_addon=True, sort_order=10,
        ),
        "surge": item(
            option_group=1, display_name="Surge protector", unit_price=Decimal("150.00"),
            is_addon=True, is_selected=True, sort_order=11,
        ),
    }


@pytest.fixture
def follow_up_events(estimate):
    return [
        FollowUpEvent.objects.create(
            estimate=estimate, sequence_step_index=0, status=FollowUpEvent.Status.SENT,
        ),
        FollowUpEvent.objects.create(
            estimate=estimate, sequence_step_index=1, status=FollowUpEvent.Status.SCHEDULED,
        ),
        FollowUpEvent.objects.create(
            estimate=estimate, sequence_step_index=2, status=FollowUpEvent.Status.PENDING_REVIEW,
        ),
    ]


@pytest.fixture
def sign_payload(line_items, financing_plan):
    return {
        "customer_name": "Jordan Miller",
        "signature_data": SIGNATURE,
        "selected_tier": 1,
        "selected_addon_ids": [str(line_items["thermostat"].pk)],
        "selected_financing_plan_id": str(financing_plan.pk),
    }


@pytest.fixture
def sign_url(estimate):
    return f"/api/v1/proposals/{estimate.proposal_token}/sign/"
