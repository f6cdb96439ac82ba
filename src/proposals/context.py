"""Immutable snapshot of an accepted proposal.

The snapshot is built once, right after the acceptance commits, and is
what the signed document and every post-acceptance task read.  It
round-trips through JSON so it can travel as a Celery task argument.
"""
from __future__ import annotations

import base64
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from estimates import pricing


@dataclass(frozen=True)
class LineItemSnapshot:
    id: str
    option_group: int
    display_name: str
    spec_line: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    is_addon: bool
    is_selected: bool
    sort_order: int = 0
    hcp_option_id: str = ""


@dataclass(frozen=True)
class PartySnapshot:
    """Customer or staff member, flattened to what the tasks need."""

    id: str
    name: str
    email: str = ""


@dataclass(frozen=True)
class FinancingSnapshot:
    id: str
    plan_code: str
    label: str
    fee_pct: Decimal
    months: int
    financed: Decimal
    monthly: Decimal


@dataclass(frozen=True)
class PostSignContext:
    estimate_id: str
    estimate_number: str
    hcp_estimate_id: str
    selected_tier: int
    tier_name: str
    signed_name: str
    signed_at: datetime
    signed_ip: str
    signature_data: str
    subtotal: Decimal
    tax_rate: Decimal | None
    tax_amount: Decimal | None
    total_amount: Decimal
    payment_schedule_type: str
    line_items: tuple = ()
    selected_addon_ids: frozenset = frozenset()
    customer: PartySnapshot | None = None
    assigned_to: PartySnapshot | None = None
    financing: FinancingSnapshot | None = None
    sequence_id: str | None = None
    proposal_pdf_url: str | None = None
    pdf_bytes: bytes | None = field(default=None, repr=False)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_acceptance(cls, estimate, line_items, submission, totals, plan, signed_at, client_ip):
        """Build the snapshot from the committed acceptance.

        This is the one place where optional relations (customer,
        assignee, financing plan, sequence) are turned into optional
        single values.
        """
        customer = estimate.customer
        assignee = estimate.assigned_to
        financing = None
        if plan is not None:
            quote = plan.quote(totals.total)
            financing = FinancingSnapshot(
                id=str(plan.pk),
                plan_code=plan.plan_code,
                label=plan.label,
                fee_pct=quote.fee_pct,
                months=quote.months,
                financed=quote.financed,
                monthly=quote.monthly,
            )
        return cls(
            estimate_id=str(estimate.pk),
            estimate_number=estimate.estimate_number,
            hcp_estimate_id=estimate.hcp_estimate_id or "",
            selected_tier=submission.selected_tier,
            tier_name=estimate.tier_name(submission.selected_tier),
            signed_name=submission.signer_name,
            signed_at=signed_at,
            signed_ip=client_ip,
            signature_data=submission.signature_data,
            subtotal=totals.subtotal,
            tax_rate=estimate.tax_rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total,
            payment_schedule_type=estimate.payment_schedule_type,
            line_items=tuple(
                LineItemSnapshot(
                    id=str(item.pk),
                    option_group=item.option_group,
                    display_name=item.display_name,
                    spec_line=item.spec_line,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                    is_addon=item.is_addon,
                    is_selected=item.is_selected,
                    sort_order=item.sort_order,
                    hcp_option_id=item.hcp_option_id or "",
                )
                for item in line_items
            ),
            selected_addon_ids=frozenset(submission.selected_addon_ids),
            customer=PartySnapshot(str(customer.pk), customer.name, customer.email or "") if customer else None,
            assigned_to=PartySnapshot(str(assignee.pk), assignee.get_full_name(), assignee.email) if assignee else None,
            financing=financing,
            sequence_id=str(estimate.sequence_id) if estimate.sequence_id else None,
        )

    def with_document(self, pdf_bytes, proposal_pdf_url):
        return replace(self, pdf_bytes=pdf_bytes, proposal_pdf_url=proposal_pdf_url)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def customer_label(self):
        """Customer name, falling back to whoever signed."""
        if self.customer and self.customer.name:
            return self.customer.name
        return self.signed_name

    @property
    def tier_line_items(self):
        return sorted(
            pricing.tier_items(self.line_items, self.selected_tier),
            key=lambda item: item.sort_order,
        )

    @property
    def selected_addon_items(self):
        return sorted(
            pricing.selected_addons(self.line_items, self.selected_addon_ids),
            key=lambda item: item.sort_order,
        )

    @property
    def selected_option_id(self):
        """Field service option id of the accepted tier, if any line carries one."""
        for item in self.tier_line_items:
            if item.hcp_option_id:
                return item.hcp_option_id
        return None

    @property
    def other_option_ids(self):
        """Option ids of the tiers that were not chosen, deduplicated, in first-seen order."""
        approved = self.selected_option_id
        seen = []
        for item in self.line_items:
            if item.is_addon or item.option_group == self.selected_tier:
                continue
            if item.hcp_option_id and item.hcp_option_id != approved and item.hcp_option_id not in seen:
                seen.append(item.hcp_option_id)
        return seen

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_payload(self) -> dict:
        data = asdict(self)
        data["signed_at"] = self.signed_at.isoformat()
        data["selected_addon_ids"] = sorted(self.selected_addon_ids)
        data["pdf_bytes"] = base64.b64encode(self.pdf_bytes).decode("ascii") if self.pdf_bytes else None
        return _stringify_decimals(data)

    @classmethod
    def from_payload(cls, payload: dict) -> "PostSignContext":
        data = dict(payload)
        data["signed_at"] = datetime.fromisoformat(data["signed_at"])
        for key in ("subtotal", "total_amount"):
            data[key] = Decimal(data[key])
        for key in ("tax_rate", "tax_amount"):
            data[key] = Decimal(data[key]) if data.get(key) is not None else None
        data["selected_addon_ids"] = frozenset(data.get("selected_addon_ids") or ())
        data["line_items"] = tuple(
            LineItemSnapshot(
                **{
                    **item,
                    "quantity": Decimal(item["quantity"]),
                    "unit_price": Decimal(item["unit_price"]),
                    "line_total": Decimal(item["line_total"]),
                }
            )
            for item in data.get("line_items") or ()
        )
        for key in ("customer", "assigned_to"):
            data[key] = PartySnapshot(**data[key]) if data.get(key) else None
        if data.get("financing"):
            financing = data["financing"]
            data["financing"] = FinancingSnapshot(
                **{
                    **financing,
                    "fee_pct": Decimal(financing["fee_pct"]),
                    "financed": Decimal(financing["financed"]),
                    "monthly": Decimal(financing["monthly"]),
                }
            )
        else:
            data["financing"] = None
        data["pdf_bytes"] = base64.b64decode(data["pdf_bytes"]) if data.get("pdf_bytes") else None
        return cls(**data)


def _stringify_decimals(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {key: _stringify_decimals(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_stringify_decimals(item) for item in value]
    return value
