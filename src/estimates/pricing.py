"""Pricing arithmetic for tiered proposals.

Everything that turns line items and a financing plan into money lives
here: the public proposal page, the acceptance pipeline, the signed PDF
and the internal quote builder all call these functions, so they always
agree to the cent.

The module is pure.  Line items can be model instances or
:class:`PricedItem` values; anything exposing ``id``, ``option_group``,
``line_total``, ``is_addon`` and optionally ``cost``/``quantity`` works.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

ZERO = Decimal("0")
CENT = Decimal("0.01")
WHOLE = Decimal("1")
TENTH = Decimal("0.1")
HUNDRED = Decimal("100")


class PricingError(ValueError):
    """Raised when pricing inputs cannot produce a meaningful amount."""


def to_decimal(value) -> Decimal:
    """Coerce numbers, strings and ``None`` to ``Decimal`` (``None`` -> 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise PricingError(f"Not a number: {value!r}") from exc


def round_cents(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedItem:
    """Minimal line item accepted by the pricing functions."""

    id: str
    option_group: int
    line_total: Decimal
    is_addon: bool = False
    cost: Decimal | None = None
    quantity: Decimal = Decimal("1")


@dataclass(frozen=True)
class Totals:
    tier_subtotal: Decimal
    addon_total: Decimal
    subtotal: Decimal
    tax_amount: Decimal | None
    total: Decimal


@dataclass(frozen=True)
class FinancingQuote:
    financed: Decimal
    monthly: Decimal
    months: int
    fee_pct: Decimal


def _item_id(item) -> str:
    return str(item.id)


def tier_items(items: Iterable, tier: int) -> list:
    """Non-add-on items belonging to *tier*."""
    return [i for i in items if i.option_group == tier and not i.is_addon]


def selected_addons(items: Iterable, selected_addon_ids: Iterable) -> list:
    """Add-on items whose id is in *selected_addon_ids*, regardless of tier.

    Ids that match no add-on are ignored.
    """
    wanted = {str(addon_id) for addon_id in selected_addon_ids}
    return [i for i in items if i.is_addon and _item_id(i) in wanted]


def tier_subtotal(items: Iterable, tier: int) -> Decimal:
    return round_cents(sum((to_decimal(i.line_total) for i in tier_items(items, tier)), ZERO))


def addon_total(items: Iterable, selected_addon_ids: Iterable) -> Decimal:
    return round_cents(sum((to_decimal(i.line_total) for i in selected_addons(items, selected_addon_ids)), ZERO))


def compute_totals(items: Iterable, tier: int, selected_addon_ids: Iterable = (), tax_rate=None) -> Totals:
    """Compute subtotal, tax and total for one tier plus selected add-ons.

    ``tax_amount`` stays ``None`` when *tax_rate* is ``None`` (the total
    then equals the subtotal); a rate of zero yields a zero tax amount.
    """
    items = list(items)
    base = tier_subtotal(items, tier)
    addons = addon_total(items, selected_addon_ids)
    subtotal = base + addons
    if tax_rate is None:
        tax_amount = None
        total = subtotal
    else:
        tax_amount = round_cents(subtotal * to_decimal(tax_rate))
        total = subtotal + tax_amount
    return Totals(
        tier_subtotal=base,
        addon_total=addons,
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=total,
    )


def validate_financing_terms(fee_pct, months) -> tuple[Decimal, int]:
    """Return normalized ``(fee_pct, months)`` or raise :class:`PricingError`."""
    fee = to_decimal(fee_pct)
    try:
        term = int(months)
    except (TypeError, ValueError) as exc:
        raise PricingError(f"Financing term must be a whole number of months, got {months!r}") from exc
    if term <= 0:
        raise PricingError(f"Financing term must be positive, got {term}")
    if fee < ZERO or fee >= WHOLE:
        raise PricingError(f"Financing fee must be in [0, 1), got {fee}")
    return fee, term


def financing_quote(total, fee_pct, months) -> FinancingQuote:
    """Monthly payment for *total* under a plan.

    The financed amount is ``total / (1 - fee_pct)`` and the monthly
    payment is that amount spread over *months*, rounded to the nearest
    whole currency unit (halves round up).
    """
    fee, term = validate_financing_terms(fee_pct, months)
    financed = to_decimal(total) / (WHOLE - fee)
    monthly = (financed / Decimal(term)).quantize(WHOLE, rounding=ROUND_HALF_UP)
    return FinancingQuote(
        financed=round_cents(financed),
        monthly=monthly,
        months=term,
        fee_pct=fee,
    )


def monthly_payment(total, fee_pct, months) -> Decimal:
    return financing_quote(total, fee_pct, months).monthly


def selection_cost(items: Iterable, tier: int, selected_addon_ids: Iterable = ()) -> Decimal:
    """Internal cost of the tier plus selected add-ons (unit cost x quantity)."""
    items = list(items)
    chosen = tier_items(items, tier) + selected_addons(items, selected_addon_ids)
    return round_cents(
        sum((to_decimal(getattr(i, "cost", None)) * to_decimal(getattr(i, "quantity", 1)) for i in chosen), ZERO)
    )


def margin_percent(price, cost) -> Decimal | None:
    """Gross margin as a percentage of *price*, one decimal place; ``None`` when price is zero."""
    price = to_decimal(price)
    if price <= ZERO:
        return None
    return ((price - to_decimal(cost)) / price * HUNDRED).quantize(TENTH, rounding=ROUND_HALF_UP)
