from decimal import Decimal

import pytest

from estimates import pricing
from estimates.pricing import PricedItem

ITEMS = [
    PricedItem(id="a", option_group=1, line_total=Decimal("3700.00"), cost=Decimal("2100.00")),
    PricedItem(id="b", option_group=1, line_total=Decimal("500.00"), cost=Decimal("250.00")),
    PricedItem(id="c", option_group=2, line_total=Decimal("6900.00")),
    PricedItem(id="addon-1", option_group=1, line_total=Decimal("300.00"), is_addon=True, cost=Decimal("120.00")),
    PricedItem(id="addon-2", option_group=2, line_total=Decimal("150.00"), is_addon=True),
]


def test_worked_example_tier_addon_tax_and_financing():
    totals = pricing.compute_totals(ITEMS, 1, ["addon-1"], tax_rate=Decimal("0.085"))

    assert totals.tier_subtotal == Decimal("4200.00")
    assert totals.addon_total == Decimal("300.00")
    assert totals.subtotal == Decimal("4500.00")
    assert totals.tax_amount == Decimal("382.50")
    assert totals.total == Decimal("4882.50")

    quote = pricing.financing_quote(totals.total, Decimal("0.03"), 60)
    assert quote.financed == Decimal("5033.51")
    assert quote.monthly == Decimal("84")
    assert quote.months == 60


def test_total_equals_subtotal_plus_tax():
    totals = pricing.compute_totals(ITEMS, 2, ["addon-1", "addon-2"], tax_rate=Decimal("0.0925"))

    assert totals.subtotal == totals.tier_subtotal + totals.addon_total
    assert totals.total == totals.subtotal + totals.tax_amount


def test_tax_amount_is_null_without_rate_and_zero_with_zero_rate():
    untaxed = pricing.compute_totals(ITEMS, 1)
    zero_rated = pricing.compute_totals(ITEMS, 1, tax_rate=0)

    assert untaxed.tax_amount is None
    assert untaxed.total == untaxed.subtotal
    assert zero_rated.tax_amount == Decimal("0.00")
    assert zero_rated.total == zero_rated.subtotal


def test_addons_count_regardless_of_tier_and_unknown_ids_are_ignored():
    totals = pricing.compute_totals(ITEMS, 1, ["addon-2", "does-not-exist", "c"])

    # addon-2 belongs to tier 2 but is still an add-on; "c" is not an add-on.
    assert totals.addon_total == Decimal("150.00")
    assert totals.tier_subtotal == Decimal("4200.00")


def test_empty_tier_totals_zero():
    totals = pricing.compute_totals(ITEMS, 3, tax_rate=Decimal("0.1"))

    assert totals.subtotal == Decimal("0.00")
    assert totals.total == Decimal("0.00")


def test_tax_rounds_half_up_to_cents():
    items = [PricedItem(id="x", option_group=1, line_total=Decimal("10.10"))]

    totals = pricing.compute_totals(items, 1, tax_rate=Decimal("0.05"))

    # 10.10 * 0.05 = 0.505
    assert totals.tax_amount == Decimal("0.51")


def test_monthly_payment_rounds_to_whole_units():
    assert pricing.monthly_payment(Decimal("1200"), Decimal("0"), 12) == Decimal("100")
    # 1000 / 0.9 / 24 = 46.296...
    assert pricing.monthly_payment(Decimal("1000"), Decimal("0.10"), 24) == Decimal("46")
    # 30 / 4 = 7.5 rounds up
    assert pricing.monthly_payment(Decimal("30"), Decimal("0"), 4) == Decimal("8")


def test_monthly_payment_is_monotonic_in_total_and_fee():
    low = pricing.monthly_payment(Decimal("5000"), Decimal("0.02"), 60)
    higher_total = pricing.monthly_payment(Decimal("9000"), Decimal("0.02"), 60)
    higher_fee = pricing.monthly_payment(Decimal("5000"), Decimal("0.12"), 60)

    assert higher_total >= low
    assert higher_fee >= low


@pytest.mark.parametrize("fee_pct, months", [
    (Decimal("0.03"), 0),
    (Decimal("0.03"), -12),
    (Decimal("1"), 60),
    (Decimal("1.5"), 60),
    (Decimal("-0.01"), 60),
])
def test_invalid_financing_terms_are_rejected(fee_pct, months):
    with pytest.raises(pricing.PricingError):
        pricing.monthly_payment(Decimal("1000"), fee_pct, months)


def test_pricing_error_is_a_value_error():
    with pytest.raises(ValueError):
        pricing.validate_financing_terms("0.5", "twelve")


def test_selection_cost_and_margin():
    cost = pricing.selection_cost(ITEMS, 1, ["addon-1"])

    assert cost == Decimal("2470.00")
    assert pricing.margin_percent(Decimal("4500.00"), cost) == Decimal("45.1")


def test_margin_is_none_for_zero_price():
    assert pricing.margin_percent(Decimal("0"), Decimal("10")) is None


def test_to_decimal_rejects_garbage():
    with pytest.raises(pricing.PricingError):
        pricing.to_decimal("12,50 $")
