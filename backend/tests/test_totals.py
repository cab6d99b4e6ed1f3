from decimal import Decimal

from utils.totals import (
    calculate_line_tax,
    calculate_totals,
    parse_discount,
    prorate,
    round_money,
    to_decimal,
)


def test_net_total_is_subtotal_minus_discount_plus_tax():
    lines = [
        {"quantity": Decimal("3"), "unit_price": Decimal("19.99"), "discount_amount": Decimal("5.00"), "tax_amount": Decimal("3.30")},
        {"quantity": Decimal("1.5"), "unit_price": Decimal("10.01"), "discount_amount": None, "tax_amount": Decimal("0.90")},
    ]
    totals = calculate_totals(lines)

    assert totals.sub_total == Decimal("74.99")  # 59.97 + 15.015
    assert totals.discount_amount == Decimal("5.00")
    assert totals.tax_amount == Decimal("4.20")
    assert totals.net_total == totals.sub_total - totals.discount_amount + totals.tax_amount
    assert totals.net_total == Decimal("74.19")


def test_totals_accept_objects_and_floats_without_drift():
    class Line:
        def __init__(self, quantity, unit_price):
            self.quantity = quantity
            self.unit_price = unit_price

    totals = calculate_totals([Line(0.1, 3), Line(0.2, 3)])

    assert totals.sub_total == Decimal("0.90")
    assert totals.discount_amount == Decimal("0.00")
    assert totals.net_total == Decimal("0.90")


def test_empty_document_totals_are_zero():
    totals = calculate_totals([])
    assert totals.net_total == Decimal("0.00")


def test_round_money_is_half_up():
    assert round_money("2.675") == Decimal("2.68")
    assert round_money("-2.675") == Decimal("-2.68")
    assert round_money(None) == Decimal("0.00")


def test_to_decimal_goes_through_str_for_floats():
    assert to_decimal(0.1) == Decimal("0.1")


def test_parse_discount_fixed_and_percent():
    assert parse_discount("100", Decimal("1000")) == Decimal("100.00")
    assert parse_discount("10%", Decimal("1000")) == Decimal("100.00")
    assert parse_discount("", Decimal("1000")) == Decimal("0")
    assert parse_discount(None, Decimal("1000")) == Decimal("0")


def test_parse_discount_compounds_percentages():
    # 1000 - 5% = 950, then 2% of 950 = 19 -> total 69
    assert parse_discount("5%+2%", Decimal("1000")) == Decimal("69.00")


def test_parse_discount_ignores_garbage():
    assert parse_discount("abc", Decimal("1000")) == Decimal("0.00")


def test_line_tax_is_exclusive_and_rounded():
    assert calculate_line_tax(Decimal("99.99"), Decimal("6")) == Decimal("6.00")
    assert calculate_line_tax(Decimal("100"), Decimal("0")) == Decimal("0.00")


def test_prorate_share_of_amount():
    assert prorate(Decimal("10.00"), Decimal("4"), Decimal("10")) == Decimal("4.00")
    assert prorate(Decimal("10.00"), Decimal("1"), Decimal("3")) == Decimal("3.33")
    assert prorate(Decimal("10.00"), Decimal("1"), Decimal("0")) == Decimal("0")
