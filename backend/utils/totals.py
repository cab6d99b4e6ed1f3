from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

MONEY_PLACES = Decimal("0.01")
QTY_PLACES = Decimal("0.0001")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() first so floats never leak binary noise into money
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def round_qty(value) -> Decimal:
    return to_decimal(value).quantize(QTY_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DocumentTotals:
    sub_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    net_total: Decimal


def calculate_totals(lines: Iterable) -> DocumentTotals:
    """Sum a document's lines.

    Each line only needs ``quantity`` and ``unit_price``; ``discount_amount`` and
    ``tax_amount`` are optional. Lines may be objects or dicts.
    ``net_total`` is derived from the already rounded components, so
    ``net_total == sub_total - discount_amount + tax_amount`` holds exactly.
    """
    sub_total = ZERO
    discount_amount = ZERO
    tax_amount = ZERO

    for line in lines:
        sub_total += to_decimal(_field(line, "quantity")) * to_decimal(_field(line, "unit_price"))
        discount_amount += to_decimal(_field(line, "discount_amount"))
        tax_amount += to_decimal(_field(line, "tax_amount"))

    sub_total = round_money(sub_total)
    discount_amount = round_money(discount_amount)
    tax_amount = round_money(tax_amount)
    return DocumentTotals(
        sub_total=sub_total,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        net_total=sub_total - discount_amount + tax_amount,
    )


def _field(line, name: str):
    if isinstance(line, dict):
        return line.get(name)
    return getattr(line, name, None)


def parse_discount(discount_text: Optional[str], amount) -> Decimal:
    """Turn a discount expression into an amount.

    ``"100"`` is a fixed amount, ``"10%"`` a percentage of ``amount`` and
    ``"5%+2%"`` compounds: the second percentage applies to what is left after
    the first.
    """
    if not discount_text or not discount_text.strip():
        return ZERO
    text = discount_text.strip()
    amount = to_decimal(amount)

    if "%" not in text:
        return round_money(_parse_number(text))

    remaining = amount
    for part in text.split("+"):
        pct = _parse_number(part.replace("%", ""))
        remaining -= remaining * pct / Decimal("100")
    return round_money(amount - remaining)


def _parse_number(raw: str) -> Decimal:
    try:
        return Decimal(raw.strip())
    except ArithmeticError:
        return ZERO


def calculate_line_tax(taxable_amount, tax_rate) -> Decimal:
    """Tax-exclusive tax on a line amount, rounded to money precision."""
    return round_money(to_decimal(taxable_amount) * to_decimal(tax_rate) / Decimal("100"))


def prorate(amount, part, whole) -> Decimal:
    """Share of ``amount`` that ``part`` of ``whole`` accounts for."""
    whole = to_decimal(whole)
    if whole == ZERO:
        return ZERO
    return round_money(to_decimal(amount) * to_decimal(part) / whole)
