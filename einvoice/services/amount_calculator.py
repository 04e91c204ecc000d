"""
Invoice amount calculation: per-line VAT and invoice totals.
Decimal only, ROUND_HALF_UP to 2 places on every monetary output.
Totals are compared with a 0.01 tolerance downstream, so rounding must not vary.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, NamedTuple

from einvoice.exceptions import InvalidLineError

TOTALS_TOLERANCE = Decimal("0.01")


class Totals(NamedTuple):
    net_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def _d(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value) -> Decimal:
    return _d(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def compute_line(quantity, unit_price, tax_rate_percent) -> tuple[Decimal, Decimal]:
    """
    Return (tax_amount, line_total) for one line.

    tax_amount = round2(quantity * unit_price * rate / 100)
    line_total = round2(quantity * unit_price) + tax_amount
    """
    quantity = _d(quantity)
    unit_price = _d(unit_price)
    rate = _d(tax_rate_percent)
    if quantity <= 0:
        raise InvalidLineError(f"Quantity must be greater than 0 (got {quantity}).")
    if unit_price <= 0:
        raise InvalidLineError(f"Unit price must be greater than 0 (got {unit_price}).")
    if rate < 0 or rate > 100:
        raise InvalidLineError(f"Tax rate must be between 0 and 100 (got {rate}).")

    gross = quantity * unit_price
    tax_amount = round2(gross * rate / Decimal("100"))
    line_total = round2(gross + tax_amount)
    return tax_amount, line_total


def compute_totals(lines: Iterable) -> Totals:
    """
    Sum net, tax and total over lines (objects with quantity, unit_price,
    tax_rate_percent). Each line is rounded first, so order never matters.
    """
    net = Decimal("0.00")
    tax = Decimal("0.00")
    for line in lines:
        line_tax, _ = compute_line(line.quantity, line.unit_price, line.tax_rate_percent)
        net += round2(_d(line.quantity) * _d(line.unit_price))
        tax += line_tax
    return Totals(round2(net), round2(tax), round2(net + tax))


def totals_discrepancies(invoice, tolerance: Decimal = TOTALS_TOLERANCE) -> list[str]:
    """
    Compare declared invoice totals against the computed ones.
    Returns one message per field that differs by more than tolerance; empty if consistent.
    """
    computed = compute_totals(invoice.lines)
    declared = {
        "net_amount": _d(invoice.net_amount),
        "tax_amount": _d(invoice.tax_amount),
        "total_amount": _d(invoice.total_amount),
    }
    errors: list[str] = []
    for name, declared_value in declared.items():
        expected = getattr(computed, name)
        if abs(declared_value - expected) > tolerance:
            errors.append(
                f"{name} declared {declared_value} does not match computed {expected}"
            )
    if abs(declared["net_amount"] + declared["tax_amount"] - declared["total_amount"]) > tolerance:
        errors.append("total_amount must equal net_amount + tax_amount")
    return errors
