"""
Standardized financial calculation.

Rules:
  1. VAT is 16% of the base price.
  2. Total = base + VAT.
  3. Platform commission = 15% of the base price.
  4. Vendor/beautician payout = 85% of the base price.

Every figure is rounded half-up to cents. Negative or non-numeric input is
treated as a base of zero, so both entry points are total.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.schemas import FinancialBreakdown

VAT_RATE = Decimal("0.16")
PLATFORM_COMMISSION_RATE = Decimal("0.15")
VENDOR_PAYOUT_RATE = Decimal("0.85")

CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _coerce_base(amount: object) -> Decimal:
    try:
        base = Decimal(str(amount)) if amount is not None else Decimal("0")
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not base.is_finite() or base < 0:
        return Decimal("0")
    return base


def calculate_from_base(base_amount: object) -> FinancialBreakdown:
    """Breakdown for a pre-tax amount (e.g. the sum of catalogue prices)."""
    base = _coerce_base(base_amount)
    vat = base * VAT_RATE
    return FinancialBreakdown(
        base_amount=to_money(base),
        vat_amount=to_money(vat),
        total_amount=to_money(base + vat),
        platform_commission=to_money(base * PLATFORM_COMMISSION_RATE),
        vendor_payout=to_money(base * VENDOR_PAYOUT_RATE),
    )


def calculate_from_total(entered_amount: object) -> FinancialBreakdown:
    """
    Breakdown for an amount entered by a vendor at the salon.

    The entered figure is the base, not a tax-inclusive total: entering 100
    yields VAT 16 and a total to pay of 116.
    """
    return calculate_from_base(entered_amount)


def platform_revenue(total: Decimal, vendor_payout: Decimal | None) -> Decimal:
    """What the platform keeps of a booking total, never below zero."""
    revenue = (total or Decimal("0")) - (vendor_payout or Decimal("0"))
    return revenue if revenue > 0 else Decimal("0")
