"""Subtotal / GST / total for the subscription plan. Pure, Decimal only."""
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from playoga.core.config import settings

_CENT = Decimal("0.01")
_RUPEE = Decimal("1")
ZERO = Decimal("0")


class PriceBreakdown(NamedTuple):
    base: Decimal
    discount: Decimal
    subtotal: Decimal
    gst: Decimal
    total: Decimal

    @property
    def minor_units(self) -> int:
        return to_minor_units(self.total)


def round2(value: Decimal) -> Decimal:
    """Two decimals, half away from zero (ROUND_HALF_UP on Decimal is symmetric)."""
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def round_rupee(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_RUPEE, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Rupees -> paise for the gateway."""
    return int((Decimal(amount) * 100).quantize(_RUPEE, rounding=ROUND_HALF_UP))


def price(
    base: Decimal | int | str,
    discount: Decimal | int | str = ZERO,
    gst_rate: Decimal | None = None,
) -> PriceBreakdown:
    base = Decimal(base)
    discount = Decimal(discount)
    rate = settings.gst_rate if gst_rate is None else Decimal(gst_rate)
    subtotal = max(ZERO, base - discount)
    gst = round2(subtotal * rate)
    total = round2(subtotal + gst)
    return PriceBreakdown(base=base, discount=discount, subtotal=subtotal, gst=gst, total=total)


def plan_price(discount: Decimal | int | str = ZERO) -> PriceBreakdown:
    """Price of the single configured plan; the base never comes from the client."""
    return price(settings.base_price, discount)
