"""
Fixed-point money helpers.

Amounts travel through the API as ``Decimal`` with two fractional digits and
are stored as integer cents. Nothing here touches floats.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")

# Upper bounds for anything written to the integer columns.
MAX_CENTS = 10**12
MAX_QUANTITY = 10_000


def to_cents(amount) -> int:
    """Convert a decimal amount (or anything ``Decimal`` accepts) to cents."""
    if isinstance(amount, float):
        amount = repr(amount)
    return int((Decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def exact_cents(amount) -> int:
    """Like ``to_cents`` but refuses to round.

    Raises ``ValueError`` when the amount has digits below the cent or its
    magnitude exceeds ``MAX_CENTS``.
    """
    if isinstance(amount, float):
        amount = repr(amount)
    value = Decimal(amount)
    if not value.is_finite() or abs(value) > Decimal(MAX_CENTS) / 100:
        raise ValueError("is out of range")
    if value != value.quantize(CENT):
        raise ValueError("must have at most two decimal places")
    return int(value * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def apply_discount(cents: int, percent: int) -> int:
    """Price in cents after a whole-number percentage discount, half-up."""
    if not percent:
        return cents
    if percent < 0 or percent > 100:
        raise ValueError(f"discount must be within 0..100, got {percent}")
    discounted = Decimal(cents) * (100 - percent) / 100
    return int(discounted.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def line_total(quantity: int, price_cents: int) -> int:
    return quantity * price_cents
