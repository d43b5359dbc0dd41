"""Formatter: fixed-decimal display strings for metric values."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext

#: Shown for a key that was not measured, as opposed to one measured as zero
MISSING = "--"

DEFAULT_DECIMALS = 1


def fmt(value: float | None, decimals: int = DEFAULT_DECIMALS) -> str:
    """
    Format a metric with exactly ``decimals`` fraction digits.

    Rounds half away from zero on the shortest decimal form of the value, so
    ``fmt(0.25)`` is ``"0.3"`` and ``fmt(-0.25)`` is ``"-0.3"``. With
    ``decimals=0`` no decimal point is rendered.

    Returns:
        The formatted value, or ``MISSING`` for None, NaN or infinity.
    """
    if value is None or not math.isfinite(value):
        return MISSING

    exact = Decimal(repr(value))
    quantum = Decimal(1).scaleb(-decimals)
    with localcontext() as ctx:
        # Every integer digit plus the requested fraction digits must fit.
        ctx.prec = max(ctx.prec, exact.adjusted() + decimals + 2)
        rounded = exact.quantize(quantum, rounding=ROUND_HALF_UP)
    return f"{rounded:f}"
