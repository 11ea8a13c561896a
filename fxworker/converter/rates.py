"""
Exchange rate text parsing.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from fxworker.constants import RATE_DECIMAL_PLACES
from fxworker.exceptions import RateFetchError

_LEADING_NUMBER = re.compile(r"[0-9.]*")
_QUANTUM = Decimal(1).scaleb(-RATE_DECIMAL_PLACES)


def extract_number(raw: str) -> str:
    """
    Take the leading run of digits and decimal points from ``raw``.

    Only the first decimal point is kept; anything from a second point on is
    dropped, so ``"1.23.4"`` yields ``"1.23"``.
    """
    run = _LEADING_NUMBER.match(raw).group()
    whole, point, rest = run.partition(".")
    return whole + point + rest.split(".", 1)[0]


def format_rate(raw: str) -> str:
    """
    Render provider text as a rate with two fractional digits.

    Rounds the exact decimal value half up, so ``"1.005"`` becomes ``"1.01"``
    where binary floating point would give ``"1.00"``.

    Args:
        raw: Text starting with the numeric rate, e.g. ``"7.7531 HKD"``.

    Returns:
        The rate rounded half up, e.g. ``"7.75"``.

    Raises:
        RateFetchError: If no finite number can be read.
    """
    number = extract_number(raw)
    if not any(c.isdigit() for c in number):
        raise RateFetchError(f"Get exchange rate error: no rate in {raw[:40]!r}")

    try:
        value = Decimal(number)
        if not value.is_finite():
            raise RateFetchError(f"Get exchange rate error: non-finite rate {number!r}")
        with localcontext() as ctx:
            # room for every integer digit of the rounded result
            ctx.prec = max(ctx.prec, len(number) + RATE_DECIMAL_PLACES)
            return str(value.quantize(_QUANTUM, rounding=ROUND_HALF_UP))
    except InvalidOperation as e:
        raise RateFetchError(f"Get exchange rate error: {number!r} is not a rate") from e
