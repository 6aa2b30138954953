"""Helpers for preparing oracle votes: price decimals, salts and retries."""

from __future__ import annotations

import math
import secrets
import threading
from decimal import Context, Decimal, localcontext
from typing import Callable

#: Salts are drawn from [0, MAX_SALT_NUMBER); a salt is at most 4 digits long.
MAX_SALT_NUMBER = 9999

#: Number of decimal places carried by chain decimals.
DEC_PRECISION = 18

_QUANTUM = Decimal(1).scaleb(-DEC_PRECISION)
_WIDE = Context(prec=DEC_PRECISION + 400)


class Cancelled(Exception):
    """Raised when a retried operation is stopped before it succeeds."""


def float_to_dec(price: float) -> Decimal:
    """Convert a float to an 18-place decimal, truncating extra digits.

    Raises ValueError for NaN and infinities.
    """
    if math.isnan(price) or math.isinf(price):
        raise ValueError(f"cannot convert {price!r} to a decimal")
    with localcontext(_WIDE):
        text = format(Decimal(repr(float(price))), "f")
        int_part, _, dec_part = text.partition(".")
        dec_part = dec_part[:DEC_PRECISION]
        value = Decimal(f"{int_part}.{dec_part}" if dec_part else int_part)
        if value == 0:
            value = Decimal(0)
        return value.quantize(_QUANTUM)


def new_salt() -> str:
    """A random salt for a prevote hash."""
    return str(secrets.randbelow(MAX_SALT_NUMBER))


def try_until_done(func: Callable[[], object], wait: float, stop: threading.Event) -> None:
    """Call ``func`` until it returns without raising, pausing ``wait`` seconds between tries.

    Raises :class:`Cancelled` once ``stop`` is set before a try succeeds.
    """
    while True:
        if stop.is_set():
            raise Cancelled("operation cancelled")
        try:
            func()
        except Exception:
            stop.wait(wait)
            continue
        return