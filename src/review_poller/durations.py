"""
Duration text helpers.

Polling intervals travel through configuration, the HTTP API and status
reports as Go-style duration strings ("90s", "5m", "1h30m"), so a stored
interval and the one reported back by the scheduler read the same way.
"""

import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation

# Microseconds per unit; timedelta cannot go below that resolution.
_UNIT_MICROSECONDS = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),
    "μs": Decimal(1),
    "ms": Decimal(1_000),
    "s": Decimal(1_000_000),
    "m": Decimal(60_000_000),
    "h": Decimal(3_600_000_000),
}

_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration string such as "300ms", "-1.5h" or "2h45m".

    Args:
        text: Sequence of decimal numbers, each with a unit suffix

    Returns:
        The parsed duration

    Raises:
        ValueError: If the text is not a valid duration
    """
    raw = text.strip()
    if not raw:
        raise ValueError("invalid duration: empty string")

    sign = 1
    body = raw
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]

    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f"invalid duration: {text!r}")

    total = Decimal(0)
    pos = 0
    while pos < len(body):
        match = _COMPONENT.match(body, pos)
        if not match:
            raise ValueError(f"invalid duration: {text!r}")
        try:
            amount = Decimal(match.group(1))
        except InvalidOperation as e:
            raise ValueError(f"invalid duration: {text!r}") from e
        total += amount * _UNIT_MICROSECONDS[match.group(2)]
        pos = match.end()

    try:
        return timedelta(microseconds=float(sign * total))
    except OverflowError as e:
        raise ValueError(f"invalid duration: {text!r} is out of range") from e


def format_duration(value: timedelta) -> str:
    """Render a duration the way Go's Duration.String() does, e.g. "5m0s"."""
    micros = (value.days * 86_400 + value.seconds) * 1_000_000 + value.microseconds
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_with_fraction(micros, 1_000)}ms"

    hours, remainder = divmod(micros, 3_600_000_000)
    minutes, remainder = divmod(remainder, 60_000_000)
    text = f"{_with_fraction(remainder, 1_000_000)}s"
    if hours:
        text = f"{hours}h{minutes}m{text}"
    elif minutes:
        text = f"{minutes}m{text}"
    return sign + text


def _with_fraction(value: int, unit: int) -> str:
    whole, fraction = divmod(value, unit)
    if not fraction:
        return str(whole)
    width = len(str(unit)) - 1
    return f"{whole}.{fraction:0{width}d}".rstrip("0")
