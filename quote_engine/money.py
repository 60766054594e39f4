"""
Money helpers: number parsing from CAD attributes, BRL display.
"""

import re

_LEADING_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)")


def parse_decimal(raw, default: float = 0.0) -> float:
    """
    Parse a numeric attribute that may use a comma as decimal separator.

    "12,5" -> 12.5, "3" -> 3.0. Trailing junk is ignored the way CAD exports
    sometimes append units ("2,00 un" -> 2.0). Unparsable -> default.
    """
    if raw is None:
        return default
    text = str(raw).strip().replace(",", ".", 1)
    match = _LEADING_NUMBER.match(text)
    if not match:
        return default
    return float(match.group(0))


def format_brl(value) -> str:
    """1500.5 -> 'R$ 1.500,50'."""
    if value is None:
        value = 0.0
    sign = "-" if value < 0 else ""
    text = f"{abs(value):,.2f}"  # 1,500.50
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {text}"
