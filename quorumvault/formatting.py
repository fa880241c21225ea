"""
Amount and address formatting.

Integer amounts are converted with plain integer arithmetic so that no
float rounding ever reaches a displayed balance.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union


def format_units(raw: int, decimals: int) -> str:
    """
    Render a smallest-unit integer as a decimal string.

    Mirrors ethers' ``formatUnits``: at least one fractional digit is always
    shown and trailing zeros are trimmed.

        >>> format_units(1_000_000, 6)
        '1.0'
        >>> format_units(1_234_500, 6)
        '1.2345'
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    sign = "-" if raw < 0 else ""
    whole, frac = divmod(abs(int(raw)), 10 ** decimals)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    return f"{sign}{whole}.{frac_str or '0'}"


def parse_units(amount: Union[str, int, Decimal], decimals: int) -> int:
    """
    Convert a human decimal amount into smallest units.

    Raises:
        ValueError: malformed, negative, or more fractional digits than
            ``decimals`` allows.
    """
    if isinstance(amount, float):
        raise ValueError("Use a string or Decimal amount, not float")
    text = str(amount).strip()
    if not text:
        raise ValueError("Amount is empty")
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Not a number: {text!r}") from None
    if not value.is_finite():
        raise ValueError(f"Not a finite number: {text!r}")
    if value < 0:
        raise ValueError(f"Amount cannot be negative: {text}")

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"Amount {text} has more than {decimals} fractional digits"
            )
        return int(scaled)


def truncate_address(address: str, start_length: int = 6, end_length: int = 4) -> str:
    if not address:
        return ""
    if len(address) <= start_length + end_length:
        return address
    return f"{address[:start_length]}...{address[-end_length:]}"
