"""Parsing utilities for common data transformations."""

from decimal import ROUND_HALF_UP, Decimal

from miner_stats.helpers.constants import ZATS_PER_COIN

TWO_PLACES = Decimal("0.01")


def zats_to_coins(zats: int) -> Decimal:
    """Convert integer zatoshis to an exact coin amount.

    Args:
        zats: Amount in zatoshis

    Returns:
        Decimal: Exact amount in coins

    Example:
        >>> zats_to_coins(625_000_000)
        Decimal('6.25')
    """
    return Decimal(zats) / Decimal(ZATS_PER_COIN)


def round_display(value: Decimal) -> Decimal:
    """Round a display amount to 2 decimal places (half up).

    Example:
        >>> round_display(Decimal("62.2222"))
        Decimal('62.22')
    """
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def zats_to_display(zats: int) -> float:
    """Convert zatoshis to a 2-decimal coin amount for reports.

    Example:
        >>> zats_to_display(28_125_000_000)
        281.25
    """
    return float(round_display(zats_to_coins(zats)))


def share_to_percent(share: Decimal) -> float:
    """Convert a share fraction to a 2-decimal percentage for reports.

    Example:
        >>> share_to_percent(Decimal(175) / Decimal("281.25"))
        62.22
    """
    return float(round_display(share * 100))


def shorten_key(key: str) -> str:
    """Abbreviate a long key for log and error messages.

    Example:
        >>> shorten_key("uview1qqqqqqqqqqqqqqqqqqqqqqqq")
        'uview1qq...qqqqqqqq'
    """
    if len(key) <= 16:
        return key
    return f"{key[:8]}...{key[-8:]}"


__all__ = [
    "round_display",
    "share_to_percent",
    "shorten_key",
    "zats_to_coins",
    "zats_to_display",
]
