from __future__ import annotations

_ABBREVIATIONS = (
    (1_000_000_000_000, "Tr"),
    (1_000_000_000, "Bn"),
    (1_000_000, "M"),
    (1_000, "K"),
)


def as_number_string(value: float) -> str:
    return f"{value:.2f}"


def as_percent_string(value: float) -> str:
    return f"{as_number_string(value)}%"


def as_currency_with_2_decimals(value: float) -> str:
    """
    USD with grouping and exactly two decimals.
    Example: 1234.5 -> "$1,234.50", -3 -> "-$3.00"
    """
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def formatted_with_abbreviations(value: float) -> str:
    """
    Example: 12_345_678_900 -> "12.35Bn", 950 -> "950.00"
    """
    sign = "-" if value < 0 else ""
    num = abs(value)
    for threshold, suffix in _ABBREVIATIONS:
        if num >= threshold:
            return f"{sign}{as_number_string(num / threshold)}{suffix}"
    return f"{sign}{as_number_string(num)}"
