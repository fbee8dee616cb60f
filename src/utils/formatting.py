# rupee amounts for display, Indian digit grouping (12,34,567)
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")

_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

# (divisor, word), largest first
_SCALES = [(10_000_000, "Crore"), (100_000, "Lakh"), (1_000, "Thousand"), (100, "Hundred")]


def _group_indian(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_inr(amount: Number, force_decimals: bool = False) -> str:
    """
    Format an amount as rupees, e.g. 1234567 -> "₹12,34,567".

    Paise are shown only when the amount has them (tax usually does), or
    always with force_decimals.
    """
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    value = abs(value)
    whole, _, paise = f"{value:.2f}".partition(".")
    text = _group_indian(whole)
    if force_decimals or paise != "00":
        text += "." + paise
    return f"{sign}₹{text}"


def _two_digits(n: int) -> List[str]:
    if n < 20:
        return [_ONES[n]] if n else []
    return [w for w in (_TENS[n // 10], _ONES[n % 10]) if w]


def amount_in_words(amount: Number) -> str:
    """
    Whole rupees in words using the Indian system.

    >>> amount_in_words(2360)
    'Two Thousand Three Hundred and Sixty Only'
    """
    n = abs(int(Decimal(str(amount))))
    if n == 0:
        return "Zero"

    words: List[str] = []
    for divisor, scale in _SCALES:
        if n >= divisor:
            words += _count_words(n // divisor) + [scale]
            n %= divisor
    if n > 0:
        if words:
            words.append("and")
        words += _two_digits(n)
    return " ".join(words) + " Only"


def _count_words(n: int) -> List[str]:
    # counts of crores can exceed 99; spell those out recursively
    if n < 100:
        return _two_digits(n)
    return amount_in_words(n).removesuffix(" Only").split()
