"""
Rupee amounts in words, using the Indian numbering system.

    >>> amount_in_words(125000)
    'One Lakh Twenty Five Thousand Only'
"""

ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

# (divisor, name), largest first; anything above a crore recurses
SCALES = ((10_000_000, "Crore"), (100_000, "Lakh"), (1_000, "Thousand"), (100, "Hundred"))


def _below_hundred(n: int) -> list[str]:
    if n < 20:
        return [ONES[n]] if n else []
    return [TENS[n // 10]] + ([ONES[n % 10]] if n % 10 else [])


def _words(n: int) -> list[str]:
    words: list[str] = []
    for divisor, name in SCALES:
        if n >= divisor:
            head = n // divisor
            words += (_words(head) if head >= 100 else _below_hundred(head)) + [name]
            n %= divisor
    return words + _below_hundred(n)


def number_to_words(n: int) -> str:
    """Title Case words for a non-negative integer, e.g. 'Two Lakh Five'."""
    if n < 0:
        raise ValueError("Amount cannot be negative")
    if n == 0:
        return "Zero"
    return " ".join(_words(n))


def amount_in_words(amount: float) -> str:
    """Words for a rupee amount, rounded to whole rupees, followed by 'Only'."""
    return f"{number_to_words(int(round(amount)))} Only"


def format_rupees(amount: float) -> str:
    """Indian digit grouping, e.g. 1,25,000."""
    whole = str(int(round(amount)))
    if len(whole) <= 3:
        return whole
    head, tail = whole[:-3], whole[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])
