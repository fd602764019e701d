CURRENCY_SYMBOL = "₹"


def _group_indian(digits: str) -> str:
    """Group an integer string the en-IN way: last three digits, then pairs."""
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


def format_currency(amount: float) -> str:
    """Format amount as INR with en-IN grouping and two decimals, e.g. ₹1,00,000.00."""
    sign = "-" if amount < 0 and round(abs(amount), 2) != 0 else ""
    whole, fraction = f"{abs(amount):.2f}".split(".")
    return f"{sign}{CURRENCY_SYMBOL}{_group_indian(whole)}.{fraction}"
