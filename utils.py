from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import List

import config

CENT = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(amount: Decimal) -> str:
    return f"{config.CURRENCY_SYMBOL}{round_money(amount)}"


def format_currency_input(amount: Decimal) -> str:
    return str(round_money(amount))


def split_equally(total: Decimal, count: int) -> List[Decimal]:
    """Split ``total`` into ``count`` cent-rounded shares.

    Leftover cents go to the first shares, so the result always sums to the
    total exactly.
    """
    if count <= 0:
        raise ValueError("Please add members first")
    if total <= 0:
        raise ValueError("Please enter a valid total amount first")

    total = round_money(total)
    share = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    remainder = int((total - share * count) / CENT)

    shares = []
    for i in range(count):
        amount = share
        if i < remainder:
            amount += CENT
        shares.append(amount)
    return shares
