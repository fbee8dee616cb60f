from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from db.models import LineItem, TaxDetails, TaxLine
from pricing.rates import RateTable

HUNDRED = Decimal(100)


def compute_tax(items: Iterable[LineItem], rate_table: Optional[RateTable]) -> TaxDetails:
    """
    GST per category over the purchase lines of a cart.

    Trial lines are never taxed. Categories whose resolved rate is 0 are left
    out of the breakdown. Without a rate table (still loading, or failed) the
    result is an empty breakdown with a total of 0. Amounts are not rounded
    here; only the display layer rounds.
    """
    if rate_table is None or rate_table.is_empty:
        return TaxDetails()

    # category -> taxable amount, in first-seen order
    taxable: Dict[str, Decimal] = {}
    for item in items:
        if item.is_trial:
            continue
        taxable[item.category] = taxable.get(item.category, Decimal(0)) + item.line_total

    breakdown: List[TaxLine] = []
    for category, amount in taxable.items():
        rate = rate_table.rate_for(category)
        if rate <= 0:
            continue
        breakdown.append(
            TaxLine(category=category, rate_percent=rate * HUNDRED, amount=amount * rate)
        )

    total = sum((line.amount for line in breakdown), Decimal(0))
    return TaxDetails(breakdown=tuple(breakdown), total=total)
