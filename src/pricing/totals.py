# the one place cart, payment and invoice preview get their figures from
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from db.models import (
    ItemShipping,
    LineItem,
    OrderTotals,
    ShippingQuote,
    ShippingStatus,
    TaxStatus,
)
from pricing.cart import Cart
from pricing.rates import RateTable
from pricing.tax import compute_tax
from utils.config import get_settings


def _item_shipping(
    item: LineItem,
    quotes_by_id: Mapping[str, Optional[ShippingQuote]],
    destination_postal_code: Optional[str],
) -> ItemShipping:
    if item.origin_postal_code is None:
        return ItemShipping(item.pid, ShippingStatus.FREE)
    if not destination_postal_code:
        return ItemShipping(item.pid, ShippingStatus.NEEDS_ADDRESS)
    if item.pid not in quotes_by_id:
        return ItemShipping(item.pid, ShippingStatus.CALCULATING)
    quote = quotes_by_id[item.pid]
    if quote is None:
        return ItemShipping(item.pid, ShippingStatus.UNAVAILABLE)
    return ItemShipping(item.pid, ShippingStatus.QUOTED, quote)


def compose(
    items: Iterable[LineItem],
    rate_table: Optional[RateTable],
    quotes_by_id: Optional[Mapping[str, Optional[ShippingQuote]]] = None,
    destination_postal_code: Optional[str] = None,
    trial_shipping_fee: Optional[Decimal] = None,
) -> OrderTotals:
    """
    Compose the order totals for a cart.

    Args:
        items: the cart's line items
        rate_table: GST rates, or None while they are still loading
        quotes_by_id: {pid: quote} from shipping.quote_items; a pid mapped to
            None could not be quoted, a missing pid is still being quoted
        destination_postal_code: pincode of the selected address, if any
        trial_shipping_fee: flat trial fee, defaults to the configured one

    Returns:
        OrderTotals; its grand_total is derived from the four components on
        every read.
    """
    items = tuple(items)
    quotes_by_id = quotes_by_id or {}
    if trial_shipping_fee is None:
        trial_shipping_fee = get_settings().trial_shipping_fee

    purchase: List[LineItem] = [i for i in items if not i.is_trial]
    purchase_subtotal = sum((i.line_total for i in purchase), Decimal(0))
    trial_fee = trial_shipping_fee if any(i.is_trial for i in items) else Decimal(0)

    shipping = tuple(
        _item_shipping(i, quotes_by_id, destination_postal_code) for i in purchase
    )
    total_shipping_fee = sum((s.fee for s in shipping), Decimal(0))

    if rate_table is None:
        tax_status = TaxStatus.LOADING
    else:
        tax_status = rate_table.status

    return OrderTotals(
        purchase_subtotal=purchase_subtotal,
        trial_shipping_fee=trial_fee,
        total_shipping_fee=total_shipping_fee,
        tax=compute_tax(purchase, rate_table),
        shipping=shipping,
        tax_status=tax_status,
        items=items,
    )


def compose_cart(
    cart: Cart,
    rate_table: Optional[RateTable],
    quotes_by_id: Optional[Mapping[str, Optional[ShippingQuote]]] = None,
    destination_postal_code: Optional[str] = None,
) -> OrderTotals:
    """compose() for a Cart, charging the trial fee the cart itself carries."""
    return compose(
        cart.items,
        rate_table,
        quotes_by_id,
        destination_postal_code,
        cart.trial_shipping_fee_amount,
    )
