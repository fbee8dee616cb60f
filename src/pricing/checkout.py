# placing the order and reading it back as an invoice
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Tuple

from db import crud
from db.models import Address, Order, OrderItem, OrderTotals, PurchaseMode
from pricing.cart import Cart
from pricing.errors import (
    EmptyCart,
    MissingShippingAddress,
    OrderCreationFailed,
    OrderNotFound,
    TotalsNotFinal,
)
from utils.formatting import amount_in_words
from utils.logger import get_logger
from utils.retry import RetryError, RetryPolicy, retry_async

_logger = get_logger(__name__)

CreateOrder = Callable[..., Awaitable[Order]]
FetchOrder = Callable[[str], Awaitable[Optional[Order]]]


async def place_order(
    cart: Cart,
    totals: OrderTotals,
    user_id: str,
    shipping_address: Optional[Address],
    create_order: Optional[CreateOrder] = None,
    policy: Optional[RetryPolicy] = None,
) -> Order:
    """
    Persist the cart as an order charging `totals.grand_total`.

    The composed total is handed to storage as-is, together with the exact
    lines it was composed from; totals priced for an earlier state of the
    cart are refused with TotalsNotFinal. The cart is cleared only
    after the order was created; if every attempt fails OrderCreationFailed
    is raised and the cart keeps its items.
    """
    if cart.is_empty:
        raise EmptyCart("Your cart is empty.")
    if shipping_address is None or not shipping_address.has_postal_code:
        raise MissingShippingAddress()
    if not totals.is_final:
        raise TotalsNotFinal("Order totals are still being calculated.")
    if totals.items != cart.snapshot():
        raise TotalsNotFinal("Your cart changed. Please review the updated totals.")

    create_order = create_order or crud.create_order
    items = totals.items
    grand_total = totals.grand_total

    async def attempt() -> Order:
        return await create_order(
            user_id=user_id,
            items=items,
            total=grand_total,
            shipping_address=shipping_address,
            is_trial_order=cart.is_trial_only,
            totals=totals,
        )

    try:
        order = await retry_async(attempt, policy)
    except RetryError as exc:
        _logger.error(f"Order creation failed for {user_id}: {exc}")
        raise OrderCreationFailed(
            "There was an error placing your order. Please try again.",
            attempts=exc.attempts,
        ) from exc.last_error

    cart.clear()
    _logger.info(f"Order {order.oid} placed, cart cleared.")
    return order


@dataclass(frozen=True)
class InvoiceLine:
    item: OrderItem
    gross: Decimal
    discount: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class Invoice:
    order: Order
    lines: Tuple[InvoiceLine, ...]

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal(0))

    @property
    def total_discount(self) -> Decimal:
        return sum((line.discount for line in self.lines), Decimal(0))

    @property
    def total(self) -> Decimal:
        # what was charged, never recomputed
        return self.order.total

    @property
    def total_in_words(self) -> str:
        return amount_in_words(self.total)


def build_invoice(order: Order) -> Invoice:
    """
    Invoice lines from the prices frozen on the order items.

    Gross is MRP x quantity where an MRP was recorded; trial lines are shown
    at their charged price of 0.
    """
    lines = []
    for item in order.items:
        line_total = item.price * item.quantity
        if item.mode is PurchaseMode.TRIAL or not item.mrp:
            gross = line_total
        else:
            gross = item.mrp * item.quantity
        lines.append(
            InvoiceLine(
                item=item,
                gross=gross,
                discount=gross - line_total,
                line_total=line_total,
            )
        )
    return Invoice(order=order, lines=tuple(lines))


async def load_invoice(oid: str, fetch: Optional[FetchOrder] = None) -> Invoice:
    fetch = fetch or crud.fetch_order_by_id
    order = await fetch(oid)
    if order is None:
        raise OrderNotFound(oid)
    return build_invoice(order)
