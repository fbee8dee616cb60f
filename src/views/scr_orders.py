from math import ceil
from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Label, MarkdownViewer

import db.crud
from db.models import Customer
from pricing.checkout import Invoice, load_invoice
from pricing.errors import OrderNotFound
from utils.formatting import format_inr
from utils.markdown import generate_markdown_table
from views.base_screen import BaseScreen

PAGE_SIZE = 5

# filter kind -> (button label, is_trial passed to list_orders)
ORDER_FILTERS = {
    "all": ("All Orders", None),
    "purchases": ("Purchases", False),
    "trials": ("Home Trials", True),
}


def next_filter(kind: str) -> str:
    kinds = list(ORDER_FILTERS)
    return kinds[(kinds.index(kind) + 1) % len(kinds)]


async def fetch_orders_page(user_id: str, page: int, kind: str = "all"):
    """One page of the shopper's orders of the given filter kind, plus the match count."""
    _, is_trial = ORDER_FILTERS[kind]
    return await db.crud.list_orders(user_id, page, PAGE_SIZE, is_trial=is_trial)


def render_invoice(invoice: Invoice, customer: Optional[Customer]) -> str:
    """Invoice markdown; every figure comes from the stored order."""
    order = invoice.order
    address = order.shipping_address
    header = (
        f"### Order Invoice #{order.oid}\n"
        f"Date: {order.placed_at:%d %b %Y, %H:%M}  \n"
        f"Status: {order.status}{' (home trial)' if order.is_trial_order else ''}  \n"
        f"Sold To: {customer.name if customer else order.user_id}  \n"
        f"Ship To: {address.one_line()}\n\n"
    )
    if order.delivery is not None:
        header += (
            f"Delivery: {order.delivery.person_name}, {order.delivery.phone}, "
            f"{order.delivery.vehicle_number}\n\n"
        )

    rows = [
        [
            line.item.quantity,
            f"{line.item.name} ({line.item.category})",
            format_inr(line.gross, force_decimals=True),
            "-" + format_inr(line.discount, force_decimals=True),
            format_inr(line.line_total, force_decimals=True),
        ]
        for line in invoice.lines
    ]
    items_md = generate_markdown_table(
        ["Qty", "Product", "Gross Amount", "Discount", "Line Total"],
        rows,
        ["c", "l", "r", "r", "r"],
    )

    summary = [
        ["Total Discount", "-" + format_inr(invoice.total_discount, force_decimals=True)],
        ["Sub Total", format_inr(order.purchase_subtotal, force_decimals=True)],
    ]
    if order.trial_shipping_fee > 0:
        summary.append(["Trial Fee", format_inr(order.trial_shipping_fee, force_decimals=True)])
    summary += [
        ["Shipping", format_inr(order.total_shipping_fee, force_decimals=True)],
        ["GST", format_inr(order.total_tax, force_decimals=True)],
        ["**Total**", f"**{format_inr(invoice.total, force_decimals=True)}**"],
    ]
    summary_md = generate_markdown_table(["", "Amount"], summary, ["l", "r"])

    return (
        header
        + items_md
        + "\n\n"
        + summary_md
        + f"\n\n**Total (in words):** {invoice.total_in_words}"
    )


class OrdersScreen(BaseScreen):
    """
    The shopper's orders, newest first, with the invoice of the highlighted one.
    """

    BINDINGS = [
        Binding("enter", "noop", "View Invoice", show=True, key_display="⏎"),
    ]

    page_idx = reactive(1)
    page_cnt = reactive(1)
    order_filter = reactive("all")

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-invoice", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button(ORDER_FILTERS["all"][0], id="btn-filter")
            yield Button("Refresh", id="btn-refresh")
            yield Button("<", id="btn-prev")
            yield Label(" 1 / 1 ", id="label-page")
            yield Button(">", id="btn-next")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order", "Date", "Status", "Items", "Total")
        self._load_orders(1)

    def action_noop(self) -> None:
        pass

    @on(Button.Pressed, "#btn-refresh")
    @on(ScreenResume)
    def handle_refresh(self):
        self._load_orders(self.page_idx)

    @on(Button.Pressed, "#btn-filter")
    def handle_filter(self) -> None:
        self.order_filter = next_filter(self.order_filter)
        self.query_one("#btn-filter", Button).label = ORDER_FILTERS[self.order_filter][0]
        self.page_idx = 1
        self._load_orders(1)

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1
            self._load_orders(self.page_idx)

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1
            self._load_orders(self.page_idx)

    def _refresh_controls(self) -> None:
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt
        self.query_one("#label-page", Label).update(f" {self.page_idx} / {self.page_cnt} ")

    @work(exclusive=True, group="orders")
    async def _load_orders(self, page: int) -> None:
        orders, total = await fetch_orders_page(
            self.app.state.user_id, page, self.order_filter
        )
        table = self.query_one(DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.oid,
                f"{o.placed_at:%d %b %Y}",
                o.status,
                sum(i.quantity for i in o.items),
                format_inr(o.total, force_decimals=True),
            )
        self.page_cnt = max(ceil(total / PAGE_SIZE), 1)
        self._refresh_controls()
        if orders:
            table.cursor_coordinate = (0, 0)
            self._show_invoice(orders[0].oid)
        else:
            kind = "orders" if self.order_filter == "all" else ORDER_FILTERS[self.order_filter][0].lower()
            await self._set_invoice_md(f"### No {kind} yet.")

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return
        self._show_invoice(table.get_row_at(event.cursor_row)[0])

    @work(exclusive=True, group="invoice")
    async def _show_invoice(self, oid: str) -> None:
        try:
            invoice = await load_invoice(oid)
        except OrderNotFound as exc:
            await self._set_invoice_md(f"### {exc}")
            return
        customer = await db.crud.get_customer(invoice.order.user_id)
        await self._set_invoice_md(render_invoice(invoice, customer))

    async def _set_invoice_md(self, md: str) -> None:
        await self.query_one("#md-invoice", MarkdownViewer).document.update(md)
