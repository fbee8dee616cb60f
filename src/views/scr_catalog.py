from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.widgets import DataTable, Input

import db.crud
from db.models import Product, PurchaseMode
from utils.formatting import format_inr
from utils.messages import CartChangedMessage
from views.base_screen import BaseScreen


class CatalogScreen(BaseScreen):
    """
    Product list with a filter box; add the highlighted product to the cart
    to buy it or for a home trial.
    """

    BINDINGS = [
        Binding("b", "add('buy')", "Add to Cart", show=True),
        Binding("t", "add('trial')", "Try at Home", show=True),
    ]

    def __init__(self):
        super().__init__()
        self._products: List[Product] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Input(id="input-search", placeholder="Filter by name or category...")
        yield DataTable(id="table-products")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Category", "Price", "MRP", "Home Trial")
        self.load_products()

    @work(exclusive=True)
    async def load_products(self) -> None:
        self._products = await db.crud.list_products()
        self._fill_table(self.query_one("#input-search", Input).value)

    @on(Input.Changed, "#input-search")
    def handle_filter(self, message: Input.Changed) -> None:
        self._fill_table(message.value)

    def _fill_table(self, query: str) -> None:
        needle = query.strip().lower()
        table = self.query_one(DataTable)
        table.clear()
        for p in self._products:
            if needle and needle not in p.name.lower() and needle not in p.category.lower():
                continue
            table.add_row(
                p.pid,
                p.name,
                p.category,
                format_inr(p.retail_price),
                format_inr(p.mrp) if p.mrp else "-",
                "Yes" if p.is_trial_available else "No",
                key=p.pid,
            )

    def _highlighted_product(self) -> Product | None:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        pid = table.get_row_at(table.cursor_row)[0]
        return next((p for p in self._products if p.pid == pid), None)

    def action_add(self, mode: str) -> None:
        product = self._highlighted_product()
        if product is None:
            return
        purchase_mode = PurchaseMode(mode)
        if purchase_mode is PurchaseMode.TRIAL and not product.is_trial_available:
            self.notify("This product is not available for home trial.", severity="warning")
            return

        cart = self.app.state.cart
        if not cart.add_item(product, purchase_mode):
            self.notify(cart.last_warning, severity="warning")
            return

        verb = "for home trial" if purchase_mode is PurchaseMode.TRIAL else "to cart"
        self.notify(f"{product.name} added {verb}.")
        self.app.post_message(CartChangedMessage())
