from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.widgets import Button, Label, Markdown, Rule, Select

from db.models import ItemShipping, LineItem, OrderTotals, ShippingStatus
from utils.formatting import format_inr
from utils.markdown import CALCULATING, CANNOT_CALCULATE, NEEDS_ADDRESS, render_totals
from utils.messages import AddressChangedMessage, CartChangedMessage, NewOrderMessage
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal


def shipping_text(shipping: ItemShipping | None) -> str:
    if shipping is None:
        return ""  # trial items travel under the flat trial fee
    if shipping.status is ShippingStatus.FREE:
        return "Free shipping"
    if shipping.status is ShippingStatus.QUOTED:
        quote = shipping.quote
        return (
            f"Shipping {format_inr(quote.fee)}, "
            f"by {quote.standard_delivery_date:%a, %b %d} "
            f"(express {format_inr(quote.express_fee)} by {quote.express_delivery_date:%a, %b %d})"
        )
    if shipping.status is ShippingStatus.CALCULATING:
        return f"Shipping: {CALCULATING}"
    if shipping.status is ShippingStatus.NEEDS_ADDRESS:
        return f"Shipping: {NEEDS_ADDRESS.lower()}"
    return f"Shipping: {CANNOT_CALCULATE.lower()}"


class CartItemWidget(HorizontalGroup):
    def __init__(self, item: LineItem, shipping: ItemShipping | None):
        super().__init__()
        self.item = item
        self.shipping = shipping

    def compose(self) -> ComposeResult:
        item = self.item
        price = "Trial" if item.is_trial else format_inr(item.line_total)
        yield Label(item.name, classes="label-item-name")
        yield Label(f"x{item.quantity}", classes="label-item-qty")
        yield Label(price, classes="label-item-price")
        yield Label(shipping_text(self.shipping), classes="label-item-shipping")
        # trial quantity is pinned at 1
        yield Button("-", classes="btn-dec", disabled=item.is_trial)
        yield Button("+", classes="btn-inc", disabled=item.is_trial)
        yield Button("Remove", classes="btn-remove", variant="error")

    @on(Button.Pressed, ".btn-dec")
    def handle_dec(self):
        self.app.state.cart.set_quantity(self.item.pid, self.item.quantity - 1)
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, ".btn-inc")
    def handle_inc(self):
        self.app.state.cart.set_quantity(self.item.pid, self.item.quantity + 1)
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, ".btn-remove")
    def handle_remove(self):
        self.app.state.cart.remove_item(self.item.pid)
        self.post_message(CartChangedMessage())
        self.notify("Item removed from cart.", severity="information")


class CartScreen(BaseScreen):
    """
    Cart items with their shipping quotes, the destination address, and the
    live order summary.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Select([], id="select-address", prompt="Ship to...", allow_blank=True)
        yield VerticalScroll(id="vertscroll-content")
        yield Rule(line_style="dashed")
        yield Markdown("", id="md-summary")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Refresh", id="btn-refresh")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    async def on_mount(self):
        await self.app.state.load_addresses()
        self._fill_addresses()
        self.handle_cart_change()

    def _fill_addresses(self) -> None:
        state = self.app.state
        select = self.query_one("#select-address", Select)
        options = []
        for a in state.addresses:
            label = a.one_line() if a.has_postal_code else f"{a.one_line()} (no pincode)"
            options.append((label, a.aid))
        with self.prevent(Select.Changed):
            select.set_options(options)
            if state.selected_aid is not None:
                select.value = state.selected_aid

    @on(Select.Changed, "#select-address")
    @work(exclusive=True, group="address")
    async def handle_address_selected(self, event: Select.Changed):
        state = self.app.state
        if event.value is Select.BLANK or event.value == state.selected_aid:
            return
        try:
            await state.select_address(event.value)
        except Exception as exc:
            self.notify(f"Could not switch address: {exc}", severity="error")
            self._fill_addresses()
            return
        self.post_message(AddressChangedMessage())

    @on(CartChangedMessage)
    @on(AddressChangedMessage)
    @on(ScreenResume)
    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True, group="cart")
    async def handle_cart_change(self):
        """
        Redraw right away with whatever is known, then load rates and quote
        shipping, redrawing once those land.
        """
        state = self.app.state
        state.quotes = {}
        await self._render(state.totals())

        await state.load_rates()
        await self._render(state.totals())

        await state.refresh_shipping()
        await self._render(state.totals())

    async def _render(self, totals: OrderTotals) -> None:
        cart = self.app.state.cart
        content = self.query_one("#vertscroll-content")
        await content.remove_children()
        await content.mount_all(
            [CartItemWidget(item, totals.shipping_for(item.pid)) for item in cart.items]
        )
        content.set_class(cart.is_empty, "no-items")

        summary = render_totals(totals, title=f"Your Cart ({cart.item_count} item(s))")
        await self.query_one("#md-summary", Markdown).update(summary)

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if self.app.state.cart.is_empty:
            self.notify("Cart is empty.", severity="warning")
            return
        if await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            self.app.state.cart.clear()
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        state = self.app.state
        if state.cart.is_empty:
            self.notify("Cart is empty.", severity="warning")
            return
        oid = await self.app.push_screen_wait(CheckoutModal(state.totals()))
        if oid:
            self.app.post_message(NewOrderMessage(oid))
        self.post_message(CartChangedMessage())
