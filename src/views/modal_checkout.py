from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Markdown

from db.models import OrderTotals
from pricing.checkout import place_order
from pricing.errors import CheckoutError, OrderCreationFailed
from utils.formatting import format_inr
from utils.markdown import CALCULATING, NEEDS_ADDRESS, render_totals
from views.modal_dialog import DialogModal, RetryDialogModal


class CheckoutModal(ModalScreen[Optional[str]]):
    """
    Payment step: shows the totals composed on the cart screen and places the
    order for exactly that amount.
    Returns the new order id, or None if no order was placed.
    """

    def __init__(self, totals: OrderTotals):
        super().__init__()
        self.totals = totals

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Markdown(render_totals(self.totals, title="Payment"), id="md-payment")
            yield Label("", id="label-ship-to")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Pay", id="btn-submit", variant="success")

    def on_mount(self):
        address = self.app.state.shipping_address
        ship_to = self.query_one("#label-ship-to", Label)
        pay = self.query_one("#btn-submit", Button)

        if address is None or not address.has_postal_code:
            ship_to.update(f"Ship to: {NEEDS_ADDRESS.lower()}")
        else:
            ship_to.update(f"Ship to: {address.one_line()}")

        if self.totals.is_final:
            pay.label = f"Pay {format_inr(self.totals.grand_total, force_decimals=True)}"
            pay.focus()
        else:
            pay.label = CALCULATING
            pay.disabled = True

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "Place order? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return

        state = self.app.state
        pay = self.query_one("#btn-submit", Button)
        pay.disabled = True
        pay.label = "Processing..."

        while True:
            try:
                order = await place_order(
                    state.cart, self.totals, state.user_id, state.shipping_address
                )
                break
            except OrderCreationFailed as exc:
                if not await self.app.push_screen_wait(
                    RetryDialogModal(str(exc), exc.attempts)
                ):
                    self.dismiss(None)
                    return
            except CheckoutError as exc:
                self.notify(str(exc), severity="error")
                self.dismiss(None)
                return

        self.notify(f"Order placed. Your order number is {order.oid}.")
        self.dismiss(order.oid)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(None)
