from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from utils.logger import get_logger
from utils.messages import ModeSwitchedMessage, NewOrderMessage, QuitRequestedMessage
from utils.state import SessionState
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_orders import OrdersScreen

_logger = get_logger(__name__)


class StorefrontApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "cart": CartScreen,
        "orders": OrdersScreen,
    }

    MODE_TITLES = {
        "catalog": "Shop",
        "cart": "Cart",
        "orders": "My Orders",
    }

    CSS_PATH = [
        "styles/index.tcss",
        "styles/cart.tcss",
        "styles/orders.tcss",
    ]

    state: SessionState

    def __init__(self):
        super().__init__()
        self.state = SessionState()

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.exit()

    @on(NewOrderMessage)
    async def handle_new_order(self, message: NewOrderMessage):
        self.post_message(ModeSwitchedMessage(self.current_mode, "orders"))
        await self.switch_mode("orders")

    @on(ModeSwitchedMessage)
    def handle_mode_switched(self, message: ModeSwitchedMessage):
        _logger.debug(f"Mode {message.old_mode} -> {message.new_mode}")

    @work
    async def main_flow(self):
        await self.state.load_addresses()
        rates = await self.state.load_rates()
        if rates.is_empty:
            self.notify("Tax rates unavailable; GST will not be applied.", severity="warning")
        _logger.info(
            f"Session for {self.state.user_id}: "
            f"{len(self.state.addresses)} address(es), {len(rates)} tax rate(s)"
        )
        self.post_message(ModeSwitchedMessage(self.current_mode, "catalog"))
        await self.switch_mode("catalog")


def main():
    StorefrontApp().run()


if __name__ == "__main__":
    main()
