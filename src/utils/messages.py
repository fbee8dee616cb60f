from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired whenever the cart's items change (catalog add, cart edit, checkout).
    Cart screen re-quotes shipping and recomposes the totals.

    Post at App level when posting from another screen.
    """

    bubble = True


class AddressChangedMessage(Message):
    """
    Fired when the shopper ships to another address; shipping must be re-quoted.
    """

    bubble = True


class NewOrderMessage(Message):
    """
    Fired when a new order is created.
    The app answers by showing the orders screen.
    """

    bubble = True

    def __init__(self, oid: str) -> None:
        super().__init__()
        self.oid = oid


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
