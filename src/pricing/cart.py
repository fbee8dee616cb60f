from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import List, Optional, Tuple

from db.models import LineItem, Product, PurchaseMode
from utils.config import get_settings
from utils.logger import get_logger

_logger = get_logger(__name__)

CartSnapshot = Tuple[LineItem, ...]


class Cart:
    """
    Owns the line items of one shopping session.

    Mutations swap the whole item list in one assignment, so a reader never
    sees half an update. Every derived figure is computed from the current
    list on read.
    """

    DUPLICATE_WARNING = (
        "This product is already in your cart. You can only have one instance "
        "of each product, either for purchase or for trial."
    )

    def __init__(
        self,
        items: Optional[List[LineItem]] = None,
        trial_shipping_fee: Optional[Decimal] = None,
    ) -> None:
        self._items: CartSnapshot = tuple(items or ())
        if trial_shipping_fee is None:
            trial_shipping_fee = get_settings().trial_shipping_fee
        self.trial_shipping_fee_amount = trial_shipping_fee
        self.last_warning: Optional[str] = None

    # ---------------------------
    # Mutations
    # ---------------------------

    def add_item(self, product: Product, mode: PurchaseMode = PurchaseMode.PURCHASE) -> bool:
        """
        Add one unit of `product`. Returns False (and sets last_warning) when
        the add is rejected.

        A product already bought in the cart gets its quantity bumped by a
        further purchase add; any other combination involving an existing
        entry is rejected, never merged across modes.
        """
        self.last_warning = None
        existing = self.get(product.pid)

        if existing is not None:
            if existing.mode is PurchaseMode.PURCHASE and mode is PurchaseMode.PURCHASE:
                self._replace(product.pid, existing.quantity + 1)
                return True
            return self._reject(product.pid, self.DUPLICATE_WARNING)

        self._items = self._items + (LineItem.from_product(product, mode),)
        _logger.debug(f"Added {product.pid} to cart ({mode.value}).")
        return True

    def remove_item(self, pid: str) -> None:
        self._items = tuple(i for i in self._items if i.pid != pid)

    def set_quantity(self, pid: str, quantity: int) -> None:
        """Set a purchase line's quantity; <= 0 removes it. Trial lines stay at 1."""
        item = self.get(pid)
        if item is None or item.is_trial:
            return
        if quantity <= 0:
            self.remove_item(pid)
            return
        self._replace(pid, quantity)

    def clear(self) -> None:
        self._items = ()

    def snapshot(self) -> CartSnapshot:
        return self._items

    def restore(self, snapshot: CartSnapshot) -> None:
        self._items = tuple(snapshot)

    def _replace(self, pid: str, quantity: int) -> None:
        self._items = tuple(
            replace(i, quantity=quantity) if i.pid == pid else i for i in self._items
        )

    def _reject(self, pid: str, warning: str) -> bool:
        _logger.info(f"Rejected add of {pid}: {warning}")
        self.last_warning = warning
        return False

    # ---------------------------
    # Derived views
    # ---------------------------

    @property
    def items(self) -> CartSnapshot:
        return self._items

    def get(self, pid: str) -> Optional[LineItem]:
        for item in self._items:
            if item.pid == pid:
                return item
        return None

    def contains(self, pid: str) -> bool:
        return self.get(pid) is not None

    def __len__(self) -> int:
        return len(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self._items)

    @property
    def purchase_items(self) -> CartSnapshot:
        return tuple(i for i in self._items if not i.is_trial)

    @property
    def trial_items(self) -> CartSnapshot:
        return tuple(i for i in self._items if i.is_trial)

    @property
    def purchase_subtotal(self) -> Decimal:
        return sum((i.line_total for i in self.purchase_items), Decimal(0))

    @property
    def has_trial_items(self) -> bool:
        return any(i.is_trial for i in self._items)

    @property
    def is_trial_only(self) -> bool:
        return bool(self._items) and all(i.is_trial for i in self._items)

    @property
    def trial_shipping_fee(self) -> Decimal:
        # flat, charged once however many trial items there are
        return self.trial_shipping_fee_amount if self.has_trial_items else Decimal(0)

    def shipping_requests(
        self, destination_postal_code: Optional[str]
    ) -> List[Tuple[str, str, str]]:
        """(pid, origin, destination) for every purchase line that needs a quote."""
        if not destination_postal_code:
            return []
        return [
            (i.pid, i.origin_postal_code, destination_postal_code)
            for i in self.purchase_items
            if i.origin_postal_code is not None
        ]
