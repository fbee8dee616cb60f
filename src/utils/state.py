from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import db.crud as crud
from db.models import Address, OrderTotals, ShippingQuote, TaxStatus
from pricing.cart import Cart
from pricing.rates import RateTable, load_rate_table
from pricing.shipping import ShippingEstimator, quote_items
from pricing.totals import compose_cart
from utils.config import get_settings
from utils.logger import get_logger
from utils.optimistic import optimistic_update

_logger = get_logger(__name__)


@dataclass
class SessionState:
    """
    Everything one shopping session needs to price its cart, passed to the
    screens explicitly.

    Fields:
      - user_id: the shopper
      - cart: the session's Cart
      - rate_table: GST rates, None until loaded
      - addresses: the shopper's saved addresses
      - selected_aid: address the cart ships to
      - quotes: {pid: quote} for the selected address; None marks a failed quote
    """

    user_id: str = field(default_factory=lambda: get_settings().user_id)
    cart: Cart = field(default_factory=Cart)
    rate_table: Optional[RateTable] = None
    addresses: List[Address] = field(default_factory=list)
    selected_aid: Optional[str] = None
    quotes: Dict[str, Optional[ShippingQuote]] = field(default_factory=dict)
    estimator: ShippingEstimator = field(default_factory=ShippingEstimator)

    _quote_generation: int = 0

    @property
    def shipping_address(self) -> Optional[Address]:
        for address in self.addresses:
            if address.aid == self.selected_aid:
                return address
        return None

    @property
    def destination_postal_code(self) -> Optional[str]:
        address = self.shipping_address
        if address is None or not address.has_postal_code:
            return None
        return address.postal_code

    async def load_rates(self) -> RateTable:
        # a table that failed to load is fetched again on the next call
        if self.rate_table is None or self.rate_table.status is TaxStatus.UNAVAILABLE:
            self.rate_table = await load_rate_table()
        return self.rate_table

    async def load_addresses(self) -> List[Address]:
        self.addresses = await crud.list_addresses(self.user_id)
        if self.shipping_address is None:
            default = next((a for a in self.addresses if a.is_default), None)
            first = default or (self.addresses[0] if self.addresses else None)
            self.selected_aid = first.aid if first else None
        return self.addresses

    async def select_address(self, aid: str) -> None:
        """
        Ship to another saved address and remember it as the default.

        The selection switches immediately; if saving the default fails the
        previous selection comes back and the error propagates.
        """

        def snapshot():
            return self.selected_aid, list(self.addresses), dict(self.quotes)

        def apply():
            # any refresh still running quotes the old destination
            self._quote_generation += 1
            self.selected_aid = aid
            self.addresses = [replace(a, is_default=a.aid == aid) for a in self.addresses]
            self.quotes = {}

        async def commit():
            if not await crud.set_default_address(self.user_id, aid):
                raise LookupError(f"Address {aid} does not belong to {self.user_id}")

        def revert(before):
            self._quote_generation += 1
            self.selected_aid, self.addresses, self.quotes = before

        await optimistic_update(snapshot, apply, commit, revert)

    async def refresh_shipping(self) -> Dict[str, Optional[ShippingQuote]]:
        """
        Re-quote shipping for the cart. A refresh overtaken by a newer one
        (address switched meanwhile) leaves the newer result in place.
        """
        self._quote_generation += 1
        generation = self._quote_generation
        destination = self.destination_postal_code
        self.quotes = {}

        quotes = await quote_items(self.cart.items, destination, self.estimator)
        if generation != self._quote_generation:
            _logger.debug("Discarding shipping quotes from a superseded refresh.")
            return self.quotes
        self.quotes = quotes
        return quotes

    def totals(self) -> OrderTotals:
        return compose_cart(
            self.cart, self.rate_table, self.quotes, self.destination_postal_code
        )
