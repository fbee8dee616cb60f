# category -> GST rate lookup, loaded once per session
from __future__ import annotations

from decimal import Decimal
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from db import crud
from db.models import DEFAULT_CATEGORY, RateEntry, TaxStatus
from pricing.errors import RateTableUnavailable
from utils.logger import get_logger

_logger = get_logger(__name__)

ZERO = Decimal(0)


class RateTable:
    """
    Read-only mapping from product category to tax rate (a fraction).

    Lookups never fail: an unknown category falls back to the "Default"
    entry, and without one the category is untaxed.
    """

    def __init__(
        self, entries: Iterable[RateEntry] = (), status: TaxStatus = TaxStatus.LOADED
    ) -> None:
        self._rates: Dict[str, Decimal] = {e.category: e.rate for e in entries}
        self.status = status

    @classmethod
    def unavailable(cls) -> "RateTable":
        return cls((), status=TaxStatus.UNAVAILABLE)

    @property
    def is_empty(self) -> bool:
        return not self._rates

    def rate_for(self, category: Optional[str]) -> Decimal:
        rate = self._rates.get(category) if category is not None else None
        if rate is None:
            rate = self._rates.get(DEFAULT_CATEGORY)
        return rate if rate is not None else ZERO

    def __len__(self) -> int:
        return len(self._rates)

    def __contains__(self, category: str) -> bool:
        return category in self._rates


async def load_rate_table(
    fetch: Optional[Callable[[], Awaitable[List[RateEntry]]]] = None,
) -> RateTable:
    """
    Fetch the rate table from storage.

    A failing fetch is logged and degrades to an empty table (all rates 0),
    so tax is omitted rather than blocking checkout.
    """
    if fetch is None:
        fetch = crud.fetch_rate_table

    try:
        entries = await fetch()
    except Exception as exc:
        err = RateTableUnavailable(f"Failed to load GST rates: {exc!r}")
        _logger.warning(f"{err}; tax will be omitted.")
        return RateTable.unavailable()

    _logger.debug(f"Loaded {len(entries)} GST rate entries.")
    return RateTable(entries)
