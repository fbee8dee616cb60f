# deterministic shipping fee/date estimate between two Indian pincodes
from __future__ import annotations

import asyncio
import re
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Optional

from db.models import LineItem, ShippingQuote
from pricing.errors import InvalidPostalCode
from utils.config import get_settings
from utils.logger import get_logger

_logger = get_logger(__name__)

POSTAL_CODE_RE = re.compile(r"^[1-9][0-9]{5}$")

DISTANCE_SCALE = Decimal("2.5")
SPREAD_MODULUS = 50

BASE_FEE = Decimal(40)
TIER_1_START = Decimal(50)
TIER_1_RATE = Decimal("0.5")
TIER_2_START = Decimal(500)
TIER_2_RATE = Decimal("0.3")

EXPRESS_MULTIPLIER = Decimal("1.5")
EXPRESS_SURCHARGE = Decimal(50)

STANDARD_BASE_DAYS, STANDARD_DAYS_PER = 2, 250
EXPRESS_BASE_DAYS, EXPRESS_DAYS_PER = 1, 500


def _round_rupees(amount: Decimal) -> Decimal:
    return amount.quantize(Decimal(1), rounding=ROUND_HALF_UP)


def validate_postal_code(postal_code: Optional[str]) -> str:
    if not isinstance(postal_code, str) or not POSTAL_CODE_RE.match(postal_code):
        raise InvalidPostalCode(postal_code)
    return postal_code


def pseudo_distance(origin: str, destination: str) -> Decimal:
    """
    Distance-like figure derived from the two pincodes.

    The first three digits (sorting district) give the coarse part; the last
    three digits of both codes, summed modulo 50, spread codes that share a
    prefix so they don't all price identically.
    """
    coarse = abs(int(origin[:3]) - int(destination[:3])) * DISTANCE_SCALE
    spread = (int(origin[-3:]) + int(destination[-3:])) % SPREAD_MODULUS
    return coarse + spread


def standard_fee(distance: Decimal) -> Decimal:
    fee = BASE_FEE
    if distance > TIER_1_START:
        fee += (min(distance, TIER_2_START) - TIER_1_START) * TIER_1_RATE
    if distance > TIER_2_START:
        fee += (distance - TIER_2_START) * TIER_2_RATE
    return _round_rupees(fee)


def express_fee(standard: Decimal) -> Decimal:
    return _round_rupees(standard * EXPRESS_MULTIPLIER + EXPRESS_SURCHARGE)


def estimate(
    origin_postal_code: str,
    destination_postal_code: str,
    today: Optional[date] = None,
) -> ShippingQuote:
    """
    Estimate standard and express shipping for one item.

    Pure apart from `today` (defaults to the current date). Raises
    InvalidPostalCode if either code is not a 6-digit pincode without a
    leading zero.
    """
    origin = validate_postal_code(origin_postal_code)
    destination = validate_postal_code(destination_postal_code)
    today = today or date.today()

    distance = pseudo_distance(origin, destination)
    fee = standard_fee(distance)
    standard_days = STANDARD_BASE_DAYS + int(distance // STANDARD_DAYS_PER)
    express_days = EXPRESS_BASE_DAYS + int(distance // EXPRESS_DAYS_PER)

    return ShippingQuote(
        fee=fee,
        standard_delivery_date=today + timedelta(days=standard_days),
        express_fee=express_fee(fee),
        express_delivery_date=today + timedelta(days=express_days),
    )


class ShippingEstimator:
    """
    Async face of the estimator, shaped like the remote courier API the
    storefront calls. `latency` simulates the network round trip.
    """

    def __init__(self, latency: Optional[float] = None) -> None:
        self.latency = get_settings().shipping_latency if latency is None else latency

    async def quote(
        self, origin_postal_code: str, destination_postal_code: str
    ) -> ShippingQuote:
        if self.latency > 0:
            await asyncio.sleep(self.latency)
        return estimate(origin_postal_code, destination_postal_code)


async def quote_items(
    items: Iterable[LineItem],
    destination_postal_code: Optional[str],
    estimator: Optional[ShippingEstimator] = None,
) -> Dict[str, Optional[ShippingQuote]]:
    """
    Quote every purchase item that has a pickup pincode, concurrently.

    Returns {pid: quote}; an item whose quote failed maps to None ("cannot
    calculate") without affecting the others. Items without a pickup pincode
    ship free and are not looked up. No destination, no lookups.
    """
    if not destination_postal_code:
        return {}
    estimator = estimator or ShippingEstimator()

    targets = [i for i in items if not i.is_trial and i.origin_postal_code is not None]
    results = await asyncio.gather(
        *(estimator.quote(i.origin_postal_code, destination_postal_code) for i in targets),
        return_exceptions=True,
    )

    quotes: Dict[str, Optional[ShippingQuote]] = {}
    for item, result in zip(targets, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            _logger.warning(f"Could not calculate shipping for {item.pid}: {result}")
            quotes[item.pid] = None
        else:
            quotes[item.pid] = result
    return quotes
