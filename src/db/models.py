# provide dataclass models

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

DEFAULT_CATEGORY = "Default"


class PurchaseMode(Enum):
    PURCHASE = "buy"
    TRIAL = "trial"


class ShippingStatus(Enum):
    FREE = "free"  # seller registered no pickup address
    QUOTED = "quoted"
    CALCULATING = "calculating"
    UNAVAILABLE = "unavailable"  # quote failed, cannot calculate
    NEEDS_ADDRESS = "needs_address"


class TaxStatus(Enum):
    LOADED = "loaded"
    LOADING = "loading"
    UNAVAILABLE = "unavailable"


ORDER_STATUSES = ("Processing", "Shipped", "Delivered", "Cancelled", "Returned")


@dataclass(frozen=True)
class Product:
    pid: str
    name: str
    category: str
    retail_price: Decimal
    mrp: Optional[Decimal] = None
    pickup_postal_code: Optional[str] = None
    is_trial_available: bool = False
    seller_id: Optional[str] = None


@dataclass(frozen=True)
class Address:
    """A shipping address; postal_code is None until the shopper fills it in."""

    aid: str
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: Optional[str] = None
    country: str = "India"
    is_default: bool = False

    @property
    def has_postal_code(self) -> bool:
        return self.postal_code is not None and self.postal_code != ""

    def one_line(self) -> str:
        parts = [self.street, self.city, self.state, self.postal_code or ""]
        return ", ".join(p for p in parts if p)


@dataclass(frozen=True)
class LineItem:
    pid: str
    name: str
    unit_price: Decimal
    category: str
    quantity: int
    mode: PurchaseMode = PurchaseMode.PURCHASE
    origin_postal_code: Optional[str] = None
    mrp: Optional[Decimal] = None

    @classmethod
    def from_product(cls, product: Product, mode: PurchaseMode) -> "LineItem":
        return cls(
            pid=product.pid,
            name=product.name,
            unit_price=product.retail_price,
            category=product.category,
            quantity=1,
            mode=mode,
            origin_postal_code=product.pickup_postal_code,
            mrp=product.mrp,
        )

    @property
    def is_trial(self) -> bool:
        return self.mode is PurchaseMode.TRIAL

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class RateEntry:
    category: str
    rate: Decimal  # fraction, 0.18 == 18%


@dataclass(frozen=True)
class ShippingQuote:
    fee: Decimal
    standard_delivery_date: date
    express_fee: Decimal
    express_delivery_date: date


@dataclass(frozen=True)
class ItemShipping:
    pid: str
    status: ShippingStatus
    quote: Optional[ShippingQuote] = None

    @property
    def fee(self) -> Decimal:
        if self.status is ShippingStatus.QUOTED and self.quote is not None:
            return self.quote.fee
        return Decimal(0)


@dataclass(frozen=True)
class TaxLine:
    category: str
    rate_percent: Decimal
    amount: Decimal


@dataclass(frozen=True)
class TaxDetails:
    breakdown: Tuple[TaxLine, ...] = ()
    total: Decimal = Decimal(0)


@dataclass(frozen=True)
class OrderTotals:
    purchase_subtotal: Decimal
    trial_shipping_fee: Decimal
    total_shipping_fee: Decimal
    tax: TaxDetails
    shipping: Tuple[ItemShipping, ...] = ()
    tax_status: TaxStatus = TaxStatus.LOADED
    # the cart lines these figures were computed from
    items: Tuple[LineItem, ...] = ()

    @property
    def total_tax(self) -> Decimal:
        return self.tax.total

    @property
    def grand_total(self) -> Decimal:
        # always derived, never stored
        return (
            self.purchase_subtotal
            + self.trial_shipping_fee
            + self.total_shipping_fee
            + self.total_tax
        )

    @property
    def shipping_pending(self) -> bool:
        return any(s.status is ShippingStatus.CALCULATING for s in self.shipping)

    @property
    def needs_address(self) -> bool:
        return any(s.status is ShippingStatus.NEEDS_ADDRESS for s in self.shipping)

    @property
    def is_final(self) -> bool:
        return (
            not self.shipping_pending
            and not self.needs_address
            and self.tax_status is not TaxStatus.LOADING
        )

    def shipping_for(self, pid: str) -> Optional[ItemShipping]:
        for s in self.shipping:
            if s.pid == pid:
                return s
        return None


@dataclass(frozen=True)
class DeliveryInfo:
    person_name: str
    phone: str
    vehicle_number: str


@dataclass(frozen=True)
class OrderItem:
    pid: str
    name: str
    price: Decimal  # price actually charged, 0 for trial items
    quantity: int
    mode: PurchaseMode = PurchaseMode.PURCHASE
    category: str = ""
    mrp: Optional[Decimal] = None


@dataclass(frozen=True)
class Order:
    oid: str
    user_id: str
    items: Tuple[OrderItem, ...]
    total: Decimal
    placed_at: datetime
    status: str
    shipping_address: Address
    is_trial_order: bool = False
    purchase_subtotal: Decimal = Decimal(0)
    trial_shipping_fee: Decimal = Decimal(0)
    total_shipping_fee: Decimal = Decimal(0)
    total_tax: Decimal = Decimal(0)
    delivery: Optional[DeliveryInfo] = None


@dataclass(frozen=True)
class Customer:
    uid: str
    name: str
    email: str
