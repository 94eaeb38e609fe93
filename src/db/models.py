# provide dataclass models
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

Availability = Literal["Ready", "Pre Order", "Upcoming"]
OrderStatus = Literal["Pending", "Processing", "Dispatched", "Delivered", "Cancelled"]
PaymentMethod = Literal["Bkash", "Cash on Delivery"]

AVAILABILITIES: Tuple[str, ...] = ("Ready", "Pre Order", "Upcoming")
ORDER_STATUSES: Tuple[str, ...] = (
    "Pending",
    "Processing",
    "Dispatched",
    "Delivered",
    "Cancelled",
)
BKASH = "Bkash"
CASH_ON_DELIVERY = "Cash on Delivery"
PAYMENT_METHODS: Tuple[str, ...] = (BKASH, CASH_ON_DELIVERY)

PRE_ORDER = "Pre Order"
UPCOMING = "Upcoming"

UNLIMITED_STOCK = -1
TBA = "TBA"


@dataclass(frozen=True)
class Price:
    """
    A catalog price: either a known amount or not yet announced ("TBA").

    Unannounced prices are stored as NULL and never reach an order.
    """

    amount: Optional[float] = None

    @property
    def announced(self) -> bool:
        return self.amount is not None

    def value_or_zero(self) -> float:
        return self.amount if self.amount is not None else 0.0

    @classmethod
    def parse(cls, raw) -> Price:
        """Accept a number, a numeric string, "TBA" or None. Raise ValueError otherwise."""
        if raw is None:
            return cls(None)
        if isinstance(raw, Price):
            return raw
        if isinstance(raw, str):
            raw = raw.strip()
            if raw.upper() == TBA:
                return cls(None)
        try:
            amount = float(raw)
        except (TypeError, ValueError):
            raise ValueError(f'Price must be a number or "{TBA}".') from None
        if math.isnan(amount) or math.isinf(amount):
            raise ValueError(f'Price must be a number or "{TBA}".')
        return cls(amount)

    def __str__(self) -> str:
        return TBA if self.amount is None else f"{self.amount:g}"


@dataclass(frozen=True)
class User:
    uid: int
    email: str
    pwd: str
    is_admin: bool
    phone: str = ""
    address: str = ""

    @property
    def role(self) -> Literal["customer", "admin"]:
        return "admin" if self.is_admin else "customer"


@dataclass(frozen=True)
class Product:
    pid: int
    name: str
    category: str
    price: Price
    discount: float
    stock: int  # UNLIMITED_STOCK when not tracked
    availability: str
    color: str = ""
    images: Tuple[str, ...] = ()
    descr: str = ""
    detailed_descr: str = ""
    meta_title: str = ""
    meta_descr: str = ""
    hot_deal: bool = False
    # section name -> tags
    filters: Dict[str, Tuple[str, ...]] = field(default_factory=dict, hash=False)

    @property
    def stock_tracked(self) -> bool:
        return self.stock != UNLIMITED_STOCK

    @property
    def is_pre_order(self) -> bool:
        return self.availability == PRE_ORDER

    @property
    def featured_image(self) -> str:
        return self.images[0] if self.images else ""

    @property
    def unit_price(self) -> float:
        return self.price.value_or_zero() - self.discount

    def matches_tags(self, selected) -> bool:
        """
        True when, for every section in ``selected``, the product carries at
        least one of the ticked tags. An empty selection matches everything.
        """
        for section, tags in selected.items():
            if not tags:
                continue
            have = self.filters.get(section, ())
            if not any(tag in have for tag in tags):
                return False
        return True

    @property
    def display_status(self) -> str:
        if self.availability in (UPCOMING, PRE_ORDER):
            return self.availability
        if not self.stock_tracked or self.stock > 0:
            return "In Stock"
        return "Out of Stock"


@dataclass(frozen=True)
class FilterSection:
    """A browse filter heading and the tags a shopper can tick under it."""

    name: str
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CartItem:
    pid: int
    qty: int
    name: str = ""
    color: str = ""


@dataclass(frozen=True)
class OrderLine:
    """Snapshot of a product at order time; never re-read from the catalog."""

    pid: int
    name: str
    color: str
    uprice: float
    qty: int
    was_pre_order: bool
    stock_reserved: bool = False

    @property
    def line_total(self) -> float:
        return self.uprice * self.qty


@dataclass(frozen=True)
class Order:
    ono: int
    uid: Optional[int]
    ts: str
    delivery_fee: float
    total: float
    paid: float
    due: float
    customer_name: str
    phone: str
    address: str
    payment_method: str
    payment_number: str
    transaction_id: str
    status: str
    lines: List[OrderLine] = field(default_factory=list)
