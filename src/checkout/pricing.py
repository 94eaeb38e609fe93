"""
Checkout arithmetic. Everything here is pure.

Pre-order: the customer pays a quarter of the subtotal up front, rounded to
the nearest 5, and the rest plus delivery later. Bkash settles everything
now; cash on delivery pays the delivery charge now and the goods on arrival.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from db.models import BKASH, CASH_ON_DELIVERY, Product
from utils import config

PRE_ORDER_SHARE = 0.25
UPFRONT_STEP = 5


@dataclass(frozen=True)
class Quote:
    subtotal: float
    delivery_fee: float
    pay_now: Optional[float] = None  # None until a payment method is picked
    due: Optional[float] = None

    @property
    def total(self) -> float:
        return self.subtotal + self.delivery_fee

    @property
    def settled(self) -> bool:
        return self.pay_now is not None and self.due is not None


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def delivery_fee(address: str) -> int:
    addr = (address or "").lower()
    if "savar" in addr:
        return config.FEE_SAVAR
    if "dhaka" in addr:
        return config.FEE_DHAKA
    return config.FEE_DEFAULT


def unit_price(product: Product) -> float:
    return product.unit_price


def subtotal(lines: Iterable[Tuple[float, int]]) -> float:
    """Sum of unit price x quantity over (unit_price, qty) pairs."""
    return sum(price * qty for price, qty in lines)


def upfront_amount(sub: float) -> int:
    return round_half_up(sub * PRE_ORDER_SHARE / UPFRONT_STEP) * UPFRONT_STEP


def quote(
    sub: float,
    fee: float,
    payment_method: Optional[str],
    pre_order: bool = False,
) -> Quote:
    if pre_order:
        upfront = upfront_amount(sub)
        return Quote(sub, fee, pay_now=upfront, due=sub - upfront + fee)
    if payment_method == BKASH:
        return Quote(sub, fee, pay_now=sub + fee, due=0)
    if payment_method == CASH_ON_DELIVERY:
        return Quote(sub, fee, pay_now=fee, due=sub)
    return Quote(sub, fee)


def payment_instructions(q: Quote, payment_method: Optional[str], pre_order: bool = False) -> str:
    """The note shown beside the payment selector."""
    if pre_order:
        return f"Send ৳{q.pay_now:g} to {config.BKASH_NUMBER} and enter transaction ID."
    if payment_method == BKASH:
        return (
            f"Send full amount ৳{q.total:.2f} to {config.BKASH_NUMBER} "
            "and provide transaction ID."
        )
    if payment_method == CASH_ON_DELIVERY:
        return f"Pay delivery charge ৳{q.delivery_fee:g}. Remaining on delivery."
    return ""


def payment_number_for(payment_method: Optional[str]) -> str:
    if payment_method == BKASH:
        return config.BKASH_NUMBER
    if payment_method == CASH_ON_DELIVERY:
        return config.COD_NUMBER
    return ""
