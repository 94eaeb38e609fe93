"""
Submission handlers for the two checkout entry points: a single product
("Buy now") and the whole cart. Both return a CheckoutResult rather than
raising, so the screen only has to show the message.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

import aiosqlite

from checkout import pricing
from checkout.assembler import CheckoutForm, build_cart_order, build_single_order
from checkout.cart import LocalCart
from checkout.errors import CheckoutError, ProductNotFoundError, ValidationError
from checkout.reservation import reserve_and_place
from db import crud
from db.models import CartItem, Product
from utils.logger import get_logger
from utils.state import OrderContext

_logger = get_logger(__name__)

STORE_UNAVAILABLE = "The store is busy right now. Please try again in a moment."


@dataclass(frozen=True)
class CheckoutResult:
    ono: Optional[int] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.ono is not None


@dataclass(frozen=True)
class CartSummary:
    items: List[CartItem]
    products: Dict[int, Product]

    @property
    def subtotal(self) -> float:
        return pricing.subtotal(
            (self.products[i.pid].unit_price, i.qty)
            for i in self.items
            if i.pid in self.products
        )

    @property
    def pre_order(self) -> bool:
        return any(p.is_pre_order for p in self.products.values())

    @property
    def missing(self) -> List[CartItem]:
        return [i for i in self.items if i.pid not in self.products]

    def quote(self, address: str, payment_method: Optional[str]) -> pricing.Quote:
        return pricing.quote(
            self.subtotal, pricing.delivery_fee(address), payment_method, self.pre_order
        )


async def load_cart_summary(ctx: OrderContext) -> CartSummary:
    items = await ctx.cart.items()
    products = await crud.get_products(i.pid for i in items)
    return CartSummary(items, products)


def quote_single(
    product: Product, qty: int, address: str, payment_method: Optional[str]
) -> pricing.Quote:
    sub = pricing.subtotal([(product.unit_price, qty)])
    return pricing.quote(
        sub, pricing.delivery_fee(address), payment_method, product.is_pre_order
    )


async def submit_single_checkout(
    ctx: OrderContext,
    pid: int,
    qty: int,
    form: CheckoutForm,
    now: Optional[datetime] = None,
) -> CheckoutResult:
    try:
        product = await crud.get_product(pid)
        if product is None:
            raise ProductNotFoundError(pid)
        draft = build_single_order(product, qty, form, ctx.uid, now)
        ono = await reserve_and_place(draft)
    except CheckoutError as e:
        _logger.info(f"Checkout of product {pid} failed: {e.message}")
        return CheckoutResult(error=e.message)
    except aiosqlite.Error as e:
        _logger.error(f"Checkout of product {pid} failed in the store: {e}")
        return CheckoutResult(error=STORE_UNAVAILABLE)
    return CheckoutResult(ono=ono)


async def submit_cart_checkout(
    ctx: OrderContext,
    form: CheckoutForm,
    now: Optional[datetime] = None,
) -> CheckoutResult:
    """Place the whole cart as one order and empty the cart on success."""
    try:
        summary = await load_cart_summary(ctx)
        if not summary.items:
            raise ValidationError("Your cart is empty!")
        draft = build_cart_order(summary.items, summary.products, form, ctx.uid, now)
        ono = await reserve_and_place(draft)
    except CheckoutError as e:
        _logger.info(f"Cart checkout failed: {e.message}")
        return CheckoutResult(error=e.message)
    except aiosqlite.Error as e:
        _logger.error(f"Cart checkout failed in the store: {e}")
        return CheckoutResult(error=STORE_UNAVAILABLE)

    # the order stands even if the cart cannot be emptied
    try:
        await ctx.cart.clear()
    except (aiosqlite.Error, OSError) as e:
        _logger.error(f"Order {ono} placed but the cart was not cleared: {e}")
    return CheckoutResult(ono=ono)


async def adopt_local_cart(ctx: OrderContext, local: LocalCart) -> int:
    """
    Move an anonymous cart into the signed-in account cart, so a shopper's
    lines never live in both places. Returns the number of lines moved.
    """
    if ctx.uid is None:
        return 0
    items = await local.items()
    for item in items:
        await crud.add_to_cart(ctx.uid, item.pid, item.qty, item.name, item.color)
    await local.clear()
    if items:
        _logger.info(f"Moved {len(items)} cart line(s) into account {ctx.uid}")
    return len(items)
