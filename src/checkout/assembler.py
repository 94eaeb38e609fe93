from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from checkout import pricing
from checkout.errors import ProductNotFoundError, ValidationError
from db.models import (
    BKASH,
    PAYMENT_METHODS,
    UPCOMING,
    CartItem,
    OrderLine,
    Product,
)


@dataclass
class CheckoutForm:
    """What the customer typed into the checkout modal."""

    customer_name: str = ""
    phone: str = ""
    address: str = ""
    payment_method: str = ""
    payment_number: str = ""
    transaction_id: str = ""
    policy_accepted: bool = False

    def cleaned(self) -> CheckoutForm:
        return CheckoutForm(
            customer_name=self.customer_name.strip(),
            phone=self.phone.strip(),
            address=self.address.strip(),
            payment_method=self.payment_method.strip(),
            payment_number=self.payment_number.strip(),
            transaction_id=self.transaction_id.strip().upper(),
            policy_accepted=self.policy_accepted,
        )


@dataclass(frozen=True)
class OrderDraft:
    """A validated order, priced and ready for the stock reservation."""

    uid: Optional[int]
    ts: str
    lines: Tuple[OrderLine, ...]
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
    status: str = "Pending"

    @property
    def subtotal(self) -> float:
        return self.total - self.delivery_fee

    def requested_quantities(self) -> Dict[int, int]:
        """Total quantity per pid across all lines."""
        wanted: Dict[int, int] = {}
        for line in self.lines:
            wanted[line.pid] = wanted.get(line.pid, 0) + line.qty
        return wanted


@dataclass
class _Selection:
    product: Product
    qty: int
    color: str = ""


def _check_form(form: CheckoutForm, pre_order: bool) -> CheckoutForm:
    if not form.policy_accepted:
        raise ValidationError("Please agree to the order policy.")

    if pre_order:
        if form.payment_method and form.payment_method != BKASH:
            raise ValidationError("Pre-orders must be paid with Bkash.")
        form = replace(form, payment_method=BKASH)

    if not (form.customer_name and form.phone and form.address and form.payment_method):
        raise ValidationError("Please fill all required fields.")
    if form.payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {form.payment_method}.")
    if form.payment_method == BKASH and not form.transaction_id:
        raise ValidationError("Transaction ID is required for Bkash payment.")

    if not form.payment_number:
        form = replace(form, payment_number=pricing.payment_number_for(form.payment_method))
    return form


def _check_selection(sel: _Selection) -> None:
    p = sel.product
    if sel.qty < 1:
        raise ValidationError("Quantity must be at least 1.")
    if p.availability == UPCOMING:
        raise ValidationError(f"{p.name} is not available for order yet.")
    if not p.price.announced:
        raise ValidationError(f"The price of {p.name} has not been announced yet.")
    amount = p.price.amount
    if math.isnan(amount) or math.isnan(p.discount):
        raise ValidationError(f"Invalid price for {p.name}.")
    if p.stock_tracked and not p.is_pre_order and sel.qty > p.stock:
        raise ValidationError(
            f"Quantity for {p.name} exceeds available stock of {max(p.stock, 0)}."
        )


def _assemble(
    selections: Sequence[_Selection],
    form: CheckoutForm,
    uid: Optional[int],
    now: Optional[datetime],
) -> OrderDraft:
    if not selections:
        raise ValidationError("Your cart is empty!")

    form = form.cleaned()
    pre_order = any(s.product.is_pre_order for s in selections)
    form = _check_form(form, pre_order)
    for sel in selections:
        _check_selection(sel)

    lines = tuple(
        OrderLine(
            pid=s.product.pid,
            name=s.product.name,
            color=s.color or s.product.color,
            uprice=pricing.unit_price(s.product),
            qty=s.qty,
            was_pre_order=s.product.is_pre_order,
        )
        for s in selections
    )
    sub = pricing.subtotal((line.uprice, line.qty) for line in lines)
    fee = pricing.delivery_fee(form.address)
    q = pricing.quote(sub, fee, form.payment_method, pre_order)

    return OrderDraft(
        uid=uid,
        ts=(now or datetime.now(timezone.utc)).isoformat(),
        lines=lines,
        delivery_fee=fee,
        total=round(q.total, 2),
        paid=round(q.pay_now, 2),
        due=round(q.due, 2),
        customer_name=form.customer_name,
        phone=form.phone,
        address=form.address,
        payment_method=form.payment_method,
        payment_number=form.payment_number,
        transaction_id=form.transaction_id,
    )


def build_single_order(
    product: Product,
    qty: int,
    form: CheckoutForm,
    uid: Optional[int] = None,
    now: Optional[datetime] = None,
) -> OrderDraft:
    """Draft for the "Buy now" flow. Raises ValidationError."""
    return _assemble([_Selection(product, qty)], form, uid, now)


def build_cart_order(
    items: Sequence[CartItem],
    products: Mapping[int, Product],
    form: CheckoutForm,
    uid: Optional[int] = None,
    now: Optional[datetime] = None,
) -> OrderDraft:
    """
    Draft for the whole cart. ``products`` holds the current catalog rows for
    the cart's pids; a missing one means the product was deleted meanwhile.
    """
    selections: List[_Selection] = []
    for item in items:
        product = products.get(item.pid)
        if product is None:
            raise ProductNotFoundError(item.pid, item.name)
        selections.append(_Selection(product, item.qty, item.color))
    return _assemble(selections, form, uid, now)
