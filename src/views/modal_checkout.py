from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Checkbox, Input, Label, Markdown, Select

from checkout import pricing
from checkout.assembler import CheckoutForm
from checkout.service import (
    CartSummary,
    load_cart_summary,
    quote_single,
    submit_cart_checkout,
    submit_single_checkout,
)
from db.crud import get_product
from db.models import BKASH, PAYMENT_METHODS, Product
from utils.messages import CartChangedMessage, NewOrderMessage
from utils.pure import generate_markdown_table, quote_markdown, taka
from views.modal_dialog import DialogModal


class CheckoutModal(ModalScreen[bool]):
    """
    Checkout form. With a pid it sells that one product ("Buy now"),
    without one it places the whole cart. Returns True once an order is placed.
    """

    def __init__(self, pid: Optional[int] = None, qty: int = 1):
        super().__init__()
        self._pid = pid
        self._qty = qty
        self._product: Optional[Product] = None
        self._cart: Optional[CartSummary] = None

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="div-checkout"):
            yield Markdown("", id="md-summary")
            yield Label("Name")
            yield Input(placeholder="Your full name", id="input-name")
            yield Label("Phone")
            yield Input(placeholder="01XXXXXXXXX", id="input-phone")
            yield Label("Address")
            yield Input(placeholder="House, road, area, city", id="input-address")
            yield Label("Payment Method")
            yield Select([(m, m) for m in PAYMENT_METHODS], prompt="Select", id="select-payment")
            yield Label("", id="label-payment-number")
            yield Label("Transaction ID")
            yield Input(placeholder="Bkash transaction ID", id="input-txn")
            yield Label("", id="label-note")
            yield Markdown("", id="md-quote")
            yield Checkbox("I agree to the order policy", id="chk-policy")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Place Order", id="btn-submit", variant="primary")

    @property
    def pre_order(self) -> bool:
        if self._product is not None:
            return self._product.is_pre_order
        return bool(self._cart and self._cart.pre_order)

    async def on_mount(self):
        if self._pid is not None:
            self._product = await get_product(self._pid)
            if self._product is None:
                self.notify("Product not found. Please refresh and try again.", severity="error")
                self.dismiss(False)
                return
            p = self._product
            rows = [[p.name, p.color or "-", taka(p.unit_price), self._qty, taka(p.unit_price * self._qty)]]
        else:
            self._cart = await load_cart_summary(self.app.ctx)
            rows = [
                [
                    item.name,
                    item.color or "-",
                    taka(self._cart.products[item.pid].unit_price),
                    item.qty,
                    taka(self._cart.products[item.pid].unit_price * item.qty),
                ]
                for item in self._cart.items
                if item.pid in self._cart.products
            ]
        headers = ["Product", "Color", "Unit Price", "Qty", "Line Total"]
        md = "### Order Summary\n\n" + generate_markdown_table(
            headers, rows, ["l", "l", "r", "c", "r"]
        )
        await self.query_one("#md-summary", Markdown).update(md)

        user = self.app.ctx.user
        if user:
            self.query_one("#input-phone", Input).value = user.phone
            self.query_one("#input-address", Input).value = user.address

        if self.pre_order:
            payment = self.query_one("#select-payment", Select)
            payment.value = BKASH
            payment.disabled = True
        await self.refresh_totals()
        self.query_one("#input-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def _payment_method(self) -> Optional[str]:
        value = self.query_one("#select-payment", Select).value
        return value if isinstance(value, str) else None

    @on(Input.Changed, "#input-address")
    @on(Select.Changed, "#select-payment")
    async def refresh_totals(self) -> None:
        address = self.query_one("#input-address", Input).value.strip()
        method = self._payment_method()
        if self._product is not None:
            q = quote_single(self._product, self._qty, address, method)
        elif self._cart is not None:
            q = self._cart.quote(address, method)
        else:
            return

        await self.query_one("#md-quote", Markdown).update(quote_markdown(q))
        note = pricing.payment_instructions(q, method, self.pre_order) if q.settled else ""
        self.query_one("#label-note", Label).update(note)
        number = pricing.payment_number_for(method)
        self.query_one("#label-payment-number", Label).update(
            f"Payment number: {number}" if number else ""
        )
        self.query_one("#input-txn", Input).disabled = method != BKASH

    def _form(self) -> CheckoutForm:
        method = self._payment_method() or ""
        return CheckoutForm(
            customer_name=self.query_one("#input-name", Input).value,
            phone=self.query_one("#input-phone", Input).value,
            address=self.query_one("#input-address", Input).value,
            payment_method=method,
            payment_number=pricing.payment_number_for(method),
            transaction_id=self.query_one("#input-txn", Input).value if method == BKASH else "",
            policy_accepted=self.query_one("#chk-policy", Checkbox).value,
        )

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        btn = self.query_one("#btn-submit", Button)
        btn.disabled = True
        try:
            if not await self.app.push_screen_wait(
                DialogModal(
                    "Place order? This cannot be undone.",
                    primary_text="Yes",
                    secondary_text="No",
                    tone="positive",
                )
            ):
                return
            if self._pid is not None:
                result = await submit_single_checkout(self.app.ctx, self._pid, self._qty, self._form())
            else:
                result = await submit_cart_checkout(self.app.ctx, self._form())
        finally:
            btn.disabled = False

        if not result.ok:
            self.notify(f"Error placing order: {result.error}", severity="error", timeout=8)
            return

        self.notify(f"Order placed successfully! Your order number is {result.ono}.")
        self.app.post_message(NewOrderMessage(result.ono))
        if self._pid is None:
            self.app.post_message(CartChangedMessage())
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
