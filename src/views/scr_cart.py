from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.widgets import Button, Label, Rule

from checkout.service import load_cart_summary
from db.models import CartItem, Product
from utils.messages import CartChangedMessage, ModeSwitchedMessage
from utils.pure import taka
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal


class CartItemWidget(HorizontalGroup):
    def __init__(self, item: CartItem, product: Product | None):
        super().__init__()
        self.item = item
        self.product = product

    def compose(self):
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                name = self.item.name or (self.product.name if self.product else f"#{self.item.pid}")
                if self.item.color:
                    name += f" ({self.item.color})"
                yield Label(name, id="label-item-name")
                if self.product is None:
                    yield Label("no longer available", id="label-item-price")
                else:
                    unit = self.product.unit_price
                    yield Label(
                        f"{taka(unit)} × {self.item.qty} = {taka(unit * self.item.qty)}",
                        id="label-item-price",
                    )
            with Horizontal(id="div-actions"):
                yield Button("-", id="btn-item-minus")
                yield Button("+", id="btn-item-plus")
                yield Button("Remove", id="btn-item-remove", variant="error")

    @on(Button.Pressed, "#btn-item-minus")
    async def handle_minus(self):
        # dropping below 1 removes the line
        await self.app.ctx.cart.set_qty(self.item.pid, self.item.qty - 1)
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-item-plus")
    async def handle_plus(self):
        await self.app.ctx.cart.set_qty(self.item.pid, self.item.qty + 1)
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-item-remove")
    @work()
    async def handle_remove_item(self):
        if await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove this item from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            await self.app.ctx.cart.remove(self.item.pid)
            self.post_message(CartChangedMessage())
            self.notify("Item removed from cart.", severity="information")


class CartScreen(BaseScreen):
    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("Total: ৳0", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    async def on_mount(self):
        self.handle_cart_change()

    @on(CartChangedMessage)
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @work(exclusive=True)  # must exclusive, else might race cond and gen duplicate
    async def handle_cart_change(self):
        summary = await load_cart_summary(self.app.ctx)

        content = self.query_one("#vertscroll-content")
        await content.remove_children()
        await content.mount_all(
            [CartItemWidget(item, summary.products.get(item.pid)) for item in summary.items]
        )
        content.set_class(not summary.items, "no-items")

        self.query_one("#label-cart-total", Label).update(
            f"Total: {taka(summary.subtotal)}" if summary.items else "Your cart is empty."
        )

    @on(Button.Pressed, "#btn-clear-cart")
    @work
    async def handle_clear_cart(self) -> None:
        if not await self.app.ctx.cart.items():
            self.app.notify("Cart is empty.", severity="warning")
            return
        if await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            await self.app.ctx.cart.clear()
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work
    async def handle_checkout(self) -> None:
        if not await self.app.ctx.cart.items():
            self.app.notify("Your cart is empty!", severity="warning")
            return
        await self.app.push_screen_wait(CheckoutModal())
        self.post_message(CartChangedMessage())
