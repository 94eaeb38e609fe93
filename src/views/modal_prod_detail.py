from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from checkout.errors import ValidationError
from db.crud import get_product
from db.models import UPCOMING, Product
from utils.messages import CartChangedMessage
from utils.pure import generate_markdown_table, taka
from views.modal_checkout import CheckoutModal


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail with "Add to Cart" and "Buy Now".
    Returns True if the cart changed.
    """

    order_qty = reactive(1)

    def __init__(self, pid: int) -> None:
        super().__init__()
        self._pid = pid
        self._prod: Product | None = None
        self._cart_changed = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical():
                yield Label("Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                yield Button("Add to Cart", id="btn-addcart", variant="primary")
                yield Button("Buy Now", id="btn-buynow", variant="success")
                yield Button("Go Back", id="btn-quit")

    async def on_mount(self):
        self._prod = await get_product(self._pid)
        if self._prod is None:
            self.notify("Product not found. Please refresh.", severity="error")
            self.dismiss(False)
            return
        p = self._prod

        rows = [
            ["Price", taka(p.unit_price) if p.price.announced else str(p.price)],
            ["Discount", taka(p.discount) if p.discount else "-"],
            ["Category", p.category],
            ["Color", p.color or "-"],
            ["Availability", p.availability],
            ["Status", p.display_status],
            ["Stock", "Unlimited" if not p.stock_tracked else p.stock],
            ["Images", len(p.images)],
        ]
        md = f"### {p.name}\n\n" + generate_markdown_table(
            ["Attribute", "Value"], rows, ["l", "l"]
        )
        if p.descr:
            md += f"\n\n{p.descr}"
        if p.detailed_descr:
            md += f"\n\n{p.detailed_descr}"
        await self.query_one(MarkdownViewer).document.update(md)

        sold_out = p.stock_tracked and p.stock < 1 and not p.is_pre_order
        if p.availability == UPCOMING or not p.price.announced or sold_out:
            for btn_id in ("#btn-addcart", "#btn-buynow"):
                btn = self.query_one(btn_id, Button)
                btn.disabled = True
            self.query_one("#btn-addcart", Button).label = (
                "Out of Stock" if sold_out else "Coming Soon"
            )
        if p.is_pre_order:
            self.query_one("#btn-buynow", Button).label = "Pre Order"

        self.query_one("#input-order-qty").validators = [Number(minimum=1, maximum=self._max_qty())]
        self.query_one("#input-order-qty").focus()

    def _max_qty(self) -> int:
        p = self._prod
        if p is None:
            return 1
        if not p.stock_tracked or p.is_pre_order:
            return 999
        return max(p.stock, 1)

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(self._cart_changed)

    def on_input_changed(self, message: Input.Changed) -> None:
        if message.input.id == "input-order-qty" and message.input.is_valid and message.value:
            self.order_qty = int(message.value)

    def validate_order_qty(self, qty: int) -> int:
        return max(1, min(qty, self._max_qty()))

    def watch_order_qty(self, qty: int) -> None:
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#btn-add-qty").disabled = qty >= self._max_qty()
        qty_input = self.query_one("#input-order-qty", Input)
        if qty_input.value != str(qty):
            qty_input.value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty -= 1

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(self._cart_changed)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        try:
            await self.app.ctx.cart.add(self._prod, self.order_qty)
        except ValidationError as e:
            self.notify(e.message, severity="error")
            return
        self._cart_changed = True
        self.app.post_message(CartChangedMessage())
        self.notify("Item added to cart.")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-buynow")
    @work(exclusive=True)
    async def handle_buynow(self):
        await self.app.push_screen_wait(CheckoutModal(pid=self._pid, qty=self.order_qty))
