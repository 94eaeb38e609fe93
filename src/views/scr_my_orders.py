from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import DataTable, MarkdownViewer

import db.crud
from checkout.lifecycle import STATUS_EXPLANATIONS
from db.models import Order
from utils.messages import ModeSwitchedMessage, NewOrderMessage
from utils.pure import generate_markdown_table, taka
from views.base_screen import BaseScreen


def order_detail_markdown(order: Order) -> str:
    """Order header, snapshot lines and money breakdown."""
    header = (
        f"### Order #{order.ono} ({order.status})\n"
        f"Placed: {order.ts}  \n"
        f"Customer: {order.customer_name}, {order.phone}  \n"
        f"Ship To: {order.address}  \n"
        f"Payment: {order.payment_method}"
        + (f" (Txn {order.transaction_id})" if order.transaction_id else "")
        + "\n\n"
    )
    rows = [
        [
            line.name + (" (pre-order)" if line.was_pre_order else ""),
            line.color or "-",
            line.qty,
            taka(line.uprice),
            taka(line.line_total),
        ]
        for line in order.lines
    ]
    table = generate_markdown_table(
        ["Product", "Color", "Qty", "Unit Price", "Line Total"],
        rows,
        ["l", "l", "c", "r", "r"],
    )
    money = generate_markdown_table(
        ["", "Amount"],
        [
            ["Delivery", taka(order.delivery_fee)],
            ["Total", taka(order.total)],
            ["Paid", taka(order.paid)],
            ["Due", taka(order.due)],
        ],
        ["l", "r"],
    )
    return header + table + "\n\n" + money


class MyOrdersScreen(BaseScreen):
    """
    Signed-in customers see their orders, newest first, with what each
    status means.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Date", "Items", "Total", "Status")
        self.load_orders()

    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @on(NewOrderMessage)
    def handle_refresh(self):
        self.load_orders()

    @work(exclusive=True, group="orders")
    async def load_orders(self) -> None:
        table = self.query_one(DataTable)
        table.clear()
        uid = self.app.ctx.uid
        if uid is None:
            return
        orders, _ = await db.crud.list_orders(page=1, page_size=100, uid=uid)
        for o in orders:
            table.add_row(
                o.ono,
                o.ts[:16].replace("T", " "),
                sum(line.qty for line in o.lines),
                taka(o.total),
                o.status,
                key=str(o.ono),
            )
        if orders:
            await self.render_detail(orders[0])

    @on(DataTable.RowHighlighted)
    @work(exclusive=True, group="detail")
    async def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is None or event.row_key.value is None:
            return
        order = await db.crud.get_order_detail(int(event.row_key.value))
        if order:
            await self.render_detail(order)

    async def render_detail(self, order: Order) -> None:
        md = order_detail_markdown(order)
        md += f"\n\n_{STATUS_EXPLANATIONS.get(order.status, '')}_"
        await self.query_one("#md-order-detail", MarkdownViewer).document.update(md)
