from math import ceil
from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Label, MarkdownViewer, Select

import db.crud
from checkout.errors import CheckoutError
from checkout.lifecycle import allowed_next, set_order_status
from db.models import ORDER_STATUSES, Order
from utils.messages import ModeSwitchedMessage, NewOrderMessage, OrderStatusChangedMessage
from utils.pure import taka
from views.base_screen import BaseScreen
from views.scr_browse import select_value
from views.scr_my_orders import order_detail_markdown

PAGE_SIZE = 10


class AdminOrdersScreen(BaseScreen):
    """
    All orders, newest first, filterable by status. The selected order's
    status can be moved forward or cancelled; cancelling restocks it.
    """

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self) -> None:
        super().__init__()
        self._selected: Optional[Order] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            with Horizontal(id="hort-order-filter"):
                yield Select(
                    [(s, s) for s in ORDER_STATUSES], prompt="All statuses", id="select-filter"
                )
                yield Button("Refresh", id="btn-refresh")
            yield DataTable(id="table-orders")
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
        with Horizontal(id="hort-table-control"):
            yield Button("<", id="btn-prev")
            yield Label(" 1 / 1 ", id="label-page")
            yield Button(">", id="btn-next")
            yield Select([], prompt="New status", id="select-status")
            yield Button("Apply", id="btn-apply", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns(
            "Order No", "Date", "Products", "Qty", "Delivery", "Paid", "Due",
            "Customer", "Phone", "Payment", "Txn ID", "Status",
        )
        self.load_orders()

    @on(Button.Pressed, "#btn-refresh")
    @on(Select.Changed, "#select-filter")
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @on(NewOrderMessage)
    @on(OrderStatusChangedMessage)
    def handle_refresh(self):
        self.load_orders()

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1
            self.load_orders()

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1
            self.load_orders()

    @work(exclusive=True, group="orders")
    async def load_orders(self) -> None:
        status = select_value(self.query_one("#select-filter", Select)) or None
        orders, total = await db.crud.list_orders(self.page_idx, PAGE_SIZE, status=status)
        self.page_cnt = max(ceil(total / PAGE_SIZE), 1)
        self.query_one("#label-page", Label).update(f" {self.page_idx} / {self.page_cnt} ")
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt

        table = self.query_one(DataTable)
        table.clear()
        for o in orders:
            if len(o.lines) > 1:
                products = f"{o.lines[0].name} + {len(o.lines) - 1} more"
            else:
                products = o.lines[0].name if o.lines else "-"
            table.add_row(
                o.ono,
                o.ts[:16].replace("T", " "),
                products,
                sum(line.qty for line in o.lines),
                taka(o.delivery_fee),
                taka(o.paid),
                taka(o.due),
                o.customer_name,
                o.phone,
                o.payment_method,
                o.transaction_id or "-",
                o.status,
                key=str(o.ono),
            )
        if not orders:
            await self.show_order(None)

    @on(DataTable.RowHighlighted)
    @work(exclusive=True, group="detail")
    async def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is None or event.row_key.value is None:
            return
        await self.show_order(await db.crud.get_order_detail(int(event.row_key.value)))

    async def show_order(self, order: Optional[Order]) -> None:
        self._selected = order
        viewer = self.query_one("#md-order-detail", MarkdownViewer)
        status_select = self.query_one("#select-status", Select)
        if order is None:
            await viewer.document.update("### Select an order to view its details.")
            status_select.set_options([])
            return
        await viewer.document.update(order_detail_markdown(order))
        options = [s for s in ORDER_STATUSES if s in allowed_next(order.status)]
        status_select.set_options([(s, s) for s in options])
        status_select.disabled = not options
        self.query_one("#btn-apply", Button).disabled = not options

    @on(Button.Pressed, "#btn-apply")
    @work(exclusive=True)
    async def handle_apply(self) -> None:
        new_status = select_value(self.query_one("#select-status", Select))
        if self._selected is None or not new_status:
            self.notify("Pick an order and a new status first.", severity="warning")
            return
        try:
            order = await set_order_status(self._selected.ono, new_status)
        except CheckoutError as e:
            self.notify(f"Error updating order status: {e.message}", severity="error")
            return
        self.notify(f"Order {order.ono} is now {order.status}.")
        self.post_message(OrderStatusChangedMessage(order.ono, order.status))
        await self.show_order(order)
