from __future__ import annotations

from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, MarkdownViewer, Select

from db.crud import (
    EDITABLE_PRODUCT_FIELDS,
    add_product,
    delete_product,
    get_product,
    list_products,
    update_product_field,
)
from db.models import AVAILABILITIES, Product
from utils.pure import generate_markdown_table
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal
from views.modal_product_form import ProductFormModal
from views.scr_browse import select_value


def product_field_text(p: Product, field: str) -> str:
    value = getattr(p, field)
    if field == "images":
        return ", ".join(value)
    if field == "hot_deal":
        return "yes" if value else "no"
    if field == "filters":
        return "; ".join(f"{section}: {', '.join(tags)}" for section, tags in value.items())
    return str(value)


class AdminProductsScreen(BaseScreen):
    """
    Catalog table for admins: pick a product, pick a field, type the new
    value. Stock -1 means unlimited; price may be "TBA".
    """

    current_pid: Optional[int] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Input(id="input-search", placeholder="Filter products...")
            yield DataTable(id="table-products")
            yield MarkdownViewer(id="md-prod", show_table_of_contents=False)
            with Horizontal(id="hort-controls"):
                yield Select(
                    [(f, f) for f in EDITABLE_PRODUCT_FIELDS],
                    prompt="Field",
                    id="select-field",
                )
                yield Input(placeholder="New value", id="input-value")
                yield Button("Update", id="btn-update", variant="success")
                yield Button("Delete", id="btn-delete", variant="error")
                yield Button("Add Product", id="btn-add", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns(
            "ID", "Name", "Price", "Category", "Color", "Discount", "Stock",
            "Availability", "Hot Deal", "Status",
        )
        self.load_products()

    @on(Input.Changed, "#input-search")
    def handle_search(self) -> None:
        self.load_products()

    @work(exclusive=True, group="products")
    async def load_products(self) -> None:
        products = await list_products(query=self.query_one("#input-search", Input).value)
        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            table.add_row(
                p.pid,
                p.name,
                str(p.price),
                p.category,
                p.color or "-",
                f"{p.discount:g}",
                "unlimited" if not p.stock_tracked else p.stock,
                p.availability,
                "yes" if p.hot_deal else "no",
                p.display_status,
                key=str(p.pid),
            )

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is None or event.row_key.value is None:
            return
        self.current_pid = int(event.row_key.value)
        self.render_product()

    @on(Select.Changed, "#select-field")
    def handle_field_change(self) -> None:
        self.render_product()

    @work(exclusive=True, group="detail")
    async def render_product(self) -> None:
        if self.current_pid is None:
            return
        prod = await get_product(self.current_pid)
        viewer = self.query_one("#md-prod", MarkdownViewer)
        if prod is None:
            await viewer.document.update("### Product was deleted.")
            return
        rows = [[f, product_field_text(prod, f)] for f in EDITABLE_PRODUCT_FIELDS]
        await viewer.document.update(
            f"### #{prod.pid} {prod.name}\n\n"
            + generate_markdown_table(["Field", "Value"], rows, ["l", "l"])
        )
        # prefill the editor with the current value for convenience
        field = select_value(self.query_one("#select-field", Select))
        if field:
            self.query_one("#input-value", Input).value = product_field_text(prod, field)

    @on(Button.Pressed, "#btn-update")
    @work(exclusive=True)
    async def handle_update(self) -> None:
        field = select_value(self.query_one("#select-field", Select))
        if self.current_pid is None or not field:
            self.notify("Pick a product and a field first.", severity="warning")
            return
        raw = self.query_one("#input-value", Input).value.strip()
        if field == "hot_deal":
            value = raw.lower() in ("yes", "y", "true", "1")
        elif field == "availability" and raw not in AVAILABILITIES:
            self.notify("Availability must be Ready, Pre Order, or Upcoming.", severity="error")
            return
        else:
            value = raw
        try:
            updated = await update_product_field(self.current_pid, field, value)
        except ValueError as e:
            self.notify(str(e), severity="error")
            return
        if updated:
            self.notify("Product updated.")
        else:
            self.notify("Update failed: product not found.", severity="error")
        self.load_products()
        self.render_product()

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True)
    async def handle_delete(self) -> None:
        if self.current_pid is None:
            return
        prod = await get_product(self.current_pid)
        if prod is None:
            return
        if not await self.app.push_screen_wait(
            DialogModal(f'Delete "{prod.name}"?', "Delete", "Cancel", tone="error")
        ):
            return
        await delete_product(prod.pid)
        self.current_pid = None
        self.notify(f"Deleted {prod.name}.")
        self.load_products()

    @on(Button.Pressed, "#btn-add")
    @work(exclusive=True)
    async def handle_add(self) -> None:
        values = await self.app.push_screen_wait(ProductFormModal())
        if not values:
            return
        try:
            pid = await add_product(**values)
        except ValueError as e:
            self.notify(f"Error adding product: {e}", severity="error")
            return
        self.notify(f"Product {pid} added.")
        self.load_products()
