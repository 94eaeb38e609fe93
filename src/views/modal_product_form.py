from typing import Optional

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Checkbox, Input, Label, Select

from db.models import AVAILABILITIES


class ProductFormModal(ModalScreen[Optional[dict]]):
    """
    New-product form. Dismisses with keyword arguments for crud.add_product,
    or None when cancelled. Values are checked by add_product itself.
    """

    TEXT_FIELDS = [
        ("name", "Name", "Product name"),
        ("category", "Category", "Audio"),
        ("price", "Price", 'Number or "TBA"'),
        ("discount", "Discount", "0"),
        ("stock", "Stock", "-1 for unlimited"),
        ("color", "Color", "optional"),
        ("images", "Image URLs", "comma-separated, first is featured"),
        ("filters", "Filter Tags", "Section: tag, tag; Section: tag"),
        ("descr", "Short description", ""),
        ("detailed_descr", "Description", ""),
        ("meta_title", "Meta Title", ""),
        ("meta_descr", "Meta Description", ""),
    ]

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="div-product-form"):
            for key, label, hint in self.TEXT_FIELDS:
                yield Label(label)
                yield Input(placeholder=hint, id=f"input-{key}")
            yield Label("Availability")
            yield Select(
                [(a, a) for a in AVAILABILITIES],
                value="Ready",
                allow_blank=False,
                id="select-availability",
            )
            yield Checkbox("Hot deal", id="chk-hot-deal")
            with Horizontal():
                yield Button("Cancel", id="btn-quit")
                yield Button("Add", id="btn-submit", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Button.Pressed, "#btn-submit")
    def handle_submit(self) -> None:
        values = {
            key: self.query_one(f"#input-{key}", Input).value.strip()
            for key, _, _ in self.TEXT_FIELDS
        }
        if not values["name"] or not values["category"]:
            self.notify("Name and category are required.", severity="error")
            return
        values["price"] = values["price"] or "TBA"
        values["discount"] = values["discount"] or 0
        values["stock"] = values["stock"] or 0
        values["availability"] = self.query_one("#select-availability", Select).value
        values["hot_deal"] = self.query_one("#chk-hot-deal", Checkbox).value
        self.dismiss(values)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self) -> None:
        self.dismiss(None)
