import math
from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Checkbox, DataTable, Input, Select, SelectionList

import db.crud
from db.models import AVAILABILITIES, FilterSection
from utils.messages import CartChangedMessage
from utils.pure import taka
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal


def select_value(select: Select) -> str:
    """The selected string, or "" while the select is blank."""
    value = select.value
    return value if isinstance(value, str) else ""


def parse_max_price(text: str) -> Optional[float]:
    """A usable price cap from the input box; blank or junk means no cap."""
    try:
        value = float(text.strip())
    except ValueError:
        return None
    if math.isnan(value) or value < 0:
        return None
    return value


class BrowseScreen(BaseScreen):
    """
    Catalog with the storefront filters: category, availability, hot deals,
    a price cap, filter tags and a free-text search. Enter opens the product.
    """

    BINDINGS = [
        Binding("enter", "noop", "View Product", show=True, key_display="⏎"),
    ]

    def __init__(self) -> None:
        super().__init__()
        # read from the store when the screen mounts
        self._sections: List[FilterSection] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Input(id="input-search", placeholder="Search products...")
        with Horizontal(id="hort-filters"):
            yield Select([], prompt="All categories", id="select-category")
            yield Select(
                [(a, a) for a in AVAILABILITIES],
                prompt="Any availability",
                id="select-availability",
            )
            yield Checkbox("Hot deals only", id="chk-hot")
            yield Input(placeholder="Max price", id="input-max-price", type="number")
        with Horizontal(id="hort-results"):
            yield SelectionList[tuple](id="list-tags")
            yield DataTable(id="table-products")

    async def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Color", "Category", "Price", "Status")
        self.query_one("#input-search").focus()
        await self.load_categories()
        await self.load_filter_sections()
        self.update_results()

    async def load_categories(self) -> None:
        categories = await db.crud.list_categories()
        self.query_one("#select-category", Select).set_options(
            [(c, c) for c in categories]
        )

    async def load_filter_sections(self) -> None:
        self._sections = await db.crud.list_filter_sections()
        tag_list = self.query_one("#list-tags", SelectionList)
        tag_list.clear_options()
        tag_list.add_options(
            [
                (f"{sec.name}: {tag}", (sec.name, tag))
                for sec in self._sections
                for tag in sec.tags
            ]
        )
        tag_list.display = bool(self._sections)

    def selected_tags(self) -> Dict[str, List[str]]:
        selected: Dict[str, List[str]] = {}
        for section, tag in self.query_one("#list-tags", SelectionList).selected:
            selected.setdefault(section, []).append(tag)
        return selected

    def action_noop(self) -> None:
        pass

    @on(Input.Changed, "#input-search")
    @on(Input.Changed, "#input-max-price")
    @on(SelectionList.SelectedChanged)
    @on(Select.Changed)
    @on(Checkbox.Changed)
    def handle_filter_change(self) -> None:
        self.update_results()

    @on(DataTable.RowSelected)
    @work
    async def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        pid = int(event.row_key.value)
        if await self.app.push_screen_wait(ProdDetailModal(pid)):
            self.app.post_message(CartChangedMessage())
        self.update_results()

    @work(exclusive=True)
    async def update_results(self) -> None:
        products = await db.crud.list_products(
            category=select_value(self.query_one("#select-category", Select)) or None,
            query=self.query_one("#input-search", Input).value,
            availability=select_value(self.query_one("#select-availability", Select))
            or None,
            hot_deals_only=self.query_one("#chk-hot", Checkbox).value,
            max_price=parse_max_price(self.query_one("#input-max-price", Input).value),
            tags=self.selected_tags(),
        )

        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            if p.price.announced:
                price = taka(p.unit_price)
                if p.discount:
                    price += f" (was {taka(p.price.amount)})"
            else:
                price = str(p.price)
            table.add_row(
                p.pid,
                p.name,
                p.color or "-",
                p.category,
                price,
                p.display_status,
                key=str(p.pid),
            )
