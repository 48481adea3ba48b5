from dataclasses import replace
from typing import Dict, List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Input, Label, Select, SelectionList

from shop.catalog import (
    NO_MATCHES,
    FilterState,
    SortCriterion,
    categories,
    derive_visible_products,
    empty_state,
    filter_options,
    format_category,
    popularity_from_orders,
)
from shop.models import Product
from shop.orders import OrderController
from utils.messages import CartChangedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_product_detail import ProductDetailModal


class ShopScreen(BaseScreen):
    """
    Catalog browsing. The filter panel edits a FilterState, the table always
    shows derive_visible_products() of the whole catalog under that state.
    """

    # only here to be displayed in footer
    BINDINGS = [
        Binding("enter", "noop", "View Product", show=True, key_display="⏎"),
        Binding("ctrl+r", "reload", "Reload Catalog", show=True),
    ]

    def __init__(self):
        super().__init__()
        self.filters = FilterState()
        self._popularity: Dict[str, int] = {}
        self._visible: List[Product] = []
        self._sales: OrderController | None = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-shop"):
            with VerticalScroll(id="div-filters"):
                yield Label("Search")
                yield Input(id="input-search", placeholder="Name, code, brand...")
                yield Label("Category")
                yield Select([], prompt="All categories", id="select-category")
                yield Label("Sort by")
                yield Select(
                    [(c.label, c) for c in SortCriterion],
                    value=SortCriterion.CATEGORY,
                    allow_blank=False,
                    id="select-sort",
                )
                yield Label("Max price", id="label-max-price")
                yield Input(id="input-max-price", type="integer")
                yield Label("Manufacturer")
                yield SelectionList[str](id="list-manufacturers")
                yield Label("Distributor")
                yield SelectionList[str](id="list-distributors")
                yield Button("Clear filters", id="btn-clear-filters")
            with Vertical(id="div-products"):
                yield Label("", id="label-result-cnt")
                with Horizontal(id="hort-no-results", classes="hidden"):
                    yield Label("", id="label-no-results")
                    yield Button("Clear filters", id="btn-clear-no-results", variant="primary")
                yield DataTable(id="table-products")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Code", "Name", "Category", "Manufacturer", "Price")
        self._sales = OrderController(self.app.order_service)
        self.load_catalog()

    @on(ScreenResume)
    def handle_resume(self):
        # discount depends on who is logged in
        self.render_products()

    def action_noop(self):
        pass

    def action_reload(self):
        self.load_catalog()

    @work(exclusive=True, group="catalog")
    async def load_catalog(self):
        table = self.query_one(DataTable)
        table.loading = True
        try:
            await self.app.catalog.load()
        finally:
            table.loading = False

        if self.app.catalog.error:
            self.notify(self.app.catalog.error, severity="error")

        products = self.app.catalog.products
        self.query_one("#select-category", Select).set_options(
            [(format_category(c), c) for c in categories(products)]
        )
        self.filters = self.filters.cleared(self.app.catalog.max_price)
        self.sync_filter_inputs()
        self.refresh_filter_options()
        self.render_products()

    @work(exclusive=True, group="popularity")
    async def load_popularity(self):
        orders = await self._sales.load_all()
        if self._sales.error:
            self.notify("Sales data unavailable, best selling keeps catalog order.", severity="warning")
        self._popularity = popularity_from_orders(orders)
        self.render_products()

    def sync_filter_inputs(self):
        max_price = self.query_one("#input-max-price", Input)
        with max_price.prevent(Input.Changed):
            max_price.value = "" if self.filters.max_price is None else str(self.filters.max_price)
        self.query_one("#label-max-price", Label).update(
            f"Max price (up to {format_price(self.app.catalog.max_price)})"
        )
        search = self.query_one("#input-search", Input)
        with search.prevent(Input.Changed):
            search.value = self.filters.search
        sort = self.query_one("#select-sort", Select)
        with sort.prevent(Select.Changed):
            sort.value = self.filters.sort

    def refresh_filter_options(self):
        manufacturers, distributors = filter_options(
            self.app.catalog.products, self.filters.category
        )
        for widget_id, values, chosen in (
            ("#list-manufacturers", manufacturers, self.filters.manufacturers),
            ("#list-distributors", distributors, self.filters.distributors),
        ):
            selection_list = self.query_one(widget_id, SelectionList)
            with selection_list.prevent(SelectionList.SelectionToggled):
                selection_list.clear_options()
                selection_list.add_options([(v, v, v in chosen) for v in values])

    def render_products(self):
        self._visible = derive_visible_products(
            self.app.catalog.products, self.filters, self._popularity
        )
        user = self.app.session.user
        table = self.query_one(DataTable)
        table.clear()
        for p in self._visible:
            quote = self.app.pricing.quote(p, user)
            price = format_price(quote.final)
            if quote.discounted:
                price = f"{price} (was {format_price(quote.base)})"
            table.add_row(
                p.code,
                p.name,
                format_category(p.category or "-"),
                p.manufacturer or "-",
                price,
                key=p.code,
            )
        total = len(self.app.catalog.products)
        self.query_one("#label-result-cnt", Label).update(
            f"Showing {len(self._visible)} of {total} product(s)"
        )
        message = empty_state(total, len(self._visible))
        self.query_one("#label-no-results", Label).update(message or "")
        self.query_one("#btn-clear-no-results").set_class(message != NO_MATCHES, "hidden")
        self.query_one("#hort-no-results").set_class(message is None, "hidden")
        table.set_class(message is not None, "hidden")

    @on(Input.Changed, "#input-search")
    def handle_search(self, event: Input.Changed):
        self.filters = replace(self.filters, search=event.value)
        self.render_products()

    @on(Input.Changed, "#input-max-price")
    def handle_max_price(self, event: Input.Changed):
        value = event.value.strip()
        try:
            max_price = int(value) if value else None
        except ValueError:
            return
        self.filters = replace(self.filters, max_price=max_price)
        self.render_products()

    @on(Select.Changed, "#select-category")
    def handle_category(self, event: Select.Changed):
        category = None if event.value == Select.BLANK else event.value
        self.filters = self.filters.with_category(category, self.app.catalog.max_price)
        self.sync_filter_inputs()
        self.refresh_filter_options()
        self.render_products()

    @on(Select.Changed, "#select-sort")
    def handle_sort(self, event: Select.Changed):
        criterion = SortCriterion(event.value)
        self.filters = replace(self.filters, sort=criterion)
        if criterion == SortCriterion.BEST_SELLING:
            self.load_popularity()
        self.render_products()

    @on(SelectionList.SelectionToggled)
    def handle_checkbox(self, event: SelectionList.SelectionToggled):
        kind = "manufacturers" if event.selection_list.id == "list-manufacturers" else "distributors"
        value = event.selection.value
        checked = value in event.selection_list.selected
        self.filters = self.filters.toggled(kind, value, checked)
        self.render_products()

    @on(Button.Pressed, "#btn-clear-filters")
    @on(Button.Pressed, "#btn-clear-no-results")
    def handle_clear_filters(self):
        self.filters = self.filters.cleared(self.app.catalog.max_price)
        self.sync_filter_inputs()
        self.refresh_filter_options()
        self.render_products()

    @on(DataTable.RowSelected)
    @work(exclusive=True, group="detail")
    async def handle_row_selected(self, event: DataTable.RowSelected):
        product = self.app.catalog.find(event.row_key.value)
        if product is None:
            return
        if await self.app.push_screen_wait(ProductDetailModal(product)):
            self.post_message(CartChangedMessage())
