from __future__ import annotations

from dataclasses import replace
from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, MarkdownViewer

from api.client import ApiError
from shop.catalog import FilterState, derive_visible_products, format_category
from shop.models import Product
from utils.pure import format_price, generate_markdown_table
from views.base_screen import BaseScreen
from views.modal_dialog import ConfirmModal


class AdminProductsScreen(BaseScreen):
    """
    Admins search the catalog, then rename, reprice or delete a product.
    """

    current_code: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Input(id="input-search", placeholder="Search for product...")
            yield DataTable(id="table-admin-products")
            yield MarkdownViewer(id="md-prod", show_table_of_contents=False)
            with Horizontal(id="hort-controls"):
                with Vertical():
                    yield Label("Name:")
                    yield Input(id="input-name")
                with Vertical():
                    yield Label("Price ($):")
                    yield Input(
                        id="input-price",
                        type="integer",
                        validators=[Number(minimum=0)],
                    )
                with Horizontal(id="div-button"):
                    yield Button("Update", id="btn-update", variant="success")
                    yield Button("Delete", id="btn-delete", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Code", "Name", "Category", "Price")
        self.query_one("#hort-controls").add_class("hidden")
        self.query_one("#input-search", Input).focus()
        self.load_catalog()

    @work(exclusive=True, group="catalog")
    async def load_catalog(self):
        await self.app.catalog.load()
        if self.app.catalog.error:
            self.notify(self.app.catalog.error, severity="error")
        self.update_results(self.query_one("#input-search", Input).value)

    @on(Input.Changed, "#input-search")
    def handle_search(self, message: Input.Changed) -> None:
        self.update_results(message.value)

    def update_results(self, query: str):
        matches = derive_visible_products(self.app.catalog.products, FilterState(search=query))
        table = self.query_one(DataTable)
        table.clear()
        for p in matches:
            table.add_row(
                p.code,
                p.name,
                format_category(p.category or "-"),
                format_price(p.price),
                key=p.code,
            )

    @on(DataTable.RowSelected)
    def handle_row_selected(self, event: DataTable.RowSelected):
        self.current_code = event.row_key.value
        self.render_product()

    def selected_product(self) -> Optional[Product]:
        if self.current_code is None:
            return None
        return self.app.catalog.find(self.current_code)

    def render_product(self) -> None:
        prod = self.selected_product()
        controls = self.query_one("#hort-controls")
        md_viewer = self.query_one("#md-prod", MarkdownViewer)
        if prod is None:
            controls.add_class("hidden")
            md_viewer.document.update("")
            return

        rows = [
            ["Code", prod.code],
            ["Category", prod.category or "-"],
            ["Manufacturer", prod.manufacturer or "-"],
            ["Distributor", prod.distributor or "-"],
            ["Brand", prod.brand or "-"],
            ["Price", format_price(prod.price)],
        ]
        md_viewer.document.update(
            f"### {prod.name}\n\n" + generate_markdown_table(["Attribute", "Value"], rows)
        )

        # prefill inputs with current values
        self.query_one("#input-name", Input).value = prod.name
        self.query_one("#input-price", Input).value = str(prod.price)
        controls.remove_class("hidden")

    @on(Button.Pressed, "#btn-update")
    @work(exclusive=True, group="write")
    async def handle_update(self) -> None:
        prod = self.selected_product()
        if prod is None:
            return

        name_input = self.query_one("#input-name", Input)
        price_input = self.query_one("#input-price", Input)
        name = name_input.value.strip()
        if not name:
            name_input.focus()
            name_input.add_class("-invalid")
            return
        if not price_input.value or not price_input.is_valid:
            price_input.focus()
            price_input.add_class("-invalid")
            return

        new_price = int(price_input.value)
        if name == prod.name and new_price == prod.price:
            self.notify("Nothing to update.", severity="warning")
            return

        try:
            await self.app.catalog.update(replace(prod, name=name, price=new_price))
        except ApiError as e:
            self.notify(f"Update failed: {e.message}", severity="error")
            return

        self.notify("Product updated successfully.")
        self.update_results(self.query_one("#input-search", Input).value)
        self.render_product()

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True, group="write")
    async def handle_delete(self) -> None:
        prod = self.selected_product()
        if prod is None:
            return

        if not await self.app.push_screen_wait(
            ConfirmModal(
                f"Delete {prod.name} ({prod.code})? This cannot be undone.",
                tone="error",
                yes="Delete",
                no="Cancel",
            )
        ):
            return

        try:
            await self.app.catalog.delete(prod.code)
        except ApiError as e:
            self.notify(f"Delete failed: {e.message}", severity="error")
            return

        self.notify(f"Deleted {prod.name}.")
        self.current_code = None
        self.update_results(self.query_one("#input-search", Input).value)
        self.render_product()
