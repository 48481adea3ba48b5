from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from shop.catalog import format_category
from shop.models import Product
from utils.pure import format_price, generate_markdown_table

MAX_ORDER_QTY = 99


class ProductDetailModal(ModalScreen[bool]):
    """
    Product detail plus quantity picker.
    Returns True if the cart changed, False if not.
    """

    order_qty = reactive(1)

    def __init__(self, product: Product) -> None:
        super().__init__()
        self._prod = product

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="div-prod-order"):
                yield Label("", id="label-prod-price")
                yield Label("", id="label-in-cart")
                yield Label("Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(
                        value="1",
                        id="input-order-qty",
                        type="integer",
                        validators=[Number(minimum=1, maximum=MAX_ORDER_QTY)],
                    )
                    yield Button("+", id="btn-add-qty")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Add to Cart", id="btn-addcart", variant="primary")

    async def on_mount(self):
        p = self._prod
        rows = [
            ["Code", p.code],
            ["Category", format_category(p.category or "-")],
            ["Manufacturer", p.manufacturer or "-"],
            ["Distributor", p.distributor or "-"],
            ["Brand", p.brand or "-"],
            ["Material", p.material or "-"],
        ]
        md = f"### {p.name}\n\n" + generate_markdown_table(["Attribute", "Value"], rows)
        if p.description:
            md += f"\n\n{p.description}"
        await self.query_one(MarkdownViewer).document.update(md)

        quote = self.app.pricing.quote(p, self.app.session.user)
        price = format_price(quote.final)
        if quote.discounted:
            price += f" (DUOC discount, was {format_price(quote.base)})"
        self.query_one("#label-prod-price", Label).update(price)

        in_cart = self.app.cart.quantity_of(p.code)
        if in_cart:
            self.query_one("#label-in-cart", Label).update(f"{in_cart} already in cart")

        self.query_one("#input-order-qty").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    async def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#btn-add-qty").disabled = qty >= MAX_ORDER_QTY
        self.query_one("#input-order-qty", Input).value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty = min(self.order_qty + 1, MAX_ORDER_QTY)

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty = max(self.order_qty - 1, 1)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        # the cart trusts the quantity, the validator and buttons keep it >= 1
        line = await self.app.cart.add_to_cart(self._prod, max(self.order_qty, 1))
        self.app.notify(f"{self._prod.name} added, {line.quantity} in cart.")
        self.dismiss(True)
