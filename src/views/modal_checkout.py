from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer

from api.client import ApiError
from shop.checkout import POINT_VALUE, CheckoutError, points_for
from utils.pure import format_price, generate_markdown_table
from views.modal_dialog import ConfirmModal, SimpleDialogModal


class CheckoutModal(ModalScreen[bool]):
    """
    Order summary plus shipping address.
    Return True when the order was placed, False otherwise.
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            yield Label("Shipping Address")
            yield Input(placeholder="Av. Siempre Viva 742, Santiago", id="input-address-line")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        cart = self.app.cart
        headers = ["Product", "Unit Price", "Quantity", "Subtotal"]
        rows = [
            [
                line.product.name,
                format_price(line.unit_price),
                line.quantity,
                format_price(line.subtotal),
            ]
            for line in cart.lines
        ]
        md = "### Order Summary\n\n" + generate_markdown_table(headers, rows, ["l", "r", "c", "r"])
        md += f"\n\n**Total:** {format_price(cart.total_amount)}"

        points = points_for(cart.total_amount)
        balance = await self.app.checkout_service.points_balance()
        md += (
            f"\n\nThis order earns **{points}** Level-Up point(s), worth "
            f"{format_price(points * POINT_VALUE)}. Current balance: {balance}."
        )
        await self.query_one(MarkdownViewer).document.update(md)

        address = self.query_one("#input-address-line", Input)
        user = self.app.session.user
        if user and user.address:
            address.value = user.address
        address.focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        address_input = self.query_one("#input-address-line", Input)
        address_line = address_input.value.strip()
        if not address_line:
            address_input.focus()
            address_input.add_class("-invalid")
            self.notify("Address line is required.", severity="error")
            return

        if not await self.app.push_screen_wait(
            ConfirmModal(
                "Place order? This cannot be undone.",
                tone="positive",
            )
        ):
            return

        try:
            result = await self.app.checkout_service.checkout(address_line)
        except CheckoutError as e:
            self.notify(str(e), severity="error")
            self.dismiss(False)
            return
        except ApiError as e:
            # nothing was charged, the cart is kept for another try
            self.notify(f"Could not place the order: {e.message}", severity="error")
            return

        await self.app.push_screen_wait(
            SimpleDialogModal(
                f"Order #{result.order.id} placed!",
                f"Total: {format_price(result.order.total)}",
                f"Points earned: {result.points_earned} (balance {result.points_total})",
                f"Shipping code: #{result.shipping_code}",
                tone="positive",
            )
        )
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
