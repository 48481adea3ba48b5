from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.message import Message
from textual.widgets import Button, Label, Rule

from shop.checkout import points_for
from shop.models import CartLine
from utils.messages import CartChangedMessage, ModeSwitchedMessage, OrdersChangedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import ConfirmModal


class CartLineActionMessage(Message):
    bubble = True

    def __init__(self, code: str, action: str) -> None:
        super().__init__()
        self.code = code
        self.action = action


class CartLineActionLabel(Label):
    def __init__(self, code: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.code = code

    def action_more(self):
        self.post_message(CartLineActionMessage(self.code, "more"))

    def action_less(self):
        self.post_message(CartLineActionMessage(self.code, "less"))

    def action_remove(self):
        self.post_message(CartLineActionMessage(self.code, "remove"))


class CartLineWidget(HorizontalGroup):
    def __init__(self, line: CartLine):
        super().__init__()
        self.line = line

    def compose(self):
        line = self.line
        with Container(classes="div-cart-item-group"):
            with Container(classes="div-item"):
                yield Label(line.product.name, classes="label-item-name")
                yield Label(f"x{line.quantity}", classes="label-item-qty")
                yield Label(format_price(line.unit_price), classes="label-item-price")
                yield Label(format_price(line.subtotal), classes="label-item-subtotal")
            with Container(classes="div-actions"):
                yield CartLineActionLabel(line.code, "[@click=more()]+1[/]")
                yield CartLineActionLabel(line.code, "[@click=less()]-1[/]")
                yield CartLineActionLabel(line.code, "[@click=remove()]Remove[/]")


class CartScreen(BaseScreen):
    """
    Lines of the cart with +1 / -1 / remove actions, total and checkout.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("Total: $0", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    def on_mount(self):
        self.handle_cart_change()

    @on(CartChangedMessage)
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @work(exclusive=True)  # must be exclusive, two rebuilds would mount duplicates
    async def handle_cart_change(self):
        cart = self.app.cart
        content = self.query_one("#vertscroll-content")
        shown = [w.line for w in content.children if isinstance(w, CartLineWidget)]
        if shown == list(cart.lines) and shown:
            return

        await content.remove_children()
        await content.mount_all([CartLineWidget(line) for line in cart.lines])
        content.set_class(cart.is_empty, "no-items")

        total = cart.total_amount
        self.query_one("#label-cart-total", Label).update(
            f"Total: {format_price(total)}  ({cart.item_count} item(s), "
            f"earns {points_for(total)} point(s))"
        )
        await self.handle_user_info_change()

    @on(CartLineActionMessage)
    @work(group="cart-action")
    async def handle_line_action(self, message: CartLineActionMessage):
        cart = self.app.cart
        line = cart.get_line(message.code)
        if line is None:
            return

        if message.action == "more":
            await cart.add_to_cart(line.product, 1)
        elif message.action == "less":
            await cart.remove_from_cart(line.code, 1)
        else:
            if not await self.app.push_screen_wait(
                ConfirmModal(
                    f"Remove {line.product.name} from the cart?",
                    tone="warning",
                )
            ):
                return
            await cart.remove_from_cart(line.code, line.quantity)
            self.notify("Item removed from cart.")

        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-clear-cart")
    @work(exclusive=True, group="cart-action")
    async def handle_clear_cart(self) -> None:
        if self.app.cart.is_empty:
            self.app.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(
            ConfirmModal(
                "Do you really want to remove all items from cart?",
                tone="error",
            )
        ):
            await self.app.cart.clear_cart()
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work(exclusive=True, group="cart-action")
    async def handle_checkout(self) -> None:
        if self.app.cart.is_empty:
            self.app.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(CheckoutModal()):
            self.app.post_message(OrdersChangedMessage())
        self.post_message(CartChangedMessage())
