from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from api.client import ApiClient
from api.orders import OrderService
from api.products import ProductService
from api.users import UserService
from shop.accounts import AccountService
from shop.broadcast import create_broadcast
from shop.cart import Cart
from shop.checkout import CheckoutService
from shop.orders import OrderController
from shop.pricing import PricingPolicy
from shop.products import CatalogController
from storage.kv import KeyValueStore
from utils import settings
from utils.logger import get_logger, use_textual_logging
from utils.messages import (
    CartChangedMessage,
    ModeSwitchedMessage,
    QuitRequestedMessage,
    UserLogoutMessage,
)
from utils.state import SessionContext
from views.scr_admin_orders import AdminOrdersScreen
from views.scr_admin_products import AdminProductsScreen
from views.scr_cart import CartScreen
from views.scr_login import LoginScreen
from views.scr_orders import OrdersScreen
from views.scr_shop import ShopScreen

logger = get_logger(__name__)


class LevelUpApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "shop": ShopScreen,
        "cart": CartScreen,
        "orders": OrdersScreen,
        "admin_orders": AdminOrdersScreen,
        "admin_products": AdminProductsScreen,
    }

    CUSTOMER_MODES = {"shop": "Catalog", "cart": "Cart", "orders": "My Orders"}
    ADMIN_MODES = {"admin_orders": "Orders", "admin_products": "Products"}

    CSS_PATH = "views/levelup.tcss"

    def __init__(self):
        super().__init__()
        self.client = ApiClient()
        self.order_service = OrderService(self.client)
        self.product_service = ProductService(self.client)
        self.user_service = UserService(self.client)

        self.store = KeyValueStore()
        self.session = SessionContext()
        self.pricing = PricingPolicy(settings.DISCOUNT_RATE)
        self.cart = Cart(self.store, self.pricing, self.session)
        self.catalog = CatalogController(self.product_service)
        self.accounts = AccountService(self.user_service)

        # set once mounted, needs the running loop
        self.broadcast = None
        self.orders: OrderController = None
        self.checkout_service: CheckoutService = None

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        use_textual_logging()
        self.broadcast = await create_broadcast()
        self.orders = OrderController(self.order_service, self.broadcast)
        self.checkout_service = CheckoutService(
            self.cart, self.orders, self.session, self.store
        )
        await self.cart.load()
        self.main_flow()

    async def on_unmount(self) -> None:
        await self.orders.close()
        if self.broadcast is not None:
            await self.broadcast.close()
        self.client.close()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        await self.orders.unwatch()
        await self.session.logout()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        await self.session.logout()
        self.exit()

    @work(exclusive=True, group="main-flow")
    async def main_flow(self):
        if await self.session.load() is None:
            await self.push_screen_wait(LoginScreen())

        new_mode = "admin_orders" if self.session.is_admin else "shop"
        self.post_message(ModeSwitchedMessage(self.current_mode, new_mode))
        await self.switch_mode(new_mode)
        self.post_message(CartChangedMessage())


def run():
    LevelUpApp().run()


if __name__ == "__main__":
    run()
