from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume, ScreenSuspend
from textual.timer import Timer
from textual.widgets import Button, DataTable, Input, Label, MarkdownViewer

from api.client import ApiError
from shop.models import OrderStatus
from shop.orders import InvalidStatusTransition, OrderController
from utils import settings
from utils.messages import OrdersChangedMessage
from utils.pure import format_date, format_price
from views.base_screen import BaseScreen
from views.modal_dialog import ConfirmModal
from views.scr_orders import render_order_markdown


class AdminOrdersScreen(BaseScreen):
    """
    Every order of every customer, optionally narrowed to one customer id.
    Refreshed on a timer while visible, and on order events from other
    instances.
    """

    def __init__(self) -> None:
        super().__init__()
        self._controller: Optional[OrderController] = None
        self._poll: Optional[Timer] = None
        self._selected: Optional[int] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-admin-filter"):
            yield Label("Customer id")
            yield Input(id="input-customer-id", type="integer", placeholder="all")
            yield Button("Refresh", id="btn-refresh")
            yield Button("Mark delivered", id="btn-deliver", variant="success")
        with Vertical():
            yield DataTable(id="table-admin-orders")
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)

    async def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Date", "Customer", "Status", "Total", "Address")

        self._controller = OrderController(self.app.order_service, self.app.broadcast)
        await self._controller.watch(
            None, on_change=lambda: self.post_message(OrdersChangedMessage())
        )

    async def on_unmount(self) -> None:
        if self._controller is not None:
            await self._controller.close()

    @on(ScreenResume)
    def handle_resume(self):
        self.reload_orders()
        if self._poll is None:
            self._poll = self.set_interval(settings.ADMIN_POLL_SECONDS, self.reload_orders)
        else:
            self._poll.resume()

    @on(ScreenSuspend)
    def handle_suspend(self):
        if self._poll is not None:
            self._poll.pause()

    @on(Button.Pressed, "#btn-refresh")
    @on(Input.Submitted, "#input-customer-id")
    def handle_refresh(self):
        self.reload_orders()

    @on(OrdersChangedMessage)
    def handle_orders_changed(self):
        self.render_orders()

    def customer_filter(self) -> Optional[int]:
        value = self.query_one("#input-customer-id", Input).value.strip()
        return int(value) if value.isdigit() else None

    @work(exclusive=True, group="orders")
    async def reload_orders(self) -> None:
        customer = self.customer_filter()
        if customer is None:
            await self._controller.load_all()
        else:
            await self._controller.load_by_user(customer)
        if self._controller.error:
            self.notify(self._controller.error, severity="error")
        self.render_orders()

    def render_orders(self) -> None:
        orders = sorted(self._controller.orders, key=lambda o: o.id, reverse=True)
        table = self.query_one(DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.id,
                format_date(o.created_at),
                o.user_id,
                o.status.label,
                format_price(o.total),
                o.address or "-",
                key=str(o.id),
            )
        delivered = sum(1 for o in orders if o.status == OrderStatus.DELIVERED)
        self.sub_title = f"Orders ({len(orders)}, {delivered} delivered)"

        # keep the admin's selection across refreshes
        if self._selected is not None and self._controller.find(self._selected):
            table.move_cursor(row=table.get_row_index(str(self._selected)))
        self.render_detail()

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is None or event.row_key.value is None:
            return
        self._selected = int(event.row_key.value)
        self.render_detail()

    def render_detail(self) -> None:
        order = self._controller.find(self._selected) if self._selected is not None else None
        self.query_one("#md-order-detail", MarkdownViewer).document.update(
            render_order_markdown(order)
        )

    @on(Button.Pressed, "#btn-deliver")
    @work(exclusive=True, group="status")
    async def handle_deliver(self) -> None:
        order = self._controller.find(self._selected) if self._selected is not None else None
        if order is None:
            self.notify("Select an order first.", severity="warning")
            return
        if order.status == OrderStatus.DELIVERED:
            self.notify(f"Order #{order.id} is already delivered.", severity="warning")
            return

        if not await self.app.push_screen_wait(
            ConfirmModal(
                f"Mark order #{order.id} as delivered?",
                tone="positive",
            )
        ):
            return

        try:
            await self._controller.update_status(order.id, OrderStatus.DELIVERED)
        except (ApiError, InvalidStatusTransition) as e:
            self.notify(f"Could not update order #{order.id}: {e}", severity="error")
            return
        self.notify(f"Order #{order.id} delivered.")
        self.render_orders()
