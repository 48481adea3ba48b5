from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label, MarkdownViewer

from shop.models import Order
from utils.messages import OrdersChangedMessage
from utils.pure import format_date, format_price, generate_markdown_table
from views.base_screen import BaseScreen


def render_order_markdown(order: Optional[Order]) -> str:
    if order is None:
        return "### Select an order to view its details."

    header = (
        f"### Order #{order.id}\n"
        f"Date: {format_date(order.created_at)}  \n"
        f"Status: {order.status.label}  \n"
        f"Ship To: {order.address or '-'}\n\n"
    )
    rows = [
        [
            line.name or line.code,
            line.quantity,
            format_price(line.unit_price),
            format_price(line.subtotal),
        ]
        for line in order.lines
    ]
    table = generate_markdown_table(
        ["Product", "Qty", "Unit Price", "Subtotal"], rows, ["l", "r", "r", "r"]
    )
    return header + table + f"\n\n**Total:** {format_price(order.total)}"


class OrdersScreen(BaseScreen):
    """
    The logged-in customer's orders. Reloads by itself when another running
    instance places an order for the same customer.
    """

    BINDINGS = [
        Binding("ctrl+r", "reload", "Refresh", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._watched_uid: Optional[int] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Label("", id="label-sync")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Date", "Status", "Items", "Total")

    @on(ScreenResume)
    @work(exclusive=True, group="watch")
    async def handle_resume(self):
        uid = self.app.session.uid
        # logout drops the subscription, so a returning user has to re-arm it
        if uid is not None and (uid != self._watched_uid or not self.app.orders.watching):
            synced = await self.app.orders.watch(
                uid, on_change=lambda: self.post_message(OrdersChangedMessage())
            )
            self._watched_uid = uid
            self.query_one("#label-sync", Label).update(
                "Live updates on" if synced else "Live updates off, refresh by hand"
            )
        self.reload_orders()

    def action_reload(self):
        self.reload_orders()

    @on(Button.Pressed, "#btn-refresh")
    def handle_refresh(self):
        self.reload_orders()

    @on(OrdersChangedMessage)
    def handle_orders_changed(self):
        # the controller already reloaded
        self.render_orders()

    @work(exclusive=True, group="orders")
    async def reload_orders(self) -> None:
        uid = self.app.session.uid
        if uid is None:
            return
        table = self.query_one(DataTable)
        table.loading = True
        try:
            await self.app.orders.load_by_user(uid)
        finally:
            table.loading = False
        if self.app.orders.error:
            self.notify(self.app.orders.error, severity="error")
        self.render_orders()

    def render_orders(self) -> None:
        # newest first
        orders = sorted(self.app.orders.orders, key=lambda o: o.id, reverse=True)
        table = self.query_one(DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.id,
                format_date(o.created_at),
                o.status.label,
                sum(line.quantity for line in o.lines),
                format_price(o.total),
                key=str(o.id),
            )
        if orders:
            table.move_cursor(row=0)
            self.render_detail(orders[0])
        else:
            self.render_detail(None)

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is None or event.row_key.value is None:
            return
        self.render_detail(self.app.orders.find(int(event.row_key.value)))

    def render_detail(self, order: Optional[Order]) -> None:
        self.query_one("#md-order-detail", MarkdownViewer).document.update(
            render_order_markdown(order)
        )
