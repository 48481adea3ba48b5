from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils.messages import (
    CartChangedMessage,
    ModeSwitchedMessage,
    UserLoginMessage,
    UserLogoutMessage,
)
from utils.pure import format_price, generate_markdown_table
from views.modal_dialog import ConfirmModal, QuitDialogModal


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self.init_mode = self.app.current_mode
        user = self.app.session.user
        if user is None:
            return

        await self.update_user_info()

        modes = self.app.ADMIN_MODES if user.is_admin else self.app.CUSTOMER_MODES
        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), id="list-menu-item-" + k) for k, v in modes.items()]
        )
        self.highlight_item(self.init_mode)

    async def update_user_info(self):
        user = self.app.session.user
        if user is None:
            return

        rows = [["User", user.username], ["Role", "Admin" if user.is_admin else "Customer"]]
        if not user.is_admin:
            rows.append(["Discount", "DUOC 20%" if user.discount_eligible else "-"])
            rows.append(["Points", await self.app.checkout_service.points_balance()])
            rows.append(
                ["Cart", f"{self.app.cart.item_count} ({format_price(self.app.cart.total_amount)})"]
            )
        md_table_str = generate_markdown_table(None, rows, ["l", "l"])
        await self.query_one(Markdown).update(md_table_str)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.post_message(ModeSwitchedMessage(self.app.current_mode, selected_mode))
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-logout")
    @work(exclusive=True)
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            ConfirmModal(
                "Are you sure you want to log out?",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Header, footer and the sidebar shared by every mode. Subclasses set
    SIDEBAR = False to hide the sidebar, and TITLE_OVERRIDE to replace the
    mode name in the header.
    """

    SIDEBAR = True
    TITLE_OVERRIDE = ""

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def on_screen_resume(self) -> None:
        self.app.title = "Level-Up Gamer"
        self.sub_title = self.TITLE_OVERRIDE or self.mode_title()

    def mode_title(self) -> str:
        titles = {**self.app.CUSTOMER_MODES, **self.app.ADMIN_MODES}
        mode = next((k for k, v in self.app.MODES.items() if isinstance(self, v)), "")
        return titles.get(mode, "")

    def compose(self) -> ComposeResult:
        if self.SIDEBAR:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @on(UserLoginMessage)
    @on(CartChangedMessage)
    async def handle_user_info_change(self):
        if self.SIDEBAR:
            await self.query_one(Sidebar).update_user_info()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
