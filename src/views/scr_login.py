from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

from api.client import ApiError
from shop.accounts import RegistrationError
from shop.models import RegistrationForm
from utils.messages import UserLoginMessage
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal, SimpleDialogModal

# RegistrationForm field -> (label, placeholder, masked)
REGISTRATION_FIELDS = {
    "username": ("Username", "gamer123", False),
    "email": ("Email", "name@duoc.cl", False),
    "birth_date": ("Birth date", "2000-01-31", False),
    "password": ("Password", "*********", True),
    "password_confirm": ("Confirm password", "*********", True),
    "phone": ("Phone (optional)", "912345678", False),
    "address": ("Address", "Av. Siempre Viva 742", False),
    "region": ("Region", "Region Metropolitana", False),
    "commune": ("Commune", "Santiago", False),
}


class LoginScreen(BaseScreen):
    """
    Dismissed once a user is logged in; the identity is in app.session.
    """

    SIDEBAR = False
    TITLE_OVERRIDE = "Login"

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="name@duoc.cl", id="input-login-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-login-pwd"
                    )
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Login", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with VerticalScroll(id="div-reg"):
                    for key, (label, placeholder, secret) in REGISTRATION_FIELDS.items():
                        yield Label(label)
                        yield Input(
                            placeholder=placeholder,
                            password=secret,
                            id=f"input-reg-{key}",
                        )
                    with Horizontal(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    @on(Input.Submitted, "#input-login-pwd")
    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value

        if not email or not pwd:
            self.notify("Email or password cannot be empty!", severity="error")
            return

        try:
            user = await self.app.accounts.login(email, pwd)
        except ApiError as e:
            self.notify(f"Could not log in: {e.message}", severity="error")
            return

        if user is None:
            self.notify("Invalid email or password.", severity="error")
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")
            return

        await self.app.session.login(user)
        self.notify(f"Hello {user.username}!")
        self.app.post_message(UserLoginMessage())
        self.dismiss()

    def read_registration_form(self) -> RegistrationForm:
        values = {
            key: self.query_one(f"#input-reg-{key}", Input).value
            for key in REGISTRATION_FIELDS
        }
        return RegistrationForm(**values)

    @on(Input.Submitted, "#input-reg-commune")
    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        form = self.read_registration_form()
        try:
            user = await self.app.accounts.register(form)
        except RegistrationError as e:
            await self.app.push_screen_wait(
                SimpleDialogModal("Please fix the following:", *e.problems, tone="error")
            )
            return
        except ApiError as e:
            self.notify(f"Registration failed: {e.message}", severity="error")
            return

        discount = " You get the DUOC 20% discount." if user.discount_eligible else ""
        await self.app.push_screen_wait(
            SimpleDialogModal(f"Registration successful, welcome {user.username}!{discount}")
        )

        self.get_child_by_type(TabbedContent).active = "tab-login"
        self.query_one("#input-login-email", Input).value = user.email
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = ""
        input_login_pwd.focus()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
