from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

import db.crud
from checkout.cart import LocalCart
from checkout.service import adopt_local_cart
from utils import config
from utils.messages import CartChangedMessage, UserLoginMessage
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal, SimpleDialogModal


class LoginScreen(BaseScreen):
    """
    Sign in, register, or continue as a guest. Dismisses once the shopper
    has picked one; the result is in app.ctx.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Sign in", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Sign in", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="you@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-login-pwd"
                    )
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Continue as Guest", id="btn-guest")
                        yield Button("Sign in", id="btn-login", variant="primary")

            with TabPane("Register", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Email")
                    yield Input(placeholder="you@example.com", id="input-reg-email")
                    yield Label("Phone")
                    yield Input(placeholder="01XXXXXXXXX", id="input-reg-phone")
                    yield Label("Address")
                    yield Input(placeholder="House, road, area, city", id="input-reg-address")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-reg-pwd"
                    )
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        if event.key == "enter" and self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value.strip()

        if not email or not pwd:
            self.notify("Email or password cannot be empty!", severity="error")
            return

        user = await db.crud.login(email, pwd)
        if not user:
            self.notify("Invalid email or password.", severity="error")
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")
            return

        self.app.ctx.sign_in(user)
        if not user.is_admin:
            moved = await adopt_local_cart(self.app.ctx, LocalCart(config.CART_PATH))
            if moved:
                self.app.post_message(CartChangedMessage())
        self.notify(f"Hello {user.email}!")
        self.app.post_message(UserLoginMessage())
        self.dismiss()

    @on(Button.Pressed, "#btn-guest")
    def handle_guest(self) -> None:
        self.app.ctx.sign_out()
        self.dismiss()

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        email = self.query_one("#input-reg-email", Input).value.strip()
        phone = self.query_one("#input-reg-phone", Input).value.strip()
        address = self.query_one("#input-reg-address", Input).value.strip()
        pwd = self.query_one("#input-reg-pwd", Input).value.strip()

        if not email or not pwd:
            self.notify("Email and password are required.", severity="error")
            return

        if not await db.crud.email_available(email):
            self.notify("Email already taken.", severity="error")
            return

        await db.crud.register_user(email, pwd, phone, address)
        await self.app.push_screen_wait(
            SimpleDialogModal("Registered! You can sign in now.", tone="positive")
        )

        self.get_child_by_type(TabbedContent).active = "tab-login"
        self.query_one("#input-login-email", Input).value = email
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = pwd
        input_login_pwd.focus()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
