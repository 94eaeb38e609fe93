from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from utils.logger import get_logger
from utils.messages import ModeSwitchedMessage, QuitRequestedMessage, UserLogoutMessage
from utils.state import OrderContext
from views.scr_admin_orders import AdminOrdersScreen
from views.scr_admin_products import AdminProductsScreen
from views.scr_browse import BrowseScreen
from views.scr_cart import CartScreen
from views.scr_login import LoginScreen
from views.scr_my_orders import MyOrdersScreen

_logger = get_logger(__name__)


class StorefrontApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "browse": BrowseScreen,
        "cart": CartScreen,
        "my_orders": MyOrdersScreen,
        "admin_products": AdminProductsScreen,
        "admin_orders": AdminOrdersScreen,
    }

    ADMIN_MODES = {"admin_products": "Products", "admin_orders": "Orders"}
    CUSTOMER_MODES = {"browse": "Shop", "cart": "Cart", "my_orders": "My Orders"}
    GUEST_MODES = {"browse": "Shop", "cart": "Cart"}

    CSS_PATH = [
        "styles/index.tcss",
        "styles/login.tcss",
        "styles/browse.tcss",
        "styles/cart.tcss",
        "styles/checkout.tcss",
        "styles/admin.tcss",
    ]

    ctx: OrderContext

    def __init__(self):
        super().__init__()
        self.ctx = OrderContext()

    def menu_modes(self) -> dict:
        if self.ctx.is_admin:
            return self.ADMIN_MODES
        if self.ctx.user:
            return self.CUSTOMER_MODES
        return self.GUEST_MODES

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        self.ctx.sign_out()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.exit()

    @work
    async def main_flow(self):
        await self.push_screen_wait(LoginScreen())
        new_mode = "admin_products" if self.ctx.is_admin else "browse"
        _logger.info(f"Entering {new_mode} as {self.ctx.role or 'guest'}")
        self.post_message(ModeSwitchedMessage(self.current_mode, new_mode))
        await self.switch_mode(new_mode)


def run():
    StorefrontApp().run()


if __name__ == "__main__":
    run()
