from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    bubble = True


class UserLoginMessage(Message):
    """
    Fired after sign-in, so the sidebar and cart can refresh
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired whenever a line is added, edited or removed, and after a cart checkout.

    If posted from outside CartScreen, make sure to post at App level
    """

    bubble = True


class NewOrderMessage(Message):
    """
    Fired when an order is placed; the admin orders screen reloads on it.
    """

    bubble = True

    def __init__(self, ono: int) -> None:
        super().__init__()
        self.ono = ono


class OrderStatusChangedMessage(Message):
    bubble = True

    def __init__(self, ono: int, status: str) -> None:
        super().__init__()
        self.ono = ono
        self.status = status


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
