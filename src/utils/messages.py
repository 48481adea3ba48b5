from textual.message import Message


class QuitRequestedMessage(Message):
    """
    posted by the quit dialog once the user confirmed
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    posted when the session ends, so the app can return to the login screen
    """

    bubble = True


class UserLoginMessage(Message):
    """
    Fired when a user logged in, so the sidebar can show who it is
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired whenever a line was added, removed or the cart cleared.
    Must be posted at App level to reach the cart screen from a modal.
    """

    bubble = True


class OrdersChangedMessage(Message):
    """
    Fired when the order list was reloaded because another instance
    created an order, or after a local checkout.
    """

    bubble = True


class ModeSwitchedMessage(Message):
    """
    posted by the app after every mode change (shop, cart, orders, admin)
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
