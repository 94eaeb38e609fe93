from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from checkout.cart import AccountCart, CartStore, LocalCart
from db.models import User
from utils import config


@dataclass
class OrderContext:
    """
    Who is shopping and where their cart lives.

    The app keeps one of these and hands it to every checkout call instead of
    letting the checkout code look the user up on its own.

    Fields:
      - user: signed-in account, or None while anonymous
      - cart: AccountCart for a signed-in user, LocalCart otherwise
    """

    user: Optional[User] = None
    cart: CartStore = field(default_factory=lambda: LocalCart(config.CART_PATH))

    @property
    def uid(self) -> Optional[int]:
        return self.user.uid if self.user else None

    @property
    def role(self) -> Optional[str]:
        return self.user.role if self.user else None

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.is_admin)

    def sign_in(self, user: User) -> None:
        self.user = user
        self.cart = AccountCart(user.uid)

    def sign_out(self, cart_path: Optional[str] = None) -> None:
        self.user = None
        self.cart = LocalCart(cart_path or config.CART_PATH)
