"""
Cart storage. A signed-in shopper's cart lives in the store next to their
account; an anonymous shopper's cart is a JSON file on this device.
"""
from __future__ import annotations

import json
import os
from typing import List

from checkout.errors import ValidationError
from db import crud
from db.models import UPCOMING, CartItem, Product
from utils.logger import get_logger

_logger = get_logger(__name__)


class CartStore:
    """Common cart rules; subclasses only store lines."""

    async def items(self) -> List[CartItem]:
        raise NotImplementedError

    async def _add(self, item: CartItem) -> None:
        raise NotImplementedError

    async def set_qty(self, pid: int, qty: int) -> None:
        """Set a line's quantity; below 1 removes the line."""
        raise NotImplementedError

    async def remove(self, pid: int) -> None:
        raise NotImplementedError

    async def clear(self) -> None:
        raise NotImplementedError

    async def add(self, product: Product, qty: int = 1) -> None:
        """
        Add ``qty`` of ``product``; a product already in the cart has its
        quantity increased instead of getting a second line.
        """
        if qty < 1:
            raise ValidationError("Quantity must be at least 1.")
        if product.availability == UPCOMING:
            raise ValidationError(f"{product.name} is not available yet.")
        if product.stock_tracked and product.stock <= 0 and not product.is_pre_order:
            raise ValidationError("This product is out of stock!")
        await self._add(
            CartItem(pid=product.pid, qty=qty, name=product.name, color=product.color)
        )

    async def count(self) -> int:
        return sum(item.qty for item in await self.items())


class AccountCart(CartStore):
    def __init__(self, uid: int):
        self.uid = uid

    async def items(self) -> List[CartItem]:
        return await crud.list_cart(self.uid)

    async def _add(self, item: CartItem) -> None:
        await crud.add_to_cart(self.uid, item.pid, item.qty, item.name, item.color)

    async def set_qty(self, pid: int, qty: int) -> None:
        await crud.update_cart_qty(self.uid, pid, qty)

    async def remove(self, pid: int) -> None:
        await crud.remove_from_cart(self.uid, pid)

    async def clear(self) -> None:
        await crud.clear_cart(self.uid)


class LocalCart(CartStore):
    """Device-local cart kept in a JSON file; survives restarts."""

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> List[CartItem]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            _logger.warning(f"Ignoring unreadable cart file {self.path}: {e}")
            return []
        items = []
        for entry in raw if isinstance(raw, list) else []:
            try:
                items.append(
                    CartItem(
                        pid=int(entry["pid"]),
                        qty=int(entry["qty"]),
                        name=str(entry.get("name", "")),
                        color=str(entry.get("color", "")),
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
        return [i for i in items if i.qty >= 1]

    def _save(self, items: List[CartItem]) -> None:
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w") as f:
            json.dump(
                [
                    {"pid": i.pid, "qty": i.qty, "name": i.name, "color": i.color}
                    for i in items
                ],
                f,
            )
        os.replace(tmp, self.path)

    async def items(self) -> List[CartItem]:
        return self._load()

    async def _add(self, item: CartItem) -> None:
        items = self._load()
        for idx, existing in enumerate(items):
            if existing.pid == item.pid:
                items[idx] = CartItem(
                    pid=existing.pid,
                    qty=existing.qty + item.qty,
                    name=existing.name,
                    color=existing.color,
                )
                break
        else:
            items.append(item)
        self._save(items)

    async def set_qty(self, pid: int, qty: int) -> None:
        items = self._load()
        if qty < 1:
            items = [i for i in items if i.pid != pid]
        else:
            items = [
                CartItem(pid=i.pid, qty=qty, name=i.name, color=i.color)
                if i.pid == pid
                else i
                for i in items
            ]
        self._save(items)

    async def remove(self, pid: int) -> None:
        await self.set_qty(pid, 0)

    async def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
