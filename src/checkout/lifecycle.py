"""
Order status lifecycle.

Forward only: Pending -> Processing -> Dispatched -> Delivered, with
Cancelled reachable from any state that is not terminal. Cancelling puts
reserved stock back.
"""
from __future__ import annotations

from typing import Dict, FrozenSet

import aiosqlite

from checkout.errors import (
    InvalidTransitionError,
    OrderNotFoundError,
    TransactionFailedError,
    ValidationError,
)
from db import crud
from db.database import TransactionError, run_transaction
from db.models import ORDER_STATUSES, Order
from utils.logger import get_logger

_logger = get_logger(__name__)

PENDING = "Pending"
PROCESSING = "Processing"
DISPATCHED = "Dispatched"
DELIVERED = "Delivered"
CANCELLED = "Cancelled"

TERMINAL: FrozenSet[str] = frozenset({DELIVERED, CANCELLED})

_PROGRESSION = (PENDING, PROCESSING, DISPATCHED, DELIVERED)

STATUS_EXPLANATIONS: Dict[str, str] = {
    PENDING: "Order received, waiting for processing.",
    PROCESSING: "Your order is being prepared.",
    DISPATCHED: "Your order has been shipped.",
    DELIVERED: "Your order has been delivered.",
    CANCELLED: "Your order has been cancelled.",
}


def allowed_next(current: str) -> FrozenSet[str]:
    """Statuses an order in ``current`` may move to (excluding itself)."""
    if current in TERMINAL or current not in _PROGRESSION:
        return frozenset()
    later = _PROGRESSION[_PROGRESSION.index(current) + 1 :]
    return frozenset(later) | {CANCELLED}


def can_transition(current: str, requested: str) -> bool:
    return requested == current or requested in allowed_next(current)


async def _restock(conn: aiosqlite.Connection, order: Order) -> int:
    """Return reserved quantities to the catalog. Returns units restored."""
    restored = 0
    for line in order.lines:
        if not line.stock_reserved:
            continue
        # deleted products and products switched to unlimited are left alone
        cur = await conn.execute(
            "UPDATE products SET stock = stock + ? WHERE pid = ? AND stock <> -1;",
            (line.qty, line.pid),
        )
        if cur.rowcount:
            restored += line.qty
        await cur.close()
    return restored


async def set_order_status(ono: int, requested: str) -> Order:
    """
    Move order ``ono`` to ``requested`` and return the updated order.

    Re-applying the current status changes nothing. Raises
    InvalidTransitionError for backwards moves or moves out of a terminal
    state, OrderNotFoundError for unknown orders.
    """
    if requested not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {requested}.")

    async def _txn(conn: aiosqlite.Connection) -> Order:
        order = await crud.fetch_order(conn, ono)
        if order is None:
            raise OrderNotFoundError(ono)
        if order.status == requested:
            return order
        if not can_transition(order.status, requested):
            raise InvalidTransitionError(order.status, requested)

        cur = await conn.execute(
            "UPDATE orders SET status = ? WHERE ono = ?;", (requested, ono)
        )
        await cur.close()
        if requested == CANCELLED:
            units = await _restock(conn, order)
            if units:
                _logger.info(f"Order {ono} cancelled, {units} unit(s) restocked")
        _logger.info(f"Order {ono}: {order.status} -> {requested}")
        return await crud.fetch_order(conn, ono)

    try:
        return await run_transaction(_txn)
    except TransactionError as e:
        raise TransactionFailedError(
            "Could not update the order status. Please try again."
        ) from e
