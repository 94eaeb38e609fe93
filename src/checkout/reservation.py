"""
Stock reservation: check every line against the current catalog, decrement, and
write the order, all inside one store transaction.
"""
from __future__ import annotations

from typing import Dict

import aiosqlite

from checkout.assembler import OrderDraft
from checkout.errors import (
    ProductNotFoundError,
    StockConflictError,
    TransactionFailedError,
    ValidationError,
)
from db import crud
from db.database import TransactionError, run_transaction
from db.models import UPCOMING, Product
from utils.logger import get_logger

_logger = get_logger(__name__)


def _reserves_stock(product: Product) -> bool:
    return product.stock_tracked and not product.is_pre_order


async def _read_products(conn: aiosqlite.Connection, draft: OrderDraft) -> Dict[int, Product]:
    current: Dict[int, Product] = {}
    for line in draft.lines:
        if line.pid in current:
            continue
        product = await crud.fetch_product(conn, line.pid)
        if product is None:
            raise ProductNotFoundError(line.pid, line.name)
        current[line.pid] = product
    return current


async def _insert_order(
    conn: aiosqlite.Connection, draft: OrderDraft, current: Dict[int, Product]
) -> int:
    cur = await conn.execute(
        """
        INSERT INTO orders(uid, ts, delivery_fee, total, paid, due, customer_name, phone,
                           address, payment_method, payment_number, transaction_id, status)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
        """,
        (
            draft.uid,
            draft.ts,
            draft.delivery_fee,
            draft.total,
            draft.paid,
            draft.due,
            draft.customer_name,
            draft.phone,
            draft.address,
            draft.payment_method,
            draft.payment_number,
            draft.transaction_id,
            draft.status,
        ),
    )
    ono = cur.lastrowid
    await cur.close()

    for line_no, line in enumerate(draft.lines, start=1):
        cur = await conn.execute(
            """
            INSERT INTO orderlines(ono, line_no, pid, name, color, uprice, qty,
                                   was_pre_order, stock_reserved)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                ono,
                line_no,
                line.pid,
                line.name,
                line.color,
                line.uprice,
                line.qty,
                int(line.was_pre_order),
                int(_reserves_stock(current[line.pid])),
            ),
        )
        await cur.close()
    return ono


async def reserve_and_place(draft: OrderDraft) -> int:
    """
    Place ``draft`` and return the new order number.

    Raises StockConflictError, ProductNotFoundError or ValidationError (the
    product stopped being orderable after the draft was built) when a check
    fails, and TransactionFailedError when the store does. In every failure case no
    stock has moved and no order exists.
    """

    async def _txn(conn: aiosqlite.Connection) -> int:
        current = await _read_products(conn, draft)
        wanted = draft.requested_quantities()

        # check everything before writing anything
        for pid, qty in wanted.items():
            product = current[pid]
            if product.availability == UPCOMING:
                raise ValidationError(f"{product.name} is not available for order yet.")
            if not product.price.announced:
                raise ValidationError(
                    f"The price of {product.name} has not been announced yet."
                )
            if _reserves_stock(product) and product.stock < qty:
                raise StockConflictError(product.name, max(product.stock, 0))

        for pid, qty in wanted.items():
            if _reserves_stock(current[pid]):
                cur = await conn.execute(
                    "UPDATE products SET stock = stock - ? WHERE pid = ?;", (qty, pid)
                )
                await cur.close()
        return await _insert_order(conn, draft, current)

    try:
        ono = await run_transaction(_txn)
    except (StockConflictError, ValidationError) as e:
        _logger.warning(f"Order rejected: {e.message}")
        raise
    except ProductNotFoundError as e:
        _logger.warning(f"Order rejected: product {e.pid} not found")
        raise
    except TransactionError as e:
        raise TransactionFailedError(
            "Could not place the order right now. Nothing was charged to stock; please try again."
        ) from e

    _logger.info(
        f"Order {ono} placed: {len(draft.lines)} line(s), total {draft.total:.2f}, "
        f"paid {draft.paid:.2f}, due {draft.due:.2f}"
    )
    return ono
