# src/db/crud.py
from __future__ import annotations

import hashlib
import json
import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import aiosqlite

from db import models
from db.database import connect
from utils.logger import get_logger

_logger = get_logger(__name__)

PRODUCT_COLUMNS = (
    "pid, name, color, category, price, discount, stock, availability, images, "
    "descr, detailed_descr, meta_title, meta_descr, hot_deal, filters"
)
ORDER_COLUMNS = (
    "ono, uid, ts, delivery_fee, total, paid, due, customer_name, phone, address, "
    "payment_method, payment_number, transaction_id, status"
)
LINE_COLUMNS = "pid, name, color, uprice, qty, was_pre_order, stock_reserved"

# columns the admin table may edit one at a time
EDITABLE_PRODUCT_FIELDS = (
    "name",
    "color",
    "category",
    "price",
    "discount",
    "stock",
    "availability",
    "images",
    "descr",
    "detailed_descr",
    "meta_title",
    "meta_descr",
    "hot_deal",
    "filters",
)


def _to_int(val) -> Optional[int]:
    try:
        return int(val)
    except (TypeError, ValueError):
        return None


def hash_password(pwd: str) -> str:
    return hashlib.sha256(pwd.encode()).hexdigest()


def _load_filters(raw) -> Dict[str, Tuple[str, ...]]:
    try:
        data = json.loads(raw or "{}")
    except ValueError:
        return {}
    if not isinstance(data, dict):
        return {}
    return {
        str(section): tuple(str(t) for t in tags)
        for section, tags in data.items()
        if isinstance(tags, list)
    }


def parse_filters(value) -> Dict[str, List[str]]:
    """
    Read product tags from a mapping or from admin text such as
    "Connectivity: Bluetooth, Wired; Use: Travel".
    """
    if isinstance(value, dict):
        items = list(value.items())
    else:
        items = []
        for part in str(value or "").split(";"):
            if not part.strip():
                continue
            section, sep, tags = part.partition(":")
            if not sep or not section.strip():
                raise ValueError('Filters must look like "Section: tag, tag; Section: tag".')
            items.append((section, tags.split(",")))
    filters: Dict[str, List[str]] = {}
    for section, tags in items:
        if isinstance(tags, str):
            tags = [tags]
        cleaned = [t.strip() for t in tags if t and t.strip()]
        if cleaned:
            filters.setdefault(section.strip(), []).extend(cleaned)
    return filters


def _row_to_product(row) -> models.Product:
    try:
        images = tuple(json.loads(row["images"] or "[]"))
    except ValueError:
        images = ()
    return models.Product(
        pid=row["pid"],
        name=row["name"],
        color=row["color"] or "",
        category=row["category"],
        price=models.Price(row["price"]),
        discount=float(row["discount"] or 0),
        stock=int(row["stock"]),
        availability=row["availability"],
        images=images,
        descr=row["descr"] or "",
        detailed_descr=row["detailed_descr"] or "",
        meta_title=row["meta_title"] or "",
        meta_descr=row["meta_descr"] or "",
        hot_deal=bool(row["hot_deal"]),
        filters=_load_filters(row["filters"]),
    )


def _row_to_line(row) -> models.OrderLine:
    return models.OrderLine(
        pid=row["pid"],
        name=row["name"],
        color=row["color"] or "",
        uprice=float(row["uprice"]),
        qty=int(row["qty"]),
        was_pre_order=bool(row["was_pre_order"]),
        stock_reserved=bool(row["stock_reserved"]),
    )


def _row_to_order(row, lines: Sequence[models.OrderLine] = ()) -> models.Order:
    return models.Order(
        ono=row["ono"],
        uid=row["uid"],
        ts=row["ts"],
        delivery_fee=float(row["delivery_fee"]),
        total=float(row["total"]),
        paid=float(row["paid"]),
        due=float(row["due"]),
        customer_name=row["customer_name"],
        phone=row["phone"],
        address=row["address"],
        payment_method=row["payment_method"],
        payment_number=row["payment_number"],
        transaction_id=row["transaction_id"],
        status=row["status"],
        lines=list(lines),
    )


# ---------------------------
# Auth & Registration
# ---------------------------


async def email_available(email: str) -> bool:
    """True if no user already registered with the given email."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT 1 FROM users WHERE LOWER(email) = LOWER(?) LIMIT 1;", (email,)
        )
        row = await cur.fetchone()
        await cur.close()
        return row is None


async def register_user(
    email: str, pwd: str, phone: str = "", address: str = ""
) -> int:
    """Create a customer account and return its uid."""
    email = email.strip()
    if not email or not pwd:
        raise ValueError("Email and password are required.")
    async with connect() as conn:
        cur = await conn.execute(
            "INSERT INTO users(email, pwd, is_admin, phone, address) VALUES (?, ?, 0, ?, ?);",
            (email, hash_password(pwd), phone.strip(), address.strip()),
        )
        uid = cur.lastrowid
        await cur.close()
        await conn.commit()
    _logger.info(f"Registered user {uid}")
    return uid


async def login(email: str, pwd: str) -> Optional[models.User]:
    """Return User if email/pwd match; otherwise None."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT uid, email, pwd, is_admin, phone, address
            FROM users
            WHERE LOWER(email) = LOWER(?) AND pwd = ?;
            """,
            (email.strip(), hash_password(pwd)),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.User(
        uid=row["uid"],
        email=row["email"],
        pwd=row["pwd"],
        is_admin=bool(row["is_admin"]),
        phone=row["phone"],
        address=row["address"],
    )


async def get_user(uid: int) -> Optional[models.User]:
    """Return a User object for the given uid, or None if not found."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT uid, email, pwd, is_admin, phone, address FROM users WHERE uid = ?;",
            (uid,),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.User(
        uid=row["uid"],
        email=row["email"],
        pwd=row["pwd"],
        is_admin=bool(row["is_admin"]),
        phone=row["phone"],
        address=row["address"],
    )


# ---------------------------
# Products (Browse, Filter, Admin edits)
# ---------------------------


async def list_products(
    category: Optional[str] = None,
    query: str = "",
    availability: Optional[str] = None,
    hot_deals_only: bool = False,
    max_price: Optional[float] = None,
    tags: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[models.Product]:
    """
    Catalog listing with the storefront filters, ordered by pid.

    - category / availability: exact match when given.
    - query: case-insensitive substring over name and descr, trimmed.
    - hot_deals_only: only products flagged as hot deals.
    - max_price: effective price (price - discount, TBA counts as 0) at most this.
    - tags: section -> ticked tags; a product must carry one ticked tag in
      every section that has any ticked.
    """
    conds: List[str] = []
    params: List[object] = []
    if category:
        conds.append("category = ?")
        params.append(category)
    if availability:
        conds.append("availability = ?")
        params.append(availability)
    if hot_deals_only:
        conds.append("hot_deal = 1")
    phrase = (query or "").strip().lower()
    if phrase:
        like = f"%{phrase}%"
        conds.append("(LOWER(name) LIKE ? OR LOWER(descr) LIKE ?)")
        params.extend([like, like])
    if max_price is not None:
        conds.append("COALESCE(price, 0) - discount <= ?")
        params.append(max_price)
    where_clause = " AND ".join(conds) if conds else "1 = 1"

    async with connect() as conn:
        cur = await conn.execute(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products
            WHERE {where_clause}
            ORDER BY pid;
            """,
            tuple(params),
        )
        rows = await cur.fetchall()
        await cur.close()
    products = [_row_to_product(row) for row in rows]
    if tags:
        products = [p for p in products if p.matches_tags(tags)]
    return products


async def list_filter_sections() -> List[models.FilterSection]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT name, tags FROM filter_sections ORDER BY position, name;"
        )
        rows = await cur.fetchall()
        await cur.close()
    sections = []
    for row in rows:
        try:
            tags = json.loads(row["tags"] or "[]")
        except ValueError:
            tags = []
        sections.append(models.FilterSection(row["name"], tuple(str(t) for t in tags)))
    return sections


async def save_filter_section(name: str, tags: Sequence[str], position: int = 0) -> None:
    """Create or replace a browse filter section."""
    name = name.strip()
    if not name:
        raise ValueError("Section name cannot be empty.")
    cleaned = [t.strip() for t in tags if t and t.strip()]
    async with connect() as conn:
        await conn.execute(
            """
            INSERT INTO filter_sections(name, tags, position) VALUES (?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET tags = excluded.tags, position = excluded.position;
            """,
            (name, json.dumps(cleaned), position),
        )
        await conn.commit()
    _logger.info(f"Saved filter section {name} ({len(cleaned)} tags)")


async def list_categories() -> List[str]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT DISTINCT category FROM products ORDER BY category;"
        )
        rows = await cur.fetchall()
        await cur.close()
    return [row[0] for row in rows]


async def get_product(pid: int) -> Optional[models.Product]:
    """Fetch a product by pid."""
    async with connect() as conn:
        return await fetch_product(conn, pid)


async def fetch_product(
    conn: aiosqlite.Connection, pid: int
) -> Optional[models.Product]:
    """Same as get_product, on a connection the caller already holds."""
    cur = await conn.execute(
        f"SELECT {PRODUCT_COLUMNS} FROM products WHERE pid = ?;", (pid,)
    )
    row = await cur.fetchone()
    await cur.close()
    return _row_to_product(row) if row else None


async def get_products(pids: Iterable[int]) -> Dict[int, models.Product]:
    """Fetch several products at once; missing pids are absent from the result."""
    wanted = sorted(set(pids))
    if not wanted:
        return {}
    marks = ", ".join("?" for _ in wanted)
    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT {PRODUCT_COLUMNS} FROM products WHERE pid IN ({marks});",
            tuple(wanted),
        )
        rows = await cur.fetchall()
        await cur.close()
    return {row["pid"]: _row_to_product(row) for row in rows}


def _clean_product_value(field: str, value):
    """Validate and convert one admin-entered value to its column form."""
    if field == "price":
        return models.Price.parse(value).amount
    if field == "discount":
        try:
            discount = float(value or 0)
        except (TypeError, ValueError):
            raise ValueError("Discount must be a number.") from None
        if math.isnan(discount) or math.isinf(discount):
            raise ValueError("Discount must be a number.")
        return discount
    if field == "stock":
        stock = _to_int(value)
        if stock is None or stock < models.UNLIMITED_STOCK:
            raise ValueError(
                f"Stock must be a whole number (use {models.UNLIMITED_STOCK} for unlimited)."
            )
        return stock
    if field == "availability":
        if value not in models.AVAILABILITIES:
            raise ValueError("Availability must be Ready, Pre Order, or Upcoming.")
        return value
    if field == "images":
        if isinstance(value, str):
            value = value.split(",")
        return json.dumps([u.strip() for u in value if u and u.strip()])
    if field == "hot_deal":
        return 1 if value else 0
    if field == "filters":
        return json.dumps(parse_filters(value))
    if field in ("name", "category") and not str(value or "").strip():
        raise ValueError(f"{field.capitalize()} cannot be empty.")
    return str(value or "").strip()


async def add_product(
    name: str,
    category: str,
    price="TBA",
    discount=0,
    stock=0,
    availability: str = "Ready",
    color: str = "",
    images: Sequence[str] | str = (),
    descr: str = "",
    detailed_descr: str = "",
    meta_title: str = "",
    meta_descr: str = "",
    hot_deal: bool = False,
    filters: Mapping[str, Sequence[str]] | str = "",
) -> int:
    """Insert a catalog product and return its pid. Raises ValueError on bad input."""
    values = {
        "name": name,
        "color": color,
        "category": category,
        "price": price,
        "discount": discount,
        "stock": stock,
        "availability": availability,
        "images": images,
        "descr": descr,
        "detailed_descr": detailed_descr,
        "meta_title": meta_title,
        "meta_descr": meta_descr,
        "hot_deal": hot_deal,
        "filters": filters,
    }
    cleaned = {k: _clean_product_value(k, v) for k, v in values.items()}
    cols = ", ".join(cleaned)
    marks = ", ".join("?" for _ in cleaned)
    async with connect() as conn:
        cur = await conn.execute(
            f"INSERT INTO products({cols}) VALUES ({marks});",
            tuple(cleaned.values()),
        )
        pid = cur.lastrowid
        await cur.close()
        await conn.commit()
    _logger.info(f"Added product {pid} ({name})")
    return pid


async def update_product_field(pid: int, field: str, value) -> bool:
    """
    Update a single product column. Return True if a row was updated.

    Unconditional write: a stock edit here races with checkouts in flight.
    """
    if field not in EDITABLE_PRODUCT_FIELDS:
        raise ValueError(f"Unknown product field: {field}")
    cleaned = _clean_product_value(field, value)
    async with connect() as conn:
        res = await conn.execute(
            f"UPDATE products SET {field} = ? WHERE pid = ?;", (cleaned, pid)
        )
        await conn.commit()
        updated = res.rowcount > 0
    if updated:
        _logger.info(f"Product {pid}: {field} updated")
    return updated


async def delete_product(pid: int) -> bool:
    async with connect() as conn:
        res = await conn.execute("DELETE FROM products WHERE pid = ?;", (pid,))
        await conn.commit()
        deleted = res.rowcount > 0
    if deleted:
        _logger.info(f"Deleted product {pid}")
    return deleted


async def product_stock(pid: int) -> Optional[int]:
    async with connect() as conn:
        cur = await conn.execute("SELECT stock FROM products WHERE pid = ?;", (pid,))
        row = await cur.fetchone()
        await cur.close()
        return int(row[0]) if row else None


# ---------------------------
# Account cart (signed-in users)
# ---------------------------


async def list_cart(uid: int) -> List[models.CartItem]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT pid, qty, name, color FROM cart WHERE uid = ? ORDER BY rowid;",
            (uid,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.CartItem(pid=row[0], qty=row[1], name=row[2], color=row[3])
        for row in rows
    ]


async def add_to_cart(uid: int, pid: int, qty: int, name: str = "", color: str = "") -> None:
    """Add a line, or increase the quantity of the existing line for pid."""
    if qty < 1:
        raise ValueError("Quantity must be at least 1.")
    async with connect() as conn:
        await conn.execute(
            """
            INSERT INTO cart(uid, pid, name, color, qty) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(uid, pid) DO UPDATE SET qty = qty + excluded.qty;
            """,
            (uid, pid, name, color, qty),
        )
        await conn.commit()


async def update_cart_qty(uid: int, pid: int, qty: int) -> None:
    """Set a line's quantity; anything below 1 removes the line."""
    async with connect() as conn:
        if qty < 1:
            await conn.execute(
                "DELETE FROM cart WHERE uid = ? AND pid = ?;", (uid, pid)
            )
        else:
            await conn.execute(
                "UPDATE cart SET qty = ? WHERE uid = ? AND pid = ?;", (qty, uid, pid)
            )
        await conn.commit()


async def remove_from_cart(uid: int, pid: int) -> None:
    async with connect() as conn:
        await conn.execute("DELETE FROM cart WHERE uid = ? AND pid = ?;", (uid, pid))
        await conn.commit()


async def clear_cart(uid: int) -> None:
    async with connect() as conn:
        await conn.execute("DELETE FROM cart WHERE uid = ?;", (uid,))
        await conn.commit()


# ---------------------------
# Orders
# ---------------------------


async def fetch_order(conn: aiosqlite.Connection, ono: int) -> Optional[models.Order]:
    cur = await conn.execute(f"SELECT {ORDER_COLUMNS} FROM orders WHERE ono = ?;", (ono,))
    order_row = await cur.fetchone()
    await cur.close()
    if not order_row:
        return None
    cur = await conn.execute(
        f"SELECT {LINE_COLUMNS} FROM orderlines WHERE ono = ? ORDER BY line_no;",
        (ono,),
    )
    line_rows = await cur.fetchall()
    await cur.close()
    return _row_to_order(order_row, [_row_to_line(r) for r in line_rows])


async def get_order_detail(ono: int) -> Optional[models.Order]:
    """Return the order with its snapshot lines, or None."""
    async with connect() as conn:
        return await fetch_order(conn, ono)


async def list_orders(
    page: int = 1,
    page_size: int = 10,
    status: Optional[str] = None,
    uid: Optional[int] = None,
) -> Tuple[List[models.Order], int]:
    """
    Orders newest first, paginated, optionally filtered by status or by user.
    Return (orders_for_page, total_count). Lines are included.
    """
    conds: List[str] = []
    params: List[object] = []
    if status:
        conds.append("status = ?")
        params.append(status)
    if uid is not None:
        conds.append("uid = ?")
        params.append(uid)
    where_clause = " AND ".join(conds) if conds else "1 = 1"

    async with connect() as conn:
        cur = await conn.execute(
            f"SELECT COUNT(*) FROM orders WHERE {where_clause};", tuple(params)
        )
        total = (await cur.fetchone())[0]
        await cur.close()

        offset = max(page - 1, 0) * page_size
        cur = await conn.execute(
            f"""
            SELECT ono
            FROM orders
            WHERE {where_clause}
            ORDER BY ts DESC, ono DESC
            LIMIT ? OFFSET ?;
            """,
            tuple(params + [page_size, offset]),
        )
        onos = [row[0] for row in await cur.fetchall()]
        await cur.close()

        orders = [await fetch_order(conn, ono) for ono in onos]
    return [o for o in orders if o is not None], total


async def count_orders() -> int:
    async with connect() as conn:
        cur = await conn.execute("SELECT COUNT(*) FROM orders;")
        row = await cur.fetchone()
        await cur.close()
    return int(row[0])
