import asyncio
import sqlite3
import unittest
from unittest import mock

import store_case  # noqa: F401
from checkout import reservation
from checkout.assembler import build_cart_order, build_single_order
from checkout.errors import (
    ProductNotFoundError,
    StockConflictError,
    TransactionFailedError,
    ValidationError,
)
from db import crud
from db import database as db_database
from db.database import TransactionError
from db.models import BKASH, CartItem
from store_case import StoreTestCase, cod_form
from utils import config


class ReservationTest(StoreTestCase):
    async def test_places_order_and_decrements_stock(self):
        p = await self.make_product(price=500, stock=10, color="Red")
        ono = await self.place(p, 3)

        self.assertEqual(await crud.product_stock(p.pid), 7)
        order = await crud.get_order_detail(ono)
        self.assertEqual(order.status, "Pending")
        self.assertEqual(order.total, 1610)
        self.assertEqual(order.paid + order.due, order.total)
        self.assertEqual(len(order.lines), 1)
        line = order.lines[0]
        self.assertEqual((line.pid, line.name, line.color), (p.pid, "Cotton Tee", "Red"))
        self.assertEqual((line.uprice, line.qty), (500, 3))
        self.assertTrue(line.stock_reserved)
        self.assertFalse(line.was_pre_order)

    async def test_lines_keep_their_snapshot(self):
        p = await self.make_product(price=500)
        ono = await self.place(p, 1)
        await crud.update_product_field(p.pid, "price", 900)
        await crud.update_product_field(p.pid, "name", "Renamed")

        line = (await crud.get_order_detail(ono)).lines[0]
        self.assertEqual(line.uprice, 500)
        self.assertEqual(line.name, "Cotton Tee")

    async def test_conflict_leaves_everything_untouched(self):
        p = await self.make_product(stock=5)
        draft = build_single_order(p, 4, cod_form())
        # someone else bought most of it after the draft was built
        await crud.update_product_field(p.pid, "stock", 2)

        with self.assertRaises(StockConflictError) as ctx:
            await reservation.reserve_and_place(draft)
        self.assertEqual(ctx.exception.remaining, 2)
        self.assertEqual(ctx.exception.message, "Not enough stock for Cotton Tee. Only 2 left.")
        self.assertEqual(await crud.product_stock(p.pid), 2)
        self.assertEqual(await crud.count_orders(), 0)

    async def test_one_short_line_blocks_the_whole_cart(self):
        a = await self.make_product(name="A", stock=5)
        b = await self.make_product(name="B", stock=5)
        draft = build_cart_order(
            [CartItem(a.pid, 2), CartItem(b.pid, 4)], {a.pid: a, b.pid: b}, cod_form()
        )
        await crud.update_product_field(b.pid, "stock", 3)

        with self.assertRaises(StockConflictError):
            await reservation.reserve_and_place(draft)
        self.assertEqual(await crud.product_stock(a.pid), 5)
        self.assertEqual(await crud.product_stock(b.pid), 3)
        self.assertEqual(await crud.count_orders(), 0)

    async def test_repeated_product_lines_are_checked_together(self):
        p = await self.make_product(stock=5)
        fresh = {p.pid: p}
        draft = build_cart_order([CartItem(p.pid, 3), CartItem(p.pid, 3)], fresh, cod_form())
        with self.assertRaises(StockConflictError):
            await reservation.reserve_and_place(draft)
        self.assertEqual(await crud.product_stock(p.pid), 5)

    async def test_product_withdrawn_after_draft_is_refused(self):
        for field, value in (("availability", "Upcoming"), ("price", "TBA")):
            with self.subTest(field=field):
                p = await self.make_product(stock=5)
                draft = build_single_order(p, 2, cod_form())
                await crud.update_product_field(p.pid, field, value)

                with self.assertRaises(ValidationError):
                    await reservation.reserve_and_place(draft)
                self.assertEqual(await crud.product_stock(p.pid), 5)
                self.assertEqual(await crud.count_orders(), 0)

    async def test_pre_order_does_not_touch_stock(self):
        p = await self.make_product(price=400, stock=0, availability="Pre Order")
        form = cod_form("Savar", payment_method=BKASH, transaction_id="trx1")
        ono = await self.place(p, 5, form)

        self.assertEqual(await crud.product_stock(p.pid), 0)
        order = await crud.get_order_detail(ono)
        self.assertEqual(order.payment_method, BKASH)
        self.assertEqual(order.paid, 500)
        self.assertFalse(order.lines[0].stock_reserved)
        self.assertTrue(order.lines[0].was_pre_order)

    async def test_unlimited_stock_is_never_decremented(self):
        p = await self.make_product(stock=-1)
        await self.place(p, 40)
        self.assertEqual(await crud.product_stock(p.pid), -1)

    async def test_deleted_product(self):
        p = await self.make_product()
        draft = build_single_order(p, 1, cod_form())
        await crud.delete_product(p.pid)
        with self.assertRaises(ProductNotFoundError):
            await reservation.reserve_and_place(draft)
        self.assertEqual(await crud.count_orders(), 0)

    async def test_concurrent_checkouts_never_oversell(self):
        stock, buyers = 3, 8
        p = await self.make_product(stock=stock)
        drafts = [build_single_order(p, 1, cod_form()) for _ in range(buyers)]

        results = await asyncio.gather(
            *(reservation.reserve_and_place(d) for d in drafts), return_exceptions=True
        )

        placed = [r for r in results if isinstance(r, int)]
        conflicts = [r for r in results if isinstance(r, StockConflictError)]
        self.assertEqual(len(placed), stock)
        self.assertEqual(len(conflicts), buyers - stock)
        self.assertEqual(len(set(placed)), stock)
        self.assertEqual(await crud.product_stock(p.pid), 0)
        self.assertEqual(await crud.count_orders(), stock)

    async def test_store_failure_is_reported(self):
        p = await self.make_product()
        draft = build_single_order(p, 1, cod_form())

        async def broken(fn, attempts=None):
            raise TransactionError("disk I/O error")

        with mock.patch.object(reservation, "run_transaction", broken):
            with self.assertRaises(TransactionFailedError):
                await reservation.reserve_and_place(draft)
        self.assertEqual(await crud.product_stock(p.pid), 10)


class RunTransactionTest(StoreTestCase):
    def setUp(self):
        super().setUp()
        self._backoff = config.TXN_BACKOFF_SECONDS
        config.TXN_BACKOFF_SECONDS = 0

    def tearDown(self):
        config.TXN_BACKOFF_SECONDS = self._backoff
        super().tearDown()

    async def test_retries_busy_then_commits(self):
        calls = []

        async def fn(conn):
            calls.append(1)
            await conn.execute("UPDATE products SET stock = 99 WHERE pid = 101;")
            if len(calls) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "done"

        self.assertEqual(await db_database.run_transaction(fn, attempts=5), "done")
        self.assertEqual(len(calls), 3)
        self.assertEqual(await crud.product_stock(101), 99)

    async def test_gives_up_after_attempts(self):
        calls = []

        async def fn(conn):
            calls.append(1)
            raise sqlite3.OperationalError("database is locked")

        with self.assertRaises(TransactionError):
            await db_database.run_transaction(fn, attempts=2)
        self.assertEqual(len(calls), 2)

    async def test_other_store_errors_are_not_retried(self):
        calls = []

        async def fn(conn):
            calls.append(1)
            await conn.execute("UPDATE products SET stock = -5 WHERE pid = 101;")

        with self.assertRaises(TransactionError):
            await db_database.run_transaction(fn, attempts=5)
        self.assertEqual(len(calls), 1)
        self.assertEqual(await crud.product_stock(101), 12)

    async def test_domain_errors_roll_back_and_propagate(self):
        async def fn(conn):
            await conn.execute("UPDATE products SET stock = 0 WHERE pid = 101;")
            raise StockConflictError("Wireless Earbuds", 0)

        with self.assertRaises(StockConflictError):
            await db_database.run_transaction(fn)
        self.assertEqual(await crud.product_stock(101), 12)


if __name__ == "__main__":
    unittest.main()
