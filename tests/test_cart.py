import os
import unittest

import store_case  # noqa: F401
from checkout.cart import AccountCart, LocalCart
from checkout.errors import ValidationError
from db import crud
from store_case import StoreTestCase


class LocalCartTest(StoreTestCase):
    def setUp(self):
        super().setUp()
        self.cart_path = os.path.join(self.temp_dir.name, "cart", "cart.json")

    async def test_add_increments_existing_line(self):
        p = await self.make_product(color="Blue")
        cart = LocalCart(self.cart_path)
        await cart.add(p, 2)
        await cart.add(p, 3)

        items = await cart.items()
        self.assertEqual(len(items), 1)
        self.assertEqual((items[0].pid, items[0].qty), (p.pid, 5))
        self.assertEqual((items[0].name, items[0].color), ("Cotton Tee", "Blue"))
        self.assertEqual(await cart.count(), 5)

    async def test_survives_restart(self):
        a = await self.make_product(name="A")
        b = await self.make_product(name="B")
        cart = LocalCart(self.cart_path)
        await cart.add(a)
        await cart.add(b, 2)

        reopened = LocalCart(self.cart_path)
        self.assertEqual([(i.pid, i.qty) for i in await reopened.items()], [(a.pid, 1), (b.pid, 2)])

    async def test_set_qty_and_remove(self):
        a = await self.make_product(name="A")
        b = await self.make_product(name="B")
        cart = LocalCart(self.cart_path)
        await cart.add(a)
        await cart.add(b)

        await cart.set_qty(a.pid, 4)
        self.assertEqual((await cart.items())[0].qty, 4)
        await cart.set_qty(a.pid, 0)
        self.assertEqual([i.pid for i in await cart.items()], [b.pid])
        await cart.remove(b.pid)
        self.assertEqual(await cart.items(), [])

    async def test_clear_removes_file(self):
        p = await self.make_product()
        cart = LocalCart(self.cart_path)
        await cart.add(p)
        self.assertTrue(os.path.exists(self.cart_path))
        await cart.clear()
        self.assertFalse(os.path.exists(self.cart_path))
        self.assertEqual(await cart.items(), [])

    async def test_unreadable_file_is_an_empty_cart(self):
        os.makedirs(os.path.dirname(self.cart_path), exist_ok=True)
        with open(self.cart_path, "w") as f:
            f.write("{not json")
        self.assertEqual(await LocalCart(self.cart_path).items(), [])

        with open(self.cart_path, "w") as f:
            f.write('[{"pid": 1, "qty": 2}, {"pid": "x"}, {"qty": 1}, {"pid": 3, "qty": 0}]')
        items = await LocalCart(self.cart_path).items()
        self.assertEqual([(i.pid, i.qty) for i in items], [(1, 2)])


class AccountCartTest(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.uid = await crud.register_user("shopper@example.com", "pw")
        self.cart = AccountCart(self.uid)

    async def test_add_increments_existing_line(self):
        p = await self.make_product()
        await self.cart.add(p, 1)
        await self.cart.add(p, 2)
        items = await self.cart.items()
        self.assertEqual([(i.pid, i.qty, i.name) for i in items], [(p.pid, 3, "Cotton Tee")])

    async def test_carts_are_per_account(self):
        p = await self.make_product()
        other = AccountCart(await crud.register_user("other@example.com", "pw"))
        await self.cart.add(p)
        self.assertEqual(await other.items(), [])

    async def test_set_qty_remove_clear(self):
        a = await self.make_product(name="A")
        b = await self.make_product(name="B")
        await self.cart.add(a)
        await self.cart.add(b)

        await self.cart.set_qty(a.pid, 6)
        self.assertEqual(await self.cart.count(), 7)
        await self.cart.set_qty(a.pid, 0)
        self.assertEqual([i.pid for i in await self.cart.items()], [b.pid])
        await self.cart.remove(b.pid)
        self.assertEqual(await self.cart.count(), 0)

        await self.cart.add(a)
        await self.cart.clear()
        self.assertEqual(await self.cart.items(), [])


class AddRulesTest(StoreTestCase):
    async def test_rejects_what_cannot_be_ordered(self):
        cart = LocalCart(os.path.join(self.temp_dir.name, "cart.json"))
        upcoming = await self.make_product(price="TBA", availability="Upcoming")
        sold_out = await self.make_product(stock=0)
        in_stock = await self.make_product(stock=1)

        with self.assertRaises(ValidationError):
            await cart.add(upcoming)
        with self.assertRaises(ValidationError) as ctx:
            await cart.add(sold_out)
        self.assertEqual(ctx.exception.message, "This product is out of stock!")
        with self.assertRaises(ValidationError):
            await cart.add(in_stock, 0)
        self.assertEqual(await cart.items(), [])

    async def test_pre_order_and_unlimited_need_no_stock(self):
        cart = LocalCart(os.path.join(self.temp_dir.name, "cart.json"))
        pre = await self.make_product(stock=0, availability="Pre Order")
        unlimited = await self.make_product(stock=-1)
        await cart.add(pre)
        await cart.add(unlimited, 3)
        self.assertEqual(await cart.count(), 4)


if __name__ == "__main__":
    unittest.main()
