import asyncio
import os
import sys
import tempfile
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from checkout.assembler import CheckoutForm, build_single_order  # noqa: E402
from checkout.reservation import reserve_and_place  # noqa: E402
from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from db.models import CASH_ON_DELIVERY, Product  # noqa: E402


def cod_form(address: str = "Road 5, Dhaka", **overrides) -> CheckoutForm:
    values = dict(
        customer_name="Rahim Uddin",
        phone="01700000000",
        address=address,
        payment_method=CASH_ON_DELIVERY,
        policy_accepted=True,
    )
    values.update(overrides)
    return CheckoutForm(**values)


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    """Points the store at a fresh temporary database for every test."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False
        db_database._init_lock = asyncio.Lock()

    async def asyncSetUp(self):
        # Touch initialization by opening a connection
        async with db_database.connect() as conn:
            cur = await conn.execute("SELECT name FROM sqlite_master WHERE type='table';")
            await cur.fetchall()
            await cur.close()

    def tearDown(self):
        self.temp_dir.cleanup()

    async def make_product(self, **overrides) -> Product:
        values = dict(name="Cotton Tee", category="Apparel", price=500, stock=10)
        values.update(overrides)
        pid = await crud.add_product(**values)
        return await crud.get_product(pid)

    async def place(self, product: Product, qty: int = 1, form: CheckoutForm = None) -> int:
        draft = build_single_order(product, qty, form or cod_form())
        return await reserve_and_place(draft)
