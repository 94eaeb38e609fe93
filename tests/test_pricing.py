import math
import unittest

import store_case  # noqa: F401  (puts src/ on sys.path)
from checkout import pricing
from db.models import BKASH, CASH_ON_DELIVERY, Price, Product
from utils import config


class DeliveryFeeTest(unittest.TestCase):
    def test_tiers(self):
        self.assertEqual(pricing.delivery_fee("Bank Town, Savar"), 70)
        self.assertEqual(pricing.delivery_fee("Dhanmondi, Dhaka"), 110)
        self.assertEqual(pricing.delivery_fee("Agrabad, Chattogram"), 150)
        self.assertEqual(pricing.delivery_fee(""), 150)

    def test_case_insensitive(self):
        for addr in ("Savar", "SAVAR", "savar", "sAvAr cantonment"):
            self.assertEqual(pricing.delivery_fee(addr), 70, addr)
        for addr in ("Dhaka", "DHAKA", "north dhaka"):
            self.assertEqual(pricing.delivery_fee(addr), 110, addr)

    def test_savar_wins_over_dhaka(self):
        self.assertEqual(pricing.delivery_fee("Savar, Dhaka"), 70)

    def test_fee_is_always_a_known_tier(self):
        for addr in ("", "x", "Savar", "dhaka", "Sylhet", "savarr", "dhak"):
            self.assertIn(pricing.delivery_fee(addr), {70, 110, 150})

    def test_fees_follow_config(self):
        orig = config.FEE_DEFAULT
        try:
            config.FEE_DEFAULT = 200
            self.assertEqual(pricing.delivery_fee("Khulna"), 200)
        finally:
            config.FEE_DEFAULT = orig


class UpfrontTest(unittest.TestCase):
    def test_rounds_to_nearest_five(self):
        self.assertEqual(pricing.upfront_amount(400), 100)
        self.assertEqual(pricing.upfront_amount(410), 105)  # 102.5 -> 105
        self.assertEqual(pricing.upfront_amount(1000), 250)
        self.assertEqual(pricing.upfront_amount(0), 0)

    def test_halves_round_up(self):
        # 130 * 0.25 / 5 == 6.5
        self.assertEqual(pricing.upfront_amount(130), 35)

    def test_formula_and_balance(self):
        for sub in range(0, 5000, 37):
            for fee in (70, 110, 150):
                upfront = pricing.upfront_amount(sub)
                self.assertEqual(upfront, math.floor(sub * 0.25 / 5 + 0.5) * 5)
                self.assertEqual(upfront % 5, 0)
                q = pricing.quote(sub, fee, BKASH, pre_order=True)
                self.assertEqual(q.pay_now, upfront)
                self.assertEqual(q.pay_now + q.due, sub + fee)


class QuoteTest(unittest.TestCase):
    def test_balance_on_every_method(self):
        for sub in (0, 250, 999, 1000, 4321):
            for fee in (70, 110, 150):
                for method, pre in ((BKASH, False), (CASH_ON_DELIVERY, False), (BKASH, True)):
                    q = pricing.quote(sub, fee, method, pre)
                    self.assertTrue(q.settled)
                    self.assertEqual(q.pay_now + q.due, q.total)
                    self.assertEqual(q.total, sub + fee)

    def test_bkash_pays_everything_now(self):
        q = pricing.quote(1000, 110, BKASH)
        self.assertEqual((q.pay_now, q.due), (1110, 0))

    def test_cod_pays_delivery_now(self):
        # 500 x 2 to Dhaka, cash on delivery
        sub = pricing.subtotal([(500, 2)])
        q = pricing.quote(sub, pricing.delivery_fee("Dhaka"), CASH_ON_DELIVERY)
        self.assertEqual(q.subtotal, 1000)
        self.assertEqual(q.delivery_fee, 110)
        self.assertEqual(q.pay_now, 110)
        self.assertEqual(q.due, 1000)
        self.assertEqual(q.total, 1110)

    def test_pre_order_example(self):
        q = pricing.quote(400, pricing.delivery_fee("Savar"), None, pre_order=True)
        self.assertEqual(q.subtotal, 400)
        self.assertEqual(q.delivery_fee, 70)
        self.assertEqual(q.pay_now, 100)
        self.assertEqual(q.due, 370)

    def test_no_method_has_no_figures(self):
        q = pricing.quote(1000, 110, None)
        self.assertIsNone(q.pay_now)
        self.assertIsNone(q.due)
        self.assertFalse(q.settled)
        self.assertEqual(q.total, 1110)

    def test_subtotal_sums_lines(self):
        self.assertEqual(pricing.subtotal([(100, 2), (50.5, 2), (0, 9)]), 301)
        self.assertEqual(pricing.subtotal([]), 0)

    def test_unit_price_subtracts_discount(self):
        p = Product(pid=1, name="A", category="c", price=Price(1500), discount=100,
                    stock=3, availability="Ready")
        self.assertEqual(pricing.unit_price(p), 1400)
        tba = Product(pid=2, name="B", category="c", price=Price(None), discount=0,
                      stock=3, availability="Upcoming")
        self.assertEqual(pricing.unit_price(tba), 0)


class InstructionsTest(unittest.TestCase):
    def test_notes_name_the_account(self):
        q = pricing.quote(400, 70, BKASH, pre_order=True)
        self.assertIn(config.BKASH_NUMBER, pricing.payment_instructions(q, BKASH, True))
        self.assertIn("100", pricing.payment_instructions(q, BKASH, True))

        q = pricing.quote(1000, 110, CASH_ON_DELIVERY)
        self.assertIn("110", pricing.payment_instructions(q, CASH_ON_DELIVERY))
        self.assertEqual(pricing.payment_instructions(pricing.quote(1, 1, None), None), "")

    def test_payment_numbers(self):
        self.assertEqual(pricing.payment_number_for(BKASH), config.BKASH_NUMBER)
        self.assertEqual(pricing.payment_number_for(CASH_ON_DELIVERY), config.COD_NUMBER)
        self.assertEqual(pricing.payment_number_for(None), "")


class PriceTest(unittest.TestCase):
    def test_parse(self):
        self.assertEqual(Price.parse("TBA"), Price(None))
        self.assertEqual(Price.parse(" tba "), Price(None))
        self.assertEqual(Price.parse(None), Price(None))
        self.assertEqual(Price.parse("499.5"), Price(499.5))
        self.assertEqual(Price.parse(300), Price(300.0))
        self.assertFalse(Price.parse("TBA").announced)
        self.assertTrue(Price.parse("0").announced)
        for bad in ("abc", "", "nan", [1]):
            with self.assertRaises(ValueError):
                Price.parse(bad)

    def test_str(self):
        self.assertEqual(str(Price(None)), "TBA")
        self.assertEqual(str(Price(1500.0)), "1500")


if __name__ == "__main__":
    unittest.main()
