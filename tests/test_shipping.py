import os
import sys
import unittest
from datetime import date, timedelta
from decimal import Decimal

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.models import LineItem, PurchaseMode  # noqa: E402
from pricing import shipping  # noqa: E402
from pricing.errors import CheckoutError, InvalidPostalCode  # noqa: E402

TODAY = date(2026, 3, 2)


def _item(pid, origin, mode=PurchaseMode.PURCHASE):
    return LineItem(
        pid=pid,
        name=pid,
        unit_price=Decimal("100"),
        category="Bags",
        quantity=1,
        mode=mode,
        origin_postal_code=origin,
    )


class EstimateTestCase(unittest.TestCase):
    def test_identical_pincodes_cost_the_base_fee(self):
        quote = shipping.estimate("560001", "560001", TODAY)
        self.assertEqual(quote.fee, Decimal(40))
        self.assertEqual(quote.express_fee, Decimal(110))
        self.assertEqual(quote.standard_delivery_date, TODAY + timedelta(days=2))
        self.assertEqual(quote.express_delivery_date, TODAY + timedelta(days=1))

    def test_distance(self):
        # |110 - 560| * 2.5 + (1 + 1) % 50
        self.assertEqual(shipping.pseudo_distance("110001", "560001"), Decimal("1127"))
        self.assertEqual(shipping.pseudo_distance("560001", "110001"), Decimal("1127"))
        self.assertEqual(shipping.pseudo_distance("560030", "560040"), Decimal(20))

    def test_fee_tiers(self):
        self.assertEqual(shipping.standard_fee(Decimal(50)), Decimal(40))
        self.assertEqual(shipping.standard_fee(Decimal(150)), Decimal(90))
        # 40 + 450 * 0.5 + 627 * 0.3 = 453.1
        self.assertEqual(shipping.standard_fee(Decimal(1127)), Decimal(453))
        # 40 + 1.5 * 0.5 = 40.75 rounds half up
        self.assertEqual(shipping.standard_fee(Decimal("51.5")), Decimal(41))
        self.assertEqual(shipping.express_fee(Decimal(453)), Decimal(730))

    def test_long_haul_quote(self):
        quote = shipping.estimate("110001", "560001", TODAY)
        self.assertEqual(quote.fee, Decimal(453))
        self.assertEqual(quote.express_fee, Decimal(730))
        # 2 + 1127 // 250, 1 + 1127 // 500
        self.assertEqual(quote.standard_delivery_date, TODAY + timedelta(days=6))
        self.assertEqual(quote.express_delivery_date, TODAY + timedelta(days=3))

    def test_fee_never_decreases_with_distance(self):
        fees = [shipping.standard_fee(Decimal(d)) for d in range(0, 3000, 7)]
        self.assertEqual(fees, sorted(fees))
        self.assertTrue(all(f >= Decimal(40) for f in fees))

    def test_express_is_dearer_and_faster(self):
        pairs = [("560001", "560001"), ("110001", "560001"), ("400001", "700016"), ("999999", "100000")]
        for origin, destination in pairs:
            with self.subTest(origin=origin, destination=destination):
                quote = shipping.estimate(origin, destination, TODAY)
                self.assertGreater(quote.express_fee, quote.fee)
                self.assertLessEqual(quote.express_delivery_date, quote.standard_delivery_date)

    def test_same_inputs_same_quote(self):
        self.assertEqual(
            shipping.estimate("400001", "700016", TODAY),
            shipping.estimate("400001", "700016", TODAY),
        )

    def test_invalid_postal_codes(self):
        for bad in ["00000", "012345", "12AB56", "5600011", "", None]:
            with self.subTest(code=bad):
                with self.assertRaises(InvalidPostalCode) as ctx:
                    shipping.estimate("560001", bad, TODAY)
                self.assertEqual(ctx.exception.postal_code, bad)
        with self.assertRaises(ValueError):
            shipping.estimate("12AB56", "560001", TODAY)
        self.assertTrue(issubclass(InvalidPostalCode, CheckoutError))


class FailingEstimator(shipping.ShippingEstimator):
    def __init__(self, failing):
        super().__init__(latency=0)
        self.failing = failing
        self.calls = []

    async def quote(self, origin, destination):
        self.calls.append(origin)
        if origin in self.failing:
            raise ConnectionError("courier API down")
        return await super().quote(origin, destination)


class QuoteItemsTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_quotes_only_purchase_items_with_pickup(self):
        estimator = FailingEstimator(failing=())
        items = [
            _item("a", "110001"),
            _item("b", None),
            _item("c", "400001", PurchaseMode.TRIAL),
        ]
        quotes = await shipping.quote_items(items, "560001", estimator)
        self.assertEqual(set(quotes), {"a"})
        self.assertEqual(quotes["a"].fee, Decimal(453))
        self.assertEqual(estimator.calls, ["110001"])

    async def test_one_failure_does_not_sink_the_others(self):
        estimator = FailingEstimator(failing={"110001"})
        items = [_item("a", "110001"), _item("b", "560034")]
        with self.assertLogs("pricing.shipping", level="WARNING"):
            quotes = await shipping.quote_items(items, "560001", estimator)
        self.assertIsNone(quotes["a"])
        self.assertIsNotNone(quotes["b"])

    async def test_invalid_pickup_code_maps_to_none(self):
        with self.assertLogs("pricing.shipping", level="WARNING"):
            quotes = await shipping.quote_items(
                [_item("a", "012345")], "560001", shipping.ShippingEstimator(latency=0)
            )
        self.assertEqual(quotes, {"a": None})

    async def test_no_destination_no_lookups(self):
        estimator = FailingEstimator(failing=())
        self.assertEqual(await shipping.quote_items([_item("a", "110001")], None, estimator), {})
        self.assertEqual(estimator.calls, [])


if __name__ == "__main__":
    unittest.main()
