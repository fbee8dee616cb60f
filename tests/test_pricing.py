import os
import sys
import unittest
from datetime import date
from decimal import Decimal

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.models import (  # noqa: E402
    LineItem,
    Product,
    PurchaseMode,
    RateEntry,
    ShippingQuote,
    ShippingStatus,
    TaxStatus,
)
from pricing.cart import Cart  # noqa: E402
from pricing.rates import RateTable, load_rate_table  # noqa: E402
from pricing.tax import compute_tax  # noqa: E402
from pricing.totals import compose, compose_cart  # noqa: E402

FEE = Decimal("799")
DAY = date(2026, 3, 2)


def _item(pid, price, category, qty=1, mode=PurchaseMode.PURCHASE, origin=None):
    return LineItem(
        pid=pid,
        name=pid,
        unit_price=Decimal(price),
        category=category,
        quantity=qty,
        mode=mode,
        origin_postal_code=origin,
    )


def _quote(fee):
    return ShippingQuote(Decimal(fee), DAY, Decimal(fee) * 2, DAY)


def _table(**rates):
    return RateTable([RateEntry(k, Decimal(v)) for k, v in rates.items()])


class RateTableTestCase(unittest.IsolatedAsyncioTestCase):
    def test_lookup_falls_back_to_default(self):
        table = _table(Electronics="0.18", Default="0.05")
        self.assertEqual(table.rate_for("Electronics"), Decimal("0.18"))
        self.assertEqual(table.rate_for("Toys"), Decimal("0.05"))
        self.assertEqual(table.rate_for(None), Decimal("0.05"))
        self.assertIn("Electronics", table)
        self.assertEqual(len(table), 2)

    def test_no_default_means_untaxed(self):
        self.assertEqual(_table(Electronics="0.18").rate_for("Toys"), Decimal(0))
        self.assertTrue(RateTable().is_empty)

    async def test_load_uses_fetch(self):
        async def fetch():
            return [RateEntry("Bags", Decimal("0.12"))]

        table = await load_rate_table(fetch)
        self.assertIs(table.status, TaxStatus.LOADED)
        self.assertEqual(table.rate_for("Bags"), Decimal("0.12"))

    async def test_failed_load_degrades_to_empty(self):
        async def fetch():
            raise ConnectionError("db locked")

        with self.assertLogs("pricing.rates", level="WARNING") as logs:
            table = await load_rate_table(fetch)
        self.assertTrue(table.is_empty)
        self.assertIs(table.status, TaxStatus.UNAVAILABLE)
        self.assertIn("db locked", logs.output[0])


class TaxTestCase(unittest.TestCase):
    def test_single_category(self):
        tax = compute_tax([_item("a", "1000", "Electronics", qty=2)], _table(Electronics="0.18"))
        self.assertEqual(tax.total, Decimal("360"))
        self.assertEqual(len(tax.breakdown), 1)
        line = tax.breakdown[0]
        self.assertEqual(line.category, "Electronics")
        self.assertEqual(line.rate_percent, Decimal("18"))
        self.assertEqual(line.amount, Decimal("360"))

    def test_groups_by_category_in_first_seen_order(self):
        items = [
            _item("a", "100", "Bags"),
            _item("b", "1000", "Electronics"),
            _item("c", "300", "Bags", qty=2),
        ]
        tax = compute_tax(items, _table(Bags="0.12", Electronics="0.18"))
        self.assertEqual([line.category for line in tax.breakdown], ["Bags", "Electronics"])
        self.assertEqual(tax.breakdown[0].amount, Decimal("84"))
        self.assertEqual(tax.total, Decimal("264"))

    def test_unknown_category_uses_default(self):
        tax = compute_tax([_item("a", "200", "Toys")], _table(Default="0.05"))
        self.assertEqual(tax.breakdown[0].category, "Toys")
        self.assertEqual(tax.total, Decimal("10"))

    def test_zero_rate_categories_are_left_out(self):
        items = [_item("a", "200", "Books"), _item("b", "100", "Bags")]
        tax = compute_tax(items, _table(Books="0", Bags="0.12"))
        self.assertEqual([line.category for line in tax.breakdown], ["Bags"])

    def test_trial_items_are_not_taxed(self):
        items = [_item("a", "500", "Bags", mode=PurchaseMode.TRIAL)]
        tax = compute_tax(items, _table(Bags="0.12"))
        self.assertEqual(tax.total, Decimal(0))
        self.assertEqual(tax.breakdown, ())

    def test_no_table(self):
        items = [_item("a", "500", "Bags")]
        self.assertEqual(compute_tax(items, None).total, Decimal(0))
        self.assertEqual(compute_tax(items, RateTable()).total, Decimal(0))
        self.assertEqual(compute_tax(items, RateTable.unavailable()).breakdown, ())

    def test_amounts_are_not_rounded(self):
        tax = compute_tax([_item("a", "99.99", "Bags")], _table(Bags="0.12"))
        self.assertEqual(tax.total, Decimal("11.9988"))


class TotalsTestCase(unittest.TestCase):
    def test_purchase_only(self):
        totals = compose(
            [_item("a", "1000", "Electronics", qty=2)], _table(Electronics="0.18"), {}, "560001", FEE
        )
        self.assertEqual(totals.purchase_subtotal, Decimal("2000"))
        self.assertEqual(totals.total_tax, Decimal("360"))
        self.assertEqual(totals.trial_shipping_fee, Decimal(0))
        self.assertEqual(totals.grand_total, Decimal("2360"))
        self.assertTrue(totals.is_final)

    def test_trial_only(self):
        items = [
            _item("a", "500", "Bags", mode=PurchaseMode.TRIAL, origin="110001"),
            _item("b", "500", "Bags", mode=PurchaseMode.TRIAL),
        ]
        totals = compose(items, _table(Bags="0.12"), {}, None, FEE)
        self.assertEqual(totals.purchase_subtotal, Decimal(0))
        self.assertEqual(totals.trial_shipping_fee, FEE)
        self.assertEqual(totals.total_tax, Decimal(0))
        self.assertEqual(totals.total_shipping_fee, Decimal(0))
        # trial lines are not quoted, so no address is needed yet
        self.assertEqual(totals.shipping, ())
        self.assertTrue(totals.is_final)

    def test_rate_table_failed(self):
        totals = compose(
            [_item("a", "1000", "Electronics")], RateTable.unavailable(), {}, "560001", FEE
        )
        self.assertEqual(totals.total_tax, Decimal(0))
        self.assertIs(totals.tax_status, TaxStatus.UNAVAILABLE)
        self.assertTrue(totals.is_final)

    def test_rates_still_loading(self):
        totals = compose([_item("a", "1000", "Electronics")], None, {}, "560001", FEE)
        self.assertIs(totals.tax_status, TaxStatus.LOADING)
        self.assertFalse(totals.is_final)

    def test_shipping_states(self):
        items = [
            _item("quoted", "100", "Bags", origin="110001"),
            _item("failed", "100", "Bags", origin="400001"),
            _item("pending", "100", "Bags", origin="600001"),
            _item("free", "100", "Bags"),
        ]
        quotes = {"quoted": _quote(453), "failed": None}
        totals = compose(items, _table(Bags="0.12"), quotes, "560001", FEE)

        status = {s.pid: s.status for s in totals.shipping}
        self.assertEqual(
            status,
            {
                "quoted": ShippingStatus.QUOTED,
                "failed": ShippingStatus.UNAVAILABLE,
                "pending": ShippingStatus.CALCULATING,
                "free": ShippingStatus.FREE,
            },
        )
        self.assertEqual(totals.total_shipping_fee, Decimal(453))
        self.assertTrue(totals.shipping_pending)
        self.assertFalse(totals.is_final)
        self.assertEqual(totals.shipping_for("quoted").quote.fee, Decimal(453))
        self.assertIsNone(totals.shipping_for("nope"))

    def test_no_address(self):
        totals = compose(
            [_item("a", "100", "Bags", origin="110001")], _table(Bags="0.12"), {}, None, FEE
        )
        self.assertIs(totals.shipping[0].status, ShippingStatus.NEEDS_ADDRESS)
        self.assertTrue(totals.needs_address)
        self.assertFalse(totals.is_final)
        self.assertEqual(totals.total_shipping_fee, Decimal(0))

    def test_per_item_fees_are_summed(self):
        items = [
            _item("a", "100", "Bags", origin="110001"),
            _item("b", "100", "Bags", origin="110001"),
        ]
        totals = compose(items, _table(), {"a": _quote(90), "b": _quote(90)}, "560001", FEE)
        self.assertEqual(totals.total_shipping_fee, Decimal(180))

    def test_grand_total_is_sum_of_components(self):
        items = [
            _item("a", "2499", "Bags", qty=2, origin="110001"),
            _item("b", "1000", "Electronics"),
            _item("c", "500", "Luggage", mode=PurchaseMode.TRIAL),
        ]
        totals = compose(
            items, _table(Bags="0.12", Electronics="0.18"), {"a": _quote(453)}, "560001", FEE
        )
        self.assertEqual(
            totals.grand_total,
            totals.purchase_subtotal
            + totals.trial_shipping_fee
            + totals.total_shipping_fee
            + totals.total_tax,
        )
        self.assertEqual(totals.purchase_subtotal, Decimal("5998"))
        # 4998 * 0.12 + 1000 * 0.18
        self.assertEqual(totals.total_tax, Decimal("779.76"))
        self.assertEqual(totals.grand_total, Decimal("8029.76"))

    def test_empty_cart(self):
        totals = compose([], _table(Bags="0.12"), {}, None, FEE)
        self.assertEqual(totals.grand_total, Decimal(0))
        self.assertTrue(totals.is_final)

    def test_cart_trial_fee_is_the_one_charged(self):
        cart = Cart(trial_shipping_fee=Decimal("499"))
        cart.add_item(
            Product("p1", "Bag", "Bags", Decimal("2499"), None, "110001", True),
            PurchaseMode.TRIAL,
        )
        totals = compose_cart(cart, _table(Bags="0.12"))
        self.assertEqual(totals.trial_shipping_fee, cart.trial_shipping_fee)
        self.assertEqual(totals.grand_total, Decimal("499"))
        self.assertEqual(totals.items, cart.snapshot())


if __name__ == "__main__":
    unittest.main()
