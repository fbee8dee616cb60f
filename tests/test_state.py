import asyncio
import os
import sys
import tempfile
import unittest
from decimal import Decimal
from unittest import mock

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from db.models import PurchaseMode, ShippingStatus, TaxStatus  # noqa: E402
from pricing.cart import Cart  # noqa: E402
from pricing.shipping import ShippingEstimator  # noqa: E402
from utils.state import SessionState  # noqa: E402


class SessionStateTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        db_database.DB_PATH = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database._initialized = False
        self.state = SessionState(
            user_id="user_1001",
            cart=Cart(trial_shipping_fee=Decimal("799")),
            estimator=ShippingEstimator(latency=0),
        )

    def tearDown(self):
        self.temp_dir.cleanup()

    async def _fill_cart(self):
        # earbuds ship from 400001, the duffel has no pickup code
        for pid, mode in [("prod_3", PurchaseMode.PURCHASE), ("prod_4", PurchaseMode.PURCHASE)]:
            self.state.cart.add_item(await crud.get_product(pid), mode)
        self.state.cart.add_item(await crud.get_product("prod_1"), PurchaseMode.TRIAL)

    async def test_load_addresses_selects_default(self):
        await self.state.load_addresses()
        self.assertEqual(self.state.selected_aid, "addr_1")
        self.assertEqual(self.state.destination_postal_code, "560001")

    async def test_no_addresses(self):
        self.state.user_id = "nobody"
        await self.state.load_addresses()
        self.assertIsNone(self.state.shipping_address)
        self.assertIsNone(self.state.destination_postal_code)

    async def test_address_without_pincode(self):
        self.state.user_id = "user_1002"
        await self.state.load_addresses()
        self.assertEqual(self.state.selected_aid, "addr_3")
        self.assertIsNone(self.state.destination_postal_code)

    async def test_full_pricing_flow(self):
        await self._fill_cart()
        await self.state.load_addresses()

        # nothing loaded yet
        self.assertIs(self.state.totals().tax_status, TaxStatus.LOADING)

        await self.state.load_rates()
        totals = self.state.totals()
        self.assertIs(totals.shipping_for("prod_3").status, ShippingStatus.CALCULATING)
        self.assertIs(totals.shipping_for("prod_4").status, ShippingStatus.FREE)
        self.assertFalse(totals.is_final)

        await self.state.refresh_shipping()
        totals = self.state.totals()
        self.assertTrue(totals.is_final)
        self.assertEqual(totals.purchase_subtotal, Decimal("4499"))
        self.assertEqual(totals.trial_shipping_fee, Decimal("799"))
        # 1000 * 0.18 + 3499 * 0.28
        self.assertEqual(totals.total_tax, Decimal("1159.72"))
        self.assertGreater(totals.total_shipping_fee, 0)

    async def test_select_address_commits(self):
        await self.state.load_addresses()
        await self.state.select_address("addr_2")
        self.assertEqual(self.state.selected_aid, "addr_2")
        self.assertEqual(self.state.destination_postal_code, "700016")
        stored = await crud.list_addresses("user_1001")
        self.assertEqual(stored[0].aid, "addr_2")
        self.assertTrue(stored[0].is_default)

    async def test_switching_address_drops_quotes_in_flight(self):
        self.state.estimator = ShippingEstimator(latency=0.2)
        self.state.cart.add_item(await crud.get_product("prod_3"))
        await self.state.load_addresses()
        await self.state.load_rates()

        pending = asyncio.create_task(self.state.refresh_shipping())
        await asyncio.sleep(0)  # the 560001 lookup is now under way
        await self.state.select_address("addr_2")
        await pending

        # the late 560001 quote must not be priced against 700016
        self.assertEqual(self.state.destination_postal_code, "700016")
        self.assertIs(
            self.state.totals().shipping_for("prod_3").status, ShippingStatus.CALCULATING
        )

        self.state.estimator = ShippingEstimator(latency=0)
        await self.state.refresh_shipping()
        shipping = self.state.totals().shipping_for("prod_3")
        self.assertIs(shipping.status, ShippingStatus.QUOTED)
        self.assertEqual(shipping.fee, Decimal("345"))

    async def test_select_address_reverts_on_failure(self):
        await self.state.load_addresses()
        with self.assertLogs("utils.optimistic", level="WARNING"):
            with self.assertRaises(LookupError):
                await self.state.select_address("addr_3")  # belongs to user_1002
        self.assertEqual(self.state.selected_aid, "addr_1")
        self.assertTrue(self.state.shipping_address.is_default)

        async def offline(*_args):
            raise ConnectionError("offline")

        with mock.patch.object(crud, "set_default_address", offline):
            with self.assertLogs("utils.optimistic", level="WARNING"):
                with self.assertRaises(ConnectionError):
                    await self.state.select_address("addr_2")
        self.assertEqual(self.state.selected_aid, "addr_1")

    async def test_failed_rates_are_retried(self):
        async def broken():
            raise ConnectionError("db locked")

        with mock.patch.object(crud, "fetch_rate_table", broken):
            with self.assertLogs("pricing.rates", level="WARNING"):
                table = await self.state.load_rates()
        self.assertIs(table.status, TaxStatus.UNAVAILABLE)

        table = await self.state.load_rates()
        self.assertIs(table.status, TaxStatus.LOADED)
        self.assertIs(await self.state.load_rates(), table)


if __name__ == "__main__":
    unittest.main()
