#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Tests for the POS-backed clients: cart, tax, verification, orders, audit."""

import asyncio
from decimal import Decimal
import json
import os
import shutil
import tempfile

from absl.testing import absltest
import httpx
from storefront_checkout import db
from storefront_checkout.enums import AuditStatus
from storefront_checkout.enums import ShippingMethod
from storefront_checkout.enums import TaxType
from storefront_checkout.exceptions import OrderSubmissionError
from storefront_checkout.exceptions import PosApiError
from storefront_checkout.models import Address
from storefront_checkout.models import CartKey
from storefront_checkout.models import CustomerInfo
from storefront_checkout.models import Order
from storefront_checkout.models import OrderLine
from storefront_checkout.models import Totals
from storefront_checkout.pos_api import PosApiClient
from storefront_checkout.services.audit_service import AuditLogger
from storefront_checkout.services.cart_service import CartService
from storefront_checkout.services.order_service import PosOrderSubmitter
from storefront_checkout.services.order_service import SimulatedOrderSubmitter
from storefront_checkout.services.tax_service import TaxService
from storefront_checkout.services.verification_service import TransportError
from storefront_checkout.services.verification_service import Unverified
from storefront_checkout.services.verification_service import Verified
from storefront_checkout.services.verification_service import VerificationService
from storefront_checkout.testing.fake_pos import FakePos
from storefront_checkout.testing.fake_pos import pos_cart

POS_URL = "http://pos.test"
GUEST = CartKey(session_id="guest_1")


def make_order() -> Order:
  return Order(
      order_id="ORD-1-abcdefghi",
      session_id="guest_1",
      customer=CustomerInfo(
          first_name="Ama",
          last_name="Mensah",
          email="ama@example.com",
          phone="0200000000",
      ),
      shipping_address=Address(
          street_address="12 Ring Road",
          city="Accra",
          state="GA",
          zip_code="00233",
      ),
      billing_address=Address(),
      shipping_method=ShippingMethod.STANDARD,
      lines=[
          OrderLine(
              product_id="p1",
              name="Mug",
              quantity=2,
              unit_price=Decimal("20.00"),
              total_price=Decimal("40.00"),
          )
      ],
      totals=Totals(
          subtotal=Decimal("40.00"),
          shipping=Decimal("9.99"),
          tax=Decimal("0.00"),
          total=Decimal("49.99"),
      ),
      currency="GHS",
      payment_reference="TXN_456",
  )


class PosTestCase(absltest.TestCase):
  """Runs each test body against a FakePos."""

  def setUp(self) -> None:
    super().setUp()
    self.pos = FakePos()

  def run_with_client(self, body, transport=None):
    async def runner():
      client = PosApiClient(
          POS_URL, transport=transport or self.pos.transport()
      )
      try:
        return await body(client)
      finally:
        await client.aclose()

    return asyncio.run(runner())


class CartServiceTest(PosTestCase):

  def test_fetch_cart(self):
    self.pos.add_cart(pos_cart("guest_1", [("p1", "Mug", 2, 40.0)]))
    cart = self.run_with_client(lambda c: CartService(c).fetch_cart(GUEST))
    self.assertEqual(cart.cart_id, "cart_1")
    self.assertEqual(cart.subtotal, Decimal("40.00"))
    self.assertEqual(
        self.pos.calls("/api/cart")[0].params, {"sessionId": "guest_1"}
    )

  def test_fetch_missing_cart_returns_none(self):
    cart = self.run_with_client(lambda c: CartService(c).fetch_cart(GUEST))
    self.assertIsNone(cart)

  def test_fetch_cart_transport_error_raises(self):
    def refuse(request):
      raise httpx.ConnectError("connection refused", request=request)

    with self.assertRaises(PosApiError):
      self.run_with_client(
          lambda c: CartService(c).fetch_cart(GUEST),
          transport=httpx.MockTransport(refuse),
      )

  def test_malformed_cart_raises_pos_error(self):
    for items in (["garbage"], "garbage", {"product": "p1"}):
      cart = pos_cart("guest_1", [("p1", "Mug", 2, 40.0)])
      if isinstance(items, list):
        cart["items"].extend(items)
      else:
        cart["items"] = items
      self.pos.add_cart(cart)
      with self.subTest(items=items):
        with self.assertRaises(PosApiError):
          self.run_with_client(lambda c: CartService(c).fetch_cart(GUEST))

  def test_clear_cart(self):
    self.pos.add_cart(pos_cart("guest_1", [("p1", "Mug", 2, 40.0)]))
    cleared = self.run_with_client(lambda c: CartService(c).clear_cart(GUEST))
    self.assertTrue(cleared)
    calls = self.pos.calls("/api/cart", action="clear")
    self.assertLen(calls, 1)
    self.assertEqual(calls[0].body["sessionId"], "guest_1")
    self.assertIsNone(calls[0].body["userId"])

  def test_clear_cart_failure_returns_false(self):
    self.pos.clear_succeeds = False
    cleared = self.run_with_client(lambda c: CartService(c).clear_cart(GUEST))
    self.assertFalse(cleared)


class TaxServiceTest(PosTestCase):

  def fetch(self):
    return self.run_with_client(
        lambda c: TaxService(c).fetch_tax_configuration()
    )

  def test_percentage_tax(self):
    self.pos.tax_settings = {"rate": 0.125, "type": "percentage", "name": "VAT"}
    tax = self.fetch()
    self.assertTrue(tax.enabled)
    self.assertEqual(tax.rate, Decimal("0.125"))
    self.assertEqual(tax.type, TaxType.PERCENTAGE)
    self.assertEqual(tax.name, "VAT")

  def test_defaults_for_type_and_name(self):
    self.pos.tax_settings = {"rate": 2}
    tax = self.fetch()
    self.assertTrue(tax.enabled)
    self.assertEqual(tax.type, TaxType.PERCENTAGE)
    self.assertEqual(tax.name, "Tax")

  def test_zero_rate_disables_tax(self):
    self.pos.tax_settings = {"rate": 0, "type": "fixed"}
    self.assertFalse(self.fetch().enabled)

  def test_missing_settings_disable_tax(self):
    self.assertFalse(self.fetch().enabled)

  def test_error_falls_back_to_no_tax(self):
    self.pos.store_status = 500
    tax = self.fetch()
    self.assertFalse(tax.enabled)
    self.assertEqual(tax.rate, Decimal("0"))

  def test_unknown_type_falls_back_to_no_tax(self):
    self.pos.tax_settings = {"rate": 0.1, "type": "progressive"}
    self.assertFalse(self.fetch().enabled)


  def test_non_finite_rate_falls_back_to_no_tax(self):
    for rate in ("NaN", "Infinity", "-Infinity", "1e30"):
      self.pos.tax_settings = {"rate": rate, "type": "percentage"}
      with self.subTest(rate=rate):
        tax = self.fetch()
        self.assertFalse(tax.enabled)
        self.assertEqual(tax.rate, Decimal("0"))


class VerificationServiceTest(PosTestCase):

  def verify(self, reference="TXN_456", timeout=5.0, transport=None):
    return self.run_with_client(
        lambda c: VerificationService(c, timeout=timeout).verify(
            reference, "guest_1"
        ),
        transport=transport,
    )

  def test_verified(self):
    self.pos.verified_references.add("TXN_456")
    result = self.verify()
    self.assertIsInstance(result, Verified)
    self.assertTrue(result.verified)
    self.assertEqual(result.data["reference"], "TXN_456")
    body = self.pos.calls("/api/paystack")[0].body
    self.assertEqual(
        body,
        {"action": "verify", "reference": "TXN_456", "sessionId": "guest_1"},
    )

  def test_unverified(self):
    result = self.verify("TXN_123")
    self.assertIsInstance(result, Unverified)
    self.assertFalse(result.verified)
    self.assertEqual(result.message, "Transaction not successful")

  def test_success_without_verified_flag_is_unverified(self):
    self.pos.verify_body = {"success": True, "data": {}}
    self.assertIsInstance(self.verify(), Unverified)

  def test_non_2xx_is_transport_error(self):
    self.pos.verified_references.add("TXN_456")
    self.pos.verify_status = 502
    result = self.verify()
    self.assertIsInstance(result, TransportError)
    self.assertFalse(result.verified)

  def test_non_2xx_with_verified_body_still_fails_closed(self):
    self.pos.verify_status = 500
    self.pos.verify_body = {"success": True, "verified": True}
    self.assertIsInstance(self.verify(), TransportError)

  def test_network_error_is_transport_error(self):
    self.pos.verify_error = httpx.ConnectError("connection refused")
    self.assertIsInstance(self.verify(), TransportError)

  def test_http_timeout_is_transport_error(self):
    self.pos.verify_error = httpx.ReadTimeout("read timed out")
    self.assertIsInstance(self.verify(), TransportError)

  def test_hung_backend_is_bounded_by_timeout(self):
    async def hang(request):
      del request  # Unused.
      await asyncio.sleep(5)
      return httpx.Response(200, json={"success": True, "verified": True})

    result = self.verify(timeout=0.05, transport=httpx.MockTransport(hang))
    self.assertIsInstance(result, TransportError)
    self.assertIn("timed out", result.detail)

  def test_non_json_body_is_transport_error(self):
    def text(request):
      del request  # Unused.
      return httpx.Response(200, text="<html>ok</html>")

    result = self.verify(transport=httpx.MockTransport(text))
    self.assertIsInstance(result, TransportError)


class OrderSubmitterTest(PosTestCase):

  def test_simulated_submitter_returns_order_id(self):
    order_number = asyncio.run(SimulatedOrderSubmitter().submit(make_order()))
    self.assertEqual(order_number, "ORD-1-abcdefghi")

  def test_pos_submitter_posts_form(self):
    order_number = self.run_with_client(
        lambda c: PosOrderSubmitter(c).submit(make_order())
    )
    self.assertEqual(order_number, "ORD-1-abcdefghi")
    body = self.pos.calls("/api/orders")[0].body
    self.assertEqual(body["_method"], "POST")
    order_data = json.loads(body["orderData"])
    self.assertEqual(order_data["source"], "ecommerce")
    self.assertEqual(order_data["totalAmount"], 49.99)
    self.assertEqual(order_data["shippingCost"], 9.99)
    self.assertEqual(order_data["paymentInfo"]["reference"], "TXN_456")
    self.assertEqual(order_data["items"][0]["unitPrice"], 20.0)
    self.assertEqual(order_data["shippingAddress"]["fullName"], "Ama Mensah")

  def test_pos_submitter_failure_raises(self):
    self.pos.order_succeeds = False
    with self.assertRaises(OrderSubmissionError):
      self.run_with_client(lambda c: PosOrderSubmitter(c).submit(make_order()))


class AuditLoggerTest(PosTestCase):

  def setUp(self) -> None:
    super().setUp()
    self.test_dir = tempfile.mkdtemp()
    self.db_path = os.path.join(self.test_dir, "audit.db")

  def tearDown(self) -> None:
    shutil.rmtree(self.test_dir)
    super().tearDown()

  def test_persists_entries(self):
    async def body(client):
      manager = db.DatabaseManager()
      await manager.init_db(self.db_path)
      try:
        audit = AuditLogger(manager, client)
        await audit.log(
            "payment_failed",
            "chk_1",
            status=AuditStatus.ERROR,
            details={"reference": "TXN_123"},
        )
        await audit.log("checkout_started", "chk_2")
        async with manager.session_factory() as session:
          return await db.get_audit_entries(session, resource_id="chk_1")
      finally:
        await manager.close()

    entries = self.run_with_client(body)
    self.assertLen(entries, 1)
    self.assertEqual(entries[0].action, "payment_failed")
    self.assertEqual(entries[0].status, "error")
    self.assertEqual(entries[0].details, {"reference": "TXN_123"})
    self.assertEmpty(self.pos.calls("/api/audit"))

  def test_forwards_to_pos(self):
    async def body(client):
      await AuditLogger(pos=client, forward=True).log("order_placed", "chk_1")

    self.run_with_client(body)
    calls = self.pos.calls("/api/audit")
    self.assertLen(calls, 1)
    self.assertEqual(calls[0].body["action"], "order_placed")
    self.assertEqual(calls[0].body["resourceId"], "chk_1")

  def test_forwarding_failure_is_dropped(self):
    def refuse(request):
      raise httpx.ConnectError("connection refused", request=request)

    async def body(client):
      await AuditLogger(pos=client, forward=True).log("order_placed", "chk_1")

    self.run_with_client(body, transport=httpx.MockTransport(refuse))


if __name__ == "__main__":
  absltest.main()
