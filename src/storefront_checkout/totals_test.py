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

"""Tests for totals computation, cart parsing and identifiers."""

from decimal import Decimal
import re

from absl.testing import absltest
from storefront_checkout import identifiers
from storefront_checkout import totals
from storefront_checkout.enums import ShippingMethod
from storefront_checkout.enums import TaxType
from storefront_checkout.models import Cart
from storefront_checkout.models import money
from storefront_checkout.models import TaxConfiguration
from storefront_checkout.testing.fake_pos import pos_cart


def make_cart(*line_totals: float) -> Cart:
  items = [
      (f"p{i}", f"Product {i}", 1, total)
      for i, total in enumerate(line_totals)
  ]
  return Cart.from_pos(pos_cart("guest_1", items))


class TotalsTest(absltest.TestCase):

  def test_standard_shipping_under_threshold_without_tax(self):
    cart = make_cart(25.00, 15.00)
    result = totals.compute_totals(
        cart, ShippingMethod.STANDARD, TaxConfiguration.disabled()
    )
    self.assertEqual(result.subtotal, Decimal("40.00"))
    self.assertEqual(result.shipping, Decimal("9.99"))
    self.assertEqual(result.tax, Decimal("0.00"))
    self.assertEqual(result.total, Decimal("49.99"))
    self.assertEqual(result.estimated_delivery, "5-7 business days")

  def test_standard_shipping_is_free_above_threshold(self):
    cart = make_cart(30.00, 25.00)
    result = totals.compute_totals(
        cart, ShippingMethod.STANDARD, TaxConfiguration.disabled()
    )
    self.assertEqual(result.shipping, Decimal("0.00"))
    self.assertEqual(result.total, Decimal("55.00"))

  def test_threshold_is_exclusive(self):
    self.assertEqual(
        totals.shipping_cost(Decimal("50.00"), ShippingMethod.STANDARD),
        Decimal("9.99"),
    )

  def test_express_shipping_is_flat(self):
    cart = make_cart(100.00)
    result = totals.compute_totals(
        cart, ShippingMethod.EXPRESS, TaxConfiguration.disabled()
    )
    self.assertEqual(result.shipping, Decimal("15.99"))
    self.assertEqual(result.total, Decimal("115.99"))
    self.assertEqual(result.estimated_delivery, "2-3 business days")

  def test_percentage_tax_applies_to_subtotal_only(self):
    cart = make_cart(40.00)
    tax = TaxConfiguration(
        enabled=True, rate=Decimal("0.125"), type=TaxType.PERCENTAGE, name="VAT"
    )
    result = totals.compute_totals(cart, ShippingMethod.STANDARD, tax)
    self.assertEqual(result.tax, Decimal("5.00"))
    self.assertEqual(result.total, Decimal("54.99"))
    self.assertEqual(result.tax_name, "VAT")

  def test_fixed_tax(self):
    cart = make_cart(60.00)
    tax = TaxConfiguration(
        enabled=True, rate=Decimal("2.5"), type=TaxType.FIXED
    )
    result = totals.compute_totals(cart, ShippingMethod.STANDARD, tax)
    self.assertEqual(result.tax, Decimal("2.50"))
    self.assertEqual(result.total, Decimal("62.50"))

  def test_tax_rounds_half_up(self):
    tax = TaxConfiguration(enabled=True, rate=Decimal("0.05"))
    self.assertEqual(totals.tax_amount(Decimal("10.10"), tax), Decimal("0.51"))


class CartTest(absltest.TestCase):

  def test_subtotal_is_derived_from_lines(self):
    data = pos_cart("guest_1", [("p1", "Mug", 2, 20.00), ("p2", "Tee", 1, 9.5)])
    data["totalAmount"] = 999
    cart = Cart.from_pos(data)
    self.assertEqual(cart.subtotal, Decimal("29.50"))
    self.assertEqual(cart.item_count, 3)
    self.assertEqual(cart.items[0].unit_price, Decimal("10.00"))
    self.assertEqual(cart.items[0].name, "Mug")

  def test_product_reference_may_be_an_id(self):
    data = {
        "_id": "c1",
        "items": [{"product": "p9", "quantity": 1, "price": 3}],
    }
    cart = Cart.from_pos(data)
    self.assertEqual(cart.items[0].product_id, "p9")
    self.assertEqual(cart.subtotal, Decimal("3.00"))

  def test_non_finite_line_total_is_rejected(self):
    data = pos_cart("guest_1", [("p1", "Mug", 1, 5.0)])
    data["items"][0]["price"] = "NaN"
    with self.assertRaises(ValueError):
      Cart.from_pos(data)
    with self.assertRaises(ValueError):
      money("Infinity")


class IdentifiersTest(absltest.TestCase):

  def test_transaction_reference_format(self):
    reference = identifiers.transaction_reference(now=1718000000.5)
    self.assertRegex(reference, r"^TXN_1718000000500_[0-9a-z]{9}$")

  def test_order_id_format(self):
    self.assertRegex(identifiers.order_id(), r"^ORD-\d{13}-[0-9a-z]{9}$")

  def test_guest_session_id_format(self):
    self.assertTrue(
        re.match(r"^guest_\d+_[0-9a-z]{9}$", identifiers.guest_session_id())
    )

  def test_references_are_unique(self):
    references = {identifiers.transaction_reference() for _ in range(100)}
    self.assertLen(references, 100)


if __name__ == "__main__":
  absltest.main()
