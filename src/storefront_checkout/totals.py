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

"""Pure computation of checkout totals.

The shipping rules mirror the storefront's published rates: express is a flat
rate, standard is free above a subtotal threshold. Tax is applied to the
subtotal only, never to shipping.
"""

from decimal import Decimal

from storefront_checkout.enums import ShippingMethod
from storefront_checkout.enums import TaxType
from storefront_checkout.models import Cart
from storefront_checkout.models import money
from storefront_checkout.models import TaxConfiguration
from storefront_checkout.models import Totals

EXPRESS_SHIPPING = Decimal("15.99")
STANDARD_SHIPPING = Decimal("9.99")
FREE_SHIPPING_THRESHOLD = Decimal("50")

ESTIMATED_DELIVERY = {
    ShippingMethod.STANDARD: "5-7 business days",
    ShippingMethod.EXPRESS: "2-3 business days",
}


def shipping_cost(subtotal: Decimal, method: ShippingMethod) -> Decimal:
  """Returns the shipping charge for the given subtotal and method."""
  if method == ShippingMethod.EXPRESS:
    return EXPRESS_SHIPPING
  # Strictly greater: a subtotal of exactly 50 still pays for shipping.
  if subtotal > FREE_SHIPPING_THRESHOLD:
    return Decimal("0.00")
  return STANDARD_SHIPPING


def tax_amount(subtotal: Decimal, tax: TaxConfiguration) -> Decimal:
  if not tax.enabled:
    return Decimal("0.00")
  if tax.type == TaxType.FIXED:
    return money(tax.rate)
  return money(subtotal * tax.rate)


def compute_totals(
    cart: Cart,
    method: ShippingMethod,
    tax: TaxConfiguration,
) -> Totals:
  """Computes the totals shown on the review step and charged at payment.

  Args:
    cart: The cart snapshot. Its subtotal is derived from the line totals.
    method: The selected shipping method.
    tax: The store's tax configuration; a disabled one contributes no tax.

  Returns:
    The totals, each quantized to cents.
  """
  subtotal = cart.subtotal
  shipping = shipping_cost(subtotal, method)
  tax_value = tax_amount(subtotal, tax)
  return Totals(
      subtotal=subtotal,
      shipping=money(shipping),
      tax=tax_value,
      total=money(subtotal + shipping + tax_value),
      tax_name=tax.name,
      estimated_delivery=ESTIMATED_DELIVERY[method],
  )
