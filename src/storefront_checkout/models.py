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

"""Models for the storefront checkout service.

These models describe the cart snapshot read from the POS system, the form
sections collected during checkout, the tax configuration and computed totals,
the payment attempt, and the request and response bodies of the HTTP surface.
Monetary amounts are `Decimal` values quantized to two places.
"""

import datetime
from decimal import Decimal
from decimal import InvalidOperation
from decimal import ROUND_HALF_UP
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from pydantic import computed_field
from pydantic import Field
from pydantic import model_validator
from storefront_checkout.enums import CheckoutStep
from storefront_checkout.enums import PaymentStatus
from storefront_checkout.enums import ShippingMethod
from storefront_checkout.enums import TaxType

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def money(value: Any) -> Decimal:
  """Converts a POS number (float, int, str or Decimal) to a 2dp Decimal."""
  if value is None or value == "":
    return Decimal("0.00")
  try:
    amount = Decimal(str(value))
    if not amount.is_finite():
      raise ValueError("not a finite number")
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
  except (InvalidOperation, ValueError, TypeError) as e:
    raise ValueError(f"Invalid monetary amount: {value!r}") from e


def _utcnow() -> datetime.datetime:
  return datetime.datetime.now(datetime.timezone.utc)


# --- Cart ---


class CartKey(BaseModel):
  """Identifies a cart by authenticated user id or guest session token."""

  user_id: Optional[str] = None
  session_id: Optional[str] = None

  @model_validator(mode="after")
  def _require_one(self) -> "CartKey":
    if not self.user_id and not self.session_id:
      raise ValueError("Either user_id or session_id is required")
    return self

  def as_params(self) -> Dict[str, str]:
    """Returns the query parameters the POS cart endpoint expects."""
    params = {}
    if self.user_id:
      params["userId"] = self.user_id
    if self.session_id:
      params["sessionId"] = self.session_id
    return params


class CartItem(BaseModel):
  """A cart line. The POS reports `price` as the line total."""

  product_id: str
  name: str = ""
  quantity: int = Field(..., gt=0)
  line_total: Decimal

  @computed_field
  @property
  def unit_price(self) -> Decimal:
    return money(self.line_total / self.quantity)


class Cart(BaseModel):
  """Snapshot of a POS cart. Totals are always derived from the lines."""

  cart_id: Optional[str] = None
  user_id: Optional[str] = None
  session_id: Optional[str] = None
  items: List[CartItem] = []

  @computed_field
  @property
  def subtotal(self) -> Decimal:
    return money(sum((item.line_total for item in self.items), Decimal("0")))

  @computed_field
  @property
  def item_count(self) -> int:
    return sum(item.quantity for item in self.items)

  @classmethod
  def from_pos(cls, data: Dict[str, Any]) -> "Cart":
    """Builds a cart from the `data` object of a POS cart response.

    Raises:
      ValueError: If the payload does not have the shape of a POS cart.
    """
    raw_items = data.get("items") or []
    if not isinstance(raw_items, list):
      raise ValueError(f"Cart items must be a list, got {raw_items!r}")
    items = []
    for raw in raw_items:
      if not isinstance(raw, dict):
        raise ValueError(f"Cart item must be an object, got {raw!r}")
      product = raw.get("product") or {}
      if isinstance(product, dict):
        product_id = str(product.get("_id") or product.get("id") or "")
        name = str(product.get("name") or "")
      else:
        product_id = str(product)
        name = ""
      items.append(
          CartItem(
              product_id=product_id,
              name=name,
              quantity=int(raw.get("quantity") or 0),
              line_total=money(raw.get("price")),
          )
      )

    cart = cls(
        cart_id=data.get("_id"),
        user_id=data.get("userId"),
        session_id=data.get("sessionId"),
        items=items,
    )

    reported = data.get("totalAmount")
    if reported is not None and money(reported) != cart.subtotal:
      logger.debug(
          "Cart %s reports total %s but lines sum to %s",
          cart.cart_id,
          reported,
          cart.subtotal,
      )
    return cart


# --- Checkout form ---


class CustomerInfo(BaseModel):
  first_name: str = ""
  last_name: str = ""
  email: str = ""
  phone: str = ""

  @property
  def full_name(self) -> str:
    return f"{self.first_name} {self.last_name}".strip()


class Address(BaseModel):
  street_address: str = ""
  city: str = ""
  state: str = ""
  zip_code: str = ""
  country: str = "US"

  def one_line(self) -> str:
    return (
        f"{self.street_address}, {self.city}, {self.state} {self.zip_code}"
    )


class CheckoutForm(BaseModel):
  """All user-entered checkout fields."""

  customer: CustomerInfo = CustomerInfo()
  shipping_address: Address = Address()
  billing_address: Address = Address()
  billing_same_as_shipping: bool = True
  shipping_method: ShippingMethod = ShippingMethod.STANDARD

  @property
  def effective_billing_address(self) -> Address:
    if self.billing_same_as_shipping:
      return self.shipping_address
    return self.billing_address


# --- Tax and totals ---


class TaxConfiguration(BaseModel):
  """Store tax settings as published by the POS system."""

  enabled: bool = False
  rate: Decimal = Decimal("0")
  type: TaxType = TaxType.PERCENTAGE
  name: str = "Tax"

  @classmethod
  def disabled(cls) -> "TaxConfiguration":
    return cls()


class Totals(BaseModel):
  subtotal: Decimal
  shipping: Decimal
  tax: Decimal
  total: Decimal
  tax_name: str = "Tax"
  estimated_delivery: str = ""


# --- Payment and order ---


class PaymentAttempt(BaseModel):
  """One attempt at paying through the hosted gateway."""

  reference: str
  status: PaymentStatus = PaymentStatus.PROCESSING
  amount: Decimal
  currency: str
  gateway_reference: Optional[str] = None
  verification: Optional[Dict[str, Any]] = None
  created_at: datetime.datetime = Field(default_factory=_utcnow)


class PaymentResult(BaseModel):
  success: bool
  reference: Optional[str] = None


class OrderLine(BaseModel):
  product_id: str
  name: str
  quantity: int
  unit_price: Decimal
  total_price: Decimal


class Order(BaseModel):
  """Order handed to the order submitter after payment is verified."""

  order_id: str
  session_id: Optional[str] = None
  user_id: Optional[str] = None
  customer: CustomerInfo
  shipping_address: Address
  billing_address: Address
  shipping_method: ShippingMethod
  lines: List[OrderLine]
  totals: Totals
  currency: str
  payment_reference: str


class OrderConfirmation(BaseModel):
  order_id: str
  payment_reference: str
  totals: Totals
  cart_cleared: bool
  placed_at: datetime.datetime = Field(default_factory=_utcnow)


# --- HTTP bodies ---


class CreateCheckoutRequest(BaseModel):
  session_id: Optional[str] = None
  user_id: Optional[str] = None
  customer: Optional[CustomerInfo] = None


class ShippingUpdateRequest(BaseModel):
  address: Optional[Address] = None
  method: Optional[ShippingMethod] = None


class BillingUpdateRequest(BaseModel):
  same_as_shipping: Optional[bool] = None
  address: Optional[Address] = None


class PaymentCallbackRequest(BaseModel):
  reference: str = Field(..., min_length=1)


class PaymentView(BaseModel):
  status: PaymentStatus
  reference: Optional[str] = None
  amount: Optional[Decimal] = None
  currency: Optional[str] = None


class CheckoutView(BaseModel):
  """What the checkout page renders."""

  id: str
  step: CheckoutStep
  form: CheckoutForm
  cart: Cart
  totals: Totals
  tax: TaxConfiguration
  payment: PaymentView
  can_place_order: bool
  order: Optional[OrderConfirmation] = None
  notice: Optional[str] = None


class CheckoutActionResponse(BaseModel):
  """A checkout view plus, when the shopper must pay, the popup setup."""

  checkout: CheckoutView
  gateway: Optional[Dict[str, Any]] = None
