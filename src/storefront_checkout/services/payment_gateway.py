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

"""Payment Gateway Adapter for the hosted Paystack popup.

The popup runs in the shopper's browser. The service hands the browser the
inline setup for an attempt and learns how it ended through one of two
callbacks relayed by the page: success (with the gateway's reference) or
close. `GatewayHandle` turns that callback pair into a single awaitable
outcome:

- `GatewayCompleted(reference)`: the shopper finished the popup.
- `GatewayClosed()`: the popup was dismissed without paying.
- `GatewayUnavailable(reason)`: the gateway could not be opened at all.

Only the first callback for an attempt counts; later ones are ignored.
"""

import asyncio
import dataclasses
from decimal import Decimal
from decimal import ROUND_HALF_UP
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel
from storefront_checkout.enums import ShippingMethod
from storefront_checkout.exceptions import GatewayUnavailableError
from storefront_checkout.models import Address
from storefront_checkout.models import CartItem
from storefront_checkout.models import CustomerInfo

logger = logging.getLogger(__name__)

DEFAULT_CHANNELS = (
    "mobile_money",
    "card",
    "bank",
    "ussd",
    "qr",
    "bank_transfer",
)


class PaymentRequest(BaseModel):
  """What the gateway needs to charge the shopper for one attempt."""

  reference: str
  customer: CustomerInfo
  shipping_address: Address
  items: List[CartItem]
  shipping_method: ShippingMethod
  total: Decimal
  currency: str
  cart_id: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class GatewayCompleted:
  reference: str


@dataclasses.dataclass(frozen=True)
class GatewayClosed:
  pass


@dataclasses.dataclass(frozen=True)
class GatewayUnavailable:
  reason: str


GatewayOutcome = Union[GatewayCompleted, GatewayClosed, GatewayUnavailable]


class GatewayHandle:
  """One open popup. Resolved by the first of `complete` or `close`."""

  def __init__(self, reference: str, setup: Dict[str, Any]):
    self.reference = reference
    self.setup = setup
    self._outcome: Optional[GatewayOutcome] = None
    self._resolved = asyncio.Event()

  @property
  def done(self) -> bool:
    return self._outcome is not None

  def _resolve(self, outcome: GatewayOutcome) -> bool:
    if self._outcome is not None:
      logger.warning(
          "Ignoring %s for attempt %s, already resolved as %s",
          type(outcome).__name__,
          self.reference,
          type(self._outcome).__name__,
      )
      return False
    self._outcome = outcome
    self._resolved.set()
    return True

  def complete(self, gateway_reference: str) -> bool:
    """Relays the success callback. Returns False if already resolved."""
    return self._resolve(GatewayCompleted(gateway_reference))

  def close(self) -> bool:
    """Relays the close callback. Returns False if already resolved."""
    return self._resolve(GatewayClosed())

  async def outcome(self) -> GatewayOutcome:
    await self._resolved.wait()
    return self._outcome


class PaymentGateway:
  """Base class for hosted payment gateways."""

  def open(self, request: PaymentRequest) -> GatewayHandle:
    """Prepares the popup for `request`.

    Raises:
      GatewayUnavailableError: If the gateway cannot be used.
    """
    raise NotImplementedError

  async def initiate(self, request: PaymentRequest) -> GatewayOutcome:
    """Opens the popup and waits until the shopper finishes or leaves it."""
    try:
      handle = self.open(request)
    except GatewayUnavailableError as e:
      return GatewayUnavailable(e.message)
    return await handle.outcome()


def to_minor_units(amount: Decimal) -> int:
  """Converts a currency amount to minor units (pesewas, kobo, cents)."""
  return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaystackInlineGateway(PaymentGateway):
  """Paystack's inline popup (`PaystackPop.setup`)."""

  def __init__(
      self,
      public_key: Optional[str],
      channels: Sequence[str] = DEFAULT_CHANNELS,
  ):
    self.public_key = public_key
    self.channels = list(channels)

  def open(self, request: PaymentRequest) -> GatewayHandle:
    if not self.public_key:
      raise GatewayUnavailableError(
          "Payment system not loaded. Please refresh the page and try again."
      )
    setup = self.build_setup(request)
    logger.info(
        "Opening Paystack popup for %s (%s %s)",
        request.reference,
        request.total,
        request.currency,
    )
    return GatewayHandle(request.reference, setup)

  def build_setup(self, request: PaymentRequest) -> Dict[str, Any]:
    """Builds the options object passed to `PaystackPop.setup`."""
    customer = request.customer
    address = request.shipping_address
    return {
        "key": self.public_key,
        "email": customer.email,
        "amount": to_minor_units(request.total),
        "currency": request.currency,
        "ref": request.reference,
        "channels": list(self.channels),
        "metadata": {
            "custom_fields": [
                {
                    "display_name": "Customer Name",
                    "variable_name": "customer_name",
                    "value": customer.full_name,
                },
                {
                    "display_name": "Phone Number",
                    "variable_name": "customer_phone",
                    "value": customer.phone,
                },
                {
                    "display_name": "Shipping Address",
                    "variable_name": "shipping_address",
                    "value": address.one_line(),
                },
            ],
            "customer": {
                "firstName": customer.first_name,
                "lastName": customer.last_name,
                "email": customer.email,
                "phone": customer.phone,
            },
            "shipping": {
                "fullName": customer.full_name,
                "address": address.street_address,
                "city": address.city,
                "state": address.state,
                "zipCode": address.zip_code,
                "country": address.country,
                "phone": customer.phone,
            },
            "order_items": [
                {
                    "name": item.name,
                    "quantity": item.quantity,
                    "unit_price": float(item.unit_price),
                    "total_price": float(item.line_total),
                }
                for item in request.items
            ],
            "cart_id": request.cart_id or "guest_cart",
            "shipping_method": request.shipping_method.value,
            "order_total": float(request.total),
        },
    }
