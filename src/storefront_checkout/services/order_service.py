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

"""Order submission after a verified payment.

The storefront historically only simulated order persistence and left order
creation to the POS backend's payment webhook. `SimulatedOrderSubmitter` keeps
that behaviour; `PosOrderSubmitter` records the order through the POS orders
endpoint instead.
"""

import asyncio
import json
import logging
from typing import Any, Dict

from storefront_checkout.exceptions import OrderSubmissionError
from storefront_checkout.exceptions import PosApiError
from storefront_checkout.models import Order
from storefront_checkout.pos_api import PosApiClient

logger = logging.getLogger(__name__)

ORDERS_PATH = "/api/orders"


class OrderSubmitter:
  """Base class for order submitters."""

  async def submit(self, order: Order) -> str:
    """Records `order`.

    Returns:
      The order number to show the shopper.

    Raises:
      OrderSubmissionError: If the order could not be recorded.
    """
    raise NotImplementedError


class SimulatedOrderSubmitter(OrderSubmitter):
  """Logs the order and waits `delay` seconds, like a slow backend would."""

  def __init__(self, delay: float = 0.0):
    self.delay = delay

  async def submit(self, order: Order) -> str:
    logger.info(
        "Simulating order %s for payment %s (%s %s)",
        order.order_id,
        order.payment_reference,
        order.totals.total,
        order.currency,
    )
    if self.delay > 0:
      await asyncio.sleep(self.delay)
    return order.order_id


def order_payload(order: Order) -> Dict[str, Any]:
  """Serializes `order` in the shape the POS orders endpoint accepts."""
  customer = order.customer
  address = order.shipping_address
  return {
      "orderNumber": order.order_id,
      "customerId": order.user_id,
      "customerInfo": {
          "firstName": customer.first_name,
          "lastName": customer.last_name,
          "email": customer.email,
          "phone": customer.phone,
      },
      "items": [
          {
              "productId": line.product_id,
              "name": line.name,
              "quantity": line.quantity,
              "unitPrice": float(line.unit_price),
              "totalPrice": float(line.total_price),
          }
          for line in order.lines
      ],
      "subtotal": float(order.totals.subtotal),
      "shippingCost": float(order.totals.shipping),
      "taxAmount": float(order.totals.tax),
      "discountAmount": 0,
      "totalAmount": float(order.totals.total),
      "shippingAddress": {
          "fullName": customer.full_name,
          "address": address.street_address,
          "city": address.city,
          "state": address.state,
          "zipCode": address.zip_code,
          "country": address.country,
          "phone": customer.phone,
      },
      "shippingMethod": order.shipping_method.value,
      "estimatedDelivery": order.totals.estimated_delivery,
      "paymentInfo": {
          "method": "other",
          "reference": order.payment_reference,
          "amount": float(order.totals.total),
          "currency": order.currency,
          "status": "completed",
          "gateway": "paystack",
      },
      "priority": "normal",
      "source": "ecommerce",
      "sessionId": order.session_id,
  }


class PosOrderSubmitter(OrderSubmitter):
  """Creates the order through `POST /api/orders` on the POS system."""

  def __init__(self, pos: PosApiClient):
    self.pos = pos

  async def submit(self, order: Order) -> str:
    form = {
        "_method": "POST",
        "orderData": json.dumps(order_payload(order)),
    }
    try:
      body = await self.pos.post_form(ORDERS_PATH, form)
    except PosApiError as e:
      raise OrderSubmissionError(
          f"Failed to create order {order.order_id}: {e.message}"
      ) from e

    if not body.get("success"):
      raise OrderSubmissionError(
          body.get("message") or f"POS rejected order {order.order_id}"
      )

    data = body.get("data")
    order_number = data.get("orderNumber") if isinstance(data, dict) else None
    logger.info("Created POS order %s", order_number or order.order_id)
    return order_number or order.order_id
