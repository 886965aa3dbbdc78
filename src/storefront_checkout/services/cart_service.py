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

"""Cart Service Client.

Reads the shopper's cart from the POS system and clears it once an order is
confirmed. Carts are keyed by the authenticated user id or, for guests, by the
session token the storefront issued.
"""

import logging
from typing import Optional

from storefront_checkout.exceptions import PosApiError
from storefront_checkout.models import Cart
from storefront_checkout.models import CartKey
from storefront_checkout.pos_api import PosApiClient

logger = logging.getLogger(__name__)

CART_PATH = "/api/cart"


class CartService:
  """Service for the POS cart endpoints."""

  def __init__(self, pos: PosApiClient):
    self.pos = pos

  async def fetch_cart(self, key: CartKey) -> Optional[Cart]:
    """Fetches the cart for `key`.

    Args:
      key: The user or guest session the cart belongs to.

    Returns:
      The cart, or None when the POS reports no cart for the key.

    Raises:
      PosApiError: If the POS could not be reached or answered with an error.
    """
    body = await self.pos.get_json(CART_PATH, params=key.as_params())
    if not body.get("success") or not isinstance(body.get("data"), dict):
      logger.info("No cart found for %s", key.as_params())
      return None
    try:
      return Cart.from_pos(body["data"])
    except (TypeError, ValueError) as e:
      raise PosApiError(f"Malformed cart payload: {e}") from e

  async def clear_cart(self, key: CartKey) -> bool:
    """Empties the cart for `key`. Never raises.

    Returns:
      True if the POS confirmed the cart was cleared.
    """
    payload = {
        "action": "clear",
        "userId": key.user_id,
        "sessionId": key.session_id,
    }
    try:
      body = await self.pos.post_json(CART_PATH, payload)
    except PosApiError as e:
      logger.error("Failed to clear cart %s: %s", key.as_params(), e.message)
      return False

    if not body.get("success"):
      logger.error(
          "POS refused to clear cart %s: %s",
          key.as_params(),
          body.get("message"),
      )
      return False
    logger.info("Cleared cart %s", key.as_params())
    return True
