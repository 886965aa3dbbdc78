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

"""In-memory registry of live checkout sessions.

Checkout sessions only live for the duration of a checkout page visit, so
they are never persisted. A session is looked up by its id, or by the cart it
was opened for so that reloading the checkout page resumes it. Sessions the
shopper walked away from are evicted once they have been idle for `ttl`
seconds, and confirmed sessions are released by the routes.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from storefront_checkout.checkout_orchestrator import CheckoutOrchestrator
from storefront_checkout.enums import PaymentStatus
from storefront_checkout.exceptions import ResourceNotFoundError
from storefront_checkout.models import CartKey

logger = logging.getLogger(__name__)

DEFAULT_TTL = 30 * 60.0


def _key_of(key: CartKey) -> Tuple[Optional[str], Optional[str]]:
  return (key.user_id, key.session_id)


class SessionStore:
  """Maps checkout ids to their orchestrators."""

  def __init__(
      self,
      ttl: float = DEFAULT_TTL,
      clock: Callable[[], float] = time.monotonic,
  ) -> None:
    self.ttl = ttl
    self._clock = clock
    self._sessions: Dict[str, CheckoutOrchestrator] = {}
    self._touched: Dict[str, float] = {}
    self._by_key: Dict[Tuple[Optional[str], Optional[str]], str] = {}

  def __len__(self) -> int:
    return len(self._sessions)

  def __contains__(self, checkout_id: str) -> bool:
    return checkout_id in self._sessions

  def add(self, checkout: CheckoutOrchestrator) -> None:
    self.evict_expired()
    self._sessions[checkout.id] = checkout
    self._by_key[_key_of(checkout.key)] = checkout.id
    self._touched[checkout.id] = self._clock()

  def get(self, checkout_id: str) -> CheckoutOrchestrator:
    self.evict_expired()
    checkout = self._sessions.get(checkout_id)
    if checkout is None:
      raise ResourceNotFoundError(f"Checkout session {checkout_id} not found")
    self._touched[checkout_id] = self._clock()
    return checkout

  def find_open(self, key: CartKey) -> Optional[CheckoutOrchestrator]:
    """Returns the unconfirmed session opened for the cart `key`, if any."""
    self.evict_expired()
    checkout_id = self._by_key.get(_key_of(key))
    if checkout_id is None:
      return None
    checkout = self._sessions[checkout_id]
    if checkout.confirmation is not None:
      return None
    self._touched[checkout_id] = self._clock()
    return checkout

  def remove(self, checkout_id: str) -> CheckoutOrchestrator:
    checkout = self._sessions.pop(checkout_id, None)
    if checkout is None:
      raise ResourceNotFoundError(f"Checkout session {checkout_id} not found")
    del self._touched[checkout_id]
    key = _key_of(checkout.key)
    if self._by_key.get(key) == checkout_id:
      del self._by_key[key]
    logger.info("Removed checkout session %s", checkout_id)
    return checkout

  def release_if_confirmed(self, checkout: CheckoutOrchestrator) -> bool:
    """Drops `checkout` once its order is confirmed."""
    if checkout.confirmation is None or checkout.id not in self._sessions:
      return False
    self.remove(checkout.id)
    return True

  def evict_expired(self) -> List[CheckoutOrchestrator]:
    """Drops sessions idle for longer than `ttl`.

    Sessions with a payment in flight are kept until it resolves.
    """
    deadline = self._clock() - self.ttl
    expired = [
        checkout
        for checkout_id, checkout in self._sessions.items()
        if self._touched[checkout_id] < deadline
        and checkout.payment_status != PaymentStatus.PROCESSING
    ]
    for checkout in expired:
      logger.info("Checkout session %s expired", checkout.id)
      self.remove(checkout.id)
    return expired

  def all(self) -> List[CheckoutOrchestrator]:
    return list(self._sessions.values())
