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

"""Tests for the SessionStore."""

from absl.testing import absltest
from storefront_checkout import checkout_state
from storefront_checkout.checkout_orchestrator import CheckoutOrchestrator
from storefront_checkout.enums import PaymentStatus
from storefront_checkout.exceptions import ResourceNotFoundError
from storefront_checkout.models import CartKey
from storefront_checkout.models import OrderConfirmation
from storefront_checkout.models import Totals
from storefront_checkout.session_store import SessionStore


class FakeClock:

  def __init__(self):
    self.now = 1000.0

  def __call__(self):
    return self.now


def make_checkout(checkout_id, session_id="guest_1"):
  return CheckoutOrchestrator(
      checkout_id,
      CartKey(session_id=session_id),
      cart_service=None,
      tax_service=None,
      verification_service=None,
      gateway=None,
      order_submitter=None,
      audit=None,
  )


def confirm(checkout):
  checkout.confirmation = OrderConfirmation(
      order_id="ORD-1-abcdefghi",
      payment_reference="TXN_456",
      totals=Totals(subtotal=0, shipping=0, tax=0, total=0),
      cart_cleared=True,
  )


class SessionStoreTest(absltest.TestCase):

  def setUp(self):
    super().setUp()
    self.clock = FakeClock()
    self.store = SessionStore(ttl=60.0, clock=self.clock)

  def test_find_open_by_cart_key(self):
    checkout = make_checkout("chk_1")
    self.store.add(checkout)
    self.store.add(make_checkout("chk_2", session_id="guest_2"))
    self.assertIs(self.store.find_open(CartKey(session_id="guest_1")), checkout)
    self.assertIsNone(self.store.find_open(CartKey(session_id="guest_3")))

  def test_confirmed_session_is_released(self):
    checkout = make_checkout("chk_1")
    self.store.add(checkout)
    self.assertFalse(self.store.release_if_confirmed(checkout))

    confirm(checkout)
    self.assertIsNone(self.store.find_open(CartKey(session_id="guest_1")))
    self.assertTrue(self.store.release_if_confirmed(checkout))
    self.assertEmpty(self.store)
    self.assertNotIn("chk_1", self.store)
    self.assertFalse(self.store.release_if_confirmed(checkout))

  def test_idle_sessions_expire(self):
    idle = make_checkout("chk_1")
    active = make_checkout("chk_2", session_id="guest_2")
    self.store.add(idle)
    self.store.add(active)

    self.clock.now += 45
    self.store.get("chk_2")
    self.clock.now += 30

    self.assertEqual(self.store.evict_expired(), [idle])
    self.assertLen(self.store, 1)
    with self.assertRaises(ResourceNotFoundError):
      self.store.get("chk_1")
    self.assertIsNone(self.store.find_open(CartKey(session_id="guest_1")))
    self.assertIs(self.store.get("chk_2"), active)

  def test_session_with_payment_in_flight_is_kept(self):
    checkout = make_checkout("chk_1")
    checkout.state = checkout_state.with_payment_status(
        checkout.state, PaymentStatus.PROCESSING
    )
    self.store.add(checkout)
    self.clock.now += 120
    self.assertEmpty(self.store.evict_expired())
    self.assertIs(self.store.get("chk_1"), checkout)

  def test_remove_unknown_session(self):
    with self.assertRaises(ResourceNotFoundError):
      self.store.remove("missing")


if __name__ == "__main__":
  absltest.main()
