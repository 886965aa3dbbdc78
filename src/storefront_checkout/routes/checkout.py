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

"""HTTP routes of the checkout flow.

The storefront's checkout page drives a session through these routes and
relays the payment popup's callbacks back to it.
"""

import logging
import uuid

from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Response
from storefront_checkout import dependencies
from storefront_checkout import identifiers
from storefront_checkout.checkout_orchestrator import CheckoutOrchestrator
from storefront_checkout.exceptions import EmptyCartError
from storefront_checkout.models import BillingUpdateRequest
from storefront_checkout.models import CartKey
from storefront_checkout.models import CheckoutActionResponse
from storefront_checkout.models import CheckoutView
from storefront_checkout.models import CreateCheckoutRequest
from storefront_checkout.models import CustomerInfo
from storefront_checkout.models import PaymentCallbackRequest
from storefront_checkout.models import ShippingUpdateRequest
from storefront_checkout.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout-sessions")


@router.post(
    "",
    response_model=CheckoutView,
    status_code=201,
    operation_id="create_checkout",
)
async def create_checkout(
    response: Response,
    body: CreateCheckoutRequest = Body(...),
    sessions: SessionStore = Depends(dependencies.get_session_store),
    factory: dependencies.CheckoutFactory = Depends(
        dependencies.get_checkout_factory
    ),
) -> CheckoutView:
  """Opens a checkout for the shopper's cart, or resumes the open one.

  A resumed checkout re-reads the cart, unless payment has already started,
  in which case the cart must be unchanged.
  """
  session_id = body.session_id
  if not body.user_id and not session_id:
    session_id = identifiers.guest_session_id()
  key = CartKey(user_id=body.user_id, session_id=session_id)

  existing = sessions.find_open(key)
  if existing is not None:
    try:
      await existing.refresh()
    except EmptyCartError:
      if not existing.amount_fixed and existing.id in sessions:
        sessions.remove(existing.id)
      raise
    response.status_code = 200
    return existing.view()

  checkout = factory(str(uuid.uuid4()), key)
  # Registered before loading so a concurrent open of the same cart resumes
  # this session.
  sessions.add(checkout)
  try:
    await checkout.load()
  except EmptyCartError:
    if checkout.id in sessions:
      sessions.remove(checkout.id)
    raise
  if body.customer is not None:
    checkout.update_customer_info(body.customer)
  logger.info("Opened checkout session %s for %s", checkout.id, key.as_params())
  return checkout.view()


@router.get(
    "/{id}", response_model=CheckoutView, operation_id="get_checkout"
)
async def get_checkout(
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
) -> CheckoutView:
  return checkout.view()


@router.put(
    "/{id}/customer",
    response_model=CheckoutView,
    operation_id="update_customer_info",
)
async def update_customer_info(
    customer: CustomerInfo = Body(...),
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
) -> CheckoutView:
  checkout.update_customer_info(customer)
  return checkout.view()


@router.put(
    "/{id}/shipping",
    response_model=CheckoutView,
    operation_id="update_shipping",
)
async def update_shipping(
    body: ShippingUpdateRequest = Body(...),
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
) -> CheckoutView:
  checkout.update_shipping(address=body.address, method=body.method)
  return checkout.view()


@router.put(
    "/{id}/billing",
    response_model=CheckoutView,
    operation_id="update_billing",
)
async def update_billing(
    body: BillingUpdateRequest = Body(...),
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
) -> CheckoutView:
  checkout.update_billing(
      same_as_shipping=body.same_as_shipping, address=body.address
  )
  return checkout.view()


@router.post(
    "/{id}/next", response_model=CheckoutView, operation_id="next_step"
)
async def next_step(
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
) -> CheckoutView:
  await checkout.next_step()
  return checkout.view()


@router.post(
    "/{id}/previous",
    response_model=CheckoutView,
    operation_id="previous_step",
)
async def previous_step(
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
) -> CheckoutView:
  await checkout.previous_step()
  return checkout.view()


@router.post(
    "/{id}/payment",
    response_model=CheckoutActionResponse,
    status_code=202,
    operation_id="start_payment",
)
async def start_payment(
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
) -> CheckoutActionResponse:
  """Opens a payment attempt and returns the popup setup for the browser."""
  handle = await checkout.start_payment()
  return CheckoutActionResponse(checkout=checkout.view(), gateway=handle.setup)


@router.post(
    "/{id}/payment/callback",
    response_model=CheckoutView,
    operation_id="payment_callback",
)
async def payment_callback(
    body: PaymentCallbackRequest = Body(...),
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
    sessions: SessionStore = Depends(dependencies.get_session_store),
) -> CheckoutView:
  """Relays the popup's success callback and waits for verification."""
  if not checkout.complete_payment(body.reference):
    logger.warning(
        "Duplicate payment callback %s for checkout %s",
        body.reference,
        checkout.id,
    )
  await checkout.settle()
  view = checkout.view()
  sessions.release_if_confirmed(checkout)
  return view


@router.post(
    "/{id}/payment/close",
    response_model=CheckoutView,
    operation_id="payment_close",
)
async def payment_close(
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
) -> CheckoutView:
  """Relays the popup's close callback."""
  checkout.close_payment()
  await checkout.settle()
  return checkout.view()


@router.post(
    "/{id}/place-order",
    response_model=CheckoutActionResponse,
    operation_id="place_order",
)
async def place_order(
    response: Response,
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
    sessions: SessionStore = Depends(dependencies.get_session_store),
) -> CheckoutActionResponse:
  """Confirms the order, collecting payment first when it is still due."""
  handle = await checkout.begin_place_order()
  if handle is None:
    result = CheckoutActionResponse(checkout=checkout.view())
    sessions.release_if_confirmed(checkout)
    return result
  response.status_code = 202
  return CheckoutActionResponse(checkout=checkout.view(), gateway=handle.setup)


@router.delete(
    "/{id}", status_code=204, operation_id="abandon_checkout"
)
async def abandon_checkout(
    checkout: CheckoutOrchestrator = Depends(dependencies.get_checkout),
    sessions: SessionStore = Depends(dependencies.get_session_store),
) -> Response:
  sessions.remove(checkout.id)
  await checkout.abandon()
  return Response(status_code=204)
