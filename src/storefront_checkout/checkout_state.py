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

"""Finite state machine for the four-step checkout.

`CheckoutState` is an immutable snapshot: the step, the form, the status of
the current payment attempt, and whether an order was confirmed. Every
transition is a plain function returning a new snapshot, so the rules can be
exercised without any network collaborator.

Steps progress linearly:

  CUSTOMER_INFO -> SHIPPING -> PAYMENT -> REVIEW

Leaving PAYMENT (and confirming on REVIEW) requires a payment status of
`success`, which only the verification client can produce.
"""

from typing import List

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from storefront_checkout.enums import CheckoutStep
from storefront_checkout.enums import PaymentStatus
from storefront_checkout.exceptions import CheckoutNotModifiableError
from storefront_checkout.exceptions import InvalidTransitionError
from storefront_checkout.exceptions import StepValidationError
from storefront_checkout.models import CheckoutForm

_CUSTOMER_FIELDS = ("first_name", "last_name", "email", "phone")
_ADDRESS_FIELDS = ("street_address", "city", "state", "zip_code")


class CheckoutState(BaseModel):
  model_config = ConfigDict(frozen=True)

  step: CheckoutStep = CheckoutStep.CUSTOMER_INFO
  form: CheckoutForm = Field(default_factory=CheckoutForm)
  payment_status: PaymentStatus = PaymentStatus.PENDING
  order_placed: bool = False


def _blank(value: str) -> bool:
  return not (value or "").strip()


def missing_fields(
    form: CheckoutForm,
    step: CheckoutStep,
    payment_status: PaymentStatus,
) -> List[str]:
  """Lists what keeps `step` from being complete, in display order."""
  if step == CheckoutStep.CUSTOMER_INFO:
    return [f for f in _CUSTOMER_FIELDS if _blank(getattr(form.customer, f))]
  if step == CheckoutStep.SHIPPING:
    address = form.shipping_address
    return [f for f in _ADDRESS_FIELDS if _blank(getattr(address, f))]
  if payment_status != PaymentStatus.SUCCESS:
    return ["payment"]
  return []


def is_step_valid(
    form: CheckoutForm,
    step: CheckoutStep,
    payment_status: PaymentStatus,
) -> bool:
  """Returns whether `step` is complete. Presence checks only."""
  return not missing_fields(form, step, payment_status)


def advance(state: CheckoutState) -> CheckoutState:
  """Moves one step forward.

  Args:
    state: The current snapshot.

  Returns:
    A snapshot on the next step with form and payment status unchanged.

  Raises:
    InvalidTransitionError: If the checkout is already on REVIEW.
    StepValidationError: If the current step is incomplete.
  """
  if state.step == CheckoutStep.REVIEW:
    raise InvalidTransitionError("Review is the last checkout step")

  missing = missing_fields(state.form, state.step, state.payment_status)
  if missing:
    if missing == ["payment"]:
      raise StepValidationError("Payment must be completed and verified")
    raise StepValidationError(
        "Please fill in all required fields: " + ", ".join(missing)
    )
  return state.model_copy(update={"step": CheckoutStep(state.step + 1)})


def retreat(state: CheckoutState) -> CheckoutState:
  """Moves one step back; a no-op on the first step."""
  if state.step == CheckoutStep.CUSTOMER_INFO:
    return state
  return state.model_copy(update={"step": CheckoutStep(state.step - 1)})


def update_form(state: CheckoutState, form: CheckoutForm) -> CheckoutState:
  if state.order_placed:
    raise CheckoutNotModifiableError(
        "Cannot modify a checkout whose order has been placed"
    )
  return state.model_copy(update={"form": form})


def with_payment_status(
    state: CheckoutState, status: PaymentStatus
) -> CheckoutState:
  return state.model_copy(update={"payment_status": status})


def can_place_order(state: CheckoutState) -> bool:
  """Whether the confirm action on the review step is enabled."""
  return (
      state.step == CheckoutStep.REVIEW
      and state.payment_status == PaymentStatus.SUCCESS
      and not state.order_placed
  )


def mark_order_placed(state: CheckoutState) -> CheckoutState:
  return state.model_copy(update={"order_placed": True})
