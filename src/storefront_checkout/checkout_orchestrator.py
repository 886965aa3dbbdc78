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

"""Checkout Orchestrator.

One `CheckoutOrchestrator` drives one checkout session. It holds the cart
snapshot, the tax configuration and the `CheckoutState`, and sequences the
calls to its collaborators:

1. Payment: `start_payment` opens the gateway popup and spawns a task that
   waits for the gateway callback and then for backend verification.
   `process_payment` is the same flow awaited end to end.
2. Order: `place_order` submits the order once payment is verified, clears
   the cart exactly once, and keeps the confirmation.

Failures of collaborators never escape as exceptions from the payment and
order flows; they become payment statuses, an audit entry and a `notice` for
the shopper.
"""

import asyncio
from decimal import Decimal
import logging
from typing import List, Optional, Set, Tuple

from storefront_checkout import checkout_state
from storefront_checkout import identifiers
from storefront_checkout import totals as totals_lib
from storefront_checkout.checkout_state import CheckoutState
from storefront_checkout.enums import AuditSeverity
from storefront_checkout.enums import AuditStatus
from storefront_checkout.enums import CheckoutStep
from storefront_checkout.enums import PaymentStatus
from storefront_checkout.enums import ShippingMethod
from storefront_checkout.exceptions import CheckoutNotModifiableError
from storefront_checkout.exceptions import EmptyCartError
from storefront_checkout.exceptions import GatewayUnavailableError
from storefront_checkout.exceptions import InvalidTransitionError
from storefront_checkout.exceptions import PaymentInProgressError
from storefront_checkout.exceptions import PosApiError
from storefront_checkout.exceptions import StepValidationError
from storefront_checkout.models import Address
from storefront_checkout.models import Cart
from storefront_checkout.models import CartKey
from storefront_checkout.models import CheckoutView
from storefront_checkout.models import CustomerInfo
from storefront_checkout.models import Order
from storefront_checkout.models import OrderConfirmation
from storefront_checkout.models import OrderLine
from storefront_checkout.models import PaymentAttempt
from storefront_checkout.models import PaymentResult
from storefront_checkout.models import PaymentView
from storefront_checkout.models import TaxConfiguration
from storefront_checkout.models import Totals
from storefront_checkout.services import audit_service
from storefront_checkout.services.audit_service import AuditLogger
from storefront_checkout.services.cart_service import CartService
from storefront_checkout.services.order_service import OrderSubmitter
from storefront_checkout.services.payment_gateway import GatewayClosed
from storefront_checkout.services.payment_gateway import GatewayCompleted
from storefront_checkout.services.payment_gateway import GatewayHandle
from storefront_checkout.services.payment_gateway import GatewayOutcome
from storefront_checkout.services.payment_gateway import GatewayUnavailable
from storefront_checkout.services.payment_gateway import PaymentGateway
from storefront_checkout.services.payment_gateway import PaymentRequest
from storefront_checkout.services.tax_service import TaxService
from storefront_checkout.services.verification_service import TransportError
from storefront_checkout.services.verification_service import Verified
from storefront_checkout.services.verification_service import VerificationService

logger = logging.getLogger(__name__)

VERIFICATION_FAILED_NOTICE = (
    "Payment verification failed. Please contact support."
)
VERIFICATION_ERROR_NOTICE = (
    "We could not confirm your payment. Please try again."
)
ORDER_FAILED_NOTICE = "Failed to place order. Please try again."


def _cart_lines(cart: Cart) -> List[Tuple[str, int, Decimal]]:
  return [
      (item.product_id, item.quantity, item.line_total) for item in cart.items
  ]


class CheckoutOrchestrator:
  """Drives a single checkout session from customer info to confirmation."""

  def __init__(
      self,
      checkout_id: str,
      key: CartKey,
      cart_service: CartService,
      tax_service: TaxService,
      verification_service: VerificationService,
      gateway: PaymentGateway,
      order_submitter: OrderSubmitter,
      audit: AuditLogger,
      currency: str = "GHS",
  ):
    self.id = checkout_id
    self.key = key
    self.cart_service = cart_service
    self.tax_service = tax_service
    self.verification_service = verification_service
    self.gateway = gateway
    self.order_submitter = order_submitter
    self.audit = audit
    self.currency = currency

    self.state = CheckoutState()
    self.cart: Optional[Cart] = None
    self.tax = TaxConfiguration.disabled()
    self.attempt: Optional[PaymentAttempt] = None
    self.handle: Optional[GatewayHandle] = None
    self.confirmation: Optional[OrderConfirmation] = None
    self.notice: Optional[str] = None

    self._order_id: Optional[str] = None
    self._cart_clear_attempted = False
    self._cart_cleared = False
    self._payment_task: Optional[asyncio.Task] = None
    self._order_task: Optional[asyncio.Task] = None
    self._order_lock = asyncio.Lock()
    self._past_references: Set[str] = set()

  # --- Read side ---

  @property
  def step(self) -> CheckoutStep:
    return self.state.step

  @property
  def payment_status(self) -> PaymentStatus:
    return self.state.payment_status

  @property
  def totals(self) -> Totals:
    return totals_lib.compute_totals(
        self._require_cart(),
        self.state.form.shipping_method,
        self.tax,
    )

  def view(self) -> CheckoutView:
    attempt = self.attempt
    payment = PaymentView(status=self.state.payment_status)
    if attempt is not None:
      payment = PaymentView(
          status=self.state.payment_status,
          reference=attempt.gateway_reference or attempt.reference,
          amount=attempt.amount,
          currency=attempt.currency,
      )
    return CheckoutView(
        id=self.id,
        step=self.state.step,
        form=self.state.form,
        cart=self._require_cart(),
        totals=self.totals,
        tax=self.tax,
        payment=payment,
        can_place_order=checkout_state.can_place_order(self.state),
        order=self.confirmation,
        notice=self.notice,
    )

  def _require_cart(self) -> Cart:
    if self.cart is None:
      raise EmptyCartError("Your cart is empty")
    return self.cart

  # --- Entry ---

  async def load(self) -> None:
    """Reads the cart and tax configuration the checkout is based on.

    Raises:
      EmptyCartError: If the cart is missing, empty or cannot be read.
    """
    cart = await self._fetch_cart()
    self.cart = cart
    self.tax = await self.tax_service.fetch_tax_configuration()
    await self.audit.log(
        audit_service.CHECKOUT_STARTED,
        self.id,
        details={
            "item_count": cart.item_count,
            "subtotal": str(cart.subtotal),
            "tax_enabled": self.tax.enabled,
        },
    )

  async def refresh(self) -> None:
    """Re-reads the cart when the checkout page is opened again.

    Until an attempt is processing or verified, the cart and tax
    configuration are replaced with what the POS reports now. After that
    the amount is fixed and the cart must still match the paid snapshot.

    Raises:
      EmptyCartError: If the cart is missing, empty or cannot be read.
      CheckoutNotModifiableError: If the cart changed after payment started.
    """
    cart = await self._fetch_cart()
    tax = self.tax
    if not self.amount_fixed:
      tax = await self.tax_service.fetch_tax_configuration()
    # Payment may have started while the POS was being read.
    if self.cart is not None and self.amount_fixed:
      if _cart_lines(cart) != _cart_lines(self.cart):
        logger.warning(
            "Checkout %s: cart changed after payment %s started",
            self.id,
            self.attempt.reference if self.attempt else None,
        )
        raise CheckoutNotModifiableError(
            "Your cart changed after payment started"
        )
      return
    self.cart = cart
    self.tax = tax
    logger.info(
        "Checkout %s: refreshed cart, subtotal %s", self.id, cart.subtotal
    )

  @property
  def amount_fixed(self) -> bool:
    """Whether an attempt has fixed the amount to charge."""
    return self.confirmation is not None or self.state.payment_status in (
        PaymentStatus.PROCESSING,
        PaymentStatus.SUCCESS,
    )

  async def _fetch_cart(self) -> Cart:
    try:
      cart = await self.cart_service.fetch_cart(self.key)
    except PosApiError as e:
      logger.error("Failed to load cart for checkout %s: %s", self.id, e)
      raise EmptyCartError("Your cart could not be loaded") from e
    if cart is None or not cart.items:
      raise EmptyCartError("Your cart is empty")
    return cart

  # --- Form ---

  def update_customer_info(self, customer: CustomerInfo) -> None:
    form = self.state.form.model_copy(update={"customer": customer})
    self.state = checkout_state.update_form(self.state, form)

  def update_shipping(
      self,
      address: Optional[Address] = None,
      method: Optional[ShippingMethod] = None,
  ) -> None:
    """Updates the shipping address and/or method."""
    update = {}
    if address is not None:
      update["shipping_address"] = address
    if method is not None:
      # The amount is fixed once an attempt opens.
      if method != self.state.form.shipping_method and (
          self.state.payment_status
          in (PaymentStatus.PROCESSING, PaymentStatus.SUCCESS)
      ):
        raise CheckoutNotModifiableError(
            "Shipping method cannot change once payment has started"
        )
      update["shipping_method"] = method
    form = self.state.form.model_copy(update=update)
    self.state = checkout_state.update_form(self.state, form)

  def update_billing(
      self,
      same_as_shipping: Optional[bool] = None,
      address: Optional[Address] = None,
  ) -> None:
    update = {}
    if same_as_shipping is not None:
      update["billing_same_as_shipping"] = same_as_shipping
    if address is not None:
      update["billing_address"] = address
    form = self.state.form.model_copy(update=update)
    self.state = checkout_state.update_form(self.state, form)

  # --- Steps ---

  async def next_step(self) -> CheckoutStep:
    before = self.state.step
    self.state = checkout_state.advance(self.state)
    await self._log_step(before)
    return self.state.step

  async def previous_step(self) -> CheckoutStep:
    before = self.state.step
    self.state = checkout_state.retreat(self.state)
    if self.state.step != before:
      await self._log_step(before)
    return self.state.step

  async def _log_step(self, before: CheckoutStep) -> None:
    await self.audit.log(
        audit_service.STEP_CHANGED,
        self.id,
        status=AuditStatus.INFO,
        details={"from": before.name, "to": self.state.step.name},
    )

  # --- Payment ---

  async def start_payment(self) -> GatewayHandle:
    """Opens a new payment attempt.

    The status becomes `processing` before anything else happens. The
    returned handle carries the popup setup for the browser; the attempt
    resolves once the handle does and verification has answered.

    Returns:
      The handle of the opened popup.

    Raises:
      CheckoutNotModifiableError: If the order was already placed.
      InvalidTransitionError: If payment was already verified.
      PaymentInProgressError: If another attempt is still in flight.
      StepValidationError: If customer or shipping details are incomplete.
      GatewayUnavailableError: If the gateway cannot be opened. The attempt
        is marked `failed` first.
    """
    if self.confirmation is not None:
      raise CheckoutNotModifiableError("Order has already been placed")
    if self.state.payment_status == PaymentStatus.PROCESSING:
      raise PaymentInProgressError("A payment is already in progress")
    if self.state.payment_status == PaymentStatus.SUCCESS:
      raise InvalidTransitionError("Payment has already been verified")
    for step in (CheckoutStep.CUSTOMER_INFO, CheckoutStep.SHIPPING):
      if not checkout_state.is_step_valid(
          self.state.form, step, self.state.payment_status
      ):
        raise StepValidationError(
            "Customer and shipping details are required before payment"
        )

    cart = self._require_cart()
    totals = self.totals
    attempt = PaymentAttempt(
        reference=identifiers.transaction_reference(),
        amount=totals.total,
        currency=self.currency,
    )
    if self.attempt is not None:
      self._past_references.add(self.attempt.reference)
    self.attempt = attempt
    self.handle = None
    self.notice = None
    self.state = checkout_state.with_payment_status(
        self.state, PaymentStatus.PROCESSING
    )
    logger.info(
        "Checkout %s: starting payment %s for %s %s",
        self.id,
        attempt.reference,
        attempt.amount,
        attempt.currency,
    )
    await self.audit.log(
        audit_service.PAYMENT_INITIATED,
        self.id,
        status=AuditStatus.INFO,
        details={
            "reference": attempt.reference,
            "amount": str(attempt.amount),
            "currency": attempt.currency,
        },
    )

    request = PaymentRequest(
        reference=attempt.reference,
        customer=self.state.form.customer,
        shipping_address=self.state.form.shipping_address,
        items=cart.items,
        shipping_method=self.state.form.shipping_method,
        total=attempt.amount,
        currency=attempt.currency,
        cart_id=cart.cart_id,
    )
    try:
      handle = self.gateway.open(request)
    except GatewayUnavailableError as e:
      await self._resolve_attempt(attempt, GatewayUnavailable(e.message))
      raise

    self.handle = handle
    self._payment_task = asyncio.create_task(
        self._run_attempt(attempt, handle)
    )
    return handle

  async def process_payment(self) -> PaymentResult:
    """Runs a whole payment attempt and returns how it ended."""
    try:
      await self.start_payment()
    except GatewayUnavailableError:
      return self._payment_result()
    await self._wait_for_payment()
    return self._payment_result()

  def complete_payment(self, gateway_reference: str) -> bool:
    """Relays the gateway success callback for the current attempt.

    Returns:
      False if the attempt had already been resolved.

    Raises:
      InvalidTransitionError: If no popup is open, or the reference is that
        of an earlier attempt whose popup was already dismissed.
    """
    handle = self._current_handle()
    if gateway_reference in self._past_references:
      logger.warning(
          "Checkout %s: ignoring callback for earlier payment %s",
          self.id,
          gateway_reference,
      )
      raise InvalidTransitionError(
          "Payment callback belongs to an earlier payment attempt"
      )
    if gateway_reference != handle.reference:
      logger.warning(
          "Checkout %s: callback reference %s differs from attempt %s",
          self.id,
          gateway_reference,
          handle.reference,
      )
    return handle.complete(gateway_reference)

  def close_payment(self) -> bool:
    """Relays the gateway close callback for the current attempt."""
    return self._current_handle().close()

  def _current_handle(self) -> GatewayHandle:
    if self.handle is None:
      raise InvalidTransitionError("No payment is in progress")
    return self.handle

  def _payment_result(self) -> PaymentResult:
    attempt = self.attempt
    success = self.state.payment_status == PaymentStatus.SUCCESS
    if not success or attempt is None:
      return PaymentResult(success=False)
    return PaymentResult(
        success=True,
        reference=attempt.gateway_reference or attempt.reference,
    )

  async def _run_attempt(
      self, attempt: PaymentAttempt, handle: GatewayHandle
  ) -> None:
    try:
      outcome = await handle.outcome()
      await self._resolve_attempt(attempt, outcome)
    except Exception as e:  # pylint: disable=broad-exception-caught
      logger.exception("Payment attempt %s crashed", attempt.reference)
      await self._fail_attempt(attempt, str(e), VERIFICATION_ERROR_NOTICE)

  async def _resolve_attempt(
      self, attempt: PaymentAttempt, outcome: GatewayOutcome
  ) -> None:
    if isinstance(outcome, GatewayClosed):
      # Dismissing the popup is not a failure; the shopper may retry.
      self._set_attempt_status(attempt, PaymentStatus.PENDING)
      logger.info("Payment %s closed by shopper", attempt.reference)
      await self.audit.log(
          audit_service.PAYMENT_CANCELLED,
          self.id,
          status=AuditStatus.INFO,
          details={"reference": attempt.reference},
      )
      return

    if isinstance(outcome, GatewayUnavailable):
      await self._fail_attempt(attempt, outcome.reason, outcome.reason)
      return

    if not isinstance(outcome, GatewayCompleted):
      raise InvalidTransitionError(f"Unexpected gateway outcome {outcome!r}")
    attempt.gateway_reference = outcome.reference
    session_id = self._require_cart().session_id or self.key.session_id
    result = await self.verification_service.verify(
        outcome.reference, session_id
    )

    if isinstance(result, Verified):
      attempt.verification = result.data
      self._set_attempt_status(attempt, PaymentStatus.SUCCESS)
      logger.info("Payment %s verified", outcome.reference)
      await self.audit.log(
          audit_service.PAYMENT_VERIFIED,
          self.id,
          details={
              "reference": outcome.reference,
              "amount": str(attempt.amount),
              "currency": attempt.currency,
          },
      )
    elif isinstance(result, TransportError):
      await self._fail_attempt(
          attempt, result.detail, VERIFICATION_ERROR_NOTICE
      )
    else:
      await self._fail_attempt(
          attempt, result.message, VERIFICATION_FAILED_NOTICE
      )

  async def _fail_attempt(
      self, attempt: PaymentAttempt, reason: str, notice: str
  ) -> None:
    self._set_attempt_status(attempt, PaymentStatus.FAILED)
    self.notice = notice
    logger.warning("Payment %s failed: %s", attempt.reference, reason)
    await self.audit.log(
        audit_service.PAYMENT_FAILED,
        self.id,
        status=AuditStatus.ERROR,
        severity=AuditSeverity.MEDIUM,
        details={
            "reference": attempt.gateway_reference or attempt.reference,
            "reason": reason,
        },
    )

  def _set_attempt_status(
      self, attempt: PaymentAttempt, status: PaymentStatus
  ) -> None:
    attempt.status = status
    if attempt is self.attempt:
      self.state = checkout_state.with_payment_status(self.state, status)

  async def _wait_for_payment(self) -> None:
    task = self._payment_task
    if task is not None:
      await asyncio.shield(task)

  async def settle(self) -> None:
    """Waits for the in-flight payment attempt and any order it unblocks."""
    await self._wait_for_payment()
    task = self._order_task
    if task is not None:
      await asyncio.shield(task)

  # --- Order ---

  async def place_order(self) -> Optional[OrderConfirmation]:
    """Confirms the order.

    Runs the payment flow first when payment is not verified yet and stops
    if it does not succeed. Then submits the order, clears the cart and
    keeps the confirmation.

    Returns:
      The confirmation, or None if payment or order submission failed. In
      that case the checkout stays where it was and the cart is untouched.

    Raises:
      CheckoutNotModifiableError: If an order was already placed.
      StepValidationError: If the checkout has not reached payment yet.
    """
    self._check_can_order()
    if self.state.payment_status != PaymentStatus.SUCCESS:
      result = await self.process_payment()
      if not result.success:
        return None
    return await self._confirm_order()

  async def begin_place_order(self) -> Optional[GatewayHandle]:
    """Non-blocking `place_order` for the HTTP layer.

    Returns:
      None if payment was already verified and the order has been handled,
      otherwise the handle of the popup the shopper has to complete. The
      order is then placed in the background once payment is verified.
    """
    self._check_can_order()
    if self.state.payment_status == PaymentStatus.SUCCESS:
      await self._confirm_order()
      return None
    handle = await self.start_payment()
    self._order_task = asyncio.create_task(self._order_after_payment())
    return handle

  def _check_can_order(self) -> None:
    if self.confirmation is not None:
      raise CheckoutNotModifiableError("Order has already been placed")
    if self.state.step < CheckoutStep.PAYMENT:
      raise StepValidationError(
          "Customer and shipping details are required before ordering"
      )

  async def _order_after_payment(self) -> None:
    await self._wait_for_payment()
    if self.state.payment_status == PaymentStatus.SUCCESS:
      await self._confirm_order()

  async def _confirm_order(self) -> Optional[OrderConfirmation]:
    async with self._order_lock:
      if self.confirmation is not None:
        return self.confirmation

      attempt = self.attempt
      if attempt is None:
        raise InvalidTransitionError("No verified payment to order against")
      if self._order_id is None:
        self._order_id = identifiers.order_id()
      totals = self.totals
      order = self._build_order(self._order_id, attempt, totals)

      try:
        order_number = await self.order_submitter.submit(order)
      except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Error creating order %s: %s", order.order_id, e)
        self.notice = ORDER_FAILED_NOTICE
        await self.audit.log(
            audit_service.ORDER_FAILED,
            self.id,
            status=AuditStatus.ERROR,
            severity=AuditSeverity.HIGH,
            details={"order_id": order.order_id, "error": str(e)},
        )
        return None

      cart_cleared = await self._clear_cart_once()
      self.confirmation = OrderConfirmation(
          order_id=order_number,
          payment_reference=order.payment_reference,
          totals=totals,
          cart_cleared=cart_cleared,
      )
      self.state = checkout_state.mark_order_placed(
          self.state.model_copy(update={"step": CheckoutStep.REVIEW})
      )
      self.notice = None
      await self.audit.log(
          audit_service.ORDER_PLACED,
          self.id,
          details={
              "order_id": order_number,
              "payment_reference": order.payment_reference,
              "total": str(totals.total),
              "currency": self.currency,
              "cart_cleared": cart_cleared,
          },
      )
      return self.confirmation

  def _build_order(
      self, order_id: str, attempt: PaymentAttempt, totals: Totals
  ) -> Order:
    form = self.state.form
    return Order(
        order_id=order_id,
        session_id=self.key.session_id,
        user_id=self.key.user_id,
        customer=form.customer,
        shipping_address=form.shipping_address,
        billing_address=form.effective_billing_address,
        shipping_method=form.shipping_method,
        lines=[
            OrderLine(
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.line_total,
            )
            for item in self._require_cart().items
        ],
        totals=totals,
        currency=attempt.currency,
        payment_reference=attempt.gateway_reference or attempt.reference,
    )

  async def _clear_cart_once(self) -> bool:
    if self._cart_clear_attempted:
      return self._cart_cleared
    self._cart_clear_attempted = True
    self._cart_cleared = await self.cart_service.clear_cart(self.key)
    if not self._cart_cleared:
      await self.audit.log(
          audit_service.CART_CLEAR_FAILED,
          self.id,
          status=AuditStatus.WARNING,
          severity=AuditSeverity.MEDIUM,
          details=self.key.as_params(),
      )
    return self._cart_cleared

  # --- Teardown ---

  async def abandon(self) -> None:
    """Dismisses any open popup and waits for in-flight work to finish."""
    if self.handle is not None and not self.handle.done:
      self.handle.close()
    await self.settle()
