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

"""Custom exceptions for the storefront checkout service."""

from typing import Any, Dict, Optional


class StorefrontError(Exception):
  """Base class for all storefront checkout exceptions."""

  def __init__(
      self,
      message: str,
      code: str = "INTERNAL_ERROR",
      status_code: int = 500,
      extra: Optional[Dict[str, Any]] = None,
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    self.extra = extra or {}
    super().__init__(self.message)


class ResourceNotFoundError(StorefrontError):
  """Raised when a requested resource is not found."""

  def __init__(self, message: str):
    super().__init__(message, code="RESOURCE_NOT_FOUND", status_code=404)


class StepValidationError(StorefrontError):
  """Raised when the current step's required fields are missing."""

  def __init__(self, message: str):
    super().__init__(message, code="STEP_INCOMPLETE", status_code=400)


class InvalidTransitionError(StorefrontError):
  """Raised when a step transition does not exist (e.g. past review)."""

  def __init__(self, message: str):
    super().__init__(message, code="INVALID_TRANSITION", status_code=400)


class CheckoutNotModifiableError(StorefrontError):
  """Raised when attempting to modify a checkout whose order is placed."""

  def __init__(self, message: str):
    super().__init__(message, code="CHECKOUT_NOT_MODIFIABLE", status_code=409)


class PaymentInProgressError(StorefrontError):
  """Raised when a payment attempt is started while another is in flight."""

  def __init__(self, message: str):
    super().__init__(message, code="PAYMENT_IN_PROGRESS", status_code=409)


class EmptyCartError(StorefrontError):
  """Raised when checkout is entered without a usable cart."""

  def __init__(self, message: str):
    super().__init__(
        message,
        code="EMPTY_CART",
        status_code=409,
        extra={"redirect": "/cart"},
    )


class GatewayUnavailableError(StorefrontError):
  """Raised when the hosted payment gateway cannot be opened."""

  def __init__(self, message: str):
    super().__init__(message, code="GATEWAY_UNAVAILABLE", status_code=503)


class PosApiError(StorefrontError):
  """Raised when the POS REST API cannot be reached or rejects a call."""

  def __init__(self, message: str, status_code: int = 502):
    super().__init__(message, code="POS_API_ERROR", status_code=status_code)


class OrderSubmissionError(StorefrontError):
  """Raised when an order could not be recorded after payment."""

  def __init__(self, message: str):
    super().__init__(message, code="ORDER_SUBMISSION_FAILED", status_code=502)
