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

"""Verification Client for gateway payment references.

A gateway success callback is never trusted on its own: the reference it
carries is submitted to the POS backend, which asks the payment provider
whether money was captured. The answer is one of three result types:

- `Verified`: the backend confirmed the transaction.
- `Unverified`: the backend answered but did not confirm it.
- `TransportError`: no usable answer (network error, timeout, non-2xx,
  malformed body).

Only `Verified` counts as paid. Everything else fails closed.
"""

import asyncio
import dataclasses
import logging
from typing import Any, Dict, Optional, Union

from storefront_checkout.exceptions import PosApiError
from storefront_checkout.pos_api import PosApiClient

logger = logging.getLogger(__name__)

VERIFY_PATH = "/api/paystack"
DEFAULT_VERIFICATION_TIMEOUT = 20.0


@dataclasses.dataclass(frozen=True)
class Verified:
  data: Dict[str, Any]

  @property
  def verified(self) -> bool:
    return True


@dataclasses.dataclass(frozen=True)
class Unverified:
  message: str

  @property
  def verified(self) -> bool:
    return False


@dataclasses.dataclass(frozen=True)
class TransportError:
  detail: str

  @property
  def verified(self) -> bool:
    return False


VerificationResult = Union[Verified, Unverified, TransportError]


class VerificationService:
  """Submits gateway references to the POS backend for confirmation."""

  def __init__(
      self,
      pos: PosApiClient,
      timeout: float = DEFAULT_VERIFICATION_TIMEOUT,
  ):
    self.pos = pos
    self.timeout = timeout

  async def verify(
      self, reference: str, session_id: Optional[str]
  ) -> VerificationResult:
    """Asks the backend whether `reference` was paid.

    Args:
      reference: The gateway-assigned transaction reference.
      session_id: The cart's session id, so the backend can correlate the
        payment with the cart.

    Returns:
      `Verified` only when the backend answered 2xx with both `success` and
      `verified` set to true; otherwise `Unverified` or `TransportError`.
    """
    payload = {
        "action": "verify",
        "reference": reference,
        "sessionId": session_id,
    }
    logger.info("Verifying payment reference %s", reference)
    try:
      response = await asyncio.wait_for(
          self.pos.request(
              "POST", VERIFY_PATH, json=payload, timeout=self.timeout
          ),
          timeout=self.timeout,
      )
    except PosApiError as e:
      return TransportError(e.message)
    except asyncio.TimeoutError:
      logger.warning("Verification of %s timed out", reference)
      return TransportError(
          f"Verification timed out after {self.timeout:g} seconds"
      )

    if not response.is_success:
      logger.warning(
          "Verification of %s returned HTTP %s", reference, response.status_code
      )
      return TransportError(f"Verification returned {response.status_code}")

    try:
      body = response.json()
    except ValueError:
      return TransportError("Verification returned a non-JSON body")
    if not isinstance(body, dict):
      return TransportError("Verification returned an unexpected body")

    if body.get("success") is True and body.get("verified") is True:
      data = body.get("data")
      return Verified(data if isinstance(data, dict) else {})

    message = body.get("message") or "Payment verification failed"
    logger.info("Payment reference %s not verified: %s", reference, message)
    return Unverified(str(message))
