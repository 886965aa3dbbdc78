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

"""Audit trail for checkout events.

Every notable checkout event is written to the application log and, when an
audit database is configured, stored as an `AuditEntry`. Events can also be
forwarded to the POS system's shared audit endpoint. Auditing never affects
the checkout itself: failures are logged and dropped.
"""

import logging
from typing import Any, Dict, Optional

from storefront_checkout import db
from storefront_checkout.enums import AuditSeverity
from storefront_checkout.enums import AuditStatus
from storefront_checkout.exceptions import PosApiError
from storefront_checkout.pos_api import PosApiClient

logger = logging.getLogger(__name__)

AUDIT_PATH = "/api/audit"

CHECKOUT_STARTED = "checkout_started"
STEP_CHANGED = "step_changed"
PAYMENT_INITIATED = "payment_initiated"
PAYMENT_CANCELLED = "payment_cancelled"
PAYMENT_VERIFIED = "payment_verified"
PAYMENT_FAILED = "payment_failed"
ORDER_PLACED = "order_placed"
ORDER_FAILED = "order_failed"
CART_CLEAR_FAILED = "cart_clear_failed"


class AuditLogger:
  """Records checkout events."""

  def __init__(
      self,
      manager: Optional[db.DatabaseManager] = None,
      pos: Optional[PosApiClient] = None,
      forward: bool = False,
  ):
    self.manager = manager
    self.pos = pos
    self.forward = forward and pos is not None

  async def log(
      self,
      action: str,
      resource_id: Optional[str] = None,
      status: AuditStatus = AuditStatus.SUCCESS,
      severity: AuditSeverity = AuditSeverity.LOW,
      details: Optional[Dict[str, Any]] = None,
      resource: str = "checkout",
  ) -> None:
    """Records one event. Never raises."""
    logger.info(
        "AUDIT %s %s/%s status=%s severity=%s %s",
        action,
        resource,
        resource_id,
        status.value,
        severity.value,
        details or {},
    )

    if self.manager is not None and self.manager.ready:
      try:
        async with self.manager.session_factory() as session:
          await db.log_audit_entry(
              session,
              action=action,
              resource=resource,
              resource_id=resource_id,
              status=status.value,
              severity=severity.value,
              details=details,
          )
          await session.commit()
      except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Failed to persist audit event %s: %s", action, e)

    if self.forward:
      await self._forward(
          action, resource, resource_id, status, severity, details
      )

  async def _forward(
      self,
      action: str,
      resource: str,
      resource_id: Optional[str],
      status: AuditStatus,
      severity: AuditSeverity,
      details: Optional[Dict[str, Any]],
  ) -> None:
    payload = {
        "action": action,
        "resource": resource,
        "resourceId": resource_id,
        "details": {**(details or {}), "platform": "e-commerce"},
        "severity": severity.value,
        "status": status.value,
        "source": "api",
        "sessionId": resource_id,
    }
    try:
      body = await self.pos.post_json(AUDIT_PATH, payload)
    except PosApiError as e:
      logger.warning("Failed to forward audit event %s: %s", action, e.message)
      return
    if body.get("success") is False:
      logger.warning(
          "POS audit API rejected %s: %s", action, body.get("message")
      )
