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

"""FastAPI dependencies for the checkout service.

This module wires the per-app resources opened by `config.lifespan` (POS
client, audit database, session store) into the services and the
`CheckoutOrchestrator` the routes work with.
"""

from typing import Callable

from fastapi import Depends
from fastapi import Path
from fastapi import Request
from storefront_checkout import db
from storefront_checkout.checkout_orchestrator import CheckoutOrchestrator
from storefront_checkout.config import Settings
from storefront_checkout.models import CartKey
from storefront_checkout.pos_api import PosApiClient
from storefront_checkout.services.audit_service import AuditLogger
from storefront_checkout.services.cart_service import CartService
from storefront_checkout.services.order_service import OrderSubmitter
from storefront_checkout.services.order_service import PosOrderSubmitter
from storefront_checkout.services.order_service import SimulatedOrderSubmitter
from storefront_checkout.services.payment_gateway import PaymentGateway
from storefront_checkout.services.payment_gateway import PaystackInlineGateway
from storefront_checkout.services.tax_service import TaxService
from storefront_checkout.services.verification_service import VerificationService
from storefront_checkout.session_store import SessionStore

CheckoutFactory = Callable[[str, CartKey], CheckoutOrchestrator]


def get_settings(request: Request) -> Settings:
  return request.app.state.settings


def get_pos_client(request: Request) -> PosApiClient:
  return request.app.state.pos


def get_db_manager(request: Request) -> db.DatabaseManager:
  return request.app.state.db


def get_session_store(request: Request) -> SessionStore:
  return request.app.state.sessions


def get_audit_logger(
    settings: Settings = Depends(get_settings),
    pos: PosApiClient = Depends(get_pos_client),
    manager: db.DatabaseManager = Depends(get_db_manager),
) -> AuditLogger:
  """Dependency provider for AuditLogger."""
  return AuditLogger(manager, pos, forward=settings.forward_audit_events)


def get_payment_gateway(
    settings: Settings = Depends(get_settings),
) -> PaymentGateway:
  return PaystackInlineGateway(settings.paystack_public_key)


def get_order_submitter(
    settings: Settings = Depends(get_settings),
    pos: PosApiClient = Depends(get_pos_client),
) -> OrderSubmitter:
  """Dependency provider for the configured OrderSubmitter."""
  if settings.submit_orders_to_pos:
    return PosOrderSubmitter(pos)
  return SimulatedOrderSubmitter(settings.order_simulation_delay)


def get_checkout_factory(
    settings: Settings = Depends(get_settings),
    pos: PosApiClient = Depends(get_pos_client),
    audit: AuditLogger = Depends(get_audit_logger),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    order_submitter: OrderSubmitter = Depends(get_order_submitter),
) -> CheckoutFactory:
  """Dependency provider for building new CheckoutOrchestrators."""

  def factory(checkout_id: str, key: CartKey) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(
        checkout_id,
        key,
        cart_service=CartService(pos),
        tax_service=TaxService(pos),
        verification_service=VerificationService(
            pos, timeout=settings.verification_timeout
        ),
        gateway=gateway,
        order_submitter=order_submitter,
        audit=audit,
        currency=settings.currency,
    )

  return factory


def get_checkout(
    checkout_id: str = Path(..., alias="id"),
    sessions: SessionStore = Depends(get_session_store),
) -> CheckoutOrchestrator:
  """Resolves the `{id}` path parameter to a live checkout session."""
  return sessions.get(checkout_id)
