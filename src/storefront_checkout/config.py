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

"""Configuration and startup logic for the checkout service."""

import contextlib
import logging
import os
from typing import Optional

from absl import flags
from fastapi import FastAPI
from pydantic import BaseModel
from storefront_checkout import db
from storefront_checkout.pos_api import PosApiClient
from storefront_checkout.session_store import SessionStore

FLAGS = flags.FLAGS

logger = logging.getLogger(__name__)

DEFAULT_POS_API_URL = "http://localhost:5173"

# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string(
      "pos_api_url",
      None,
      "Base URL of the POS REST API. Defaults to $POS_API_URL, then"
      f" {DEFAULT_POS_API_URL}.",
  )
  flags.DEFINE_string(
      "paystack_public_key",
      None,
      "Paystack public key. Defaults to $PAYSTACK_PUBLIC_KEY.",
  )
  flags.DEFINE_string("currency", "GHS", "Currency charged at checkout")
  flags.DEFINE_float("api_timeout", 10.0, "POS API timeout in seconds")
  flags.DEFINE_float(
      "verification_timeout",
      20.0,
      "Upper bound in seconds for a payment verification round-trip",
  )
  flags.DEFINE_string("audit_db_path", None, "Path to the audit DB")
  flags.DEFINE_bool(
      "forward_audit_events", False, "Also send audit events to the POS"
  )
  flags.DEFINE_bool(
      "submit_orders_to_pos",
      False,
      "Create orders through the POS orders API instead of simulating them",
  )
  flags.DEFINE_float(
      "order_simulation_delay",
      0.0,
      "Seconds a simulated order submission takes",
  )
  flags.DEFINE_float(
      "session_ttl",
      1800.0,
      "Seconds an idle checkout session is kept before it is evicted",
  )
  flags.DEFINE_string("host", "0.0.0.0", "Host to bind the server to")
  flags.DEFINE_integer("port", None, "Port to run the server on")
except flags.DuplicateFlagError:
  pass


class Settings(BaseModel):
  """Runtime settings of the checkout service."""

  pos_api_url: str = DEFAULT_POS_API_URL
  paystack_public_key: Optional[str] = None
  currency: str = "GHS"
  api_timeout: float = 10.0
  verification_timeout: float = 20.0
  audit_db_path: Optional[str] = None
  forward_audit_events: bool = False
  submit_orders_to_pos: bool = False
  order_simulation_delay: float = 0.0
  session_ttl: float = 1800.0

  @classmethod
  def from_flags(cls) -> "Settings":
    """Builds settings from parsed flags, falling back to the environment."""
    return cls(
        pos_api_url=(
            FLAGS.pos_api_url
            or os.environ.get("POS_API_URL")
            or DEFAULT_POS_API_URL
        ),
        paystack_public_key=(
            FLAGS.paystack_public_key or os.environ.get("PAYSTACK_PUBLIC_KEY")
        ),
        currency=FLAGS.currency,
        api_timeout=FLAGS.api_timeout,
        verification_timeout=FLAGS.verification_timeout,
        audit_db_path=FLAGS.audit_db_path,
        forward_audit_events=FLAGS.forward_audit_events,
        submit_orders_to_pos=FLAGS.submit_orders_to_pos,
        order_simulation_delay=FLAGS.order_simulation_delay,
        session_ttl=FLAGS.session_ttl,
    )


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
  """Opens the POS client and audit DB for the lifetime of the app."""
  settings: Settings = app.state.settings
  app.state.pos = PosApiClient(
      settings.pos_api_url,
      timeout=settings.api_timeout,
      transport=getattr(app.state, "pos_transport", None),
  )
  app.state.db = db.DatabaseManager()
  if settings.audit_db_path:
    await app.state.db.init_db(settings.audit_db_path)
  app.state.sessions = SessionStore(ttl=settings.session_ttl)
  if not settings.paystack_public_key:
    logger.warning("No Paystack public key configured, payments will fail")
  yield
  for checkout in app.state.sessions.all():
    await checkout.abandon()
  await app.state.pos.aclose()
  await app.state.db.close()
