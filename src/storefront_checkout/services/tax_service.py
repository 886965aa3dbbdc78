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

"""Fetches the store's tax configuration from the POS system."""

from decimal import Decimal
from decimal import InvalidOperation
import logging
from typing import Any, Dict

from storefront_checkout.enums import TaxType
from storefront_checkout.exceptions import PosApiError
from storefront_checkout.models import TaxConfiguration
from storefront_checkout.pos_api import PosApiClient

logger = logging.getLogger(__name__)

STORE_PATH = "/api/store"

# Rates at or above 10**7 are treated as malformed.
MAX_RATE_EXPONENT = 6


def parse_tax_settings(settings: Dict[str, Any]) -> TaxConfiguration:
  """Interprets the POS `taxSettings` object.

  Tax is enabled exactly when the rate is positive. A missing type means
  percentage and a missing name means "Tax".

  Raises:
    ValueError: If the rate or type cannot be interpreted.
  """
  try:
    rate = Decimal(str(settings.get("rate") or 0))
  except InvalidOperation as e:
    raise ValueError(f"Invalid tax rate: {settings.get('rate')!r}") from e
  if not rate.is_finite() or rate.adjusted() > MAX_RATE_EXPONENT:
    raise ValueError(f"Invalid tax rate: {settings.get('rate')!r}")
  return TaxConfiguration(
      enabled=rate > 0,
      rate=rate,
      type=TaxType(settings.get("type") or TaxType.PERCENTAGE.value),
      name=settings.get("name") or "Tax",
  )


class TaxService:

  def __init__(self, pos: PosApiClient):
    self.pos = pos

  async def fetch_tax_configuration(self) -> TaxConfiguration:
    """Returns the store tax configuration, or no tax if it is unavailable."""
    try:
      body = await self.pos.get_json(STORE_PATH)
      data = body.get("data") if body.get("success") else None
      settings = data.get("taxSettings") if isinstance(data, dict) else None
      if not isinstance(settings, dict):
        logger.info("Store has no tax settings, applying no tax")
        return TaxConfiguration.disabled()
      return parse_tax_settings(settings)
    except (PosApiError, ValueError) as e:
      logger.warning("Error fetching tax settings, applying no tax: %s", e)
      return TaxConfiguration.disabled()
