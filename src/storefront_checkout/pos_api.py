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

"""Async HTTP client for the POS REST API.

All calls the checkout makes to the POS backend (cart, store settings, payment
verification, orders, audit) go through one `PosApiClient`, which owns a
shared `httpx.AsyncClient`. Transport failures and non-2xx responses surface
as `PosApiError`; callers decide whether that is fatal.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from storefront_checkout.exceptions import PosApiError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class PosApiClient:
  """Thin JSON wrapper over the POS REST API."""

  def __init__(
      self,
      base_url: str,
      timeout: float = DEFAULT_TIMEOUT,
      transport: Optional[httpx.AsyncBaseTransport] = None,
  ):
    self.base_url = base_url.rstrip("/")
    self._client = httpx.AsyncClient(
        base_url=self.base_url,
        timeout=timeout,
        transport=transport,
        headers={"Accept": "application/json"},
    )

  async def request(
      self,
      method: str,
      path: str,
      *,
      timeout: Optional[float] = None,
      **kwargs: Any,
  ) -> httpx.Response:
    """Sends a request and returns the raw response, whatever its status.

    Args:
      method: The HTTP method.
      path: The path below the POS base URL, e.g. `/api/cart`.
      timeout: Overrides the client's default timeout for this call.
      **kwargs: Passed through to `httpx.AsyncClient.request`.

    Returns:
      The response.

    Raises:
      PosApiError: If the request could not be sent or timed out.
    """
    if timeout is not None:
      kwargs["timeout"] = timeout
    try:
      return await self._client.request(method, path, **kwargs)
    except httpx.TimeoutException as e:
      logger.warning("POS API %s %s timed out", method, path)
      raise PosApiError(f"POS API request timed out: {path}", 504) from e
    except httpx.HTTPError as e:
      logger.warning("POS API %s %s failed: %s", method, path, e)
      raise PosApiError(f"POS API request failed: {e}") from e

  async def _json(self, response: httpx.Response) -> Dict[str, Any]:
    if not response.is_success:
      raise PosApiError(
          f"POS API returned {response.status_code} for"
          f" {response.request.url.path}"
      )
    try:
      body = response.json()
    except ValueError as e:
      raise PosApiError("POS API returned a non-JSON body") from e
    if not isinstance(body, dict):
      raise PosApiError("POS API returned an unexpected JSON body")
    return body

  async def get_json(
      self,
      path: str,
      params: Optional[Dict[str, str]] = None,
      timeout: Optional[float] = None,
  ) -> Dict[str, Any]:
    response = await self.request("GET", path, params=params, timeout=timeout)
    return await self._json(response)

  async def post_json(
      self,
      path: str,
      payload: Dict[str, Any],
      timeout: Optional[float] = None,
  ) -> Dict[str, Any]:
    response = await self.request("POST", path, json=payload, timeout=timeout)
    return await self._json(response)

  async def post_form(
      self,
      path: str,
      data: Dict[str, str],
      timeout: Optional[float] = None,
  ) -> Dict[str, Any]:
    response = await self.request("POST", path, data=data, timeout=timeout)
    return await self._json(response)

  async def aclose(self) -> None:
    await self._client.aclose()
