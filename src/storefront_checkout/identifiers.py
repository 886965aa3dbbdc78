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

"""Generators for client-side identifiers.

Transaction references, order ids and guest session ids all share the shape
`<prefix><sep><epoch millis><sep><9 lowercase base36 chars>`.
"""

import secrets
import string
import time
from typing import Optional

_BASE36 = string.digits + string.ascii_lowercase


def _random_suffix(length: int = 9) -> str:
  return "".join(secrets.choice(_BASE36) for _ in range(length))


def _millis(now: Optional[float] = None) -> int:
  return int((time.time() if now is None else now) * 1000)


def transaction_reference(now: Optional[float] = None) -> str:
  """Returns a fresh payment reference, e.g. `TXN_1718000000000_k3j9x0a1b`."""
  return f"TXN_{_millis(now)}_{_random_suffix()}"


def order_id(now: Optional[float] = None) -> str:
  """Returns a fresh order id, e.g. `ORD-1718000000000-k3j9x0a1b`."""
  return f"ORD-{_millis(now)}-{_random_suffix()}"


def guest_session_id(now: Optional[float] = None) -> str:
  return f"guest_{_millis(now)}_{_random_suffix()}"
