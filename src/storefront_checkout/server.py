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

"""Storefront checkout service (Python/FastAPI)."""

import logging
import sys
from typing import Optional, Sequence

from absl import app as absl_app
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
import httpx
from storefront_checkout import config
from storefront_checkout.exceptions import StorefrontError
from storefront_checkout.routes.checkout import router as checkout_router
import uvicorn

logger = logging.getLogger(__name__)


async def storefront_exception_handler(
    request: Request, exc: StorefrontError
) -> JSONResponse:
  """Converts storefront exceptions to JSON responses."""
  del request  # Unused.
  content = {"detail": exc.message, "code": exc.code}
  content.update(exc.extra)
  return JSONResponse(status_code=exc.status_code, content=content)


def create_app(
    settings: Optional[config.Settings] = None,
    pos_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
  """Builds the FastAPI app.

  Args:
    settings: Runtime settings. Defaults to `Settings()`.
    pos_transport: Optional httpx transport for POS API calls, used by tests
      to stand in for the POS system.

  Returns:
    The app. Resources are opened by its lifespan.
  """
  app = FastAPI(
      title="Storefront Checkout Service",
      version="1.0.0",
      description="Checkout, payment verification and order confirmation",
      lifespan=config.lifespan,
  )
  app.state.settings = settings or config.Settings()
  app.state.pos_transport = pos_transport
  app.add_exception_handler(StorefrontError, storefront_exception_handler)
  app.include_router(checkout_router)
  return app


def main(argv: Sequence[str]) -> None:
  """Main entry point for the checkout service."""
  del argv  # Unused.

  if config.FLAGS.port is None:
    logger.error("--port must be provided.")
    print("\nUsage:")
    print(config.FLAGS.main_module_help())
    sys.exit(1)

  settings = config.Settings.from_flags()
  logger.info("Using POS API at %s", settings.pos_api_url)
  uvicorn.run(
      create_app(settings), host=config.FLAGS.host, port=config.FLAGS.port
  )


def run() -> None:
  """Console script entry point."""
  logging.basicConfig(level=logging.INFO)
  load_dotenv()
  absl_app.run(main)


if __name__ == "__main__":
  run()
