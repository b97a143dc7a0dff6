"""
BNA Payment Bridge API

Connects a store's checkout to the BNA Smart Payment hosted iframe and
reconciles BNA transaction webhooks with store orders.

Endpoints:
  /api/health                                   -- health check
  /api/v1/status                                -- API status and gateway environment
  /api/v1/checkout/orders/{order_id}/process    -- create checkout token for an order
  /api/v1/checkout/orders/{order_id}/token      -- iframe parameters for the payment page
  /api/v1/webhooks/bna                          -- BNA transaction webhook
  /bna-webhook                                  -- legacy webhook path
  /api/docs                                     -- Swagger UI documentation

Run with:
    uvicorn app:app --host 127.0.0.1 --port 8190
"""

import datetime
import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import config
from routers import checkout, webhooks
from services.gateway_services import build_default_gateway_services

# --- Logging ---
logging.basicConfig(
  level=logging.INFO,
  format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger("bnapay.api")


class HealthResponse(BaseModel):
  status: str
  service: str
  version: str
  timestamp: str
  database: str


def create_app(gateway_services=None):
  """
  Build the FastAPI app around one set of gateway services.
  Defaults to the MySQL-backed services configured from the environment.
  """
  if gateway_services is None:
    gateway_services = build_default_gateway_services()

  app = FastAPI(
    title="BNA Payment Bridge API",
    description="Hosted-checkout tokens and transaction webhook reconciliation "
                "for BNA Smart Payment.",
    version=config.API_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
  )
  app.state.gateway_services = gateway_services

  # --- Register routers ---
  app.include_router(checkout.router)
  app.include_router(webhooks.router)

  # --- Health and status ---

  @app.get("/api/health", response_model=HealthResponse)
  async def health_check():
    """Health check endpoint for monitoring and load balancers."""
    import database
    db_status = database.check_database_connectivity()

    return HealthResponse(
      status="healthy",
      service="bna-payment-bridge",
      version=config.API_VERSION,
      timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
      database=db_status,
    )

  @app.get("/api/v1/status")
  async def api_status():
    """API status and gateway environment."""
    environment_info = app.state.gateway_services.build_api_client().get_environment_info()
    return JSONResponse(
      content={
        "ok": True,
        "data": {
          "status": "operational",
          "version": config.API_VERSION,
          "gateway": environment_info,
          "endpoints": {
            "health": "/api/health",
            "checkout_process": "/api/v1/checkout/orders/{order_id}/process",
            "checkout_token": "/api/v1/checkout/orders/{order_id}/token",
            "webhook": "/api/v1/webhooks/bna",
            "docs": "/api/docs",
          },
        },
        "error": None,
      }
    )

  return app


app = create_app()


if __name__ == "__main__":
  import uvicorn
  logger.info("Starting BNA Payment Bridge API on %s:%d", config.API_HOST, config.API_PORT)
  uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
