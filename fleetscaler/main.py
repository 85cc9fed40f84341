"""
HTTP surface for the fleet autoscaler webhook.

  GET  /health   — liveness check
  POST /scale    — FleetAutoscaleReview in, FleetAutoscaleReview (with response) out
  GET  /metrics  — in-memory metrics snapshot

Serves HTTPS when the TLS certificate is mounted, plain HTTP otherwise.
"""

import argparse
import logging
import os
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import metrics
from .autoscaler import decide
from .config import ScalerConfig, load_config
from .errors import ConfigError, InvalidInput
from .logging_config import configure_logging
from .models import FleetAutoscaleResponse, FleetAutoscaleReview, FleetState

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8000
TLS_CERT_FILE = os.environ.get("TLS_CERT_FILE", "/home/service/certs/tls.crt")
TLS_KEY_FILE = os.environ.get("TLS_KEY_FILE", "/home/service/certs/tls.key")


def create_app(config: Optional[ScalerConfig] = None) -> FastAPI:
    """
    Build the webhook app. When no config is given it is loaded from the
    environment during startup; a malformed variable aborts startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        if getattr(app.state, "config", None) is None:
            try:
                app.state.config = load_config()
            except ConfigError as e:
                logger.error(str(e))
                raise
        metrics.mark_started()
        logger.info(f"Autoscaler policy loaded: {app.state.config.model_dump()}")
        yield
        logger.info("Autoscaler shutting down...")

    app = FastAPI(lifespan=lifespan)
    app.state.config = config

    @app.exception_handler(RequestValidationError)
    async def malformed_request_handler(request: Request, exc: RequestValidationError):
        metrics.record_error("malformed_request")
        logger.warning(f"Malformed review request on {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"detail": "Malformed FleetAutoscaleReview body"})

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics_endpoint():
        """Return a snapshot of all autoscaler metrics."""
        return metrics.get_snapshot()

    @app.post("/scale")
    def scale_endpoint(review: FleetAutoscaleReview, request: Request):
        """Return the target replica count for the fleet described in the review."""
        _req_start = time.time()
        config: ScalerConfig = request.app.state.config

        state = FleetState.from_request(
            review.request,
            counter_name=config.capacity_counter,
            annotation=config.fixed_replicas_annotation,
        )
        try:
            decision = decide(state, config)
        except InvalidInput as e:
            metrics.record_error("invalid_input")
            logger.error(f"Rejected review uid={state.uid or '-'}: {e}")
            raise HTTPException(status_code=400, detail=str(e))
        finally:
            metrics.record_request((time.time() - _req_start) * 1000)

        metrics.record_decision(decision.mode.value, decision.scale, decision.replicas)
        review.response = FleetAutoscaleResponse(
            uid=review.request.uid,
            scale=decision.scale,
            replicas=decision.replicas,
        )
        return review.model_dump(by_alias=True, exclude_none=True)

    return app


app = create_app()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Agones fleet autoscaler webhook")
    parser.add_argument("--port", default=str(DEFAULT_PORT), help="The port to listen to TCP requests")
    args = parser.parse_args(argv)
    port = int(os.environ.get("PORT") or args.port)

    configure_logging()
    try:
        config = load_config()
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    ssl_kwargs = {}
    if os.path.exists(TLS_CERT_FILE):
        logger.info(f"Starting HTTPS server on port {port}")
        ssl_kwargs = {"ssl_certfile": TLS_CERT_FILE, "ssl_keyfile": TLS_KEY_FILE}
    else:
        logger.info(f"Starting HTTP server on port {port}")

    uvicorn.run(create_app(config), host="0.0.0.0", port=port, log_config=None, **ssl_kwargs)


if __name__ == "__main__":
    main()
