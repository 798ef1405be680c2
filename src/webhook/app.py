"""
FastAPI application for the Vapi voice-intake webhook.

Provides:
- Vapi webhook endpoint (authenticated with a shared secret)
- Call record and processed-call monitoring endpoints
- Health check endpoints
"""

# Configure noisy library loggers before they are imported
import logging

logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

import json
import uuid
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from ..intake.errors import (
    InvalidPayloadError,
    MissingCallIdError,
    StoreError,
    WebhookAuthError,
)
from ..intake.extractor import parse_webhook_body, require_vapi_secret
from ..storage import get_intake_store
from ..utils.config import IntakeConfig, settings
from ..workflow import IntakeProcessor

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Last pipeline outcome per Vapi call id (monitoring only), oldest evicted first
MAX_PROCESSED_CALLS = 500
processed_calls: "OrderedDict[str, dict]" = OrderedDict()

_processor: Optional[IntakeProcessor] = None


def remember_processed_call(vapi_call_id: str, outcome: dict) -> None:
    """Store a pipeline outcome, keeping at most MAX_PROCESSED_CALLS entries."""
    processed_calls[vapi_call_id] = outcome
    processed_calls.move_to_end(vapi_call_id)
    while len(processed_calls) > MAX_PROCESSED_CALLS:
        processed_calls.popitem(last=False)


def get_intake_processor() -> IntakeProcessor:
    """Lazily build the intake processor from settings."""
    global _processor
    if _processor is None:
        _processor = IntakeProcessor(
            config=IntakeConfig.from_settings(settings),
            store=get_intake_store(),
        )
    return _processor


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Vapi intake webhook server...")
    logger.info(f"Database: {settings.database_path}")
    if not settings.vapi_secret:
        logger.warning("VAPI_SECRET is not set - every webhook will be rejected")
    if not settings.sendgrid_api_key:
        logger.warning("SENDGRID_API_KEY is not set - notifications will only be logged")
    yield
    logger.info("Shutting down Vapi intake webhook server...")
    processed_calls.clear()


app = FastAPI(
    title="Cascade Voice Intake",
    description="Vapi webhook intake for warranty claims",
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Health Check Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "service": "Cascade Voice Intake",
        "status": "running",
        "processed_calls": len(processed_calls),
    }


@app.get("/health")
async def health_check(processor: IntakeProcessor = Depends(get_intake_processor)):
    """Detailed health check endpoint."""
    return {
        "status": "healthy",
        "processed_calls": len(processed_calls),
        "config": {
            "vapi_secret_configured": bool(processor.config.vapi_secret),
            "vapi_api_configured": bool(processor.config.vapi_api_key),
            "recipients": len(processor.notifier.resolve_recipients()),
            "min_similarity": processor.config.min_similarity,
        },
    }


# =============================================================================
# Vapi Webhook Endpoint
# =============================================================================


@app.post("/vapi/webhook")
async def vapi_webhook(
    request: Request,
    processor: IntakeProcessor = Depends(get_intake_processor),
):
    """
    Vapi server webhook.

    Rejects unauthenticated (401) and malformed (400) requests. Everything
    else is acknowledged with 200 so Vapi does not retry; pipeline errors
    only go to the logs.
    """
    request_id = f"req-{uuid.uuid4().hex[:9]}"
    logger.info(f"[{request_id}] Vapi webhook received")

    try:
        require_vapi_secret(request.headers.get("x-vapi-secret"), processor.config.vapi_secret)
    except WebhookAuthError:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        payload = parse_webhook_body(await request.body())
    except InvalidPayloadError as e:
        logger.error(f"[{request_id}] {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    logger.debug(f"[{request_id}] Payload: {json.dumps(payload)[:4000]}")

    try:
        result = await processor.process_webhook(payload)
        remember_processed_call(result.vapi_call_id, result.to_dict())
        logger.info(f"[{request_id}] Webhook processed successfully")
    except MissingCallIdError:
        logger.error(f"[{request_id}] No call ID in payload")
        return JSONResponse(status_code=400, content={"error": "Call ID required"})
    except Exception as e:
        logger.exception(f"[{request_id}] Webhook error: {e}")

    return {"success": True}


# =============================================================================
# Monitoring Endpoints
# =============================================================================


@app.get("/calls")
async def list_calls(
    limit: int = 50,
    verified: Optional[bool] = None,
    processor: IntakeProcessor = Depends(get_intake_processor),
):
    """List recent call records."""
    try:
        calls = processor.store.list_calls(verified=verified, limit=limit)
    except StoreError as e:
        logger.error(f"Failed to list calls: {e}")
        return JSONResponse(status_code=500, content={"error": "Database error"})
    return {"calls": [call.model_dump(mode="json") for call in calls]}


@app.get("/calls/{vapi_call_id}")
async def get_call(vapi_call_id: str, processor: IntakeProcessor = Depends(get_intake_processor)):
    """Get one call record."""
    try:
        call = processor.store.get_call(vapi_call_id)
    except StoreError as e:
        logger.error(f"Failed to load call {vapi_call_id}: {e}")
        return JSONResponse(status_code=500, content={"error": "Database error"})
    if call is None:
        return JSONResponse(status_code=404, content={"error": "Call not found"})
    return call.model_dump(mode="json")


@app.get("/processed")
async def list_processed_calls():
    """List pipeline outcomes since startup."""
    return {
        "processed_calls": [
            {
                "vapi_call_id": call_id,
                "scenario": data["scenario"],
                "claim_number": data["claim_number"],
                "is_final": data["is_final"],
                "notified": data["notified"],
            }
            for call_id, data in processed_calls.items()
        ]
    }


@app.get("/processed/{vapi_call_id}")
async def get_processed_call(vapi_call_id: str):
    """Get the full pipeline outcome for a call."""
    if vapi_call_id not in processed_calls:
        return JSONResponse(
            status_code=404,
            content={"error": "Processed call not found"},
        )
    return processed_calls[vapi_call_id]


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(
        "src.webhook.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
