from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from site_wizard import wizard
from site_wizard.errors import (
    GenerationCancelledError,
    GenerationError,
    MalformedGenerationResultError,
    SessionNotFoundError,
    WizardError,
)
from site_wizard.firestore_session_store import FirestoreSessionStore
from site_wizard.generation_client import GenerationClient, GenerationHandle
from site_wizard.logging_config import set_session_id, set_trace_id, setup_logging
from site_wizard.models.generation import GenerationStatus, ProgressEvent
from site_wizard.normalizer import normalize
from site_wizard.pubsub_client import PubSubClient
from site_wizard.session_store import InMemorySessionStore

# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
PROJECT_ID = os.getenv("PROJECT_ID")
PUBSUB_TOPIC_GENERATION_COMPLETED = os.getenv("PUBSUB_TOPIC_GENERATION_COMPLETED", "generation-completed")
GENERATION_API_URL = os.getenv("GENERATION_API_URL", "http://localhost:5000")
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "300"))

# Setup logging
setup_logging(environment=ENVIRONMENT, project_id=PROJECT_ID)
logger = logging.getLogger(__name__)

# Initialize services
if ENVIRONMENT == "dev":
    session_store = InMemorySessionStore()
else:
    session_store = FirestoreSessionStore(project_id=PROJECT_ID)
pubsub_client = (
    PubSubClient(project_id=PROJECT_ID, completed_topic=PUBSUB_TOPIC_GENERATION_COMPLETED) if PROJECT_ID else None
)
generation_client = GenerationClient(base_url=GENERATION_API_URL, timeout=GENERATION_TIMEOUT_SECONDS)

app = FastAPI(title="Site Wizard Worker", version="0.1.0")


class PubSubMessage(BaseModel):
    """Pub/Sub push message format."""

    message: dict[str, Any]
    subscription: str


def _decode_payload(body: Any) -> dict[str, Any]:
    try:
        pubsub_message = PubSubMessage.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail="Invalid Pub/Sub envelope") from exc

    message_data = pubsub_message.message.get("data", "")
    if not message_data:
        raise HTTPException(status_code=400, detail="No message data")
    try:
        payload = json.loads(base64.b64decode(message_data).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail="Message data is not base64 JSON") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Message data must be a JSON object")
    return payload


@app.post("/v1/worker/generate")
async def process_generation_request(request: Request) -> JSONResponse:
    """Run a website generation requested over Pub/Sub.

    This endpoint is called by the Pub/Sub push subscription. A 2xx answer
    acknowledges the message, so sessions that cannot be processed are
    acknowledged too and only unexpected errors surface as 500.
    """
    payload = _decode_payload(await request.json())

    session_id = payload.get("session_id")
    if not session_id:
        raise HTTPException(status_code=400, detail="Missing required field: session_id")

    trace_id = payload.get("trace_id") or str(uuid.uuid4())
    set_trace_id(trace_id)
    set_session_id(session_id)

    logger.info(
        "Processing generation request",
        extra={"session_id": session_id, "redesign_count": payload.get("redesign_count", 0)},
    )

    session = wizard.WizardSession.load(session_store, session_id)
    if session is None:
        logger.warning("Generation requested for unknown session", extra={"session_id": session_id})
        return JSONResponse({"status": "skipped", "session_id": session_id})

    try:
        status = await _run_generation(session)
    except SessionNotFoundError:
        logger.warning("Session deleted during generation", extra={"session_id": session_id})
        return JSONResponse({"status": "skipped", "session_id": session_id})
    return JSONResponse({"status": status.value, "session_id": session_id})


async def _run_generation(session: wizard.WizardSession) -> GenerationStatus:
    """Generate, normalize and record the outcome for one session."""
    session_id = session.state.session_id or ""
    try:
        state = session.apply(wizard.start_generation)
    except WizardError:
        logger.warning("Generation already running, skipping", extra={"session_id": session_id})
        return session.state.generation.status

    handle = GenerationHandle()
    if state.generation.cancel_requested:
        handle.cancel()

    def report_progress(event: ProgressEvent) -> None:
        # Cancellation requested through the API lands on the stored session
        if session.apply(wizard.record_generation_progress, event).generation.cancel_requested:
            handle.cancel()

    try:
        request = wizard.build_generation_request(state)
        raw = await asyncio.to_thread(
            generation_client.generate,
            request,
            on_progress=report_progress,
            handle=handle,
        )
        package = normalize(raw)
        state = session.apply(wizard.record_generation_result, package)
        logger.info(
            "Generation completed",
            extra={"session_id": session_id, "pages": package.page_slugs},
        )
    except GenerationCancelledError:
        state = session.apply(wizard.record_generation_failure, ["Generation cancelled"], cancelled=True)
        logger.info("Generation cancelled", extra={"session_id": session_id})
    except (GenerationError, MalformedGenerationResultError) as exc:
        logger.error(
            "Generation failed",
            exc_info=True,
            extra={"session_id": session_id, "error": str(exc)},
        )
        state = session.apply(wizard.record_generation_failure, [str(exc)])
    except SessionNotFoundError:
        raise
    except Exception as exc:
        # Leave the session retryable; Pub/Sub redelivers after the 500
        session.apply(wizard.record_generation_failure, [f"Unexpected error: {exc}"])
        raise

    if pubsub_client is not None:
        pubsub_client.publish_generation_completed(
            session_id=session_id,
            status=state.generation.status.value,
            page_slugs=state.generated_package.page_slugs if state.generated_package else [],
            errors=state.generation.errors,
        )
    return state.generation.status


@app.get("/health")
async def healthcheck() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "ok"})
