from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Callable

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

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
from site_wizard.logging_config import get_trace_id, set_session_id, set_trace_id, setup_logging
from site_wizard.models.generation import GenerationRecord, ProgressEvent
from site_wizard.models.website import GeneratedWebsitePackage
from site_wizard.models.wizard import BusinessInfo, PageKeywords, RedoRequest, WizardStage, WizardState
from site_wizard.normalizer import normalize
from site_wizard.pubsub_client import PubSubClient
from site_wizard.questions import validate_requirements
from site_wizard.session_store import InMemorySessionStore
from site_wizard.template_repository import LocalTemplateRepository


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateSessionRequest(ApiModel):
    draft: dict[str, Any] | None = Field(default=None, description="Optional saved draft to resume")


class AdvanceRequest(ApiModel):
    stage: str


class SelectPackageRequest(ApiModel):
    package_id: str


class SelectTemplatesRequest(ApiModel):
    template_ids: list[str]


class PageKeywordsRequest(ApiModel):
    pages: list[PageKeywords]


class RequirementsRequest(ApiModel):
    answers: dict[str, Any]
    page: str | None = None


class RedoBody(ApiModel):
    request: RedoRequest
    override: bool = False


class GenerateResponse(ApiModel):
    session_id: str
    generation: GenerationRecord


# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
PROJECT_ID = os.getenv("PROJECT_ID")
PUBSUB_TOPIC_GENERATION_REQUESTS = os.getenv("PUBSUB_TOPIC_GENERATION_REQUESTS", "generation-requests")
GENERATION_API_URL = os.getenv("GENERATION_API_URL", "http://localhost:5000")
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "300"))
TEMPLATES_DIR = Path(os.getenv("TEMPLATES_DIR", "data/templates")).resolve()
MAX_REDESIGNS = int(os.getenv("MAX_REDESIGNS", "5"))

setup_logging(environment=ENVIRONMENT, project_id=PROJECT_ID)
logger = logging.getLogger(__name__)

app = FastAPI(title="Site Wizard API", version="0.1.0")

# Firestore in production, in-memory for dev
if ENVIRONMENT == "dev":
    session_store = InMemorySessionStore()
else:
    session_store = FirestoreSessionStore(project_id=PROJECT_ID)

pubsub_client = (
    PubSubClient(project_id=PROJECT_ID, requests_topic=PUBSUB_TOPIC_GENERATION_REQUESTS) if PROJECT_ID else None
)
template_repository = LocalTemplateRepository(base_path=TEMPLATES_DIR)

# In-flight dev-mode generations, by session id
active_generations: dict[str, GenerationHandle] = {}


@app.exception_handler(WizardError)
async def wizard_error_handler(request: Request, exc: WizardError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc), "error": type(exc).__name__})


@app.exception_handler(MalformedGenerationResultError)
async def malformed_result_handler(request: Request, exc: MalformedGenerationResultError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.reason, "error": type(exc).__name__})


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": str(exc), "error": type(exc).__name__})


@app.middleware("http")
async def trace_requests(request: Request, call_next: Callable[[Request], Any]) -> Any:
    set_trace_id(request.headers.get("x-cloud-trace-context") or str(uuid.uuid4()))
    return await call_next(request)


def _load(session_id: str) -> wizard.WizardSession:
    session = wizard.WizardSession.load(session_store, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    set_session_id(session_id)
    return session


def _apply(session_id: str, operation: Callable[..., WizardState], *args: Any, **kwargs: Any) -> WizardState:
    session = _load(session_id)
    try:
        return session.apply(operation, *args, **kwargs)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.post("/v1/sessions", response_model=WizardState, status_code=201)
async def create_session(request: CreateSessionRequest | None = None) -> WizardState:
    restored = wizard.restore_state(request.draft) if request and request.draft else None
    session = wizard.WizardSession.start(store=session_store, state=restored)
    logger.info(
        "Wizard session started",
        extra={"session_id": session.state.session_id, "resumed": restored is not None},
    )
    return session.state


@app.get("/v1/sessions", response_model=list[WizardState])
async def list_sessions(stage: WizardStage | None = None, limit: int = 50) -> list[WizardState]:
    return session_store.list_sessions(stage=stage, limit=limit)


@app.get("/v1/sessions/{session_id}", response_model=WizardState)
async def get_session(session_id: str) -> WizardState:
    return _load(session_id).state


@app.delete("/v1/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str) -> None:
    handle = active_generations.pop(session_id, None)
    if handle is not None:
        handle.cancel()
    if not session_store.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")


@app.post("/v1/sessions/{session_id}:advance", response_model=WizardState)
async def advance_stage(session_id: str, request: AdvanceRequest) -> WizardState:
    return _apply(session_id, wizard.advance, request.stage)


@app.post("/v1/sessions/{session_id}:back", response_model=WizardState)
async def go_back(session_id: str) -> WizardState:
    return _apply(session_id, wizard.go_back)


@app.put("/v1/sessions/{session_id}/package", response_model=WizardState)
async def select_package(session_id: str, request: SelectPackageRequest) -> WizardState:
    return _apply(session_id, wizard.select_package, request.package_id)


@app.put("/v1/sessions/{session_id}/templates", response_model=WizardState)
async def select_templates(session_id: str, request: SelectTemplatesRequest) -> WizardState:
    try:
        templates = template_repository.get_many(request.template_ids)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _apply(session_id, wizard.select_design_templates, templates)


@app.put("/v1/sessions/{session_id}/page-keywords", response_model=WizardState)
async def assign_page_keywords(session_id: str, request: PageKeywordsRequest) -> WizardState:
    return _apply(session_id, wizard.assign_page_keywords, request.pages)


@app.put("/v1/sessions/{session_id}/business-info", response_model=WizardState)
async def submit_business_info(session_id: str, request: BusinessInfo) -> WizardState:
    return _apply(session_id, wizard.submit_business_info, request)


@app.patch("/v1/sessions/{session_id}/requirements", response_model=WizardState)
async def update_requirements(session_id: str, request: RequirementsRequest) -> WizardState:
    if request.page:
        current = _load(session_id).state.requirements.model_dump(by_alias=True, exclude_none=True)
        errors = validate_requirements({**current, **request.answers}, page=request.page)
        if errors:
            raise HTTPException(status_code=422, detail=errors)
    return _apply(session_id, wizard.update_requirements, request.answers)


@app.post("/v1/sessions/{session_id}/redo", response_model=WizardState)
async def request_redo(session_id: str, body: RedoBody, background_tasks: BackgroundTasks) -> WizardState:
    return _dispatch_generation(
        session_id,
        background_tasks,
        wizard.queue_redo,
        body.request,
        max_redesigns=MAX_REDESIGNS,
        override=body.override,
    )


@app.post("/v1/sessions/{session_id}/generate", response_model=GenerateResponse, status_code=202)
async def generate(session_id: str, background_tasks: BackgroundTasks) -> GenerateResponse:
    state = _dispatch_generation(session_id, background_tasks, wizard.queue_generation)
    return GenerateResponse(session_id=session_id, generation=state.generation)


@app.post("/v1/sessions/{session_id}/generate:cancel", response_model=WizardState)
async def cancel_generation(session_id: str) -> WizardState:
    # The worker running the generation watches the persisted flag
    state = _apply(session_id, wizard.request_generation_cancel)
    handle = active_generations.get(session_id)
    if handle is not None:
        handle.cancel()
    logger.info("Generation cancel requested", extra={"session_id": session_id})
    return state


@app.post("/v1/websites:normalize", response_model=GeneratedWebsitePackage)
async def normalize_website(payload: dict[str, Any]) -> GeneratedWebsitePackage:
    return normalize(payload)


@app.get("/health")
async def healthcheck() -> JSONResponse:
    return JSONResponse({"status": "ok", "environment": ENVIRONMENT})


def _dispatch_generation(
    session_id: str,
    background_tasks: BackgroundTasks,
    operation: Callable[..., WizardState],
    *args: Any,
    **kwargs: Any,
) -> WizardState:
    state = _apply(session_id, operation, *args, **kwargs)

    # In production, publish to Pub/Sub; in dev, use a background task
    if pubsub_client and ENVIRONMENT != "dev":
        pubsub_client.publish_generation_request(
            session_id=session_id,
            redesign_count=state.redesign_count,
            trace_id=get_trace_id(),
        )
    else:
        handle = GenerationHandle()
        active_generations[session_id] = handle
        background_tasks.add_task(_run_generation, session_id, handle)

    logger.info(
        "Generation queued",
        extra={"session_id": session_id, "redesign_count": state.redesign_count},
    )
    return state


async def _run_generation(session_id: str, handle: GenerationHandle) -> None:
    """Run a generation in-process (dev mode)."""
    session = wizard.WizardSession.load(session_store, session_id)
    if session is None:
        active_generations.pop(session_id, None)
        return

    client = GenerationClient(base_url=GENERATION_API_URL, timeout=GENERATION_TIMEOUT_SECONDS)
    try:
        await _generate(session, client, handle)
    except SessionNotFoundError:
        logger.info("Session deleted during generation", extra={"session_id": session_id})
    finally:
        active_generations.pop(session_id, None)
        client.close()


async def _generate(session: wizard.WizardSession, client: GenerationClient, handle: GenerationHandle) -> None:
    session_id = session.state.session_id
    try:
        state = session.apply(wizard.start_generation)
    except WizardError:
        logger.warning("Generation already running, skipping", extra={"session_id": session_id})
        return
    if state.generation.cancel_requested:
        handle.cancel()

    def report_progress(event: ProgressEvent) -> None:
        if session.apply(wizard.record_generation_progress, event).generation.cancel_requested:
            handle.cancel()

    try:
        request = wizard.build_generation_request(state)
        raw = await asyncio.to_thread(client.generate, request, on_progress=report_progress, handle=handle)
        session.apply(wizard.record_generation_result, normalize(raw))
        logger.info("Generation completed", extra={"session_id": session_id})
    except GenerationCancelledError:
        session.apply(wizard.record_generation_failure, ["Generation cancelled"], cancelled=True)
        logger.info("Generation cancelled", extra={"session_id": session_id})
    except (GenerationError, MalformedGenerationResultError, WizardError) as exc:
        session.apply(wizard.record_generation_failure, [str(exc)])
        logger.error("Generation failed", exc_info=True, extra={"session_id": session_id})
    except SessionNotFoundError:
        raise
    except Exception as exc:
        session.apply(wizard.record_generation_failure, [f"Unexpected error: {exc}"])
        raise
