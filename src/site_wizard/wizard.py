from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Sequence

from pydantic import ValidationError

from .defaults import DEFAULT_GENERATION_BLOCKS, MAX_REDESIGNS, PACKAGE_CONSTRAINTS
from .errors import (
    IllegalTransitionError,
    NoHistoryError,
    PackageLimitError,
    RedesignLimitExceededError,
    RedoTargetError,
    StagePrerequisiteError,
    WizardError,
)
from .models.generation import (
    BuildingProgress,
    GenerationRecord,
    GenerationRequest,
    GenerationStatus,
    ProgressEvent,
)
from .models.template import DesignTemplate
from .models.website import GeneratedWebsitePackage
from .models.wizard import (
    BusinessInfo,
    PackageId,
    PageKeywords,
    PageType,
    RedoRequest,
    WebsiteRequirements,
    WizardStage,
    WizardState,
)
from .session_store import SessionStore
from .stages import (
    COMPLETED_LEGACY_STAGES,
    INITIAL_STAGE,
    can_transition,
    is_legacy_stage,
    is_new_flow_stage,
    missing_prerequisites,
    parse_stage,
)

logger = logging.getLogger(__name__)

PAGE_TYPE_HINTS: Sequence[tuple[str, PageType]] = (
    ("home", PageType.home),
    ("about", PageType.about),
    ("service", PageType.services),
    ("product", PageType.services),
    ("contact", PageType.contact),
    ("blog", PageType.blog),
    ("news", PageType.blog),
    ("portfolio", PageType.portfolio),
    ("pricing", PageType.pricing),
    ("price", PageType.pricing),
    ("faq", PageType.faq),
    ("question", PageType.faq),
    ("team", PageType.team),
    ("testimonial", PageType.testimonials),
    ("gallery", PageType.gallery),
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _update(state: WizardState, **changes: Any) -> WizardState:
    return state.model_copy(update=changes, deep=True)


def initial_state(session_id: str | None = None) -> WizardState:
    return WizardState(stage=INITIAL_STAGE, session_id=session_id)


def advance(state: WizardState, stage: WizardStage | str) -> WizardState:
    """Move forward to ``stage``, recording the current stage for back navigation."""
    target = parse_stage(stage)
    if target is None:
        raise IllegalTransitionError(state.stage.value, str(stage), "unknown stage")
    if not can_transition(state.stage, target):
        if is_new_flow_stage(state.stage) and is_legacy_stage(target):
            reason = "deprecated stages cannot be entered from the 4-phase flow"
        else:
            reason = "not a legal next stage"
        raise IllegalTransitionError(state.stage.value, target.value, reason)
    missing = missing_prerequisites(state, target)
    if missing:
        raise StagePrerequisiteError(target.value, missing)

    changes: dict[str, Any] = {
        "stage_history": [*state.stage_history, state.stage],
        "stage": target,
    }
    if target == WizardStage.final_website and state.generated_package is None:
        changes["auto_build_pending"] = True
    return _update(state, **changes)


def go_back(state: WizardState) -> WizardState:
    if not state.stage_history:
        raise NoHistoryError(f"No earlier stage to return to from '{state.stage.value}'")
    previous = state.stage_history[-1]
    if is_new_flow_stage(state.stage) and is_legacy_stage(previous):
        raise IllegalTransitionError(
            state.stage.value, previous.value, "deprecated stages cannot be entered from the 4-phase flow"
        )
    return _update(state, stage=previous, stage_history=list(state.stage_history[:-1]))


def select_package(state: WizardState, package_id: PackageId | str) -> WizardState:
    package = PackageId(package_id)
    constraints = PACKAGE_CONSTRAINTS[package]
    if len(state.page_keywords) > constraints.max_pages:
        raise PackageLimitError(
            f"Package '{package.value}' allows {constraints.max_pages} page(s); "
            f"{len(state.page_keywords)} already assigned"
        )
    return _update(state, selected_package=package, package_constraints=constraints.model_copy())


def select_design_templates(state: WizardState, templates: Iterable[DesignTemplate]) -> WizardState:
    selected: list[DesignTemplate] = []
    seen: set[str] = set()
    for template in templates:
        if template.id in seen:
            continue
        seen.add(template.id)
        selected.append(template)
    return _update(state, selected_design_templates=selected)


def infer_page_type(name: str) -> PageType:
    lowered = name.strip().lower()
    for hint, page_type in PAGE_TYPE_HINTS:
        if hint in lowered:
            return page_type
    return PageType.custom


def _clean_keywords(keywords: Iterable[str]) -> list[str]:
    cleaned: list[str] = []
    seen: set[str] = set()
    for keyword in keywords:
        value = " ".join(str(keyword).split())
        if not value or value.casefold() in seen:
            continue
        seen.add(value.casefold())
        cleaned.append(value)
    return cleaned


def _coerce_page(page: PageKeywords | Mapping[str, Any]) -> PageKeywords:
    entry = page if isinstance(page, PageKeywords) else PageKeywords.model_validate(page)
    name = entry.name.strip()
    if not name:
        raise ValueError("Page name must not be empty")
    page_type = entry.type if "type" in entry.model_fields_set else infer_page_type(name)
    return PageKeywords(name=name, type=page_type, keywords=_clean_keywords(entry.keywords))


def assign_page_keywords(
    state: WizardState,
    pages: Sequence[PageKeywords | Mapping[str, Any]],
) -> WizardState:
    """Replace the per-page keyword assignment."""
    assigned = [_coerce_page(page) for page in pages]
    names = [page.name.casefold() for page in assigned]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate page names: {', '.join(duplicates)}")
    constraints = state.package_constraints
    if constraints is not None and len(assigned) > constraints.max_pages:
        raise PackageLimitError(
            f"Selected package allows {constraints.max_pages} page(s), got {len(assigned)}"
        )
    return _update(state, page_keywords=assigned)


def migrate_content_templates(state: WizardState) -> WizardState:
    """Fold the deprecated content-template selection into ``page_keywords``.

    Only runs when no page keywords are assigned yet; the deprecated fields
    are left untouched.
    """
    sources = list(state.selected_content_templates)
    if state.selected_content_template is not None:
        sources.append(state.selected_content_template)
    if state.page_keywords or not sources:
        return state

    pages: dict[str, PageKeywords] = {}
    for template in sources:
        for name in template.pages or [template.name]:
            key = name.strip().casefold()
            if not key:
                continue
            existing = pages.get(key)
            if existing is None:
                pages[key] = PageKeywords(
                    name=name.strip(),
                    type=infer_page_type(name),
                    keywords=_clean_keywords(template.keywords),
                )
            else:
                existing.keywords = _clean_keywords([*existing.keywords, *template.keywords])

    migrated = list(pages.values())
    constraints = state.package_constraints
    if constraints is not None and len(migrated) > constraints.max_pages:
        logger.warning(
            "Truncating migrated content-template pages to package limit",
            extra={
                "session_id": state.session_id,
                "pages": len(migrated),
                "max_pages": constraints.max_pages,
            },
        )
        migrated = migrated[: constraints.max_pages]
    return _update(state, page_keywords=migrated)


def _requirement_key(key: str) -> str:
    field = WebsiteRequirements.model_fields.get(key)
    if field is not None and field.alias:
        return field.alias
    return key


def update_requirements(state: WizardState, answers: Mapping[str, Any]) -> WizardState:
    merged = state.requirements.model_dump(by_alias=True, exclude_none=True)
    for key, value in answers.items():
        merged[_requirement_key(key)] = value
    requirements = WebsiteRequirements.model_validate(merged)
    return _update(state, requirements=requirements)


def submit_business_info(state: WizardState, info: BusinessInfo | Mapping[str, Any]) -> WizardState:
    """Store the quick-form answers and mirror them into the requirements."""
    business = info if isinstance(info, BusinessInfo) else BusinessInfo.model_validate(info)
    answers: dict[str, Any] = {
        "businessName": business.business_name,
        "businessEmail": str(business.email),
    }
    if business.industry:
        answers["industry"] = business.industry
    if business.location and not state.requirements.region:
        answers["region"] = business.location
    updated = update_requirements(state, answers)
    return _update(
        updated,
        business_info=business,
        image_source="own" if business.has_own_photos else "leonardo",
    )


def remaining_redesigns(state: WizardState, max_redesigns: int = MAX_REDESIGNS) -> int:
    return max(0, max_redesigns - state.redesign_count)


def _resolve_redo_pages(state: WizardState, pages: Sequence[str]) -> list[str]:
    package = state.generated_package
    if package is None or not pages:
        return list(pages)
    by_key = {}
    for page in package.pages:
        by_key[page.slug.casefold()] = page.slug
        by_key[page.title.casefold()] = page.slug
    resolved: list[str] = []
    unknown: list[str] = []
    for name in pages:
        slug = by_key.get(name.strip().casefold())
        if slug is None:
            unknown.append(name)
        elif slug not in resolved:
            resolved.append(slug)
    if unknown:
        raise RedoTargetError(f"Unknown pages in redo request: {', '.join(unknown)}")
    return resolved


def request_redo(
    state: WizardState,
    request: RedoRequest | Mapping[str, Any],
    *,
    max_redesigns: int = MAX_REDESIGNS,
    override: bool = False,
) -> WizardState:
    """Record a redo of content or images and queue a rebuild.

    Once ``max_redesigns`` requests have been accepted, further requests are
    rejected unless ``override`` is set.
    """
    redo = request if isinstance(request, RedoRequest) else RedoRequest.model_validate(request)
    if not state.has_generated_result:
        raise WizardError("There is no generated website to redo yet")
    if state.redesign_count >= max_redesigns:
        if not override:
            raise RedesignLimitExceededError(max_redesigns)
        logger.warning(
            "Redesign limit overridden",
            extra={
                "session_id": state.session_id,
                "redesign_count": state.redesign_count,
                "max_redesigns": max_redesigns,
            },
        )
    redo = redo.model_copy(update={"pages": _resolve_redo_pages(state, redo.pages)})
    return _update(
        state,
        redo_requests=[*state.redo_requests, redo],
        redesign_count=state.redesign_count + 1,
        auto_build_pending=True,
    )


def queue_generation(state: WizardState) -> WizardState:
    if state.generation.status == GenerationStatus.in_progress:
        raise WizardError("A generation is already running for this session")
    generation = GenerationRecord(status=GenerationStatus.queued, errors=[])
    return _update(state, generation=generation, auto_build_pending=True)


def queue_redo(
    state: WizardState,
    request: RedoRequest | Mapping[str, Any],
    *,
    max_redesigns: int = MAX_REDESIGNS,
    override: bool = False,
) -> WizardState:
    """Record a redo and queue its rebuild as a single operation."""
    return queue_generation(request_redo(state, request, max_redesigns=max_redesigns, override=override))


def start_generation(
    state: WizardState,
    block_names: Sequence[str] = DEFAULT_GENERATION_BLOCKS,
) -> WizardState:
    if state.generation.status == GenerationStatus.in_progress:
        raise WizardError("A generation is already running for this session")
    generation = GenerationRecord(
        status=GenerationStatus.in_progress,
        progress=0.0,
        building=BuildingProgress.from_names(block_names),
        cancel_requested=state.generation.cancel_requested,
        started_at=_now(),
    )
    return _update(state, generation=generation, auto_build_pending=True)


def request_generation_cancel(state: WizardState) -> WizardState:
    """Flag the queued or running generation for cancellation.

    Whoever runs the generation checks the flag and stops it.
    """
    if state.generation.status not in (GenerationStatus.queued, GenerationStatus.in_progress):
        raise WizardError("No generation is running for this session")
    generation = state.generation.model_copy(update={"cancel_requested": True}, deep=True)
    return _update(state, generation=generation)


def record_generation_progress(state: WizardState, event: ProgressEvent) -> WizardState:
    current = state.generation
    generation = current.model_copy(
        update={
            "building": current.building.apply(event),
            "progress": max(current.progress, min(1.0, event.progress / 100.0)),
            "message": event.message or current.message,
        },
        deep=True,
    )
    return _update(state, generation=generation)


def record_generation_result(state: WizardState, package: GeneratedWebsitePackage) -> WizardState:
    current = state.generation
    generation = current.model_copy(
        update={
            "status": GenerationStatus.completed,
            "progress": 1.0,
            "building": current.building.completed(),
            "errors": [],
            "completed_at": _now(),
        },
        deep=True,
    )
    return _update(state, generated_package=package, generation=generation, auto_build_pending=False)


def record_generation_failure(
    state: WizardState,
    errors: Sequence[str],
    *,
    cancelled: bool = False,
) -> WizardState:
    """Mark the generation failed while keeping everything gathered so far."""
    current = state.generation
    generation = current.model_copy(
        update={
            "status": GenerationStatus.cancelled if cancelled else GenerationStatus.failed,
            "building": current.building.failed(),
            "errors": list(errors),
            "completed_at": _now(),
        },
        deep=True,
    )
    return _update(state, generation=generation, auto_build_pending=False)


def build_generation_request(state: WizardState) -> GenerationRequest:
    if not state.session_id:
        raise WizardError("Wizard state has no session id")
    redo = state.redo_requests[-1] if state.redo_requests and state.has_generated_result else None
    return GenerationRequest(
        session_id=state.session_id,
        package_id=state.selected_package.value if state.selected_package else None,
        requirements=state.requirements.model_dump(by_alias=True, exclude_none=True),
        business_info=state.business_info.model_dump(by_alias=True, mode="json") if state.business_info else None,
        template_ids=[template.id for template in state.selected_design_templates],
        page_keywords=[page.model_dump(by_alias=True, mode="json") for page in state.page_keywords],
        redo=redo.model_dump(by_alias=True, exclude_none=True) if redo else None,
    )


def restore_state(raw: Mapping[str, Any] | str | bytes) -> WizardState | None:
    """Validate a saved draft; ``None`` means start a fresh session."""
    try:
        if isinstance(raw, (str, bytes)):
            state = WizardState.model_validate_json(raw)
        else:
            state = WizardState.model_validate(raw)
    except ValidationError as exc:
        logger.info("Discarding saved wizard state that failed validation", extra={"errors": exc.error_count()})
        return None

    if state.selected_package is None:
        logger.info("Discarding saved wizard state without a package", extra={"stage": state.stage.value})
        return None
    if state.stage == WizardStage.package_select:
        logger.info("Discarding saved wizard state parked on package selection")
        return None
    if state.stage in COMPLETED_LEGACY_STAGES:
        logger.info("Discarding completed wizard state", extra={"stage": state.stage.value})
        return None
    return migrate_content_templates(state)


class WizardSession:
    """Holds one wizard state and persists it after every applied operation.

    With a store, operations run against the latest stored state, so a long
    running caller never writes back a stale snapshot.
    """

    def __init__(self, state: WizardState, *, store: SessionStore | None = None) -> None:
        self._state = state
        self._store = store

    @classmethod
    def start(cls, *, store: SessionStore | None = None, state: WizardState | None = None) -> "WizardSession":
        if store is None:
            return cls(state or initial_state())
        return cls(store.create_session(state), store=store)

    @classmethod
    def load(cls, store: SessionStore, session_id: str) -> "WizardSession | None":
        state = store.get_session(session_id)
        if state is None:
            return None
        return cls(state, store=store)

    @property
    def state(self) -> WizardState:
        return self._state

    def apply(self, operation: Callable[..., WizardState], *args: Any, **kwargs: Any) -> WizardState:
        if self._store is not None:
            new_state = self._store.update_session(
                self._state.session_id or "",
                lambda current: operation(current, *args, **kwargs),
            )
        else:
            new_state = operation(self._state, *args, **kwargs)
        logger.debug(
            "Applied wizard operation",
            extra={
                "session_id": new_state.session_id,
                "operation": getattr(operation, "__name__", repr(operation)),
                "stage": new_state.stage.value,
            },
        )
        self._state = new_state
        return new_state

    def advance(self, stage: WizardStage | str) -> WizardState:
        return self.apply(advance, stage)

    def back(self) -> WizardState:
        return self.apply(go_back)


__all__ = [
    "WizardSession",
    "advance",
    "assign_page_keywords",
    "build_generation_request",
    "go_back",
    "infer_page_type",
    "initial_state",
    "migrate_content_templates",
    "queue_generation",
    "queue_redo",
    "record_generation_failure",
    "record_generation_progress",
    "record_generation_result",
    "remaining_redesigns",
    "request_generation_cancel",
    "request_redo",
    "restore_state",
    "select_design_templates",
    "select_package",
    "start_generation",
    "submit_business_info",
    "update_requirements",
]
