from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from .models.wizard import WizardStage, WizardState

S = WizardStage

NEW_FLOW: tuple[WizardStage, ...] = (
    S.package_select,
    S.template_select,
    S.quick_form,
    S.final_website,
)

INITIAL_STAGE = S.package_select
TERMINAL_STAGES = frozenset({S.final_website})
COMPLETED_LEGACY_STAGES = frozenset({S.commit, S.review})


def _chain(*stages: WizardStage) -> dict[WizardStage, set[WizardStage]]:
    return {source: {target} for source, target in zip(stages, stages[1:])}


def _build_table() -> dict[WizardStage, frozenset[WizardStage]]:
    table: dict[WizardStage, set[WizardStage]] = {stage: set() for stage in WizardStage}

    edges: list[Mapping[WizardStage, set[WizardStage]]] = [
        _chain(*NEW_FLOW),
        # Discovery flow
        _chain(S.mode_select, S.discover, S.define, S.ecommerce, S.confirm, S.research, S.commit),
        {S.define: {S.confirm}},
        # Template merge flow
        _chain(
            S.empty_preview,
            S.content_select,
            S.client_info,
            S.merge_preview,
            S.ai_generation,
            S.review_redesign,
            S.seo_evaluation,
            S.final_approval,
        ),
        {S.review_redesign: {S.ai_generation}},
        # Keyword/content flow
        _chain(
            S.keywords_collection,
            S.content_rewriting,
            S.image_generation,
            S.seo_assessment,
            S.review_redo,
            S.final_approval,
            S.final_website,
        ),
        {S.review_redo: {S.content_rewriting, S.image_generation}},
        # Investigation flow
        _chain(
            S.requirements,
            S.content_quality,
            S.keywords_semantic_seo,
            S.technical_seo,
            S.core_web_vitals,
            S.structure_navigation,
            S.mobile_optimization,
            S.visual_quality,
            S.image_media_quality,
            S.local_seo,
            S.trust_signals,
            S.schema_structured_data,
            S.on_page_seo_structure,
            S.security,
            S.build,
            S.review,
        ),
    ]
    for mapping in edges:
        for source, targets in mapping.items():
            table[source] |= targets

    # Resumed legacy sessions may always join the 4-phase flow.
    for stage in WizardStage:
        if is_legacy_stage(stage):
            table[stage].add(S.package_select)

    return {stage: frozenset(targets) for stage, targets in table.items()}


def is_new_flow_stage(stage: WizardStage) -> bool:
    return stage in NEW_FLOW


def is_legacy_stage(stage: WizardStage) -> bool:
    return stage not in NEW_FLOW


def parse_stage(value: Any) -> WizardStage | None:
    if isinstance(value, WizardStage):
        return value
    try:
        return WizardStage(value)
    except ValueError:
        return None


TRANSITIONS: Mapping[WizardStage, frozenset[WizardStage]] = _build_table()


def allowed_next(stage: WizardStage) -> frozenset[WizardStage]:
    return TRANSITIONS[stage]


def can_transition(source: WizardStage, target: WizardStage) -> bool:
    if is_new_flow_stage(source) and is_legacy_stage(target):
        return False
    return target in TRANSITIONS[source]


def _has_package(state: WizardState) -> bool:
    return state.selected_package is not None


def _has_design_template(state: WizardState) -> bool:
    return bool(state.selected_design_templates)


def _has_business_name(state: WizardState) -> bool:
    if state.business_info and state.business_info.business_name.strip():
        return True
    return bool((state.requirements.business_name or "").strip())


def _has_business_email(state: WizardState) -> bool:
    if state.business_info and state.business_info.email:
        return True
    return bool((state.requirements.business_email or "").strip())


Prerequisite = tuple[str, Callable[[WizardState], bool]]

PREREQUISITES: Mapping[WizardStage, tuple[Prerequisite, ...]] = {
    S.template_select: (("selectedPackage", _has_package),),
    S.quick_form: (("selectedDesignTemplates", _has_design_template),),
    S.final_website: (
        ("businessInfo.businessName", _has_business_name),
        ("businessInfo.email", _has_business_email),
    ),
}


def missing_prerequisites(state: WizardState, target: WizardStage) -> list[str]:
    checks: Iterable[Prerequisite] = PREREQUISITES.get(target, ())
    return [name for name, check in checks if not check(state)]


__all__ = [
    "COMPLETED_LEGACY_STAGES",
    "INITIAL_STAGE",
    "NEW_FLOW",
    "PREREQUISITES",
    "TERMINAL_STAGES",
    "TRANSITIONS",
    "allowed_next",
    "can_transition",
    "is_legacy_stage",
    "is_new_flow_stage",
    "missing_prerequisites",
    "parse_stage",
]
