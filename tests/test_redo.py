import json
import logging
from pathlib import Path

import pytest

from site_wizard import wizard
from site_wizard.errors import RedesignLimitExceededError, RedoTargetError, WizardError
from site_wizard.models.generation import GenerationStatus
from site_wizard.models.wizard import RedoRequest, WizardStage, WizardState
from site_wizard.normalizer import normalize

FIXTURES = Path(__file__).parent / "fixtures"


def generated_state() -> WizardState:
    raw = json.loads((FIXTURES / "multi_page_studio.json").read_text(encoding="utf-8"))
    state = WizardState(
        stage=WizardStage.final_website,
        stage_history=[WizardStage.package_select, WizardStage.template_select, WizardStage.quick_form],
        session_id="wiz_redo",
    )
    return wizard.record_generation_result(state, normalize(raw))


def test_redo_requires_generated_website():
    with pytest.raises(WizardError, match="no generated website"):
        wizard.request_redo(wizard.initial_state(), {"type": "content"})


def test_redo_records_request_without_changing_stage():
    state = wizard.request_redo(generated_state(), {"type": "images", "pages": ["Our Work"], "feedback": "brighter"})

    assert state.stage == WizardStage.final_website
    assert state.redesign_count == 1
    assert state.auto_build_pending is True
    assert state.redo_requests == [RedoRequest(type="images", pages=["our-work"], feedback="brighter")]
    assert wizard.remaining_redesigns(state) == 4


def test_redo_resolves_pages_by_slug_or_title():
    state = wizard.request_redo(generated_state(), {"type": "content", "pages": ["HOME", "contact", "Home"]})

    assert state.redo_requests[-1].pages == ["home", "contact"]


def test_redo_rejects_unknown_pages():
    with pytest.raises(RedoTargetError, match="blog"):
        wizard.request_redo(generated_state(), {"type": "content", "pages": ["blog"]})


def test_sixth_redo_is_rejected():
    state = generated_state()
    for _ in range(5):
        state = wizard.request_redo(state, {"type": "content"})
    assert state.redesign_count == 5
    assert wizard.remaining_redesigns(state) == 0

    with pytest.raises(RedesignLimitExceededError) as exc_info:
        wizard.request_redo(state, {"type": "content"})

    assert exc_info.value.limit == 5


def test_override_allows_redo_past_limit_and_logs_warning(caplog):
    state = generated_state().model_copy(update={"redesign_count": 5})

    with caplog.at_level(logging.WARNING, logger="site_wizard.wizard"):
        state = wizard.request_redo(state, {"type": "images"}, override=True)

    assert state.redesign_count == 6
    assert wizard.remaining_redesigns(state) == 0
    assert "Redesign limit overridden" in caplog.text


def test_custom_redesign_limit():
    state = wizard.request_redo(generated_state(), {"type": "content"}, max_redesigns=1)

    with pytest.raises(RedesignLimitExceededError):
        wizard.request_redo(state, {"type": "content"}, max_redesigns=1)


def test_failed_regeneration_keeps_redesign_count():
    state = wizard.request_redo(generated_state(), {"type": "content"})
    state = wizard.start_generation(state)
    state = wizard.record_generation_failure(state, ["upstream error"])

    assert state.redesign_count == 1
    assert state.generated_package is not None


def test_latest_redo_is_sent_with_generation_request():
    state = wizard.request_redo(generated_state(), {"type": "content", "pages": ["home"], "sections": ["hero-1"]})

    request = wizard.build_generation_request(state)

    assert request.redo == {"type": "content", "pages": ["home"], "sections": ["hero-1"]}


def test_queue_redo_while_running_costs_no_redesign():
    state = wizard.start_generation(generated_state())

    with pytest.raises(WizardError, match="already running"):
        wizard.queue_redo(state, {"type": "content"})

    assert state.redesign_count == 0
    assert state.redo_requests == []


def test_queue_redo_records_redo_and_queues_rebuild():
    state = wizard.queue_redo(generated_state(), {"type": "images"})

    assert state.redesign_count == 1
    assert state.generation.status == GenerationStatus.queued
