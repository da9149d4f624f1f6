import pytest
from fastapi.testclient import TestClient

from site_wizard import wizard
from site_wizard.errors import GenerationCancelledError, GenerationError
from site_wizard.models.generation import ProgressEvent

LEGACY_RESULT = {
    "html": "<h1>Hi</h1>",
    "css": "body{color:red}",
    "js": "",
    "meta": {"title": "Bean & Brew", "keywords": ["coffee", "capetown"]},
}
BUSINESS = {
    "businessName": "Bean & Brew",
    "industry": "Food & Dining",
    "location": "Cape Town",
    "email": "hello@beanbrew.co.za",
}


class FakeGenerationClient:
    result = LEGACY_RESULT
    error = None
    requests = []

    def __init__(self, **kwargs):
        pass

    def generate(self, request, *, on_progress=None, handle=None):
        FakeGenerationClient.requests.append(request)
        if on_progress is not None:
            on_progress(ProgressEvent(phase=1, total_phases=6, phase_name="Layout Structure", progress=15))
        if self.error is not None:
            raise self.error
        return self.result

    def close(self):
        pass


@pytest.fixture
def api(load_service, monkeypatch):
    module = load_service("api")
    monkeypatch.setattr(module, "GenerationClient", FakeGenerationClient)
    monkeypatch.setattr(FakeGenerationClient, "result", LEGACY_RESULT)
    monkeypatch.setattr(FakeGenerationClient, "error", None)
    monkeypatch.setattr(FakeGenerationClient, "requests", [])
    return module


@pytest.fixture
def client(api):
    return TestClient(api.app)


def new_session(client) -> str:
    response = client.post("/v1/sessions")
    assert response.status_code == 201
    return response.json()["sessionId"]


def ready_session(client) -> str:
    session_id = new_session(client)
    steps = [
        ("put", f"/v1/sessions/{session_id}/package", {"packageId": "advanced"}),
        ("post", f"/v1/sessions/{session_id}:advance", {"stage": "template-select"}),
        ("put", f"/v1/sessions/{session_id}/templates", {"templateIds": ["tpl-coffee-roastery"]}),
        ("post", f"/v1/sessions/{session_id}:advance", {"stage": "quick-form"}),
        ("put", f"/v1/sessions/{session_id}/business-info", BUSINESS),
        ("post", f"/v1/sessions/{session_id}:advance", {"stage": "final-website"}),
    ]
    for method, url, body in steps:
        response = getattr(client, method)(url, json=body)
        assert response.status_code == 200, response.text
    return session_id


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_create_and_fetch_session(client):
    session_id = new_session(client)

    response = client.get(f"/v1/sessions/{session_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["stage"] == "package-select"
    assert body["stageHistory"] == []
    assert body["generation"]["status"] == "IDLE"


def test_unknown_session_is_404(client):
    assert client.get("/v1/sessions/wiz_missing").status_code == 404
    assert client.post("/v1/sessions/wiz_missing:back").status_code == 404


def test_walk_through_flow_and_back(client):
    session_id = ready_session(client)

    state = client.get(f"/v1/sessions/{session_id}").json()
    assert state["stage"] == "final-website"
    assert state["selectedPackage"] == "advanced"
    assert state["selectedDesignTemplates"][0]["id"] == "tpl-coffee-roastery"
    assert state["requirements"]["businessName"] == "Bean & Brew"
    assert state["autoBuildPending"] is True

    response = client.post(f"/v1/sessions/{session_id}:back")
    assert response.status_code == 200
    assert response.json()["stage"] == "quick-form"


def test_rule_violations_are_409(client):
    session_id = new_session(client)

    prerequisite = client.post(f"/v1/sessions/{session_id}:advance", json={"stage": "template-select"})
    legacy = client.post(f"/v1/sessions/{session_id}:advance", json={"stage": "discover"})
    back = client.post(f"/v1/sessions/{session_id}:back")

    assert prerequisite.status_code == 409
    assert prerequisite.json()["error"] == "StagePrerequisiteError"
    assert legacy.status_code == 409
    assert legacy.json()["error"] == "IllegalTransitionError"
    assert back.status_code == 409


def test_invalid_input_is_422(client):
    session_id = new_session(client)

    assert client.put(f"/v1/sessions/{session_id}/package", json={"packageId": "platinum"}).status_code == 422
    assert (
        client.put(f"/v1/sessions/{session_id}/business-info", json={**BUSINESS, "email": "nope"}).status_code
        == 422
    )


def test_unknown_template_is_404(client):
    session_id = new_session(client)

    response = client.put(f"/v1/sessions/{session_id}/templates", json={"templateIds": ["tpl-missing"]})

    assert response.status_code == 404


def test_page_keywords_respect_package_limit(client):
    session_id = new_session(client)
    client.put(f"/v1/sessions/{session_id}/package", json={"packageId": "basic"})

    ok = client.put(f"/v1/sessions/{session_id}/page-keywords", json={"pages": [{"name": "Home", "keywords": ["coffee"]}]})
    too_many = client.put(
        f"/v1/sessions/{session_id}/page-keywords",
        json={"pages": [{"name": "Home"}, {"name": "About"}]},
    )

    assert ok.status_code == 200
    assert ok.json()["pageKeywords"] == [{"name": "Home", "type": "home", "keywords": ["coffee"]}]
    assert too_many.status_code == 409


def test_requirements_page_validation(client):
    session_id = new_session(client)

    invalid = client.patch(
        f"/v1/sessions/{session_id}/requirements",
        json={"page": "business-details", "answers": {"businessName": "Bean & Brew", "businessEmail": "nope"}},
    )
    saved = client.patch(
        f"/v1/sessions/{session_id}/requirements",
        json={"answers": {"projectOverview": "A coffee shop site", "socialLinks": {"instagram": "@beanbrew"}}},
    )

    assert invalid.status_code == 422
    assert invalid.json()["detail"]["businessEmail"] == "Please enter a valid email address."
    assert saved.status_code == 200
    assert saved.json()["requirements"]["projectOverview"] == "A coffee shop site"
    assert saved.json()["requirements"]["socialLinks"] == {"instagram": "@beanbrew"}


def test_generate_runs_in_background_and_stores_package(client):
    session_id = ready_session(client)

    response = client.post(f"/v1/sessions/{session_id}/generate")

    assert response.status_code == 202
    assert response.json()["generation"]["status"] == "QUEUED"

    state = client.get(f"/v1/sessions/{session_id}").json()
    assert state["generation"]["status"] == "COMPLETED"
    assert state["generation"]["progress"] == 1.0
    assert state["generatedPackage"]["activePageId"] == "home"
    assert state["generatedPackage"]["manifest"]["siteName"] == "Bean & Brew"
    assert state["autoBuildPending"] is False
    assert FakeGenerationClient.requests[0].session_id == session_id


def test_generation_failure_is_recorded(client, monkeypatch):
    monkeypatch.setattr(FakeGenerationClient, "error", GenerationError("model overloaded"))
    session_id = ready_session(client)

    client.post(f"/v1/sessions/{session_id}/generate")

    state = client.get(f"/v1/sessions/{session_id}").json()
    assert state["generation"]["status"] == "FAILED"
    assert state["generation"]["errors"] == ["model overloaded"]
    assert state["selectedPackage"] == "advanced"


def test_malformed_generation_result_is_recorded(client, monkeypatch):
    monkeypatch.setattr(FakeGenerationClient, "result", {"nothing": "useful"})
    session_id = ready_session(client)

    client.post(f"/v1/sessions/{session_id}/generate")

    state = client.get(f"/v1/sessions/{session_id}").json()
    assert state["generation"]["status"] == "FAILED"
    assert state["generatedPackage"] is None


def test_redo_limit_and_override(client):
    session_id = ready_session(client)
    client.post(f"/v1/sessions/{session_id}/generate")

    for _ in range(5):
        response = client.post(f"/v1/sessions/{session_id}/redo", json={"request": {"type": "content"}})
        assert response.status_code == 200

    rejected = client.post(f"/v1/sessions/{session_id}/redo", json={"request": {"type": "content"}})
    forced = client.post(f"/v1/sessions/{session_id}/redo", json={"request": {"type": "images"}, "override": True})

    assert rejected.status_code == 409
    assert rejected.json()["error"] == "RedesignLimitExceededError"
    assert forced.status_code == 200
    state = client.get(f"/v1/sessions/{session_id}").json()
    assert state["redesignCount"] == 6
    assert state["stage"] == "final-website"
    assert FakeGenerationClient.requests[-1].redo == {"type": "images", "pages": []}


def test_redo_before_generation_is_409(client):
    session_id = ready_session(client)

    response = client.post(f"/v1/sessions/{session_id}/redo", json={"request": {"type": "content"}})

    assert response.status_code == 409


def test_cancel_without_running_generation_is_409(client):
    session_id = new_session(client)

    assert client.post(f"/v1/sessions/{session_id}/generate:cancel").status_code == 409


def test_resume_from_draft(client):
    draft = {"stage": "template-select", "stageHistory": ["package-select"], "selectedPackage": "seo"}

    resumed = client.post("/v1/sessions", json={"draft": draft})
    discarded = client.post("/v1/sessions", json={"draft": {"stage": "commit", "selectedPackage": "seo"}})

    assert resumed.status_code == 201
    assert resumed.json()["stage"] == "template-select"
    assert resumed.json()["sessionId"]
    assert discarded.json()["stage"] == "package-select"


def test_delete_session(client):
    session_id = new_session(client)

    assert client.delete(f"/v1/sessions/{session_id}").status_code == 204
    assert client.delete(f"/v1/sessions/{session_id}").status_code == 404


def test_normalize_endpoint(client):
    response = client.post("/v1/websites:normalize", json=LEGACY_RESULT)
    malformed = client.post("/v1/websites:normalize", json={"css": "body{}"})

    assert response.status_code == 200
    body = response.json()
    assert body["pages"][0]["slug"] == "home"
    assert body["sharedAssets"]["css"] == "body{color:red}"
    assert body["files"]["pages/home.html"]["content"] == "<h1>Hi</h1>"
    assert malformed.status_code == 422
    assert malformed.json()["error"] == "MalformedGenerationResultError"


def test_list_sessions_by_stage(client):
    ready = ready_session(client)
    new_session(client)

    everything = client.get("/v1/sessions").json()
    final = client.get("/v1/sessions", params={"stage": "final-website"}).json()

    assert len(everything) == 2
    assert [state["sessionId"] for state in final] == [ready]
    assert client.get("/v1/sessions", params={"stage": "nowhere"}).status_code == 422


def mark_running(api, session_id):
    api.session_store.update_session(session_id, wizard.start_generation)


def test_redo_while_generating_keeps_redesign_credit(api, client):
    session_id = ready_session(client)
    client.post(f"/v1/sessions/{session_id}/generate")
    mark_running(api, session_id)

    response = client.post(f"/v1/sessions/{session_id}/redo", json={"request": {"type": "content"}})

    assert response.status_code == 409
    state = client.get(f"/v1/sessions/{session_id}").json()
    assert state["redesignCount"] == 0
    assert state["redoRequests"] == []


def test_cancel_flags_generation_run_elsewhere(api, client):
    session_id = ready_session(client)
    mark_running(api, session_id)

    response = client.post(f"/v1/sessions/{session_id}/generate:cancel")

    assert response.status_code == 200
    assert response.json()["generation"]["cancelRequested"] is True
    assert api.session_store.get_session(session_id).generation.cancel_requested is True


def test_unexpected_generation_error_is_recorded(client, monkeypatch):
    monkeypatch.setattr(FakeGenerationClient, "error", RuntimeError("disk full"))
    session_id = ready_session(client)

    with pytest.raises(RuntimeError, match="disk full"):
        client.post(f"/v1/sessions/{session_id}/generate")

    state = client.get(f"/v1/sessions/{session_id}").json()
    assert state["generation"]["status"] == "FAILED"
    assert state["generation"]["errors"] == ["Unexpected error: disk full"]


def test_session_deleted_during_generation(api, client, monkeypatch):
    class DeletingGenerationClient(FakeGenerationClient):
        def generate(self, request, *, on_progress=None, handle=None):
            api.session_store.delete_session(request.session_id)
            raise GenerationCancelledError("Generation cancelled")

    monkeypatch.setattr(api, "GenerationClient", DeletingGenerationClient)
    session_id = ready_session(client)

    response = client.post(f"/v1/sessions/{session_id}/generate")

    assert response.status_code == 202
    assert client.get(f"/v1/sessions/{session_id}").status_code == 404
    assert api.active_generations == {}
