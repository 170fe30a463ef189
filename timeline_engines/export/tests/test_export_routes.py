from fastapi import FastAPI
from fastapi.testclient import TestClient

from timeline_engines.export.routes import router as export_router
from timeline_engines.server import create_app


def _client() -> TestClient:
    app = FastAPI()
    app.include_router(export_router)
    return TestClient(app)


def _payload(make_request, **kwargs):
    return make_request(**kwargs).model_dump(mode="json")


def test_plan_endpoint_returns_graph_and_args(orchestrator, make_request):
    resp = _client().post("/timeline/export/plan", json=_payload(make_request))
    assert resp.status_code == 200
    body = resp.json()
    assert body["duration"] == 11
    assert body["graph"].endswith("amix=inputs=4:duration=first[aout]")
    assert body["args"][0:2] == ["-i", "base.mp4"]
    assert [i["filename"] for i in body["inputs"]] == ["vid.mp4", "music.mp3"]


def test_plan_endpoint_rejects_empty_timeline(orchestrator, make_request):
    resp = _client().post("/timeline/export/plan", json=_payload(make_request, clips=[]))
    assert resp.status_code == 422
    error = resp.json()["detail"]["error"]
    assert error["code"] == "empty_timeline"
    assert error["stage"] == "setup"


def test_export_and_download(orchestrator, make_request):
    orchestrator.store.grace_seconds = 60
    client = _client()
    resp = client.post("/timeline/export", json=_payload(make_request, filename="cut.mp4"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["filename"] == "cut.mp4"
    assert body["size_bytes"] == len(b"rendered-mp4")

    status = client.get("/timeline/export/status").json()
    assert status == {"status": "done", "percentage": 1.0}

    download = client.get(f"/timeline/export/artifacts/{body['handle']}")
    assert download.status_code == 200
    assert download.content == b"rendered-mp4"
    assert download.headers["content-type"] == "video/mp4"

    orchestrator.store.release(body["handle"])
    gone = client.get(f"/timeline/export/artifacts/{body['handle']}")
    assert gone.status_code == 404
    assert gone.json()["detail"]["error"]["code"] == "artifact_not_found"


def test_export_engine_not_ready_maps_to_503(orchestrator, engine, make_request):
    engine.ready = False
    resp = _client().post("/timeline/export", json=_payload(make_request))
    assert resp.status_code == 503
    assert resp.json()["detail"]["error"]["code"] == "engine_not_ready"


def test_export_engine_failure_maps_to_502(orchestrator, engine, make_request):
    engine.fail_render = True
    resp = _client().post("/timeline/export", json=_payload(make_request))
    assert resp.status_code == 502
    error = resp.json()["detail"]["error"]
    assert error["code"] == "engine_failed"
    assert error["details"]["stderr_tail"] == "No such filter: 'bogus'"


def test_export_while_busy_maps_to_409(orchestrator, make_request):
    orchestrator._status = "export"
    resp = _client().post("/timeline/export", json=_payload(make_request))
    assert resp.status_code == 409
    assert resp.json()["detail"]["error"]["code"] == "export_in_progress"


def test_status_starts_idle(orchestrator):
    assert _client().get("/timeline/export/status").json() == {"status": "idle", "percentage": 0.0}


def test_create_app_initializes_and_disposes_engine(orchestrator, engine):
    engine.ready = False
    with TestClient(create_app()) as client:
        assert engine.ready
        assert client.get("/timeline/export/status").status_code == 200
    assert engine.disposed


def test_openapi_documents_error_envelope():
    schema = _client().app.openapi()
    assert {"ErrorResponse", "ErrorEnvelope", "ErrorDetail"} <= set(schema["components"]["schemas"])
    export_responses = schema["paths"]["/timeline/export"]["post"]["responses"]
    for status in ("409", "424", "502", "503"):
        assert export_responses[status]["content"]["application/json"]["schema"] == {"$ref": "#/components/schemas/ErrorResponse"}
    download = schema["paths"]["/timeline/export/artifacts/{handle}"]["get"]["responses"]
    assert "404" in download
