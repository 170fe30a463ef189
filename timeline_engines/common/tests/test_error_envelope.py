import pytest
from fastapi import HTTPException

from timeline_engines.common.error_envelope import ErrorResponse, build_error_envelope, error_response


def test_build_envelope_defaults():
    envelope = build_error_envelope("empty_timeline", "Timeline is empty", status_code=422)
    assert envelope.model_dump() == {
        "error": {
            "code": "empty_timeline",
            "message": "Timeline is empty",
            "http_status": 422,
            "stage": None,
            "resource_kind": None,
            "details": {},
        }
    }


def test_error_response_raises_http_exception():
    with pytest.raises(HTTPException) as exc_info:
        error_response("engine_failed", "boom", status_code=502, stage="export", details={"stderr_tail": "x"})
    assert exc_info.value.status_code == 502
    detail = exc_info.value.detail["error"]
    assert detail["stage"] == "export"
    assert detail["details"] == {"stderr_tail": "x"}


def test_raised_detail_parses_as_error_response():
    with pytest.raises(HTTPException) as exc_info:
        error_response("artifact_not_found", "gone", status_code=404, resource_kind="artifact")
    body = ErrorResponse.model_validate({"detail": exc_info.value.detail})
    assert body.detail.error.code == "artifact_not_found"
    assert body.detail.error.resource_kind == "artifact"
