from fastapi import HTTPException

from core.errors import payment_not_confirmable, signature_invalid
from core.response_envelope import error_payload, http_exception_response, success_payload


def test_success_payload_includes_meta_and_request_id():
    payload = success_payload(
        data=[{"id": 1}],
        message="ok",
        meta={"start": 0, "stop": 100, "count": 1},
        request_id="req-123",
    )
    assert payload["success"] is True
    assert payload["meta"]["count"] == 1
    assert payload["requestId"] == "req-123"


def test_error_payload_includes_request_id():
    payload = error_payload(
        message="failed",
        data={"code": "X"},
        request_id="req-999",
    )
    assert payload["success"] is False
    assert payload["data"]["code"] == "X"
    assert payload["requestId"] == "req-999"


def test_app_exception_renders_code_and_details():
    response = http_exception_response(payment_not_confirmable(5, "pending"))

    assert response.status_code == 409
    assert b'"code":"PAYMENT_NOT_CONFIRMABLE"' in response.body
    assert b'"status":"pending"' in response.body


def test_signature_failure_has_no_details():
    response = http_exception_response(signature_invalid())

    assert response.status_code == 400
    assert b'"details":null' in response.body


def test_plain_http_exception_gets_generic_code():
    response = http_exception_response(HTTPException(status_code=404, detail="Not Found"))

    assert b'"code":"HTTP_EXCEPTION"' in response.body
    assert b'"message":"Not Found"' in response.body
