"""Tests for the result envelope."""

import json

from app.core.exceptions import ErrorKind, NotAvailable
from app.core.result import Err, Ok, to_response
from app.schemas.assessment import TenantMetrics


def _body(response) -> dict:
    return json.loads(response.body)


def test_ok_is_wrapped_with_extras():
    response = to_response(Ok([1, 2], extra={"count": 2}), success_status=201)
    assert response.status_code == 201
    assert _body(response) == {"success": True, "data": [1, 2], "count": 2}


def test_models_are_serialized_camel_case():
    metrics = TenantMetrics(tenant_id="t1", has_assessment=False)
    body = _body(to_response(Ok(metrics)))
    assert body["data"]["tenantId"] == "t1"
    assert body["data"]["hasAssessment"] is False


def test_err_maps_kind_to_status():
    response = to_response(Err(ErrorKind.CUSTOMER_NOT_FOUND, "Customer c1 not found"))
    assert response.status_code == 404
    assert _body(response) == {
        "success": False,
        "error": "CustomerNotFound",
        "detail": "Customer c1 not found",
    }


def test_troubleshooting_only_when_present():
    err = Err.from_exception(NotAvailable("no data"), troubleshooting=["try later"])
    body = _body(to_response(err))
    assert body["error"] == "NotAvailable"
    assert body["troubleshooting"] == ["try later"]
