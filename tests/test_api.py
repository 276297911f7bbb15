from __future__ import annotations

from typing import Any, Dict

import httpx
import pytest
from fastapi.testclient import TestClient

from neurovol.api.app import create_app


@pytest.fixture(scope="module")
def client() -> TestClient:
    return TestClient(create_app())


def _measurement(body: Dict[str, Any], name: str) -> Dict[str, Any]:
    for item in body["measurements"]:
        if item["name"] == name:
            return item
    raise AssertionError(f"Measurement {name} not in response.")


def test_health_reports_loaded_structures(client: TestClient) -> None:
    response = client.get("/healthz")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["structures"] == 8
    assert body["version"] == "0.1.0"


def test_version_endpoint(client: TestClient) -> None:
    assert client.get("/version").json() == {"version": "0.1.0"}


def test_analyze_report_scores_sample(client: TestClient, morphometry_report: str) -> None:
    response = client.post(
        "/v1/analyze_report",
        json={"report_text": morphometry_report},
        headers={"X-Trace-Id": "trace-123"},
    )

    assert response.status_code == 200
    assert response.headers["X-Trace-Id"] == "trace-123"
    body = response.json()
    assert body["trace_id"] == "trace-123"
    assert body["status"] == "success"
    assert body["age"] == 67
    assert body["sex"] == "female"
    assert body["decision_trace"] is None

    hippocampi = _measurement(body, "Hippocampi")
    assert hippocampi["canonical_name"] == "Hippocampus"
    assert hippocampi["display_name"] == "Hippocampi"
    assert hippocampi["status"] == "atrophied"
    assert hippocampi["z_score"] == -2.33
    assert hippocampi["age_adjusted"] is True
    assert body["summary"]["asymmetric_regions"] == ["Amygdalae", "Thalami"]


def test_analyze_report_with_age_override_and_trace(client: TestClient, morphometry_report: str) -> None:
    response = client.post(
        "/v1/analyze_report",
        json={"report_text": morphometry_report, "age": 30, "sex": "MALE", "verbose": True},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["age"] == 30
    assert body["sex"] == "male"
    assert _measurement(body, "Hippocampi")["z_score"] == -3.0
    assert body["decision_trace"][0]["step"] == "gate"


def test_analyze_report_without_table(client: TestClient) -> None:
    response = client.post("/v1/analyze_report", json={"report_text": "Clinical note only."})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "no_measurement_table"
    assert body["message"] == "No measurement table found"
    assert body["measurements"] == []
    assert body["issues"][0]["kind"] == "no_recognizable_data"


@pytest.mark.parametrize(
    "payload",
    [
        {"report_text": "Volumetry", "age": -4},
        {"report_text": "Volumetry", "age": 200},
        {"report_text": ""},
        {"report_text": "Volumetry", "sex": "other"},
    ],
)
def test_analyze_report_rejects_invalid_payloads(client: TestClient, payload: Dict[str, Any]) -> None:
    assert client.post("/v1/analyze_report", json=payload).status_code == 422


def test_analyze_records(client: TestClient) -> None:
    response = client.post(
        "/v1/analyze_records",
        json={
            "age": 67,
            "records": [
                {"name": "Hippocampi", "left_volume": 0.09, "right_volume": 0.09},
                {"name": "Thalami", "left_volume": 0.3},
            ],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert len(body["measurements"]) == 1
    hippocampi = body["measurements"][0]
    assert hippocampi["total_volume"] == 0.18
    assert hippocampi["total_derived"] is True
    assert hippocampi["strategy"] == "manual"
    assert hippocampi["z_score"] == -2.33
    assert body["summary"]["atrophied_regions"] == ["Hippocampi"]


def test_analyze_records_requires_volume_data(client: TestClient) -> None:
    response = client.post(
        "/v1/analyze_records",
        json={"records": [{"name": "Thalami", "left_volume": 0.3}]},
    )
    assert response.status_code == 422


def test_analyze_records_rejects_negative_volume(client: TestClient) -> None:
    response = client.post(
        "/v1/analyze_records",
        json={"records": [{"name": "Thalami", "total_volume": -1.0}]},
    )
    assert response.status_code == 422


def test_normative_lookup(client: TestClient) -> None:
    response = client.get("/v1/normative/Hippocampi", params={"age": 67})

    assert response.status_code == 200
    body = response.json()
    assert body["canonical_name"] == "Hippocampus"
    assert body["age_group"] == "61-70"
    assert body["bucket"] == "61-70"
    assert body["mean"] == 0.25
    assert body["sd"] == 0.03
    assert body["fallback"] is False


def test_normative_lookup_unknown_structure(client: TestClient) -> None:
    response = client.get("/v1/normative/Ventricles", params={"age": 67})

    assert response.status_code == 404
    assert response.json()["detail"]["error_code"] == "STRUCTURE_NOT_FOUND"


def test_normative_lookup_requires_age(client: TestClient) -> None:
    assert client.get("/v1/normative/Hippocampi").status_code == 422


@pytest.mark.asyncio
async def test_analyze_report_over_asgi_transport(tagged_report: str) -> None:
    transport = httpx.ASGITransport(app=create_app())
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        response = await async_client.post("/v1/analyze_report", json={"report_text": tagged_report})

    assert response.status_code == 200
    body = response.json()
    assert body["patient_id"] == "S-22"
    assert [item["name"] for item in body["measurements"]] == ["Hippocampi", "Thalami"]
    assert "X-Trace-Id" in response.headers


def test_analyze_document_upload(client: TestClient, sample_dir) -> None:
    payload = (sample_dir / "neuroquant_morphometry.txt").read_bytes()
    response = client.post(
        "/v1/analyze_document",
        files={"file": ("neuroquant_morphometry.txt", payload, "text/plain")},
        data={"age": "30", "verbose": "true"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["age"] == 30
    assert body["patient_id"] == "NQ-1001"
    hippocampi = _measurement(body, "Hippocampi")
    assert hippocampi["z_score"] == -3.0
    assert hippocampi["display_name"] == "Hippocampi"
    assert body["decision_trace"]


def test_analyze_document_rejects_corrupt_pdf(client: TestClient) -> None:
    response = client.post(
        "/v1/analyze_document",
        files={"file": ("report.pdf", b"this is not a pdf", "application/pdf")},
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error_code"] == "DOCUMENT_UNREADABLE"
    assert detail["details"] == {"filename": "report.pdf"}


def test_analyze_document_rejects_undecodable_text(client: TestClient) -> None:
    response = client.post(
        "/v1/analyze_document",
        files={"file": ("report.txt", b"Volumetry \xc3\x28", "text/plain")},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["error_code"] == "DOCUMENT_UNREADABLE"


def test_analyze_document_rejects_invalid_sex(client: TestClient, tagged_report: str) -> None:
    response = client.post(
        "/v1/analyze_document",
        files={"file": ("tagged.txt", tagged_report.encode("utf-8"), "text/plain")},
        data={"sex": "unknown"},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["error_code"] == "INVALID_SEX"


def test_analyze_document_rejects_out_of_range_age(client: TestClient, tagged_report: str) -> None:
    response = client.post(
        "/v1/analyze_document",
        files={"file": ("tagged.txt", tagged_report.encode("utf-8"), "text/plain")},
        data={"age": "200"},
    )

    assert response.status_code == 422
