from fastapi.testclient import TestClient

from src.askcode.api.main import app
from src.askcode.observability.metrics import sanitize_path


client = TestClient(app)


def test_metrics_endpoint_exposes_histogram():
    # Trigger a request to ensure histogram has an observation
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["components"]["store"] == "memory"

    m = client.get("/metrics")
    assert m.status_code == 200
    body = m.text

    assert "# HELP askcode_request_latency_seconds" in body
    assert "# TYPE askcode_request_latency_seconds histogram" in body
    assert "askcode_request_latency_seconds_count" in body or "askcode_request_latency_seconds_bucket" in body
    assert "askcode_answer_streams_total" in body


def test_api_prefixed_health_and_metrics():
    assert client.get("/api/health").json()["status"] == "ok"
    assert "askcode_questions_total" in client.get("/api/metrics").text


def test_sanitize_path_drops_identifiers():
    assert sanitize_path("/projects/abc123/questions") == "/projects"
    assert sanitize_path("") == "/"
    assert sanitize_path("/health?x=1") == "/health"
