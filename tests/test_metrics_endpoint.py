from fastapi.testclient import TestClient

from rest_client.app import app
from rest_client import monitoring

client = TestClient(app)


def test_metrics_endpoint_returns_prometheus_format():
    r = client.get("/metrics")
    # 200 when PROMETHEUS_ENABLED (the default), 404 otherwise
    assert r.status_code in (200, 404)
    if r.status_code == 200:
        assert "text/plain" in r.headers.get("content-type", "")
        assert "rest_client_api_requests_total" in r.text


def test_metrics_disabled(monkeypatch):
    monkeypatch.setattr(monitoring, "PROMETHEUS_ENABLED", False)
    r = client.get("/metrics")
    assert r.status_code == 404


def test_health_still_works():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_metric_helpers_never_raise():
    monitoring.observe_execution("GET", "success", 12)
    monitoring.inc_history_write_failure()
    monitoring.observe_request(0.0, "/x", "GET", "200")
