"""
Tests for POST /api/request: execution, best-effort logging, and error payloads.
Remote endpoints are simulated with httpx.MockTransport.
"""
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from rest_client.app import app
from rest_client import app as app_module
from rest_client import db as dbmod
from rest_client.executor import Executor, FAILURE_STATUS

client = TestClient(app)


@pytest.fixture
def remote(monkeypatch):
    """Install a handler as the remote service; returns the list of requests it saw."""
    seen = []

    def install(handler):
        def recording(request):
            seen.append(request)
            return handler(request)

        monkeypatch.setattr(
            app_module.service, "executor",
            Executor(timeout=5, transport=httpx.MockTransport(recording)),
        )
        return seen

    return install


def test_execute_json_and_record(remote):
    def handler(request):
        time.sleep(0.15)
        return httpx.Response(200, json={"ok": True})

    remote(handler)
    r = client.post("/api/request", json={"method": "GET", "url": "https://api.example.com/ok"})
    assert r.status_code == 200
    j = r.json()
    assert j["data"] == {"ok": True}
    assert j["status"] == 200
    assert j["headers"]["content-type"] == "application/json"
    assert j["responseTime"] >= 150

    history = client.get("/api/history").json()
    assert history["total"] == 1
    rec = history["requests"][0]
    assert rec["response"] == '{"ok":true}'
    assert rec["status"] == 200
    assert rec["method"] == "GET"
    assert rec["responseTime"] == j["responseTime"]


def test_execute_unreachable_host_is_logged(remote):
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    seen = remote(handler)
    r = client.post(
        "/api/request",
        json={"method": "POST", "url": "https://down.example.com/", "body": '{"x":1}',
              "headers": {"Content-Type": "application/json"}},
    )
    assert r.status_code == 500
    j = r.json()
    assert "Connection refused" in j["error"]
    assert j["responseTime"] >= 0
    assert seen[0].content == b'{"x":1}'

    rec = client.get("/api/history").json()["requests"][0]
    assert rec["status"] == FAILURE_STATUS
    assert "Connection refused" in rec["response"]
    assert rec["body"] == '{"x":1}'
    assert rec["headers"] == {"Content-Type": "application/json"}


def test_remote_error_status_is_normal_result(remote):
    remote(lambda request: httpx.Response(404, text="not here"))
    r = client.post("/api/request", json={"method": "DELETE", "url": "https://example.com/x"})
    assert r.status_code == 200
    assert r.json()["status"] == 404
    assert r.json()["data"] == "not here"
    assert client.get("/api/history?status=400").json()["total"] == 1


def test_missing_url_rejected_without_side_effects(remote):
    seen = remote(lambda request: httpx.Response(200))
    r = client.post("/api/request", json={"method": "GET"})
    assert r.status_code == 400
    assert r.json() == {"error": "URL is required"}
    r = client.post("/api/request", json={"method": "GET", "url": ""})
    assert r.status_code == 400
    assert seen == []
    assert dbmod.query_request_records()["total"] == 0


def test_malformed_body_rejected():
    r = client.post("/api/request", json={"url": "https://example.com", "headers": ["a"]})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid request"
    assert r.json()["details"]


def test_null_headers_default_to_empty(remote):
    remote(lambda request: httpx.Response(200, text="ok"))
    r = client.post("/api/request", json={"url": "https://example.com", "headers": None})
    assert r.status_code == 200
    rec = client.get("/api/history").json()["requests"][0]
    assert rec["headers"] == {}
    assert rec["method"] == "GET"
    assert rec["body"] is None


def test_storage_failure_does_not_hide_result(remote, tmp_path):
    remote(lambda request: httpx.Response(200, json={"ok": True}))
    dbmod.reconfigure(f"sqlite:///{tmp_path / 'noschema.db'}")
    r = client.post("/api/request", json={"method": "GET", "url": "https://example.com"})
    assert r.status_code == 200
    assert r.json()["data"] == {"ok": True}


def test_insert_invalidates_cached_history(remote):
    remote(lambda request: httpx.Response(200, text="ok"))
    assert client.get("/api/history").json()["total"] == 0
    client.post("/api/request", json={"url": "https://example.com"})
    assert client.get("/api/history").json()["total"] == 1


def test_unencodable_header_still_recorded(remote):
    seen = remote(lambda request: httpx.Response(200, json={"ok": True}))
    r = client.post(
        "/api/request",
        json={"method": "GET", "url": "https://example.com/", "headers": {"X-Name": "café"}},
    )
    assert r.status_code == 500
    j = r.json()
    assert j["error"].startswith("Request failed: ")
    assert j["responseTime"] >= 0
    assert seen == []

    history = client.get("/api/history").json()
    assert history["total"] == 1
    rec = history["requests"][0]
    assert rec["status"] == FAILURE_STATUS
    assert rec["headers"] == {"X-Name": "café"}
