"""Tests for the HTTP API."""

import asyncio
import base64
import json

import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient  # noqa: E402

from secureapi.api.app import create_app  # noqa: E402
from secureapi.core.exceptions import QuotaStoreError  # noqa: E402
from secureapi.core.quota import InMemoryQuotaStore, QuotaGate  # noqa: E402
from secureapi.utils.config import Settings  # noqa: E402
from tests.conftest import OPENAI_KEY, BrokenStore, build_zip, read_zip  # noqa: E402

ZIP_HEADERS = {"content-type": "application/zip"}


class CountDownStore(InMemoryQuotaStore):
    """Store that keeps reservations but cannot record finished scans."""

    async def incr(self, key, ttl_ms=None):
        if not key.endswith(":pending"):
            raise QuotaStoreError("connection refused")
        return await super().incr(key, ttl_ms)


@pytest.fixture
def settings():
    return Settings(quota_limit=2, max_upload_bytes=64 * 1024)


@pytest.fixture
def client(settings, catalog):
    app = create_app(settings=settings, quota_store=InMemoryQuotaStore(), catalog=catalog)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def project_zip():
    return build_zip({
        "app.js": f'const apiKey = "{OPENAI_KEY}";\n',
        "README.md": "Questions? Mail ops@example.com\n",
    })


@pytest.mark.api
class TestScanEndpoint:
    """Test POST /api/v1/scan."""

    def test_raw_zip_upload(self, client, project_zip):
        response = client.post("/api/v1/scan", content=project_zip, headers=ZIP_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["refactoredKeys"] == ["OPENAI_API_KEY"]
        assert body["redactedKeys"] == ["ops@example.c..."]
        assert body["remainingScans"] == 1
        assert body["message"] == "Scan complete! Found 2 potential keys."

        entries = read_zip(base64.b64decode(body["downloadData"]))
        assert entries["app.js"] == b"const apiKey = process.env.OPENAI_API_KEY;\n"
        assert f'OPENAI_API_KEY="{OPENAI_KEY}"'.encode() in entries[".env"]

    def test_json_upload(self, client, project_zip):
        payload = {"fileData": base64.b64encode(project_zip).decode()}

        response = client.post("/api/v1/scan", json=payload)

        assert response.status_code == 200
        assert response.json()["refactoredKeys"] == ["OPENAI_API_KEY"]

    def test_base64_text_upload(self, client, project_zip):
        """Test a bare base64 body, with a data URL prefix."""
        body = "data:application/zip;base64," + base64.b64encode(project_zip).decode()

        response = client.post("/api/v1/scan", content=body, headers={"content-type": "text/plain"})

        assert response.status_code == 200

    def test_upload_alias(self, client, project_zip):
        response = client.post("/upload", content=project_zip, headers=ZIP_HEADERS)

        assert response.status_code == 200
        assert "downloadData" in response.json()

    def test_clean_archive(self, client):
        archive = build_zip({"main.py": "print('hello')\n"})

        response = client.post("/api/v1/scan", content=archive, headers=ZIP_HEADERS)
        body = response.json()

        assert response.status_code == 200
        assert body["refactoredKeys"] == []
        assert body["redactedKeys"] == []
        assert body["message"] == "Scan complete! Found 0 potential keys."
        assert set(read_zip(base64.b64decode(body["downloadData"]))) == {"main.py"}

    def test_wrong_method(self, client):
        response = client.get("/api/v1/scan")

        assert response.status_code == 405
        assert response.json() == {"error": "Method Not Allowed"}

    def test_empty_body(self, client):
        response = client.post("/api/v1/scan", content=b"", headers=ZIP_HEADERS)

        assert response.status_code == 400
        assert "No file data received" in response.json()["error"]

    def test_json_without_file_data(self, client):
        response = client.post("/api/v1/scan", json={"file": "x"})

        assert response.status_code == 400

    def test_invalid_base64(self, client):
        response = client.post(
            "/api/v1/scan", content="not base64 at all!", headers={"content-type": "text/plain"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "File data is not valid base64."

    def test_corrupt_archive(self, client):
        payload = {"fileData": base64.b64encode(b"definitely not a zip").decode()}

        response = client.post("/api/v1/scan", json=payload)

        assert response.status_code == 400
        assert "may be corrupt" in response.json()["error"]

    def test_payload_too_large(self, client):
        response = client.post(
            "/api/v1/scan", content=b"PK\x03\x04" + b"\x00" * (200 * 1024), headers=ZIP_HEADERS
        )

        assert response.status_code == 413

    def test_failed_scan_does_not_use_quota(self, client, project_zip):
        """Test a rejected upload leaves the client's scans untouched."""
        client.post("/api/v1/scan", content=b"", headers=ZIP_HEADERS)

        response = client.post("/api/v1/scan", content=project_zip, headers=ZIP_HEADERS)

        assert response.json()["remainingScans"] == 1


@pytest.mark.api
class TestQuota:
    """Test the per-client scan quota over HTTP."""

    def test_limit_enforced(self, client, project_zip):
        for expected in (1, 0):
            response = client.post("/api/v1/scan", content=project_zip, headers=ZIP_HEADERS)
            assert response.json()["remainingScans"] == expected

        response = client.post("/api/v1/scan", content=project_zip, headers=ZIP_HEADERS)

        assert response.status_code == 429
        assert response.json() == {
            "error": "You have reached your free scan limit. Please upgrade to Pro.",
            "limit": 2,
            "remainingScans": 0,
        }

    def test_quota_checked_before_payload(self, client, project_zip):
        """Test an exhausted client is refused even with a broken body."""
        for _ in range(2):
            client.post("/api/v1/scan", content=project_zip, headers=ZIP_HEADERS)

        response = client.post("/api/v1/scan", content=b"", headers=ZIP_HEADERS)

        assert response.status_code == 429

    def test_clients_identified_by_forwarded_ip(self, client, project_zip):
        first = {**ZIP_HEADERS, "x-forwarded-for": "203.0.113.7, 10.0.0.1"}
        second = {**ZIP_HEADERS, "x-forwarded-for": "198.51.100.2"}

        for _ in range(2):
            client.post("/api/v1/scan", content=project_zip, headers=first)

        assert client.post("/api/v1/scan", content=project_zip, headers=first).status_code == 429
        assert client.post("/api/v1/scan", content=project_zip, headers=second).status_code == 200

    def test_store_down_fails_closed(self, settings, catalog, project_zip):
        app = create_app(settings=settings, quota_store=BrokenStore(), catalog=catalog)
        client = TestClient(app)

        response = client.post("/api/v1/scan", content=project_zip, headers=ZIP_HEADERS)

        assert response.status_code == 503
        assert "error" in response.json()

    def test_failed_commit_releases_reservation(self, settings, catalog, project_zip):
        store = CountDownStore()
        app = create_app(settings=settings, quota_store=store, catalog=catalog)
        client = TestClient(app)
        headers = {**ZIP_HEADERS, "x-forwarded-for": "203.0.113.9"}

        response = client.post("/api/v1/scan", content=project_zip, headers=headers)

        assert response.status_code == 503
        assert asyncio.run(store.get(QuotaGate.pending_key("203.0.113.9"))) == 0

    def test_store_down_fail_open(self, catalog, project_zip):
        settings = Settings(quota_limit=2, quota_fail_open=True)
        app = create_app(settings=settings, quota_store=BrokenStore(), catalog=catalog)
        client = TestClient(app)

        response = client.post("/api/v1/scan", content=project_zip, headers=ZIP_HEADERS)

        assert response.status_code == 200
        assert response.json()["remainingScans"] == 1


@pytest.mark.api
class TestServiceEndpoints:
    """Test health and pattern listing."""

    def test_health(self, client, catalog):
        response = client.get("/health")
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["patterns_loaded"] == len(catalog)
        assert body["quota_store"] == "ok"

    def test_health_degraded(self, settings, catalog):
        app = create_app(settings=settings, quota_store=BrokenStore(), catalog=catalog)

        body = TestClient(app).get("/health").json()

        assert body["status"] == "degraded"
        assert body["quota_store"] == "unreachable"

    def test_ready_and_live(self, client):
        assert client.get("/ready").json() == {"ready": True}
        assert client.get("/live").json() == {"alive": True}

    def test_list_patterns(self, client):
        body = client.get("/api/v1/patterns").json()

        assert body["total"] == 8
        assert body["patterns"][0]["name"] == "openai_api_key"
        assert body["patterns"][0]["provider_tag"] == "OPENAI"

    def test_filter_patterns(self, client):
        body = client.get("/api/v1/patterns", params={"policy": "refactor"}).json()

        assert {p["kind"] for p in body["patterns"]} == {
            "openai_key", "stripe_key", "aws_key", "connection_string",
        }

    def test_unknown_route(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert json.loads(response.content) == {"error": "Not Found"}
