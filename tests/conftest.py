from collections.abc import Iterator
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from qjobs.config import Settings, get_settings
from qjobs.main import app, get_monitor_session

_ENV_VARS = (
    "IBM_CLOUD_API_KEY",
    "IBM_QUANTUM_INSTANCE_CRN",
    "IBM_QUANTUM_REGION",
    "QJOBS_IAM_TOKEN_URL",
    "QJOBS_API_BASE_URL",
    "QJOBS_JOB_VIEW_BASE_URL",
    "QJOBS_POLL_SECONDS",
    "QJOBS_JOBS_LIMIT",
    "QJOBS_BACKEND_STATUS_LIMIT",
    "QJOBS_BACKEND_STATUS_CONCURRENCY",
    "QJOBS_HTTP_TIMEOUT_SECONDS",
    "QJOBS_TOKEN_REFRESH_MARGIN_SECONDS",
    "QJOBS_AUTOSTART",
)


class FakeProvider:
    """In-process stand-in for the IAM and Quantum REST endpoints."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, int] = {}
        self.iam_status = 200
        self.tokens_issued = 0
        self.expires_in = 3600
        self.pending_jobs: list[dict[str, Any]] = [
            {"id": "j1", "backend": "ibm_brisbane", "status": "Running", "program": {"id": "sampler"}},
            {"id": "j2", "backend": "ibm_kyoto", "state": {"status": "Queued"}, "program": {"id": "estimator"}},
        ]
        self.other_jobs: list[dict[str, Any]] = [
            {"id": "j0", "backend": "ibm_kyoto", "status": "Completed", "program": {"id": "sampler"}},
        ]
        self.backends: Any = ["ibm_brisbane", "ibm_kyoto"]
        self.backend_statuses: dict[str, dict[str, Any]] = {
            "ibm_brisbane": {"pending_jobs": 7, "operational": True},
            "ibm_kyoto": {"pending_jobs": 3, "operational": False},
        }

    def count(self, key: str) -> int:
        return sum(1 for request in self.requests if self._key(request) == key)

    def _key(self, request: httpx.Request) -> str:
        if request.url.host == "iam.test":
            return "iam"
        path = request.url.path.removeprefix("/api/v1")
        if path == "/jobs":
            return f"/jobs?pending={request.url.params.get('pending')}"
        return path

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = self._key(request)

        if key == "iam":
            if self.iam_status != 200:
                return httpx.Response(self.iam_status, json={"errorMessage": "rejected"})
            form = parse_qs(request.content.decode())
            assert form["grant_type"] == ["urn:ibm:params:oauth:grant-type:apikey"]
            self.tokens_issued += 1
            return httpx.Response(
                200,
                json={"access_token": f"token-{self.tokens_issued}", "expires_in": self.expires_in},
            )

        if key in self.failures:
            return httpx.Response(self.failures[key], json={"errors": [{"message": "boom"}]})
        if key == "/jobs?pending=true":
            return httpx.Response(200, json={"jobs": self.pending_jobs, "count": len(self.pending_jobs), "limit": 200, "offset": 0})
        if key == "/jobs?pending=false":
            return httpx.Response(200, json={"jobs": self.other_jobs, "count": len(self.other_jobs), "limit": 200, "offset": 0})
        if key == "/backends":
            return httpx.Response(200, json=self.backends)
        if key.startswith("/backends/") and key.endswith("/status"):
            name = key.removeprefix("/backends/").removesuffix("/status")
            return httpx.Response(200, json=self.backend_statuses.get(name, {}))
        return httpx.Response(404, json={"errors": [{"message": "not found"}]})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def reset_caches(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    get_monitor_session.cache_clear()
    yield
    get_settings.cache_clear()
    get_monitor_session.cache_clear()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_key="secret-key",
        instance_crn="crn:v1:bluemix:public:quantum-computing:us-east:a/123::",
        region="us-east",
        iam_token_url="https://iam.test/identity/token",
        api_base_url="https://quantum.test/api/v1",
        job_view_base_url="https://quantum.test/jobs",
        poll_seconds=15.0,
        jobs_limit=200,
        backend_status_limit=24,
        backend_status_concurrency=1,
        http_timeout_seconds=5.0,
        token_refresh_margin_seconds=60.0,
        autostart=False,
    )


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    monkeypatch.setenv("QJOBS_AUTOSTART", "false")

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
