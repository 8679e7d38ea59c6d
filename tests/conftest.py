"""Shared test fixtures for eventrelay."""

import random
from typing import Any, Dict, List

import httpx
import pytest

from eventrelay.core.config import RelayConfig, reset_config
from eventrelay.core.observability import MetricsCollector
from eventrelay.errors.retry import RetryPolicy
from eventrelay.webhooks.forwarder import Forwarder

CANARY_URL = "https://canary.example.com/workflows/1/invoke?api-version=2016-10-01&sp=run&sv=1.0&sig=canary-secret-token"
STABLE_URL = "https://stable.example.com/workflows/1/invoke?api-version=2016-10-01&sp=run&sv=1.0&sig=stable-secret-token"
CANARY_HOST = "canary.example.com"
STABLE_HOST = "stable.example.com"

RELAY_ENV_VARS = [
    "LOGICAPP_CALLBACK_URL",
    "LOGICAPP_CALLBACK_URL_NEXT",
    "FORWARD_FALLBACK_ENABLED",
    "FORWARD_MAX_ATTEMPTS",
    "FORWARD_BASE_DELAY_MS",
    "FORWARD_MAX_DELAY_MS",
    "FORWARD_INCLUDE_BODY",
    "FORWARD_TIMEOUT_SECONDS",
    "EVENTRELAY_LOG_LEVEL",
]

HANDSHAKE_EVENT = {
    "id": "2d1781af-3a4c-4d7c-bd0c-e34b19da4e66",
    "topic": "/subscriptions/xxx/resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/acct",
    "subject": "",
    "data": {
        "validationCode": "512d38b6-c7b8-40c8-89fe-f46f9e9622b6",
        "validationUrl": "https://rp-eastus2.eventgrid.azure.net/api/validate?id=abc"
    },
    "eventType": "Microsoft.EventGrid.SubscriptionValidationEvent",
    "eventTime": "2024-01-01T00:00:00.000Z",
    "metadataVersion": "1",
    "dataVersion": "2"
}

BLOB_EVENT = {
    "topic": "/subscriptions/xxx/resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/acct",
    "subject": "/blobServices/default/containers/inbox/blobs/report.csv",
    "eventType": "Microsoft.Storage.BlobCreated",
    "id": "831e1650-001e-001b-66ab-eeb76e069631",
    "data": {
        "api": "PutBlob",
        "contentType": "text/csv",
        "contentLength": 524288,
        "url": "https://acct.blob.core.windows.net/inbox/report.csv"
    },
    "dataVersion": "",
    "metadataVersion": "1",
    "eventTime": "2024-01-01T00:00:00.000Z"
}


class ScriptedDownstream:
    """
    Mock downstream targets keyed by host.

    Each host gets a list of steps consumed one per request; the last step
    repeats. A step is a status code, a ``(status, body)`` tuple, or an
    exception to raise.
    """

    def __init__(self, scripts: Dict[str, List[Any]]):
        self.scripts = {host: list(steps) for host, steps in scripts.items()}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        steps = self.scripts[request.url.host]
        step = steps.pop(0) if len(steps) > 1 else steps[0]

        if isinstance(step, Exception):
            raise step
        if isinstance(step, tuple):
            status, body = step
            return httpx.Response(status, text=body)
        return httpx.Response(step)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def calls(self, host: str) -> int:
        return sum(1 for r in self.requests if r.url.host == host)


class SleepRecorder:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Clear relay environment variables and run from an empty directory."""
    for name in RELAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def make_config():
    """Build a RelayConfig with overrides."""
    def factory(**overrides) -> RelayConfig:
        values = {"stable_url": STABLE_URL}
        values.update(overrides)
        return RelayConfig(**values)

    return factory


@pytest.fixture
def make_forwarder(sleeper, rng, metrics):
    """Build a Forwarder over a scripted downstream."""
    def factory(downstream: ScriptedDownstream, fallback_enabled: bool = True, **policy) -> Forwarder:
        policy.setdefault("max_attempts", 4)
        policy.setdefault("base_delay_ms", 500)
        policy.setdefault("max_delay_ms", 8000)
        return Forwarder(
            downstream.client(),
            RetryPolicy(**policy),
            fallback_enabled=fallback_enabled,
            metrics=metrics,
            sleep=sleeper,
            rng=rng
        )

    return factory
