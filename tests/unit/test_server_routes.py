# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest
from fastapi.testclient import TestClient

from config import AppConfig
from constants import FALLBACK_PHRASES
from server.app import create_app
from services.transcription_service import TranscriptionService


@pytest.fixture(name="client")
def fixture_client() -> TestClient:
    return TestClient(create_app(config=AppConfig(fallback_delay_s=0)))


def test_health_reports_configuration(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "asr_configured": False}


def test_transcribe_without_credentials_returns_fallback(client: TestClient):
    resp = client.post(
        "/transcribe",
        content=b"\x00" * 6_400,
        headers={"content-type": "application/octet-stream"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"text": FALLBACK_PHRASES[0]}


def test_transcribe_rejects_empty_body(client: TestClient):
    resp = client.post("/transcribe", content=b"")

    assert resp.status_code == 400


def test_injected_service_is_used():
    class StubService(TranscriptionService):
        async def transcribe(self, audio: bytes) -> str:
            return f"{len(audio)} bytes"

    app = create_app(service=StubService(AppConfig(asr_app_key="k", asr_access_token="t")))
    client = TestClient(app)

    assert client.get("/health").json()["asr_configured"] is True
    assert client.post("/transcribe", content=b"abc").json() == {"text": "3 bytes"}
