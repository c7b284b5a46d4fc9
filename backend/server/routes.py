"""
Route registration for the transcription API.

Responsibilities:
- Define HTTP endpoints
- Pull the service from app.state
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException, Request

from observability.logger import log_event
from services.transcription_service import TranscriptionService


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        service: TranscriptionService = app.state.service
        return {
            "status": "ok",
            "asr_configured": service.config.asr_configured,
        }

    @app.post("/transcribe")
    async def transcribe_endpoint(request: Request) -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        """
        Raw request body = captured audio (PCM16 mono 16kHz, or a WAV file).

        Always answers 200 with text for non-empty audio; outages yield the
        fallback transcript.
        """
        audio = await request.body()
        if not audio:
            raise HTTPException(status_code=400, detail="request body must contain audio bytes")

        service: TranscriptionService = app.state.service
        text = await service.transcribe(audio)

        log_event({
            "event_type": "HTTP_TRANSCRIBE",
            "audio_bytes": len(audio),
            "chars": len(text),
        })
        return {"text": text}
