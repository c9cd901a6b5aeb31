from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from kiosk import VoiceKiosk, build_kiosk
from kiosk.audio import AudioClip
from kiosk.errors import (
    CapabilityDeniedError,
    KioskError,
    MalformedResponseError,
    OrderNotReadyError,
    OrderSubmissionError,
    SessionCreationError,
    SessionNotFoundError,
    SessionNotPairedError,
    TransientNetworkError,
    UnknownTerminalError,
    UploadError,
)


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------
class SummaryRow(BaseModel):
    label: str
    price: str


class OrderConfirmation(BaseModel):
    status: str
    submittedRemotely: bool
    order: Dict[str, Any]
    summary: List[SummaryRow]
    total: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
_STATUS_FOR_ERROR = [
    (UnknownTerminalError, 404),
    (SessionNotFoundError, 404),
    (CapabilityDeniedError, 403),
    (SessionNotPairedError, 409),
    (OrderNotReadyError, 409),
    (MalformedResponseError, 502),
    (UploadError, 502),
    (OrderSubmissionError, 502),
    (SessionCreationError, 502),
    (TransientNetworkError, 502),
]


def _http_error(exc: KioskError) -> HTTPException:
    for kind, status in _STATUS_FOR_ERROR:
        if isinstance(exc, kind):
            return HTTPException(status_code=status, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
def create_app(kiosk: Optional[VoiceKiosk] = None) -> FastAPI:
    kiosk = kiosk or build_kiosk()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        kiosk.close()

    app = FastAPI(title="Voice Kiosk API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.kiosk = kiosk

    @app.get("/health")
    def health() -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}
        try:
            out["conversationService"] = kiosk.health()
        except KioskError as exc:
            out["status"] = "degraded"
            out["error"] = str(exc)
        return out

    @app.get("/menu")
    def menu() -> Dict[str, Any]:
        return {
            "categories": {
                name: [item.to_api() for item in kiosk.catalog.list(name)]
                for name in kiosk.catalog.categories()
            }
        }

    @app.post("/terminals/{terminal_id}/session")
    def start_session(terminal_id: str) -> Dict[str, Any]:
        try:
            kiosk.start_session(terminal_id)
        except KioskError as exc:
            raise _http_error(exc)
        return kiosk.snapshot(terminal_id)

    @app.post("/terminals/{terminal_id}/reset")
    def reset_session(terminal_id: str) -> Dict[str, Any]:
        try:
            kiosk.reset(terminal_id)
        except KioskError as exc:
            raise _http_error(exc)
        return kiosk.snapshot(terminal_id)

    @app.get("/terminals/{terminal_id}")
    def terminal_state(terminal_id: str) -> Dict[str, Any]:
        try:
            return kiosk.snapshot(terminal_id)
        except UnknownTerminalError as exc:
            raise _http_error(exc)

    @app.post("/terminals/{terminal_id}/utterance")
    async def utterance(terminal_id: str, file: UploadFile = File(...)) -> Dict[str, Any]:
        data = await file.read()
        if not data:
            raise HTTPException(status_code=400, detail="empty audio upload")
        clip = AudioClip(
            data=data,
            filename=file.filename or "recorded_audio.m4a",
            mime_type=file.content_type or "audio/m4a",
        )
        try:
            delta = await run_in_threadpool(kiosk.submit_utterance, terminal_id, clip)
        except KioskError as exc:
            raise _http_error(exc)
        return {"delta": delta.to_api(), "state": kiosk.snapshot(terminal_id)}

    @app.post("/terminals/{terminal_id}/order", response_model=OrderConfirmation)
    def place_order(terminal_id: str) -> OrderConfirmation:
        try:
            result = kiosk.place_order(terminal_id)
        except KioskError as exc:
            raise _http_error(exc)
        return OrderConfirmation(
            status="confirmed",
            submittedRemotely=result.submitted_remotely,
            order=result.order.model_dump(),
            summary=[SummaryRow(label=label, price=price) for label, price in result.summary_lines()],
            total=result.formatted_total(),
        )

    return app


app = create_app()

# Entry for local dev
# uvicorn kiosk_app.main:app --reload --port 8000
