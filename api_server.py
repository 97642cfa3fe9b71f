"""
FastAPI Backend Server

Exposes the copilot session as REST endpoints plus a Server-Sent-Events
stream of pipeline events for a browser overlay to consume.
"""

import asyncio
import json
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

from copilot.config import settings
from copilot.logger import get_logger, init_logging
from copilot.messages import msg
from copilot.realtime.controller import AskInProgressError, CopilotController, NoSessionError
from copilot.realtime.events import Event, EventBus
from copilot.realtime.gateway import GatewayConfigError, GatewayError
from copilot.realtime.session import Mode
from copilot.realtime.stt_stream import TranscriptStream

logger = get_logger(__name__)


# Pydantic models for API
class StartSessionRequest(BaseModel):
    gemini_key: Optional[str] = None
    assembly_key: Optional[str] = None
    live: bool = False
    mode: Optional[str] = None


class TranscriptRequest(BaseModel):
    text: str = Field(min_length=1, max_length=5000)


class AskRequest(BaseModel):
    question: str = Field(max_length=10000)


class ModeRequest(BaseModel):
    mode: str


class AskResponse(BaseModel):
    answer: str
    explanation: str
    code: str
    intent: str
    language: str
    latency_ms: float


class SessionResponse(BaseModel):
    session_id: str
    active: bool
    mode: str
    pending_text: str
    is_processing: bool
    history: Dict[str, List[Dict[str, str]]]


class EventBroadcaster:
    """
    Fans bus events out to every connected SSE client.

    Each client gets its own bounded queue; a slow client loses events
    instead of holding up the bus.
    """

    def __init__(self, max_queue_size: int = 200):
        self._clients: List[asyncio.Queue] = []
        self._max_queue_size = max_queue_size

    def attach(self, event_bus: EventBus) -> None:
        event_bus.subscribe(Event, self.handle)

    def register(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._clients.append(queue)
        return queue

    def unregister(self, queue: asyncio.Queue) -> None:
        if queue in self._clients:
            self._clients.remove(queue)

    async def handle(self, event: Event) -> None:
        payload = event.to_dict()
        for queue in list(self._clients):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning("SSE client queue full, dropping event")

    @property
    def client_count(self) -> int:
        return len(self._clients)


# Global instances
controller: Optional[CopilotController] = None
broadcaster = EventBroadcaster()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources."""
    global controller

    init_logging()
    if controller is None:
        controller = CopilotController()
    broadcaster.attach(controller.event_bus)
    logger.info("Copilot API ready")

    yield

    await controller.shutdown()
    controller = None


# Rate limiting middleware
class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Simple in-memory rate limiting middleware.
    Limits requests per IP address within a time window.
    """

    def __init__(self, app, requests_limit: int = 60, window_seconds: int = 60):
        super().__init__(app)
        self.requests_limit = requests_limit
        self.window_seconds = window_seconds
        self.request_counts: Dict[str, list] = defaultdict(list)

    async def dispatch(self, request: Request, call_next):
        # Health checks and the long-lived event stream are not counted
        if request.url.path in ("/api/health", "/api/events"):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()

        current_time = time.time()
        cutoff_time = current_time - self.window_seconds

        self.request_counts[client_ip] = [
            ts for ts in self.request_counts[client_ip] if ts > cutoff_time
        ]

        if len(self.request_counts[client_ip]) >= self.requests_limit:
            return JSONResponse(
                status_code=429,
                content={
                    "detail": msg("error.rate_limited"),
                    "retry_after": self.window_seconds
                },
                headers={"Retry-After": str(self.window_seconds)}
            )

        self.request_counts[client_ip].append(current_time)

        return await call_next(request)


# Create FastAPI app
app = FastAPI(
    title="Interview Copilot API",
    description="REST and SSE interface for the real-time interview copilot",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    RateLimitMiddleware,
    requests_limit=settings.api.rate_limit_requests,
    window_seconds=settings.api.rate_limit_window,
)

# CORS middleware - uses configurable origins from settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_controller() -> CopilotController:
    """Get the controller instance."""
    if controller is None:
        raise HTTPException(status_code=503, detail=msg("error.no_session"))
    return controller


def _session_response(ctrl: CopilotController) -> SessionResponse:
    if ctrl.session is None:
        raise HTTPException(status_code=503, detail=msg("error.no_session"))
    return SessionResponse(**ctrl.session.snapshot())


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "session_active": controller is not None and controller.is_running,
    }


@app.post("/api/session/start", response_model=SessionResponse)
async def start_session(request: StartSessionRequest):
    """Start a new session, optionally with live audio transcription."""
    ctrl = get_controller()
    gateway = ctrl.gateway

    if request.gemini_key and hasattr(gateway, "set_api_key"):
        gateway.set_api_key(request.gemini_key)
    if not getattr(gateway, "is_configured", True):
        raise HTTPException(status_code=400, detail=msg("error.gemini_key_missing"))

    source = None
    if request.live:
        assembly_key = request.assembly_key or settings.transcription.api_key
        if not assembly_key:
            raise HTTPException(status_code=400, detail=msg("error.assembly_key_missing"))
        source = TranscriptStream(ctrl.event_bus, api_key=assembly_key)

    try:
        mode = Mode.parse(request.mode) if request.mode else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown mode: {request.mode}")

    try:
        await ctrl.start(source=source)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if mode is not None:
        await ctrl.set_mode(mode)

    return _session_response(ctrl)


@app.post("/api/session/stop")
async def stop_session():
    """Stop the current session."""
    ctrl = get_controller()
    if not ctrl.is_running:
        raise HTTPException(status_code=503, detail=msg("error.no_session"))
    await ctrl.stop()
    return {"status": msg("status.stopped")}


@app.get("/api/session", response_model=SessionResponse)
async def get_session():
    """Snapshot of mode, pending text and both histories."""
    return _session_response(get_controller())


@app.get("/api/stats")
async def get_stats():
    """Pipeline statistics."""
    ctrl = get_controller()
    data = ctrl.stats
    data["sse_clients"] = broadcaster.client_count
    data["environment"] = settings.app_env
    return data


@app.post("/api/transcript")
async def post_transcript(request: TranscriptRequest):
    """Inject a transcript fragment as if it came from the transcription service."""
    ctrl = get_controller()
    try:
        await ctrl.inject(request.text)
    except NoSessionError:
        raise HTTPException(status_code=503, detail=msg("error.no_session"))
    return {"accepted": True}


@app.post("/api/ask", response_model=AskResponse)
async def ask(request: AskRequest):
    """Answer a typed question against the QA history."""
    ctrl = get_controller()
    if not request.question.strip():
        raise HTTPException(status_code=400, detail=msg("error.empty_question"))
    try:
        answer = await ctrl.ask(request.question)
    except NoSessionError:
        raise HTTPException(status_code=503, detail=msg("error.no_session"))
    except AskInProgressError:
        raise HTTPException(status_code=409, detail=msg("error.ask_in_progress"))
    except GatewayConfigError:
        raise HTTPException(status_code=400, detail=msg("error.gemini_key_missing"))
    except GatewayError as e:
        logger.error(f"Ask error: {e}")
        raise HTTPException(status_code=502, detail=f"Gemini ask error: {e}")

    return AskResponse(
        answer=answer.text,
        explanation=answer.explanation,
        code=answer.code,
        intent=answer.classification.intent,
        language=answer.classification.language,
        latency_ms=round(answer.latency_ms, 1),
    )


@app.post("/api/mode")
async def set_mode(request: ModeRequest):
    """Force the session mode."""
    ctrl = get_controller()
    try:
        mode = Mode.parse(request.mode)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown mode: {request.mode}")
    try:
        await ctrl.set_mode(mode)
    except NoSessionError:
        raise HTTPException(status_code=503, detail=msg("error.no_session"))
    return {"mode": mode.value}


@app.get("/api/events")
async def events(request: Request):
    """Server-Sent-Events stream of captions, answers, mode changes and errors."""
    queue = broadcaster.register()

    async def generate() -> AsyncGenerator[str, None]:
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    payload = await asyncio.wait_for(queue.get(), timeout=15.0)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"event: {payload['type']}\ndata: {json.dumps(payload)}\n\n"
        finally:
            broadcaster.unregister(queue)

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api_server:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.is_development,
    )
