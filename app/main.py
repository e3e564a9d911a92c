from __future__ import annotations

import contextlib
import logging
import signal
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictStr, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import get_settings
from tutor.errors import (
    InternalError,
    InvalidRequest,
    MessageTooLong,
    NotFound,
    ProviderError,
    RelayError,
    ServerError,
    classify_provider_error,
)
from tutor.llm import TutorClient, build_tutor_client


SERVER_NAME = "Santi.JR Backend Server"
MAX_MESSAGE_LENGTH = 10_000

settings = get_settings()

logging.basicConfig(level=settings.log_level, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("santi")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def message_length(text: str) -> int:
    """Length in UTF-16 code units, so astral characters such as emoji count twice."""
    return len(text.encode("utf-16-le", "surrogatepass")) // 2


def _log_banner(port: int, key_loaded: bool) -> None:
    rule = "=" * 50
    logger.info(rule)
    logger.info(SERVER_NAME)
    logger.info(rule)
    logger.info("Server running on port %s (env=%s)", port, settings.app_env)
    logger.info("Health check: http://localhost:%s/health", port)
    logger.info("AI endpoint: http://localhost:%s/ask", port)
    logger.info("Teach endpoint: http://localhost:%s/teach", port)
    logger.info(rule)
    if key_loaded:
        logger.info("Gemini API key loaded successfully")
    else:
        logger.warning("GEMINI_API_KEY not found in environment variables!")
        logger.warning("Please create a .env file with your API key.")
    logger.info(rule)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.tutor = build_tutor_client(settings)
    _log_banner(settings.port, app.state.tutor.configured)
    yield
    logger.info("Server stopped")


app = FastAPI(title="Santi.JR Tutor Backend", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_tutor_client(request: Request) -> TutorClient:
    return request.app.state.tutor


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class AskRequest(BaseModel):
    message: StrictStr = Field(..., description="Learner's question or message")

    @field_validator("message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value


class TeachRequest(BaseModel):
    topic: StrictStr = Field(..., description="Topic to build a learning guide for")

    @field_validator("topic")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("topic must not be blank")
        return value


class AskResponse(BaseModel):
    response: str
    timestamp: str


class TeachResponse(BaseModel):
    response: str
    topic: str
    timestamp: str


class HealthResponse(BaseModel):
    status: str
    message: str
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
    details: str


# Details text for a body that fails validation, keyed by field then by path.
FIELD_DETAILS = {
    "message": "Message is required and must be a non-empty string",
    "topic": "Topic is required and must be a non-empty string",
}
PATH_FIELDS = {"/ask": "message", "/teach": "topic"}


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------

def _error_response(exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    # A body that is not parseable JSON never reaches field checks.
    if any(err.get("type") == "json_invalid" for err in errors):
        logger.error("Unparseable JSON body on %s %s", request.method, request.url.path)
        return _error_response(ServerError())

    field = None
    for err in errors:
        loc = err.get("loc") or ()
        if len(loc) >= 2 and loc[-1] in FIELD_DETAILS:
            field = loc[-1]
            break
    if field is None:
        field = PATH_FIELDS.get(request.url.path)
    logger.info("Rejected %s body: %s", request.url.path, field or "malformed")
    if field is None:
        return _error_response(InvalidRequest())
    return _error_response(InvalidRequest(FIELD_DETAILS[field]))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown path and wrong method on a known path both count as no such endpoint.
    if exc.status_code in (404, 405):
        return _error_response(NotFound())
    detail = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": detail, "details": detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(ServerError())


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.api_route("/health", methods=["GET", "HEAD"], response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        message=f"{SERVER_NAME} is running",
        timestamp=utc_timestamp(),
    )


@app.post(
    "/ask",
    response_model=AskResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def ask(req: AskRequest, tutor: TutorClient = Depends(get_tutor_client)) -> AskResponse:
    if message_length(req.message) > MAX_MESSAGE_LENGTH:
        raise MessageTooLong()

    logger.info("Received message: %s...", req.message[:100])
    try:
        text = await tutor.ask(req.message)
    except ProviderError as exc:
        logger.exception("Error processing request: %s", exc)
        raise classify_provider_error(exc) from exc

    logger.info("AI response generated successfully: %s chars", len(text))
    return AskResponse(response=text, timestamp=utc_timestamp())


@app.post(
    "/teach",
    response_model=TeachResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def teach(req: TeachRequest, tutor: TutorClient = Depends(get_tutor_client)) -> TeachResponse:
    logger.info("Teaching request for topic: %s", req.topic)
    try:
        text = await tutor.teach(req.topic)
    except ProviderError as exc:
        logger.exception("Error in teach endpoint: %s", exc)
        raise InternalError("Failed to generate teaching content") from exc

    logger.info("Teaching content generated successfully: %s chars", len(text))
    return TeachResponse(response=text, topic=req.topic, timestamp=utc_timestamp())


# ---------------------------------------------------------------------------
# Process entry point
# ---------------------------------------------------------------------------

class RelayServer(uvicorn.Server):
    """uvicorn server that stops on SIGINT/SIGTERM and returns status 0.

    Paired with ``timeout_graceful_shutdown=0`` in-flight requests are not
    drained, while the app lifespan still runs its shutdown.
    """

    def handle_exit(self, sig, frame) -> None:
        logger.info("%s received, shutting down gracefully...", signal.Signals(sig).name)
        self.should_exit = True

    @contextlib.contextmanager
    def capture_signals(self):
        # Stock uvicorn re-raises the captured signal after shutdown, which
        # would turn a clean stop into a non-zero exit status.
        if threading.current_thread() is threading.main_thread():
            for sig in (signal.SIGINT, signal.SIGTERM):
                signal.signal(sig, self.handle_exit)
        yield


def build_server() -> RelayServer:
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=0,
    )
    return RelayServer(config)


def run() -> None:
    build_server().run()


if __name__ == "__main__":
    run()
