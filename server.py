# server.py - FastAPI chat server with URL crawling and rate limiting
import os
import time
from contextlib import asynccontextmanager
from fnmatch import fnmatch
from typing import Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, field_validator
from starlette.concurrency import run_in_threadpool

from chat.llm import get_chat_model
from chat.pipeline import ChatPipeline
from config import (
    CRAWL_DEPTH,
    MAX_CONTEXT_CHARS,
    MAX_LINKS_PER_PAGE,
    MAX_MESSAGE_LENGTH,
    RATE_LIMIT_EXCLUDED_PATHS,
    RATE_LIMIT_HEADERS,
    RENDER_TIMEOUT_SECONDS,
    RENDERER,
    CHAT_MAX_TOKENS,
    CHAT_MODEL,
    CHAT_TEMPERATURE,
    TRUSTED_PROXIES,
)
from ingestion.crawler import Crawler
from ingestion.renderer import get_renderer
from utils.logger import get_server_logger, get_ratelimit_logger
from utils.rate_limiter import SlidingWindowLimiter, build_limiter, get_client_ip
from utils.validators import validate_message


# Initialize loggers
logger = get_server_logger()
ratelimit_logger = get_ratelimit_logger()

# NOTE: file:// origins cannot be whitelisted; serve the frontend from http://localhost:3000
CORS_ALLOW_ORIGINS = [
    "http://localhost",
    "http://localhost:3000",
    "http://127.0.0.1",
    "http://127.0.0.1:3000",
]


# Request/Response Models
class ChatRequest(BaseModel):
    message: str

    @field_validator('message')
    @classmethod
    def check_message(cls, v):
        return validate_message(v)


class ChatResponse(BaseModel):
    response: str


class ErrorResponse(BaseModel):
    error: str


def build_pipeline() -> ChatPipeline:
    """Construct the process-wide pipeline from config and environment."""
    crawler = Crawler(get_renderer(RENDERER))
    return ChatPipeline(crawler, get_chat_model())


def is_rate_limited_path(path: str) -> bool:
    return not any(fnmatch(path, pattern) for pattern in RATE_LIMIT_EXCLUDED_PATHS)


def create_app(
    pipeline: ChatPipeline = None,
    rate_limiter: SlidingWindowLimiter = None,
    trusted_proxies: Sequence[str] = TRUSTED_PROXIES,
) -> FastAPI:
    """
    Build the API.

    Collaborators not passed in are constructed once at startup.
    trusted_proxies are the peers whose X-Forwarded-For is used as the client IP.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup lifecycle handler."""
        logger.info("Chat API starting...")
        if app.state.pipeline is None:
            app.state.pipeline = build_pipeline()
        if app.state.rate_limiter is None:
            app.state.rate_limiter = build_limiter(os.getenv("REDIS_URL"), os.getenv("REDIS_TOKEN"))
        yield
        logger.info("Chat API shutting down...")

    app = FastAPI(
        title="URL Chat API",
        description="Chat completions augmented with content crawled from URLs in the message",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.pipeline = pipeline
    app.state.rate_limiter = rate_limiter
    app.state.trusted_proxies = tuple(trusted_proxies)

    @app.middleware("http")
    async def rate_limit_gate(request: Request, call_next):
        """Check the client's quota before anything else runs."""
        if request.method == "OPTIONS" or not is_rate_limited_path(request.url.path):
            return await call_next(request)

        client_ip = get_client_ip(request, request.app.state.trusted_proxies)
        try:
            decision = await run_in_threadpool(request.app.state.rate_limiter.limit, client_ip)
        except Exception:
            ratelimit_logger.exception(f"Rate limiting error for {client_ip}")
            return PlainTextResponse("Internal Server Error", status_code=500)

        if not decision.allowed:
            return PlainTextResponse("Too many requests", status_code=429, headers=decision.headers())

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response

    # Added after the gate so it wraps it: preflights are answered here without
    # a quota hit, and 429/500 from the gate still get CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=list(RATE_LIMIT_HEADERS),
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        detail = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        logger.warning(f"Invalid request to {request.url.path}: {detail}")
        return JSONResponse(status_code=422, content={"error": detail or "Invalid request"})

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "running",
            "message": "URL Chat API is running",
        }

    @app.get("/limits")
    async def get_limits():
        """Get current API limits and configuration."""
        limiter = app.state.rate_limiter
        return {
            "input_limits": {
                "max_message_length": MAX_MESSAGE_LENGTH,
            },
            "crawl_limits": {
                "depth": CRAWL_DEPTH,
                "max_links_per_page": MAX_LINKS_PER_PAGE,
                "render_timeout_seconds": RENDER_TIMEOUT_SECONDS,
                "renderer": RENDERER,
            },
            "prompt_settings": {
                "max_context_chars": MAX_CONTEXT_CHARS,
                "model": CHAT_MODEL,
                "temperature": CHAT_TEMPERATURE,
                "max_tokens": CHAT_MAX_TOKENS,
            },
            "rate_limits": {
                "requests_per_window": limiter.max_requests if limiter else None,
                "window_seconds": limiter.window_seconds if limiter else None,
            },
        }

    # Sync handler: runs in the threadpool, where Playwright's sync API is allowed
    @app.post("/api/chat", response_model=ChatResponse, responses={500: {"model": ErrorResponse}})
    def chat(request: ChatRequest, req: Request):
        """Answer a message, crawling any URLs it contains for context."""
        start_time = time.time()
        logger.info(f"POST /api/chat - Message: {request.message[:50]}...")

        try:
            answer = req.app.state.pipeline.handle(request.message)
        except Exception as e:
            logger.exception("Error during chat completion")
            return JSONResponse(status_code=500, content={"error": str(e) or "An error occurred"})

        elapsed = time.time() - start_time
        logger.info(f"POST /api/chat completed in {elapsed:.2f}s")
        return ChatResponse(response=answer)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3000)
