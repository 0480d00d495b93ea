import logging
from contextlib import asynccontextmanager
from importlib import metadata
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from loro.config import Settings, get_settings
from loro.errors import LoroError
from loro.models.api import ChatRequest
from loro.models.metrics import MetricsSnapshot
from loro.services.orchestrator import LoroService

logger = logging.getLogger("loro.api")

try:
    VERSION = metadata.version("loro-gateway")
except metadata.PackageNotFoundError:
    VERSION = "0.1.0"

router = APIRouter()


def error_body(message: str, error_type: str, code: str) -> dict:
    return {"error": {"message": message, "type": error_type, "code": code}}


def get_service(request: Request) -> LoroService:
    return request.app.state.service


async def sse_frames(payloads: AsyncIterator[str]) -> AsyncIterator[str]:
    async for payload in payloads:
        yield f"data: {payload}\n\n"


@router.get("/")
async def root():
    return {
        "message": "Loro AI Voice Assistant - Fast Response API",
        "mode": "streaming_only",
        "version": VERSION,
    }


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.post("/v1/chat/completions")
async def chat_completions(
    request: ChatRequest,
    service: LoroService = Depends(get_service),
):
    # Upstream-open failures raise here and are rendered by the LoroError handler
    payloads = await service.chat_completion(request)
    return StreamingResponse(
        sse_frames(payloads),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/metrics", response_model=MetricsSnapshot)
async def get_metrics(service: LoroService = Depends(get_service)):
    return service.get_metrics()


@router.post("/metrics/reset")
async def reset_metrics(service: LoroService = Depends(get_service)):
    service.reset_metrics()
    return {"message": "Metrics reset successfully"}


async def loro_error_handler(request: Request, exc: LoroError):
    logger.warning(f"Chat completion error: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.public_message(), exc.error_type, exc.code),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        message = str(errors[0].get("msg", message))
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
    logger.warning(f"Request validation failed: {message}")
    return JSONResponse(
        status_code=400,
        content=error_body(message, "invalid_request_error", "validation_failed"),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "internal_error", "internal_error"),
    )


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[LoroService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Shutdown
        await app.state.service.aclose()

    app = FastAPI(
        title="Loro Gateway",
        description="Latency-hiding chat completions: instant filler from a small model, full answer from a large one.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service or LoroService(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(LoroError, loro_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    logger.info(f"Starting Loro AI Voice Assistant on {settings.HOST}:{settings.PORT}")
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
