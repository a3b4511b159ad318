from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from therapist_server.api import chat_router, health_router, keys_router, tts_router
from therapist_server.core.config import get_settings
from therapist_server.core.errors import ProviderError, error_response
from therapist_server.core.logger import get_logger
from therapist_server.core.trace import get_trace_id, new_trace_id, set_trace_id

config = get_settings()

logger = get_logger("server")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    logger.info("Proxy server started on %s:%s", config.host, config.port)
    yield
    logger.info("Proxy server stopped")


app = FastAPI(title="Therapist voice proxy", lifespan=_lifespan)


@app.middleware("http")
async def _trace_middleware(request: Request, call_next):
    tid = request.headers.get("X-Trace-Id") or new_trace_id()
    set_trace_id(tid)
    response = await call_next(request)
    response.headers["X-Trace-Id"] = tid
    return response


# Credentials are not allowed with wildcard origins
_allow_credentials = config.cors_origins != ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ProviderError)
async def _provider_error(request: Request, exc: ProviderError) -> JSONResponse:
    logger.error("Provider error on %s: %s (%s)", request.url.path, exc.message, exc.status_code)
    status = exc.status_code if 400 <= exc.status_code < 600 else 502
    return JSONResponse(error_response(exc.message, trace_id=get_trace_id()), status_code=status)


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        error_response(str(exc.detail), trace_id=get_trace_id()),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = errors[0].get("msg", "invalid body") if errors else "invalid body"
    return JSONResponse(error_response(f"Invalid request: {detail}", trace_id=get_trace_id()), status_code=400)


app.include_router(health_router)
app.include_router(keys_router)
app.include_router(chat_router)
app.include_router(tts_router)
