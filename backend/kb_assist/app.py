"""FastAPI application setup for kb-assist."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kb_assist.api.dependencies import (
    close_resources,
    get_app_settings,
    get_chat_service,
    get_document_store,
    get_ingest_pipeline,
)
from kb_assist.api.routes_admin import router as admin_router
from kb_assist.api.routes_chat import router as chat_router
from kb_assist.api.routes_ingest import router as ingest_router
from kb_assist.core.errors import KnowledgeBaseError
from kb_assist.core.logging import bind_request_id, configure_logging, get_logger, reset_request_id
from kb_assist.core.metrics import DOCUMENT_COUNT, REQUEST_COUNT, REQUEST_LATENCY
from kb_assist.utils.ids import new_id

configure_logging()
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Warm up core singletons; a mixed-dimension store aborts startup."""
    get_app_settings()
    store = get_document_store()
    DOCUMENT_COUNT.set(await store.count())
    get_ingest_pipeline()
    get_chat_service()
    yield
    await close_resources()


app = FastAPI(
    title="kb-assist",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_app_settings().cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or new_id()
    token = bind_request_id(request_id)
    start_time = time.perf_counter()
    try:
        response = await call_next(request)
    finally:
        reset_request_id(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    route = request.scope.get("route")
    endpoint = getattr(route, "path", "unmatched")
    REQUEST_LATENCY.labels(endpoint=endpoint, method=request.method).observe(time.perf_counter() - start_time)
    REQUEST_COUNT.labels(endpoint=endpoint, method=request.method, status=str(response.status_code)).inc()
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected invalid request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


@app.exception_handler(KnowledgeBaseError)
async def knowledge_base_error_handler(request: Request, exc: KnowledgeBaseError) -> JSONResponse:
    logger.error("Unhandled %s error on %s", exc.kind, request.url.path, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"error": "Request failed, please try again"})


app.include_router(ingest_router, prefix="/ingest", tags=["ingest"])
app.include_router(chat_router, prefix="", tags=["chat"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
