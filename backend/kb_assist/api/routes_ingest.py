"""Ingest API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from kb_assist.api.dependencies import get_ingest_pipeline
from kb_assist.core.errors import InvalidURLError, KnowledgeBaseError
from kb_assist.ingest.pipeline import IngestPipeline
from kb_assist.models.dto import ErrorResponse, IngestRequest, IngestResponse

router = APIRouter()

INGEST_FAILED = "Failed to process website content"
INVALID_URL = "A valid http(s) URL is required"


@router.post(
    "",
    response_model=IngestResponse,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Ingest a single web page",
)
async def ingest_url(
    request: IngestRequest,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
):
    try:
        documents = await pipeline.run(request.url)
    except InvalidURLError as exc:
        return JSONResponse(status_code=exc.status_code, content={"error": INVALID_URL})
    except KnowledgeBaseError as exc:
        return JSONResponse(status_code=exc.status_code, content={"error": INGEST_FAILED})
    return IngestResponse(document_ids=[document.id for document in documents])
