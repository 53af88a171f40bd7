"""Chat API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from kb_assist.api.dependencies import get_chat_service
from kb_assist.chat.service import ChatService
from kb_assist.core.errors import KnowledgeBaseError
from kb_assist.models.dto import ChatRequest, ChatResponse, ErrorResponse, SourceReference

router = APIRouter()

CHAT_FAILED = "Failed to process your request. Please try again."


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={502: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Answer a chat message from the knowledge base",
)
async def chat(
    request: ChatRequest,
    service: ChatService = Depends(get_chat_service),
):
    history = [message.to_turn() for message in request.history]
    try:
        result = await service.answer(request.message, history)
    except KnowledgeBaseError as exc:
        return JSONResponse(status_code=exc.status_code, content={"error": CHAT_FAILED})
    return ChatResponse(
        response=result.answer,
        sources=[SourceReference.from_candidate(candidate) for candidate in result.references],
    )
