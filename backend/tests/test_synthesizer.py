"""Answer synthesis tests."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from kb_assist.chat.synthesizer import NO_CONTEXT, AnswerSynthesizer, build_system_prompt, format_context
from kb_assist.core.errors import GenerationError
from kb_assist.models.entities import ConversationTurn, RankedCandidate, SourceDocument

CHAT_URL = "https://llm.test/v1/chat/completions"


def _candidate(content: str, similarity: float, source_url: str | None = None) -> RankedCandidate:
    metadata = {"source_url": source_url} if source_url else {}
    document = SourceDocument(
        id=f"doc_{abs(hash(content))}",
        content=content,
        embedding=None,
        metadata=metadata,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    return RankedCandidate(document=document, similarity=similarity)


def _synthesizer(http: httpx.AsyncClient) -> AnswerSynthesizer:
    return AnswerSynthesizer(http, url=CHAT_URL, model="test-chat", api_key="sk-test", timeout=1.0)


def _completion(content) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_format_context_numbers_documents() -> None:
    context = format_context(
        [
            _candidate("Refunds are accepted within 30 days.", 0.875, "https://example.com/refunds"),
            _candidate("Shipping is free over $50.", 0.5),
        ]
    )
    assert context == (
        "[Document 1]: Refunds are accepted within 30 days.\n"
        "Source: https://example.com/refunds\n"
        "Relevance: 87.50%\n\n"
        "[Document 2]: Shipping is free over $50.\n"
        "Relevance: 50.00%"
    )


def test_empty_context_abstains() -> None:
    assert format_context([]) == NO_CONTEXT
    prompt = build_system_prompt([])
    assert NO_CONTEXT in prompt
    assert "clearly state that" in prompt
    assert "[Document X]" in prompt


def test_build_messages_order() -> None:
    synthesizer = AnswerSynthesizer(httpx.AsyncClient(), url=CHAT_URL, model="test-chat")
    history = [
        ConversationTurn(role="user", content="Hi"),
        ConversationTurn(role="assistant", content="Hello! How can I help?"),
    ]
    messages = synthesizer.build_messages("What is the refund window?", [_candidate("30 days", 1.0)], history)

    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert "[Document 1]: 30 days" in messages[0]["content"]
    assert messages[-1] == {"role": "user", "content": "What is the refund window?"}


@pytest.mark.asyncio
async def test_synthesize_returns_answer_verbatim(mock_http) -> None:
    seen: list[dict] = []
    answer = "  Refunds are accepted within 30 days [Document 1].\n"

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        assert request.headers["Authorization"] == "Bearer sk-test"
        return httpx.Response(200, json=_completion(answer))

    async with mock_http(handler) as http:
        result = await _synthesizer(http).synthesize("refund window?", [_candidate("30 days", 0.9)])

    assert result == answer
    assert seen[0]["model"] == "test-chat"
    assert seen[0]["temperature"] == 0.7
    assert seen[0]["max_tokens"] == 500
    assert seen[0]["messages"][-1] == {"role": "user", "content": "refund window?"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [{}, {"choices": []}, {"choices": [{"message": {}}]}, _completion(None), _completion(42)],
)
async def test_synthesize_rejects_malformed_completion(mock_http, body) -> None:
    async with mock_http(lambda request: httpx.Response(200, json=body)) as http:
        with pytest.raises(GenerationError):
            await _synthesizer(http).synthesize("question", [])


@pytest.mark.asyncio
async def test_synthesize_rejects_error_status(mock_http) -> None:
    async with mock_http(lambda request: httpx.Response(500, text="upstream exploded")) as http:
        with pytest.raises(GenerationError, match="500"):
            await _synthesizer(http).synthesize("question", [])


@pytest.mark.asyncio
async def test_synthesize_timeout(mock_http) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow model", request=request)

    async with mock_http(handler) as http:
        with pytest.raises(GenerationError, match="timed out"):
            await _synthesizer(http).synthesize("question", [])
