"""Grounded answer generation."""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from kb_assist.core.config import Settings
from kb_assist.core.errors import GenerationError
from kb_assist.core.logging import get_logger
from kb_assist.models.entities import ConversationTurn, RankedCandidate

logger = get_logger(__name__)

NO_CONTEXT = "No specific context available."

SYSTEM_PROMPT_TEMPLATE = """You are a helpful support assistant that answers questions based on the provided context.
Use the following context to answer questions accurately:

{context}

Instructions:
1. Only use information from the provided context to answer questions
2. If the context doesn't contain relevant information, clearly state that
3. Keep responses clear and well-structured
4. When citing information, reference the specific document using [Document X]
5. Consider the relevance score when choosing which information to prioritize
6. If multiple documents contain relevant information, synthesize them into a coherent response"""


def format_context(candidates: Sequence[RankedCandidate]) -> str:
    """Render candidates as numbered ``[Document N]`` blocks."""
    blocks = []
    for index, candidate in enumerate(candidates, start=1):
        lines = [f"[Document {index}]: {candidate.document.content}"]
        source_url = candidate.document.source_url
        if source_url:
            lines.append(f"Source: {source_url}")
        lines.append(f"Relevance: {candidate.similarity * 100:.2f}%")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) or NO_CONTEXT


def build_system_prompt(candidates: Sequence[RankedCandidate]) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(context=format_context(candidates))


class AnswerSynthesizer:
    """Ask an OpenAI-compatible chat completion endpoint for a grounded answer."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url: str,
        model: str,
        api_key: str = "",
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout: float = 60.0,
    ) -> None:
        self.client = client
        self.url = url
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient) -> "AnswerSynthesizer":
        return cls(
            client,
            url=settings.generation_url,
            model=settings.generation_model,
            api_key=settings.api_key.get_secret_value(),
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.generate_timeout,
        )

    def build_messages(
        self,
        query: str,
        candidates: Sequence[RankedCandidate],
        conversation: Sequence[ConversationTurn] | None = None,
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": build_system_prompt(candidates)}]
        messages.extend(turn.as_message() for turn in conversation or ())
        messages.append({"role": "user", "content": query})
        return messages

    async def synthesize(
        self,
        query: str,
        candidates: Sequence[RankedCandidate],
        conversation: Sequence[ConversationTurn] | None = None,
    ) -> str:
        """Return the model's answer verbatim."""
        payload = {
            "model": self.model,
            "messages": self.build_messages(query, candidates, conversation),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = await self.client.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise GenerationError(f"Generation request timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"Generation request failed: {exc}") from exc

        if not response.is_success:
            raise GenerationError(f"Generation endpoint returned HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise GenerationError("Generation response is not valid JSON") from exc
        return _extract_content(body)


def _extract_content(body: Any) -> str:
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise GenerationError("Generation response is missing choices[0].message.content") from exc
    if not isinstance(content, str):
        raise GenerationError("Generation response content is not text")
    return content


__all__ = ["AnswerSynthesizer", "NO_CONTEXT", "build_system_prompt", "format_context"]
