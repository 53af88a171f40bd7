"""Chat orchestration: retrieve, then synthesize."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from kb_assist.chat.synthesizer import AnswerSynthesizer
from kb_assist.core.errors import KnowledgeBaseError
from kb_assist.core.logging import get_logger
from kb_assist.core.metrics import PIPELINE_FAILURES
from kb_assist.models.entities import ConversationTurn, RankedCandidate
from kb_assist.retrieval.retriever import Retriever

logger = get_logger(__name__)


@dataclass(slots=True)
class ChatAnswer:
    answer: str
    references: list[RankedCandidate]


class ChatService:
    """Glue together retrieval and generation for one chat turn."""

    def __init__(
        self,
        retriever: Retriever,
        synthesizer: AnswerSynthesizer,
        top_k: int = 5,
        max_history_turns: int = 10,
    ) -> None:
        self.retriever = retriever
        self.synthesizer = synthesizer
        self.top_k = top_k
        self.max_history_turns = max_history_turns

    async def answer(
        self,
        message: str,
        history: Sequence[ConversationTurn] | None = None,
    ) -> ChatAnswer:
        try:
            references = await self.retriever.retrieve(message, k=self.top_k)
            answer = await self.synthesizer.synthesize(message, references, self._trim(history))
        except KnowledgeBaseError as exc:
            PIPELINE_FAILURES.labels(stage="chat", kind=exc.kind).inc()
            logger.warning(
                "Chat turn failed (%s): %s", exc.kind, exc, exc_info=exc, extra={"ctx_error_kind": exc.kind}
            )
            raise
        logger.info(
            "Answered chat turn with %s references",
            len(references),
            extra={"ctx_document_ids": [ref.document.id for ref in references]},
        )
        return ChatAnswer(answer=answer, references=references)

    def _trim(self, history: Sequence[ConversationTurn] | None) -> list[ConversationTurn]:
        if not history or self.max_history_turns == 0:
            return []
        return list(history)[-self.max_history_turns :]


__all__ = ["ChatAnswer", "ChatService"]
