"""Client for the OpenAI-compatible completion service that answers /ask."""

from __future__ import annotations

from typing import Protocol

import structlog
from openai import AsyncOpenAI

from ask_credits_bot.config import Settings

logger = structlog.get_logger()

SYSTEM_PROMPT = (
    "You are a helpful assistant in a chat server. "
    "Answer concisely and in the language of the question."
)


class Answerer(Protocol):
    async def answer(self, question: str) -> str: ...


class AnswerClient:
    """Async client answering a single question with a chat completion."""

    def __init__(self, settings: Settings) -> None:
        self._client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url or None,
            timeout=settings.openai_timeout,
        )
        self._model = settings.openai_model

    def _build_messages(self, question: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": question},
        ]

    async def answer(self, question: str) -> str:
        logger.info("answer_request_start", model=self._model, question_length=len(question))
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=self._build_messages(question),
            )
        except Exception:
            logger.error("answer_request_failed", model=self._model)
            raise

        content = (response.choices[0].message.content or "").strip()
        logger.info(
            "answer_request_done",
            model=response.model,
            finish_reason=response.choices[0].finish_reason,
            answer_length=len(content),
        )
        if not content:
            raise ValueError("Completion service returned an empty answer")
        return content

    async def close(self) -> None:
        await self._client.close()


class EchoAnswerClient:
    """Fallback used when no completion API key is configured."""

    async def answer(self, question: str) -> str:
        return f"**Echo:** {question}"

    async def close(self) -> None:
        pass
