from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from blogsmith.services.llm_client import ChatModel
from blogsmith.services.prompts import (
    META_SYSTEM_PROMPT,
    REWRITE_SYSTEM_PROMPT,
    TITLE_SYSTEM_PROMPT,
    ReferenceMaterial,
    build_meta_prompt,
    build_rewrite_prompt,
    build_title_prompt,
)

LOGGER = logging.getLogger("blogsmith.rewrite")

TITLE_TEMPERATURE = 0.8
META_TEMPERATURE = 0.7
SHORT_COMPLETION_MAX_TOKENS = 100


class EmptyGenerationError(RuntimeError):
    pass


@dataclass(frozen=True)
class RewriteResult:
    content: str
    usage: dict[str, int] | None = None


class RewriteEngine:
    def __init__(
        self,
        *,
        model: ChatModel,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    def rewrite(
        self,
        original_content: str,
        references: Sequence[ReferenceMaterial],
        title: str,
    ) -> RewriteResult:
        prompt = build_rewrite_prompt(
            title=title,
            original_content=original_content,
            references=references,
        )
        LOGGER.info("rewriting article title=%s references=%s", title, len(references))
        completion = self._model.complete(
            system=REWRITE_SYSTEM_PROMPT,
            user=prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        content = completion.content.strip()
        if not content:
            raise EmptyGenerationError("model returned no content")
        return RewriteResult(content=content, usage=completion.usage)

    def generate_title(self, original_title: str, content: str) -> str:
        """Falls back to `original_title` when the model call fails or returns nothing."""
        try:
            completion = self._model.complete(
                system=TITLE_SYSTEM_PROMPT,
                user=build_title_prompt(title=original_title, content=content),
                temperature=TITLE_TEMPERATURE,
                max_tokens=SHORT_COMPLETION_MAX_TOKENS,
            )
        except Exception as exc:
            LOGGER.warning("title generation failed error=%s", exc)
            return original_title
        title = completion.content.strip().strip('"').strip()
        return title or original_title

    def generate_meta_description(self, content: str) -> str:
        try:
            completion = self._model.complete(
                system=META_SYSTEM_PROMPT,
                user=build_meta_prompt(content=content),
                temperature=META_TEMPERATURE,
                max_tokens=SHORT_COMPLETION_MAX_TOKENS,
            )
        except Exception as exc:
            LOGGER.warning("meta description generation failed error=%s", exc)
            return ""
        return completion.content.strip()
