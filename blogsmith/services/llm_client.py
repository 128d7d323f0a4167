from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import openai

LOGGER = logging.getLogger("blogsmith.llm")


class ModelInvocationError(RuntimeError):
    pass


@dataclass(frozen=True)
class ChatCompletion:
    content: str
    usage: dict[str, int] | None = None


class ChatModel(Protocol):
    def complete(
        self,
        *,
        system: str,
        user: str,
        temperature: float,
        max_tokens: int,
    ) -> ChatCompletion:
        ...


class OpenAIChatModel:
    """Chat-completions client for OpenAI or any OpenAI-compatible endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 120.0,
        client: Any | None = None,
    ) -> None:
        self._model = model
        self._client = client or openai.OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
        )

    @property
    def model(self) -> str:
        return self._model

    def complete(
        self,
        *,
        system: str,
        user: str,
        temperature: float,
        max_tokens: int,
    ) -> ChatCompletion:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as exc:
            LOGGER.warning("chat completion failed model=%s error=%s", self._model, type(exc).__name__)
            raise ModelInvocationError(f"model_call_failed:{type(exc).__name__}: {exc}") from exc

        content = ""
        choices = getattr(response, "choices", None) or []
        if choices:
            message = getattr(choices[0], "message", None)
            raw_content = getattr(message, "content", None)
            if isinstance(raw_content, str):
                content = raw_content
        return ChatCompletion(content=content, usage=_usage_dict(getattr(response, "usage", None)))


def _usage_dict(usage: object) -> dict[str, int] | None:
    if usage is None:
        return None
    values: dict[str, int] = {}
    for key in ("prompt_tokens", "completion_tokens", "total_tokens"):
        value = getattr(usage, key, None)
        if isinstance(value, int):
            values[key] = value
    return values or None
