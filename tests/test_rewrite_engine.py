from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import openai
import pytest

from blogsmith.services.llm_client import ChatCompletion, ModelInvocationError, OpenAIChatModel
from blogsmith.services.prompts import (
    ORIGINAL_CONTENT_LIMIT,
    REFERENCE_CONTENT_LIMIT,
    REWRITE_SYSTEM_PROMPT,
    ReferenceMaterial,
    build_meta_prompt,
    build_rewrite_prompt,
    build_title_prompt,
)
from blogsmith.services.rewrite_engine import EmptyGenerationError, RewriteEngine


class _ScriptedModel:
    def __init__(self, replies: list[str | Exception]) -> None:
        self._replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    def complete(self, *, system: str, user: str, temperature: float, max_tokens: int) -> ChatCompletion:
        self.calls.append(
            {"system": system, "user": user, "temperature": temperature, "max_tokens": max_tokens}
        )
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return ChatCompletion(content=reply, usage={"total_tokens": 42})


def test_rewrite_returns_trimmed_model_output() -> None:
    model = _ScriptedModel(["\n## A Fresh Take\n\nBody text.\n"])
    engine = RewriteEngine(model=model, temperature=0.7, max_tokens=4000)

    result = engine.rewrite("Original body", [], "Original title")

    assert result.content == "## A Fresh Take\n\nBody text."
    assert result.usage == {"total_tokens": 42}
    call = model.calls[0]
    assert call["system"] == REWRITE_SYSTEM_PROMPT
    assert call["temperature"] == 0.7
    assert call["max_tokens"] == 4000
    assert "ORIGINAL ARTICLE TITLE: Original title" in call["user"]


def test_rewrite_rejects_blank_output() -> None:
    engine = RewriteEngine(model=_ScriptedModel(["   \n  "]))

    with pytest.raises(EmptyGenerationError):
        engine.rewrite("Original body", [], "Title")


def test_rewrite_propagates_model_errors() -> None:
    engine = RewriteEngine(model=_ScriptedModel([ModelInvocationError("model_call_failed")]))

    with pytest.raises(ModelInvocationError):
        engine.rewrite("Original body", [], "Title")


def test_generate_title_falls_back_to_original() -> None:
    failing = RewriteEngine(model=_ScriptedModel([ModelInvocationError("down")]))
    blank = RewriteEngine(model=_ScriptedModel(['  ""  ']))
    working = RewriteEngine(model=_ScriptedModel(['"Support That Scales"']))

    assert failing.generate_title("Old Title", "content") == "Old Title"
    assert blank.generate_title("Old Title", "content") == "Old Title"
    assert working.generate_title("Old Title", "content") == "Support That Scales"


def test_generate_meta_description_is_empty_on_failure() -> None:
    model = _ScriptedModel([RuntimeError("boom"), " A concise summary. "])
    engine = RewriteEngine(model=model)

    assert engine.generate_meta_description("content") == ""
    assert engine.generate_meta_description("content") == "A concise summary."
    assert model.calls[1]["max_tokens"] == 100


def test_rewrite_prompt_truncates_and_skips_thin_references() -> None:
    long_reference = ReferenceMaterial(title="Deep Dive", url="https://a.example/x", content="r" * 5000)
    thin_reference = ReferenceMaterial(title="Stub", url="https://b.example/y", content="s" * 100)

    prompt = build_rewrite_prompt(
        title="Title",
        original_content="o" * 8000,
        references=[thin_reference, long_reference],
    )

    assert "o" * ORIGINAL_CONTENT_LIMIT in prompt
    assert "o" * (ORIGINAL_CONTENT_LIMIT + 1) not in prompt
    assert "--- Reference 1: Deep Dive ---" in prompt
    assert "Stub" not in prompt
    assert "r" * REFERENCE_CONTENT_LIMIT in prompt
    assert "r" * (REFERENCE_CONTENT_LIMIT + 1) not in prompt
    assert "REFERENCE MATERIALS" in prompt


def test_rewrite_prompt_without_references_has_no_reference_block() -> None:
    prompt = build_rewrite_prompt(title="Title", original_content="Body", references=[])

    assert "REFERENCE MATERIALS" not in prompt
    assert prompt.rstrip().endswith("Return ONLY the rewritten article:")


def test_title_and_meta_prompts_truncate_context() -> None:
    assert "c" * 501 not in build_title_prompt(title="T", content="c" * 900)
    assert "c" * 500 in build_title_prompt(title="T", content="c" * 900)
    assert "m" * 1001 not in build_meta_prompt(content="m" * 2000)


class _FakeCompletions:
    def __init__(self, outcome: Any) -> None:
        self._outcome = outcome
        self.kwargs: dict[str, Any] = {}

    def create(self, **kwargs: Any) -> Any:
        self.kwargs = kwargs
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


def _fake_openai_client(outcome: Any) -> tuple[Any, _FakeCompletions]:
    completions = _FakeCompletions(outcome)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_openai_chat_model_maps_response() -> None:
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="Rewritten"))],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    )
    client, completions = _fake_openai_client(response)
    model = OpenAIChatModel(api_key="sk-test", model="gpt-4", client=client)

    completion = model.complete(system="sys", user="usr", temperature=0.5, max_tokens=99)

    assert completion.content == "Rewritten"
    assert completion.usage == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
    assert completions.kwargs["model"] == "gpt-4"
    assert completions.kwargs["messages"][0] == {"role": "system", "content": "sys"}
    assert completions.kwargs["max_tokens"] == 99


def test_openai_chat_model_wraps_sdk_errors() -> None:
    client, _ = _fake_openai_client(openai.OpenAIError("invalid key"))
    model = OpenAIChatModel(api_key="sk-test", model="gpt-4", client=client)

    with pytest.raises(ModelInvocationError):
        model.complete(system="sys", user="usr", temperature=0.5, max_tokens=10)
