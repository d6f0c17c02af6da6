from __future__ import annotations

import pytest

from gofer.config import ClassifierConfig
from gofer.core.classifier import (
    CompletionJudge,
    OllamaDesktopClassifier,
    OpenAIDesktopClassifier,
    build_judge,
    is_completion_verdict,
)
from gofer.exceptions import ClassifierError
from tests.helpers.fakes import ScriptedClassifier


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("yes", True),
        ("Yes.", True),
        ("The task is DONE", True),
        ("no", False),
        ("", False),
        (None, False),
        # substring matching: "ok" inside a longer word still counts
        ("Looks broken", True),
    ],
)
def test_completion_keywords(text: str | None, expected: bool) -> None:
    assert is_completion_verdict(text) is expected


@pytest.mark.anyio
async def test_primary_answer_is_used() -> None:
    primary = ScriptedClassifier("primary", ["yes"])
    fallback = ScriptedClassifier("fallback", ["no"])
    verdict = await CompletionJudge(primary, fallback).judge("install", "a", "b")

    assert verdict.completed is True
    assert verdict.analysis == "yes"
    assert verdict.provider == "primary"
    assert primary.calls == [("install", "a", "b")]
    assert fallback.calls == []


@pytest.mark.anyio
async def test_fallback_used_when_primary_fails() -> None:
    primary = ScriptedClassifier("primary", [ClassifierError("down")])
    fallback = ScriptedClassifier("fallback", ["no"])
    verdict = await CompletionJudge(primary, fallback).judge("install", "a", "b")

    assert verdict.completed is False
    assert verdict.provider == "fallback"
    assert len(fallback.calls) == 1


@pytest.mark.anyio
async def test_all_classifiers_failing_is_inconclusive() -> None:
    primary = ScriptedClassifier("primary", [ClassifierError("down")])
    fallback = ScriptedClassifier("fallback", [RuntimeError("also down")])
    verdict = await CompletionJudge(primary, fallback).judge("install", "a", "b")

    assert verdict.completed is False
    assert verdict.analysis == "AI analysis failed"
    assert verdict.provider is None


@pytest.mark.anyio
async def test_slow_classifier_hits_deadline() -> None:
    primary = ScriptedClassifier("primary", ["hang"])
    fallback = ScriptedClassifier("fallback", ["done"])
    verdict = await CompletionJudge(primary, fallback, timeout=0.05).judge("install", "a", "b")

    assert verdict.completed is True
    assert verdict.provider == "fallback"


class FakeOllamaClient:
    def __init__(self, host: str) -> None:
        self.host = host
        self.requests: list[dict] = []

    async def chat(self, model: str, messages: list[dict], **kwargs):
        self.requests.append({"model": model, "messages": messages})
        return {"message": {"content": "yes"}}


@pytest.mark.anyio
async def test_ollama_classifier_sends_both_images(monkeypatch) -> None:
    monkeypatch.setattr("gofer.core.classifier.AsyncClient", FakeOllamaClient)
    classifier = OllamaDesktopClassifier("llava", "http://localhost:11434")

    answer = await classifier.classify("install vim", "AAA", "BBB")

    assert answer == "yes"
    request = classifier.client.requests[0]
    assert request["model"] == "llava"
    message = request["messages"][0]
    assert message["images"] == ["AAA", "BBB"]
    assert "install vim" in message["content"]


@pytest.mark.anyio
async def test_ollama_errors_become_classifier_errors(monkeypatch) -> None:
    class Broken(FakeOllamaClient):
        async def chat(self, model: str, messages: list[dict], **kwargs):
            raise ConnectionError("refused")

    monkeypatch.setattr("gofer.core.classifier.AsyncClient", Broken)
    classifier = OllamaDesktopClassifier("llava", "http://localhost:11434")

    with pytest.raises(ClassifierError, match="refused"):
        await classifier.classify("task", "a", "b")


class _Message:
    content = "no"


class _Choice:
    message = _Message()


class _Response:
    choices = [_Choice()]


class FakeCompletions:
    def __init__(self) -> None:
        self.kwargs: dict = {}

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return _Response()


class FakeOpenAI:
    def __init__(self) -> None:
        self.chat = type("Chat", (), {})()
        self.chat.completions = FakeCompletions()


@pytest.mark.anyio
async def test_openai_classifier_uses_data_urls() -> None:
    classifier = OpenAIDesktopClassifier("gpt-4o-mini")
    fake = FakeOpenAI()
    classifier._client = fake

    answer = await classifier.classify("task", "AAA", "BBB")

    assert answer == "no"
    content = fake.chat.completions.kwargs["messages"][0]["content"]
    urls = [part["image_url"]["url"] for part in content if part["type"] == "image_url"]
    assert urls == ["data:image/png;base64,AAA", "data:image/png;base64,BBB"]


def test_build_judge_from_config() -> None:
    judge = build_judge(ClassifierConfig(provider="ollama", fallback_provider="openai", timeout=12))
    assert judge.primary.name == "ollama"
    assert judge.fallback is not None and judge.fallback.name == "openai"
    assert judge.timeout == 12


def test_build_judge_without_fallback() -> None:
    judge = build_judge(ClassifierConfig(fallback_provider="none"))
    assert judge.fallback is None
    assert [c.name for c in judge.chain] == ["ollama"]
