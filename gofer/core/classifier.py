"""
AI judgment of desktop task completion.

A classifier is shown the baseline and latest screenshots and asked whether
the task is done. Providers are tried in order (primary, then fallback), each
under its own deadline; if none answers, the verdict is "not complete".
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import ollama
from ollama import AsyncClient

from gofer.config import ClassifierConfig
from gofer.exceptions import ClassifierError

logger = logging.getLogger(__name__)

COMPLETION_KEYWORDS = ("yes", "true", "completed", "finished", "done", "success", "ok")

PROMPT_TEMPLATE = (
    "Has the task been completed based on the desktop changes? The task is: {task}. "
    "The start image is first, then the latest image. "
    'Reply with ONLY "yes" or "no" without any other text.'
)


def is_completion_verdict(text: str | None) -> bool:
    """Whether a free-text verdict reads as "complete".

    Case-insensitive substring match against COMPLETION_KEYWORDS, so "ok"
    inside a longer word also counts.
    """
    if not isinstance(text, str):
        return False
    lowered = text.lower()
    return any(keyword in lowered for keyword in COMPLETION_KEYWORDS)


@dataclass
class Verdict:
    completed: bool
    analysis: str
    provider: str | None = None


class DesktopClassifier(ABC):
    """Abstract base class for vision classifiers."""

    name: str = ""

    @abstractmethod
    async def classify(self, task: str, start_image: str, latest_image: str) -> str:
        """Ask whether ``task`` is complete.

        Args:
            task: Task description from the operator.
            start_image: Base64 PNG of the baseline screenshot.
            latest_image: Base64 PNG of the latest screenshot.

        Returns:
            The model's short verdict text.

        Raises:
            ClassifierError: If the provider call fails.
        """
        pass


class OllamaDesktopClassifier(DesktopClassifier):
    """Vision model served by Ollama."""

    name = "ollama"

    def __init__(self, model: str, host: str) -> None:
        self.model = model
        self.client = AsyncClient(host=host)

    async def classify(self, task: str, start_image: str, latest_image: str) -> str:
        messages = [
            {
                "role": "user",
                "content": PROMPT_TEMPLATE.format(task=task),
                "images": [start_image, latest_image],
            }
        ]
        try:
            response = await self.client.chat(model=self.model, messages=messages)
        except ollama.ResponseError as e:
            if "not found" in str(e).lower():
                raise ClassifierError(f"Model not found: {self.model}") from e
            raise ClassifierError(f"Ollama classification failed: {e}") from e
        except Exception as e:
            raise ClassifierError(f"Ollama classification failed: {e}") from e

        if hasattr(response, "message"):
            return response.message.content or ""
        return response["message"]["content"] or ""


class OpenAIDesktopClassifier(DesktopClassifier):
    """Vision model behind the OpenAI Chat Completions API."""

    name = "openai"

    def __init__(self, model: str, api_key: str | None = None, base_url: str | None = None) -> None:
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self._client: Any = None  # lazy init

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def classify(self, task: str, start_image: str, latest_image: str) -> str:
        content = [
            {"type": "text", "text": PROMPT_TEMPLATE.format(task=task)},
            {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{start_image}"}},
            {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{latest_image}"}},
        ]
        try:
            client = self._get_client()
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
            )
        except Exception as e:
            raise ClassifierError(f"OpenAI classification failed: {e}") from e

        if not response.choices:
            raise ClassifierError("OpenAI returned no choices")
        return response.choices[0].message.content or ""


class CompletionJudge:
    """Runs the classifier chain and turns the answer into a Verdict."""

    def __init__(
        self,
        primary: DesktopClassifier,
        fallback: DesktopClassifier | None = None,
        *,
        timeout: float = 60.0,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.timeout = timeout

    @property
    def chain(self) -> list[DesktopClassifier]:
        return [c for c in (self.primary, self.fallback) if c is not None]

    async def judge(self, task: str, start_image: str, latest_image: str) -> Verdict:
        for classifier in self.chain:
            try:
                text = await asyncio.wait_for(
                    classifier.classify(task, start_image, latest_image), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Classifier %s gave no answer within %.0f seconds", classifier.name, self.timeout
                )
                continue
            except Exception as exc:
                logger.warning("Classifier %s failed: %s", classifier.name, exc)
                continue

            logger.info("AI analysis result (%s): %r", classifier.name, text)
            return Verdict(is_completion_verdict(text), text, classifier.name)

        logger.error("All classifiers failed; treating the task as not yet complete")
        return Verdict(False, "AI analysis failed")


def build_classifier(provider: str, model: str, config: ClassifierConfig) -> DesktopClassifier:
    """Instantiate the classifier for ``provider``.

    Raises:
        ClassifierError: If the provider is unknown.
    """
    if provider == "ollama":
        return OllamaDesktopClassifier(model, config.ollama_host)
    if provider == "openai":
        return OpenAIDesktopClassifier(model, config.openai_api_key, config.openai_base_url)
    raise ClassifierError(f"Unknown classifier provider: {provider}")


def build_judge(config: ClassifierConfig) -> CompletionJudge:
    primary = build_classifier(config.provider, config.model, config)
    fallback = None
    if config.fallback_provider:
        fallback = build_classifier(config.fallback_provider, config.fallback_model, config)
    return CompletionJudge(primary, fallback, timeout=config.timeout)
