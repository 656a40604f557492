"""
Shared fixtures: a scripted provider client and a manual clock.
"""

import asyncio
import os
import sys
from typing import Dict, List, Optional, Union

import pytest

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.join(project_root, "ai_learning_assistant", "src"))

from ai_learning_assistant.ai_client import ChatCompletionResult
from ai_learning_assistant.config import AssistantSettings
from ai_learning_assistant.errors import ProviderCallFailed


class FakeAIClient:
    """
    Stands in for AIClient.

    outcomes maps a model name to the raw text it answers with, or to an
    exception it raises; models not listed answer with default_reply.
    delays maps a text fragment of the user prompt to its own answer delay.
    """

    def __init__(self, default_reply: str = "Переменная - это имя для значения.", delay: float = 0.0):
        self.default_reply = default_reply
        self.delay = delay
        self.delays: Dict[str, float] = {}
        self.outcomes: Dict[str, Union[str, Exception]] = {}
        self.calls: List[Dict] = []
        self.is_configured = True

    async def call_chat_completion(
        self,
        messages,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format=None,
    ) -> ChatCompletionResult:
        self.calls.append({
            "messages": messages,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        prompt = messages[-1]["content"] if messages else ""
        delay = next((d for fragment, d in self.delays.items() if fragment in prompt), self.delay)
        if delay:
            await asyncio.sleep(delay)
        outcome = self.outcomes.get(model, self.default_reply)
        if isinstance(outcome, Exception):
            raise outcome
        return ChatCompletionResult(data={"choices": []}, raw=outcome, model=model)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_client():
    return FakeAIClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return AssistantSettings(api_key="test-key", base_url="http://provider.test/v1", locale="ru")


@pytest.fixture
def provider_error():
    return ProviderCallFailed("upstream returned 502", status=502)
