"""
Model Router

Routes chat completions to the model of the user's subscription tier:

- free: Gemini Flash
- premium: GPT-4o
- pro_plus: Claude Sonnet

A failed paid-tier call is retried once on the free model. The result keeps
the caller's tier and names the model that actually answered.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ai_learning_assistant.ai_client import AIClient
from ai_learning_assistant.config import get_model_for_tier
from ai_learning_assistant.errors import ProviderCallFailed
from ai_learning_assistant.models import ModelConfig, Tier

logger = logging.getLogger(__name__)


class RouterState(str, Enum):
    IDLE = "idle"
    CALLING = "calling"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RouterOptions:
    """Per-call overrides; None means the tier's default."""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    response_format: Optional[Dict[str, str]] = None


@dataclass
class RouterResult:
    data: Any
    raw: str
    model: str
    tier: Tier
    used_fallback: bool = False


@dataclass(frozen=True)
class UsageEvent:
    """One provider attempt, reported to the log and the optional usage sink."""
    model: str
    tier: Tier
    success: bool
    used_fallback: bool
    duration_ms: float


UsageSink = Callable[[UsageEvent], None]


class ModelRouter:
    """Tier-aware router over an AIClient with a single free-tier fallback."""

    def __init__(self, tier: Tier = Tier.FREE, client: Optional[AIClient] = None, usage_sink: Optional[UsageSink] = None):
        self.tier = Tier.parse(tier)
        self.model_config: ModelConfig = get_model_for_tier(self.tier)
        self.client = client or AIClient()
        self.usage_sink = usage_sink
        self.state = RouterState.IDLE
        self.active_tier: Optional[Tier] = None

    @classmethod
    def for_tier(cls, tier: Tier, client: Optional[AIClient] = None, usage_sink: Optional[UsageSink] = None) -> "ModelRouter":
        return cls(tier, client=client, usage_sink=usage_sink)

    @property
    def model_name(self) -> str:
        return self.model_config.model

    def is_configured(self) -> bool:
        return self.client.is_configured

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        options: Optional[RouterOptions] = None,
    ) -> RouterResult:
        """
        Call the tier's model, falling back to the free model once on failure.

        Args:
            messages: Chat messages ({"role", "content"})
            options: Temperature / max tokens / response format overrides

        Returns:
            RouterResult with the original tier and the model that answered

        Raises:
            ProviderCallFailed: the first attempt's error when every attempt failed
        """
        options = options or RouterOptions()
        if not self.is_configured():
            self.state = RouterState.FAILED
            raise ProviderCallFailed("AI is not configured. Please set AI_API_TOKEN environment variable.")

        attempts = [self.tier] if self.tier == Tier.FREE else [self.tier, Tier.FREE]
        first_error: Optional[ProviderCallFailed] = None

        for attempt_tier in attempts:
            used_fallback = attempt_tier != self.tier
            config = get_model_for_tier(attempt_tier)
            self.state = RouterState.CALLING
            self.active_tier = attempt_tier

            if used_fallback:
                logger.warning(f"⚠️ [ModelRouter] {self.model_config.model} failed, falling back to free tier model {config.model}")
            else:
                logger.info(f"🤖 [ModelRouter] Using {config.name} ({config.model}) for tier: {self.tier.value}")

            started = time.monotonic()
            try:
                result = await self.client.call_chat_completion(
                    messages,
                    model=config.model,
                    temperature=config.temperature if options.temperature is None else options.temperature,
                    max_tokens=config.max_tokens if options.max_tokens is None else options.max_tokens,
                    response_format=options.response_format,
                )
            except ProviderCallFailed as e:
                self._report(config.model, False, used_fallback, started)
                if first_error is None:
                    first_error = e
                continue

            self._report(config.model, True, used_fallback, started)
            self.state = RouterState.DONE
            return RouterResult(
                data=result.data,
                raw=result.raw,
                model=config.model,
                tier=self.tier,
                used_fallback=used_fallback,
            )

        self.state = RouterState.FAILED
        logger.error(f"❌ [ModelRouter] All attempts failed for tier {self.tier.value}: {first_error}")
        raise first_error

    def _report(self, model: str, success: bool, used_fallback: bool, started: float) -> None:
        event = UsageEvent(
            model=model,
            tier=self.tier,
            success=success,
            used_fallback=used_fallback,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        logger.info(
            f"📊 [ModelRouter] Model: {event.model}, Tier: {event.tier.value}, "
            f"Success: {event.success}, Fallback: {event.used_fallback}, {event.duration_ms:.0f}ms"
        )
        if self.usage_sink is not None:
            self.usage_sink(event)


def create_model_router(tier: Tier = Tier.FREE, client: Optional[AIClient] = None) -> ModelRouter:
    return ModelRouter(tier, client=client)
