"""
Assistant Configuration

Environment-driven settings (loaded from .env via python-dotenv) and the
static per-tier model table.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv

from ai_learning_assistant.models import ModelConfig, Tier

load_dotenv()

DEFAULT_API_BASE_URL = "https://api.gptlama.ru/v1"
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_RESPONSE_CACHE_TTL = 5 * 60
DEFAULT_CONTEXT_CACHE_TTL = 5 * 60
MAX_MESSAGE_LENGTH = 2000
TOTAL_COURSE_DAYS = 90


def _build_models() -> Dict[Tier, ModelConfig]:
    return {
        Tier.FREE: ModelConfig(
            name="Gemini 2.5 Flash",
            model=os.getenv("AI_MODEL_FREE", "gemini-1.5-flash"),
            description="Fast and efficient model for basic tasks",
            max_tokens=1500,
            temperature=0.8,
        ),
        Tier.PREMIUM: ModelConfig(
            name="GPT-4o",
            model=os.getenv("AI_MODEL_PREMIUM", "gpt-4o"),
            description="Advanced model with superior reasoning",
            max_tokens=2000,
            temperature=0.8,
        ),
        Tier.PRO_PLUS: ModelConfig(
            name="Claude 3.5 Sonnet",
            model=os.getenv("AI_MODEL_PRO", "claude-3-5-sonnet"),
            description="Premium model with best performance",
            max_tokens=2500,
            temperature=0.8,
        ),
    }


AI_MODELS: Dict[Tier, ModelConfig] = _build_models()


def get_model_for_tier(tier: Tier) -> ModelConfig:
    """Model configuration for a tier; unknown tiers get the free model."""
    return AI_MODELS.get(Tier.parse(tier), AI_MODELS[Tier.FREE])


def has_premium_access(tier: Tier) -> bool:
    return Tier.parse(tier) in (Tier.PREMIUM, Tier.PRO_PLUS)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass
class AssistantSettings:
    """Runtime settings for the assistant service and its provider client."""
    api_key: str = ""
    base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    response_cache_ttl: float = DEFAULT_RESPONSE_CACHE_TTL
    context_cache_ttl: float = DEFAULT_CONTEXT_CACHE_TTL
    locale: str = "ru"

    @classmethod
    def from_env(cls) -> "AssistantSettings":
        api_key = os.getenv("AI_API_TOKEN") or os.getenv("HF_TOKEN") or os.getenv("HF_API_KEY") or ""
        base_url = (
            os.getenv("AI_API_BASE_URL")
            or os.getenv("HF_API_BASE_URL")
            or DEFAULT_API_BASE_URL
        ).rstrip("/")
        locale = os.getenv("ASSISTANT_LOCALE", "ru").lower()
        return cls(
            api_key=api_key.strip(),
            base_url=base_url,
            request_timeout=_float_env("AI_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            response_cache_ttl=_float_env("ASSISTANT_RESPONSE_CACHE_TTL", DEFAULT_RESPONSE_CACHE_TTL),
            context_cache_ttl=_float_env("ASSISTANT_CONTEXT_CACHE_TTL", DEFAULT_CONTEXT_CACHE_TTL),
            locale=locale if locale in ("ru", "en") else "ru",
        )

    @property
    def is_ai_configured(self) -> bool:
        return bool(self.api_key)


_settings: Optional[AssistantSettings] = None


def get_settings() -> AssistantSettings:
    """Get or create the process-wide settings singleton."""
    global _settings
    if _settings is None:
        _settings = AssistantSettings.from_env()
    return _settings
