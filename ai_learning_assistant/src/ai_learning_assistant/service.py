"""
AI Assistant Service

Orchestrates one chat turn:
filter -> cache lookup -> context -> prompt -> model router -> parse ->
session append + cache store.

Everything a turn changes (session history, response cache) is written in one
synchronous step after the last await, so a cancelled or timed-out turn
leaves no partial state behind.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from ai_learning_assistant.ai_client import AIClient
from ai_learning_assistant.collaborators import InMemoryAchievementsStore, InMemoryProgressStore
from ai_learning_assistant.config import AssistantSettings, get_settings
from ai_learning_assistant.content_filter import ContentFilter
from ai_learning_assistant.context_aggregator import ContextAggregator
from ai_learning_assistant.curriculum import language_label
from ai_learning_assistant.errors import (
    AssistantError,
    AssistantErrorCode,
    SessionNotFound,
    create_error,
)
from ai_learning_assistant.model_router import ModelRouter, UsageSink
from ai_learning_assistant.models import (
    AssistantContext,
    AssistantRequest,
    AssistantResponse,
    Role,
    SessionSeed,
    Tier,
)
from ai_learning_assistant.prompt_builder import HISTORY_MESSAGES, PromptBuilder
from ai_learning_assistant.response_cache import (
    RESPONSE_KEY_PREFIX,
    TTLCache,
    response_cache_key,
    response_key_prefix,
)
from ai_learning_assistant.response_parser import ResponseParser
from ai_learning_assistant.session_manager import SessionManager, new_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalyticsRecord:
    """Per-request analytics line."""
    user_id: str
    tier: Tier
    request_type: str
    message_length: int
    response_length: int
    processing_time_ms: float
    model_used: str
    success: bool
    cache_hit: bool = False
    error: Optional[str] = None


AnalyticsSink = Callable[[AnalyticsRecord], None]


def days_word(count: int, locale: str = "ru") -> str:
    """Plural form of "day" for a count."""
    if locale != "ru":
        return "day" if count == 1 else "days"
    last_two = count % 100
    last = count % 10
    if 11 <= last_two <= 19:
        return "дней"
    if last == 1:
        return "день"
    if 2 <= last <= 4:
        return "дня"
    return "дней"


def _copy_response(response: AssistantResponse, **changes) -> AssistantResponse:
    return replace(
        response,
        code_examples=list(response.code_examples) if response.code_examples else None,
        suggestions=list(response.suggestions) if response.suggestions else None,
        related_topics=list(response.related_topics) if response.related_topics else None,
        **changes,
    )


class AssistantService:
    """Main entry point of the assistant: one instance per process."""

    def __init__(
        self,
        aggregator: Optional[ContextAggregator] = None,
        sessions: Optional[SessionManager] = None,
        response_cache: Optional[TTLCache] = None,
        client: Optional[AIClient] = None,
        settings: Optional[AssistantSettings] = None,
        locale: Optional[str] = None,
        usage_sink: Optional[UsageSink] = None,
        analytics_sink: Optional[AnalyticsSink] = None,
    ):
        self.settings = settings or get_settings()
        self.locale = locale or self.settings.locale
        self.aggregator = aggregator or ContextAggregator(
            InMemoryProgressStore(),
            InMemoryAchievementsStore(),
            cache_ttl=self.settings.context_cache_ttl,
        )
        self.sessions = sessions or SessionManager()
        self.response_cache = response_cache or TTLCache(
            self.settings.response_cache_ttl, name="AssistantService"
        )
        self.client = client or AIClient(self.settings)
        self.content_filter = ContentFilter(locale=self.locale)
        self.parser = ResponseParser(locale=self.locale)
        self.prompt_builder = PromptBuilder(locale=self.locale)
        self.usage_sink = usage_sink
        self.analytics_sink = analytics_sink

    async def send_message(self, request: AssistantRequest, timeout: Optional[float] = None) -> AssistantResponse:
        """
        Handle one user message.

        Args:
            request: The chat turn
            timeout: Optional seconds to wait for the model

        Returns:
            AssistantResponse; rejected=True (with reason) when the filter refused the input

        Raises:
            SessionNotFound: session_id is unknown, expired or owned by another user
            AssistantError: empty input, model failure, timeout or unusable output
        """
        started = time.monotonic()
        filtered = self.content_filter.filter_content(request.message, self.locale)
        if not filtered.allowed:
            logger.info(f"🚫 [AssistantService] Message from {request.user_id} rejected: {filtered.code}")
            self._log_analytics(request, started, "", "filtered", success=False, error=filtered.code)
            return AssistantResponse(
                message="",
                tier=request.tier,
                session_id=request.session_id,
                rejected=True,
                reason=filtered.reason,
                blocked=filtered.blocked,
            )

        message = filtered.sanitized
        if not message:
            raise create_error(AssistantErrorCode.EMPTY_MESSAGE, self.locale)

        if request.session_id is not None and self.sessions.get_session(request.session_id, request.user_id) is None:
            raise SessionNotFound(request.session_id, self.locale)

        # The progress store decides day and language; client values are only a hint
        progress = await self.aggregator.get_user_progress(request.user_id)
        day, language_id = progress.active_day, progress.language_id
        if (request.day is not None and request.day != day) or (
            request.language_id is not None and request.language_id != language_id
        ):
            logger.warning(
                f"⚠️ [AssistantService] {request.user_id} sent day {request.day}/{request.language_id}, "
                f"progress says day {day}/{language_id}; using progress"
            )

        cache_key = response_cache_key(message, day, language_id, request.request_type.value)
        cached = self.response_cache.get(cache_key)
        if cached is not None:
            logger.info(f"✅ [AssistantService] Cache hit for {request.user_id} (day {day}, {language_id})")
            self._log_analytics(request, started, cached.message, "cached", success=True, cache_hit=True)
            return _copy_response(cached, cached=True, tier=request.tier, session_id=request.session_id)

        try:
            context = await self.aggregator.get_user_context(request.user_id, request.tier)
            if request.session_id is not None:
                recent = self.sessions.get_recent_messages(request.session_id, HISTORY_MESSAGES, request.user_id)
                context = context.with_recent_messages(recent)

            prompt = self.prompt_builder.build_messages(replace(request, message=message), context)
            router = ModelRouter.for_tier(request.tier, client=self.client, usage_sink=self.usage_sink)
            call = router.chat_completion(prompt)
            result = await (asyncio.wait_for(call, timeout) if timeout is not None else call)
        except asyncio.TimeoutError as e:
            self._log_analytics(request, started, "", "unknown", success=False, error="timeout")
            raise create_error(AssistantErrorCode.AI_TIMEOUT, self.locale, detail=f"No answer within {timeout}s") from e
        except AssistantError as e:
            logger.error(f"❌ [AssistantService] {e.code.value}: {e}")
            self._log_analytics(request, started, "", "unknown", success=False, error=e.code.value)
            raise
        except Exception as e:
            logger.exception(f"❌ [AssistantService] Unexpected error for {request.user_id}: {e}")
            self._log_analytics(request, started, "", "unknown", success=False, error=str(e))
            raise create_error(AssistantErrorCode.SERVER_ERROR, self.locale, detail=str(e)) from e

        parsed = self.parser.parse_response(result.raw)
        if not self.parser.validate_response(parsed):
            self._log_analytics(request, started, "", result.model, success=False, error="invalid_response")
            raise create_error(AssistantErrorCode.INVALID_RESPONSE, self.locale, detail="Unusable model output")

        parsed.model = result.model
        parsed.tier = request.tier
        parsed.used_fallback = result.used_fallback

        # Keyed on the context the prompt was built from
        day, language_id = context.current_day, context.language_id
        cache_key = response_cache_key(message, day, language_id, request.request_type.value)
        response = self._commit(request, message, day, language_id, cache_key, parsed)
        self._log_analytics(request, started, response.message, result.model, success=True)
        return response

    def _commit(
        self,
        request: AssistantRequest,
        message: str,
        day: int,
        language_id: str,
        cache_key: str,
        parsed: AssistantResponse,
    ) -> AssistantResponse:
        # No awaits below this point
        session_id = request.session_id
        if session_id is None:
            seed = SessionSeed(day=day, language_id=language_id, task_id=request.task_id)
            session_id = self.sessions.create_session(request.user_id, seed).id

        user_message = new_message(
            session_id, Role.USER, message, {"requestType": request.request_type.value}
        )
        assistant_message = new_message(
            session_id,
            Role.ASSISTANT,
            parsed.message,
            {
                "model": parsed.model,
                "codeExamples": [
                    {"language": b.language, "code": b.code} for b in parsed.code_examples or []
                ],
            },
        )
        self.sessions.add_messages(session_id, [user_message, assistant_message])

        self.response_cache.set(cache_key, _copy_response(parsed, session_id=None, tier=None, cached=False))
        parsed.session_id = session_id
        return parsed

    async def aggregate_context(self, user_id: str, tier: Tier) -> AssistantContext:
        return await self.aggregator.get_user_context(user_id, tier)

    def generate_welcome_message(self, context: AssistantContext) -> str:
        language = language_label(context.language_id)
        streak = context.current_streak

        if self.locale == "ru":
            lines = [
                "Привет! 👋 Я твой AI-помощник по изучению программирования.",
                "",
                f"Сегодня у тебя **День {context.current_day}** изучения {language}. "
                + (
                    f"Отличная работа! Твоя серия: **{streak} {days_word(streak)}**! 🔥"
                    if streak > 0 else "Давай начнём! 💪"
                ),
                "",
                "Я могу помочь тебе:",
                "• Объяснить сложные концепции",
                "• Разобраться с кодом",
                "• Дать подсказку к задаче",
                "• Посоветовать, как лучше учиться",
                "",
                "Просто напиши свой вопрос или используй быстрые действия ниже! 😊",
            ]
        else:
            lines = [
                "Hi! 👋 I'm your AI programming learning assistant.",
                "",
                f"Today is **Day {context.current_day}** of learning {language}. "
                + (
                    f"Great work! Your streak: **{streak} {days_word(streak, 'en')}**! 🔥"
                    if streak > 0 else "Let's get started! 💪"
                ),
                "",
                "I can help you:",
                "• Explain complex concepts",
                "• Debug your code",
                "• Give hints for tasks",
                "• Advise on learning strategies",
                "",
                "Just type your question or use quick actions below! 😊",
            ]
        return "\n".join(lines)

    def invalidate_cache(self, language_id: str, day: int) -> int:
        """Drop cached responses for one language/day; returns how many were removed."""
        return self.response_cache.invalidate_pattern("^" + re.escape(response_key_prefix(language_id, day)) + ":")

    def clear_all_caches(self) -> int:
        removed = self.response_cache.invalidate_pattern("^" + re.escape(RESPONSE_KEY_PREFIX) + ":")
        self.aggregator.clear_all_caches()
        return removed

    def get_cache_stats(self) -> Dict[str, Any]:
        return {
            "size": self.response_cache.size(),
            "response_cache": self.response_cache.get_stats(),
            "context_cache": self.aggregator.get_cache_stats(),
        }

    def get_session_manager(self) -> SessionManager:
        return self.sessions

    def _log_analytics(
        self,
        request: AssistantRequest,
        started: float,
        response_text: str,
        model_used: str,
        success: bool,
        cache_hit: bool = False,
        error: Optional[str] = None,
    ) -> None:
        record = AnalyticsRecord(
            user_id=request.user_id,
            tier=request.tier,
            request_type=request.request_type.value,
            message_length=len(request.message or ""),
            response_length=len(response_text or ""),
            processing_time_ms=(time.monotonic() - started) * 1000,
            model_used=model_used,
            success=success,
            cache_hit=cache_hit,
            error=error,
        )
        logger.info(
            f"📊 [AssistantService] user={record.user_id} tier={record.tier.value} "
            f"type={record.request_type} model={record.model_used} success={record.success} "
            f"{'✅ CACHE HIT' if record.cache_hit else '🔄 CACHE MISS'} "
            f"{record.processing_time_ms:.0f}ms" + (f" error={record.error}" if record.error else "")
        )
        if self.analytics_sink is not None:
            self.analytics_sink(record)


_service: Optional[AssistantService] = None


def get_assistant_service() -> AssistantService:
    """Get or create the process-wide AssistantService."""
    global _service
    if _service is None:
        _service = AssistantService()
    return _service


def reset_assistant_service() -> None:
    global _service
    _service = None
