"""
Unit Tests for AssistantService

Drives full chat turns through the service with a scripted provider client.
"""

import asyncio
import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "ai_learning_assistant", "src"))

from ai_learning_assistant.collaborators import InMemoryAchievementsStore, InMemoryProgressStore
from ai_learning_assistant.config import AI_MODELS
from ai_learning_assistant.context_aggregator import ContextAggregator
from ai_learning_assistant.errors import AssistantError, AssistantErrorCode, SessionNotFound
from ai_learning_assistant.models import AssistantRequest, Role, SessionSeed, Tier
from ai_learning_assistant.response_cache import TTLCache
from ai_learning_assistant.service import AssistantService, days_word
from ai_learning_assistant.session_manager import SessionManager

FREE_MODEL = AI_MODELS[Tier.FREE].model
PREMIUM_MODEL = AI_MODELS[Tier.PREMIUM].model


def ask(message, user_id="alice", **fields):
    return AssistantRequest(user_id=user_id, message=message, **fields)


class TestAssistantService:
    """Test suite for AssistantService."""

    @pytest.fixture
    def progress(self):
        store = InMemoryProgressStore()
        store.set_active_day("alice", 2)
        return store

    @pytest.fixture
    def achievements(self):
        return InMemoryAchievementsStore()

    @pytest.fixture
    def records(self):
        return []

    @pytest.fixture
    def service(self, progress, achievements, fake_client, settings, clock, records):
        return AssistantService(
            aggregator=ContextAggregator(progress, achievements, clock=clock),
            sessions=SessionManager(clock=clock),
            response_cache=TTLCache(settings.response_cache_ttl, clock=clock),
            client=fake_client,
            settings=settings,
            analytics_sink=records.append,
        )

    @pytest.mark.asyncio
    async def test_repeated_question_served_from_cache(self, service, fake_client):
        first = await service.send_message(ask("что такое переменная?"))

        assert not first.cached
        assert first.message == fake_client.default_reply
        assert first.model == FREE_MODEL
        assert service.get_cache_stats()["size"] == 1

        second = await service.send_message(ask("что такое переменная?"))

        assert second.cached
        assert second.message == first.message
        assert len(fake_client.calls) == 1

    @pytest.mark.asyncio
    async def test_case_and_whitespace_variants_hit_cache(self, service, fake_client):
        await service.send_message(ask("что такое переменная?"))
        variant = await service.send_message(ask("  Что   такое ПЕРЕМЕННАЯ?  "))

        assert variant.cached
        assert len(fake_client.calls) == 1
        assert service.get_cache_stats()["size"] == 1

    @pytest.mark.asyncio
    async def test_distinct_questions_grow_cache(self, service):
        sizes = []
        for message in ["что такое цикл?", "что такое список?", "что такое словарь?"]:
            await service.send_message(ask(message))
            sizes.append(service.get_cache_stats()["size"])

        assert sizes == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_cache_keyed_on_progress_day_and_language(self, service, progress, fake_client):
        await service.send_message(ask("что такое переменная?"))
        progress.set_active_day("alice", 3)
        await service.send_message(ask("что такое переменная?"))
        progress.set_language("alice", "go")
        await service.send_message(ask("что такое переменная?"))

        assert len(fake_client.calls) == 3
        assert service.get_cache_stats()["size"] == 3

    @pytest.mark.asyncio
    async def test_client_day_and_language_do_not_override_progress(self, service, progress, fake_client):
        progress.set_language("mallory", "javascript")
        progress.set_active_day("mallory", 40)

        spoofed = await service.send_message(
            ask("что такое переменная?", user_id="mallory", day=2, language_id="python")
        )

        system_prompt = fake_client.calls[0]["messages"][0]["content"]
        assert "JavaScript" in system_prompt
        assert "дне 40 из 90" in system_prompt
        seed = service.sessions.get_session(spoofed.session_id).context
        assert (seed.day, seed.language_id) == (40, "javascript")

        answer = await service.send_message(ask("что такое переменная?"))

        assert not answer.cached
        assert len(fake_client.calls) == 2
        assert "Python" in fake_client.calls[1]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_answer_stored_under_prompt_context(self, service, fake_client):
        await service.aggregate_context("alice", Tier.FREE)
        # A store without change notifications leaves the context cache stale
        service.aggregator.progress = InMemoryProgressStore()
        service.aggregator.progress.set_active_day("alice", 5)

        await service.send_message(ask("что такое переменная?"))

        assert "дне 2 из 90" in fake_client.calls[0]["messages"][0]["content"]
        assert service.invalidate_cache("python", 2) == 1
        assert service.invalidate_cache("python", 5) == 0

    @pytest.mark.asyncio
    async def test_rejected_message_has_no_side_effects(self, service, fake_client, records):
        response = await service.send_message(ask("привет дурак как дела"))

        assert response.rejected
        assert response.reason
        assert response.blocked == ["дурак"]
        assert response.message == ""
        assert fake_client.calls == []
        assert service.get_cache_stats()["size"] == 0
        assert service.sessions.get_session_count() == 0
        assert records[-1].error == "inappropriate"

    @pytest.mark.parametrize("message", ["", "   ", "<p>  </p>"])
    @pytest.mark.asyncio
    async def test_empty_message(self, service, fake_client, message):
        with pytest.raises(AssistantError) as exc_info:
            await service.send_message(ask(message))

        assert exc_info.value.code == AssistantErrorCode.EMPTY_MESSAGE
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_first_turn_creates_session(self, service):
        response = await service.send_message(ask("что такое переменная?"))

        session = service.sessions.get_session(response.session_id, "alice")
        assert session is not None
        assert session.context.day == 2
        assert [(m.role, m.content) for m in session.messages] == [
            (Role.USER, "что такое переменная?"),
            (Role.ASSISTANT, response.message),
        ]

    @pytest.mark.asyncio
    async def test_follow_up_appends_and_sends_history(self, service, fake_client):
        first = await service.send_message(ask("что такое переменная?"))
        second = await service.send_message(ask("а константа?", session_id=first.session_id))

        assert second.session_id == first.session_id
        assert len(service.sessions.get_session(first.session_id).messages) == 4
        user_prompt = fake_client.calls[1]["messages"][1]["content"]
        assert "Предыдущий разговор:" in user_prompt
        assert "Студент: что такое переменная?" in user_prompt

    @pytest.mark.asyncio
    async def test_cache_hit_does_not_append(self, service):
        first = await service.send_message(ask("что такое переменная?"))
        again = await service.send_message(ask("что такое переменная?", session_id=first.session_id))

        assert again.cached
        assert again.session_id == first.session_id
        assert len(service.sessions.get_session(first.session_id).messages) == 2

    @pytest.mark.asyncio
    async def test_unknown_session_rejected(self, service, fake_client):
        with pytest.raises(SessionNotFound):
            await service.send_message(ask("привет", session_id="session_missing"))

        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_other_users_session_rejected(self, service):
        first = await service.send_message(ask("что такое переменная?"))

        with pytest.raises(SessionNotFound):
            await service.send_message(ask("покажи историю", user_id="bob", session_id=first.session_id))

        assert len(service.sessions.get_session(first.session_id).messages) == 2

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_no_state(self, service, fake_client, provider_error, records):
        fake_client.outcomes[FREE_MODEL] = provider_error

        with pytest.raises(AssistantError) as exc_info:
            await service.send_message(ask("что такое переменная?"))

        assert exc_info.value.retryable
        assert exc_info.value.code == AssistantErrorCode.AI_UNAVAILABLE
        assert service.get_cache_stats()["size"] == 0
        assert service.sessions.get_session_count() == 0
        assert records[-1].success is False

    @pytest.mark.asyncio
    async def test_timeout(self, service, fake_client):
        fake_client.delay = 1.0

        with pytest.raises(AssistantError) as exc_info:
            await service.send_message(ask("что такое переменная?"), timeout=0.01)

        assert exc_info.value.code == AssistantErrorCode.AI_TIMEOUT
        assert exc_info.value.retryable
        assert service.get_cache_stats()["size"] == 0
        assert service.sessions.get_session_count() == 0

    @pytest.mark.asyncio
    async def test_day_and_language_from_progress(self, service, progress, fake_client):
        progress.set_language("alice", "javascript")
        progress.set_active_day("alice", 7)

        response = await service.send_message(AssistantRequest(user_id="alice", message="что такое массив?"))

        session = service.sessions.get_session(response.session_id)
        assert session.context.day == 7
        assert session.context.language_id == "javascript"
        assert "JavaScript" in fake_client.calls[0]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_premium_fallback_flag(self, service, fake_client, provider_error):
        fake_client.outcomes[PREMIUM_MODEL] = provider_error

        response = await service.send_message(ask("что такое переменная?", tier="premium"))

        assert response.used_fallback
        assert response.model == FREE_MODEL
        assert response.tier == Tier.PREMIUM

    @pytest.mark.asyncio
    async def test_cached_response_stamped_with_caller_tier(self, service, progress):
        progress.set_active_day("bob", 2)
        await service.send_message(ask("что такое переменная?", tier="premium"))
        cached = await service.send_message(ask("что такое переменная?", user_id="bob", tier="free"))

        assert cached.cached
        assert cached.tier == Tier.FREE
        assert cached.session_id is None

    @pytest.mark.asyncio
    async def test_code_examples_parsed(self, service, fake_client):
        fake_client.default_reply = "Пример:\n```py\nx = 5\n```\n- Попробуй изменить x"

        response = await service.send_message(ask("покажи пример"))

        assert response.code_examples[0].language == "python"
        assert response.code_examples[0].code == "x = 5"
        assert response.suggestions == ["Попробуй изменить x"]
        stored = service.sessions.get_session(response.session_id).messages[-1]
        assert stored.metadata["codeExamples"] == [{"language": "python", "code": "x = 5"}]

    @pytest.mark.asyncio
    async def test_invalidate_cache_for_day(self, service, progress, fake_client):
        progress.set_active_day("bob", 3)
        await service.send_message(ask("что такое переменная?"))
        await service.send_message(ask("что такое переменная?", user_id="bob"))

        assert service.invalidate_cache("python", 2) == 1
        assert service.get_cache_stats()["size"] == 1

        await service.send_message(ask("что такое переменная?"))
        assert len(fake_client.calls) == 3

    @pytest.mark.asyncio
    async def test_clear_all_caches(self, service):
        await service.send_message(ask("что такое переменная?"))
        await service.send_message(ask("что такое цикл?"))

        assert service.clear_all_caches() == 2
        stats = service.get_cache_stats()
        assert stats["size"] == 0
        assert stats["context_cache"]["context_cache_size"] == 0

    @pytest.mark.asyncio
    async def test_analytics_records(self, service, records):
        await service.send_message(ask("что такое переменная?"))
        await service.send_message(ask("что такое переменная?"))

        assert [r.cache_hit for r in records] == [False, True]
        assert records[0].model_used == FREE_MODEL
        assert all(r.success for r in records)

    @pytest.mark.asyncio
    async def test_welcome_message_with_streak(self, service, achievements):
        achievements.record_stats("alice", current_streak=3)
        context = await service.aggregate_context("alice", Tier.FREE)

        text = service.generate_welcome_message(context)

        assert "**День 2** изучения Python" in text
        assert "**3 дня**" in text

    @pytest.mark.asyncio
    async def test_welcome_message_without_streak(self, service):
        context = await service.aggregate_context("alice", Tier.FREE)

        assert "Давай начнём!" in service.generate_welcome_message(context)


class TestConcurrentTurns:
    """Overlapping and cancelled chat turns."""

    @pytest.fixture
    def service(self, fake_client, settings):
        progress = InMemoryProgressStore()
        progress.set_active_day("alice", 2)
        aggregator = ContextAggregator(progress, InMemoryAchievementsStore())
        return AssistantService(aggregator=aggregator, client=fake_client, settings=settings)

    @pytest.fixture
    def session(self, service):
        return service.sessions.create_session("alice", SessionSeed(day=2, language_id="python"))

    @pytest.mark.asyncio
    async def test_history_follows_completion_order(self, service, fake_client, session):
        fake_client.delays["медленный вопрос"] = 0.05

        slow = asyncio.create_task(service.send_message(ask("медленный вопрос", session_id=session.id)))
        fast = asyncio.create_task(service.send_message(ask("быстрый вопрос", session_id=session.id)))
        await asyncio.gather(slow, fast)

        messages = service.sessions.get_session(session.id).messages
        assert [(m.role, m.content) for m in messages[::2]] == [
            (Role.USER, "быстрый вопрос"),
            (Role.USER, "медленный вопрос"),
        ]
        assert [m.role for m in messages[1::2]] == [Role.ASSISTANT, Role.ASSISTANT]

    @pytest.mark.asyncio
    async def test_concurrent_identical_questions_share_one_entry(self, service, fake_client):
        fake_client.delay = 0.01

        responses = await asyncio.gather(*[
            service.send_message(ask("что такое переменная?")) for _ in range(3)
        ])

        assert {r.message for r in responses} == {fake_client.default_reply}
        assert service.get_cache_stats()["size"] == 1

    @pytest.mark.asyncio
    async def test_cancelled_turn_leaves_no_state(self, service, fake_client, session):
        fake_client.delay = 1.0

        task = asyncio.create_task(service.send_message(ask("что такое переменная?", session_id=session.id)))
        await asyncio.sleep(0.01)
        assert len(fake_client.calls) == 1
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert service.get_cache_stats()["size"] == 0
        assert service.sessions.get_session_count() == 1
        assert service.sessions.get_session(session.id).messages == []

    @pytest.mark.asyncio
    async def test_cancelled_first_turn_creates_no_session(self, service, fake_client):
        fake_client.delay = 1.0

        task = asyncio.create_task(service.send_message(ask("что такое переменная?")))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert service.get_cache_stats()["size"] == 0
        assert service.sessions.get_session_count() == 0


class TestDaysWord:

    @pytest.mark.parametrize("count,expected", [
        (1, "день"),
        (2, "дня"),
        (4, "дня"),
        (5, "дней"),
        (11, "дней"),
        (14, "дней"),
        (21, "день"),
        (22, "дня"),
        (100, "дней"),
        (111, "дней"),
    ])
    def test_russian_plural(self, count, expected):
        assert days_word(count) == expected

    def test_english_plural(self):
        assert days_word(1, "en") == "day"
        assert days_word(3, "en") == "days"
