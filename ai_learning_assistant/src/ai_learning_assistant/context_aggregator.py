"""
Context Aggregator

Collects a user's learning state from the progress store, the achievements
store and the curriculum into one immutable AssistantContext, with a short
per-user cache in front of it.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from ai_learning_assistant.collaborators import (
    AchievementsSource,
    CurriculumSource,
    ProgressSource,
    resolve,
)
from ai_learning_assistant.config import DEFAULT_CONTEXT_CACHE_TTL
from ai_learning_assistant.curriculum import StaticCurriculum
from ai_learning_assistant.models import (
    AchievementSnapshot,
    AssistantContext,
    DayContent,
    ProgressSnapshot,
    Tier,
)
from ai_learning_assistant.response_cache import TTLCache

logger = logging.getLogger(__name__)


class ContextAggregator:
    """
    Aggregates user context from progress, achievements and curriculum.

    One snapshot is cached per user regardless of tier; a request for a
    different tier gets the cached learning data re-stamped with that tier.
    Every invalidation bumps a per-user generation, and a build that started
    under an older generation is returned to its caller but never cached.
    """

    def __init__(
        self,
        progress: ProgressSource,
        achievements: AchievementsSource,
        curriculum: Optional[CurriculumSource] = None,
        cache_ttl: float = DEFAULT_CONTEXT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize ContextAggregator.

        Args:
            progress: Learning-progress store (read-only use)
            achievements: Achievements store (read-only use)
            curriculum: Day content source (defaults to StaticCurriculum)
            cache_ttl: Seconds a built context stays cached
            clock: Monotonic time source, injectable for tests
        """
        self.progress = progress
        self.achievements = achievements
        self.curriculum = curriculum or StaticCurriculum()
        self.cache_ttl = cache_ttl
        self._context_cache = TTLCache(cache_ttl, clock=clock, name="ContextAggregator")
        self._day_content_cache = TTLCache(cache_ttl, clock=clock, name="ContextAggregator")
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

        for store in (progress, achievements):
            subscribe = getattr(store, "subscribe", None)
            if callable(subscribe):
                subscribe(self.invalidate_cache)

    async def get_user_context(self, user_id: str, tier: Tier) -> AssistantContext:
        """Complete context for one chat turn (recent_messages left empty)."""
        tier = Tier.parse(tier)
        cached = self._context_cache.get(user_id)
        if cached is not None:
            return cached.with_tier(tier)

        generation = self._generation(user_id)

        progress = await self.get_user_progress(user_id)
        achievements = await self.get_user_achievements(user_id)
        day_content = await self.get_current_day_content(progress.language_id, progress.active_day)

        context = AssistantContext(
            user_id=user_id,
            tier=tier,
            current_day=progress.active_day,
            language_id=progress.language_id,
            day_theory=day_content.theory,
            day_tasks=tuple(day_content.tasks),
            completed_days=frozenset(progress.completed_days),
            current_streak=achievements.current_streak,
            total_tasks_completed=achievements.total_tasks_completed,
            day_state=progress.day_states.get(progress.active_day),
        )

        with self._lock:
            if self._generation_unlocked(user_id) == generation:
                self._context_cache.set(user_id, context)
            else:
                logger.info(f"⚠️ [ContextAggregator] Context for {user_id} invalidated while building, not cached")

        return context

    async def get_current_day_content(self, language_id: str, day: int) -> DayContent:
        key = f"{language_id}_day{day}"
        cached = self._day_content_cache.get(key)
        if cached is not None:
            return cached

        content = await resolve(self.curriculum.get_day_content(language_id, day))
        self._day_content_cache.set(key, content)
        return content

    async def get_user_progress(self, user_id: str) -> ProgressSnapshot:
        return await resolve(self.progress.get_progress(user_id))

    async def get_user_achievements(self, user_id: str) -> AchievementSnapshot:
        return await resolve(self.achievements.get_achievements(user_id))

    def invalidate_cache(self, user_id: str) -> None:
        with self._lock:
            self._generations[user_id] = self._generations.get(user_id, 0) + 1
            self._context_cache.invalidate(user_id)

    def invalidate_day_content_cache(self, language_id: str, day: int) -> None:
        self._day_content_cache.invalidate(f"{language_id}_day{day}")

    def clear_all_caches(self) -> None:
        with self._lock:
            self._epoch += 1
            self._context_cache.clear()
            self._day_content_cache.clear()
        logger.info("🧹 [ContextAggregator] All caches cleared")

    def get_cache_stats(self) -> Dict[str, float]:
        return {
            "context_cache_size": self._context_cache.size(),
            "day_content_cache_size": self._day_content_cache.size(),
            "cache_ttl": self.cache_ttl,
        }

    def cleanup_expired_cache(self) -> int:
        """Evict expired context and day-content entries; returns how many were removed."""
        return self._context_cache.cleanup_expired() + self._day_content_cache.cleanup_expired()

    def _generation(self, user_id: str) -> Tuple[int, int]:
        with self._lock:
            return self._generation_unlocked(user_id)

    def _generation_unlocked(self, user_id: str) -> Tuple[int, int]:
        return self._epoch, self._generations.get(user_id, 0)
