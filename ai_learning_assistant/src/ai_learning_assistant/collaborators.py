"""
Collaborator Interfaces

Read-only views of the learning-progress store, the achievements store and
the curriculum that the ContextAggregator is built on. Implementations may be
sync or async. The in-memory stores below back the HTTP app and the tests.
"""

import inspect
import logging
import threading
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from ai_learning_assistant.models import (
    AchievementSnapshot,
    DayContent,
    DayStateSnapshot,
    ProgressSnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE_ID = "python"

ChangeListener = Callable[[str], None]


class ProgressSource(Protocol):
    def get_progress(self, user_id: str) -> Union[ProgressSnapshot, Awaitable[ProgressSnapshot]]:
        ...


class AchievementsSource(Protocol):
    def get_achievements(self, user_id: str) -> Union[AchievementSnapshot, Awaitable[AchievementSnapshot]]:
        ...


class CurriculumSource(Protocol):
    def get_day_content(self, language_id: str, day: int) -> Union[DayContent, Awaitable[DayContent]]:
        ...


async def resolve(value: Any) -> Any:
    """Await the value if a collaborator returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


class _Observable:
    """Per-user change notifications for in-memory stores."""

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener called with the user id after each mutation; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, user_id: str) -> None:
        for listener in list(self._listeners):
            listener(user_id)


class InMemoryProgressStore(_Observable):
    """Progress store keyed by user id; unseen users start on day 1 of Python."""

    def __init__(self, default_language_id: str = DEFAULT_LANGUAGE_ID):
        super().__init__()
        self.default_language_id = default_language_id
        self._progress: Dict[str, ProgressSnapshot] = {}
        self._lock = threading.Lock()

    def get_progress(self, user_id: str) -> ProgressSnapshot:
        with self._lock:
            return self._get_or_create(user_id)

    def set_language(self, user_id: str, language_id: str) -> None:
        self._update(user_id, lambda p: replace(p, language_id=language_id))

    def set_active_day(self, user_id: str, day: int) -> None:
        self._update(user_id, lambda p: replace(p, active_day=day))

    def toggle_task(self, user_id: str, day: int, task_id: str) -> None:
        def apply(progress: ProgressSnapshot) -> ProgressSnapshot:
            state = progress.day_states.get(day) or DayStateSnapshot(day=day)
            completed = set(state.completed_tasks)
            if task_id in completed:
                completed.discard(task_id)
            else:
                completed.add(task_id)
            states = dict(progress.day_states)
            states[day] = replace(state, completed_tasks=tuple(sorted(completed)), last_updated=time.time())
            return replace(progress, day_states=states)

        self._update(user_id, apply)

    def mark_day_complete(self, user_id: str, day: int) -> None:
        self._update(user_id, lambda p: replace(p, completed_days=p.completed_days | {day}))

    def _get_or_create(self, user_id: str) -> ProgressSnapshot:
        # Caller holds the lock
        progress = self._progress.get(user_id)
        if progress is None:
            progress = ProgressSnapshot(user_id=user_id, active_day=1, language_id=self.default_language_id)
            self._progress[user_id] = progress
        return progress

    def _update(self, user_id: str, apply: Callable[[ProgressSnapshot], ProgressSnapshot]) -> None:
        with self._lock:
            self._progress[user_id] = apply(self._get_or_create(user_id))
        self._notify(user_id)


class InMemoryAchievementsStore(_Observable):
    """Achievements store keyed by user id."""

    def __init__(self):
        super().__init__()
        self._achievements: Dict[str, AchievementSnapshot] = {}
        self._lock = threading.Lock()

    def get_achievements(self, user_id: str) -> AchievementSnapshot:
        with self._lock:
            return self._achievements.get(user_id) or AchievementSnapshot(user_id=user_id)

    def record_stats(
        self,
        user_id: str,
        current_streak: Optional[int] = None,
        total_tasks_completed: Optional[int] = None,
    ) -> None:
        changes: Dict[str, int] = {}
        if current_streak is not None:
            changes["current_streak"] = current_streak
        if total_tasks_completed is not None:
            changes["total_tasks_completed"] = total_tasks_completed
        self._update(user_id, lambda a: replace(a, **changes))

    def unlock(self, user_id: str, achievement_id: str) -> None:
        def apply(snapshot: AchievementSnapshot) -> AchievementSnapshot:
            if achievement_id in snapshot.unlocked_achievements:
                return snapshot
            return replace(snapshot, unlocked_achievements=snapshot.unlocked_achievements + (achievement_id,))

        self._update(user_id, apply)

    def _update(self, user_id: str, apply: Callable[[AchievementSnapshot], AchievementSnapshot]) -> None:
        with self._lock:
            current = self._achievements.get(user_id) or AchievementSnapshot(user_id=user_id)
            self._achievements[user_id] = apply(current)
        self._notify(user_id)
