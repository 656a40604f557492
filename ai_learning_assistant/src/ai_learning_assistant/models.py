"""
Assistant Data Model

Dataclasses shared by every layer of the assistant: chat sessions and
messages, the per-user learning context, parsed responses and the
snapshots returned by the progress / curriculum collaborators.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class Tier(str, Enum):
    """Subscription tier; decides which model answers."""
    FREE = "free"
    PREMIUM = "premium"
    PRO_PLUS = "pro_plus"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Tier":
        """Map a raw tier string to a Tier, unknown values fall back to free."""
        if isinstance(value, Tier):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.FREE


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class RequestType(str, Enum):
    QUESTION = "question"
    CODE_HELP = "code-help"
    ADVICE = "advice"
    GENERAL = "general"


# ==================== Collaborator snapshots ====================

@dataclass(frozen=True)
class DayTask:
    """A practice task attached to a course day."""
    id: str
    title: str
    description: str
    difficulty: str = "easy"


@dataclass(frozen=True)
class DayContent:
    """Curriculum content for one (language, day) pair."""
    day: int
    title: str
    theory: str
    tasks: Tuple[DayTask, ...] = ()
    focus: Tuple[str, ...] = ()
    recap_question: str = ""


@dataclass(frozen=True)
class DayStateSnapshot:
    """Per-day task completion state as stored by the progress store."""
    day: int
    completed_tasks: Tuple[str, ...] = ()
    code: str = ""
    notes: str = ""
    recap_answer: str = ""
    last_updated: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ProgressSnapshot:
    """Read-only view of a user's learning progress."""
    user_id: str
    active_day: int
    language_id: str
    completed_days: FrozenSet[int] = frozenset()
    day_states: Dict[int, DayStateSnapshot] = field(default_factory=dict)


@dataclass(frozen=True)
class AchievementSnapshot:
    """Read-only view of a user's achievements and stats."""
    user_id: str
    current_streak: int = 0
    total_tasks_completed: int = 0
    unlocked_achievements: Tuple[str, ...] = ()


# ==================== Assistant context ====================

@dataclass(frozen=True)
class AssistantContext:
    """
    Immutable snapshot of a user's learning state used to ground a chat turn.

    Built by the ContextAggregator; never mutated afterwards. Use
    with_recent_messages() / with_tier() to derive a modified copy.
    """
    user_id: str
    tier: Tier
    current_day: int
    language_id: str
    day_theory: str
    day_tasks: Tuple[DayTask, ...]
    completed_days: FrozenSet[int] = frozenset()
    current_streak: int = 0
    total_tasks_completed: int = 0
    day_state: Optional[DayStateSnapshot] = None
    recent_messages: Tuple["Message", ...] = ()

    def with_recent_messages(self, messages: List["Message"]) -> "AssistantContext":
        return replace(self, recent_messages=tuple(messages))

    def with_tier(self, tier: Tier) -> "AssistantContext":
        if tier == self.tier:
            return self
        return replace(self, tier=tier)


# ==================== Sessions ====================

@dataclass(frozen=True)
class Message:
    """A single chat message; session_id points at the owning session."""
    id: str
    session_id: str
    role: Role
    content: str
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SessionSeed:
    """Learning context captured when a session is created."""
    day: int
    language_id: str
    task_id: Optional[str] = None


@dataclass
class ChatSession:
    """Conversation thread owned by exactly one user."""
    id: str
    user_id: str
    context: SessionSeed
    messages: List[Message] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)


# ==================== Requests ====================

@dataclass
class AssistantRequest:
    """
    One chat turn as received from the caller.

    day / language_id are the context the client already shows. They are only
    compared against the progress store, which always wins.
    """
    user_id: str
    message: str
    tier: Tier = Tier.FREE
    request_type: RequestType = RequestType.QUESTION
    session_id: Optional[str] = None
    day: Optional[int] = None
    language_id: Optional[str] = None
    code: Optional[str] = None
    task_id: Optional[str] = None

    def __post_init__(self):
        self.tier = Tier.parse(self.tier)
        self.request_type = RequestType(self.request_type)


# ==================== Responses ====================

@dataclass(frozen=True)
class CodeBlock:
    language: str
    code: str


@dataclass
class AssistantResponse:
    """Structured assistant reply plus routing metadata."""
    message: str
    code_examples: Optional[List[CodeBlock]] = None
    suggestions: Optional[List[str]] = None
    related_topics: Optional[List[str]] = None
    model: Optional[str] = None
    tier: Optional[Tier] = None
    used_fallback: bool = False
    cached: bool = False
    session_id: Optional[str] = None
    rejected: bool = False
    reason: Optional[str] = None
    blocked: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape the chat endpoint returns."""
        return {
            "message": self.message,
            "codeExamples": (
                [{"language": b.language, "code": b.code} for b in self.code_examples]
                if self.code_examples else None
            ),
            "suggestions": self.suggestions,
            "relatedTopics": self.related_topics,
            "model": self.model,
            "tier": self.tier.value if self.tier else None,
            "usedFallback": self.used_fallback,
            "cached": self.cached,
            "sessionId": self.session_id,
        }


@dataclass
class ContentFilterResult:
    """Outcome of filtering one user message."""
    allowed: bool
    sanitized: str
    reason: Optional[str] = None
    blocked: Optional[List[str]] = None
    code: Optional[str] = None  # "too_long", "inappropriate", "prompt_injection"


@dataclass(frozen=True)
class ModelConfig:
    """Static model settings for one subscription tier."""
    name: str
    model: str
    description: str
    max_tokens: int
    temperature: float


@dataclass
class CacheEntry:
    value: Any
    expires_at: float
    created_at: float = field(default_factory=time.monotonic)
