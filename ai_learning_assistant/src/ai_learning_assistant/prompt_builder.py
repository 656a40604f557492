"""
Prompt Builder

Builds the system and user messages sent to the chat-completion model from a
request and the user's AssistantContext.
"""

from typing import Dict, List, Optional, Sequence

from ai_learning_assistant.config import TOTAL_COURSE_DAYS
from ai_learning_assistant.curriculum import get_day_topic, language_label
from ai_learning_assistant.models import AssistantContext, AssistantRequest, Message, RequestType, Role

MAX_PROMPT_LENGTH = 4000
MAX_THEORY_LENGTH = 500
HISTORY_MESSAGES = 5
TRUNCATION_MARKER = "[...truncated for length]"

SYSTEM_TEMPLATES = {
    "ru": """Ты AI-ассистент для обучения программированию.
Твоя роль - помогать студентам изучать программирование на языке {language}.

Текущий контекст:
- Студент на дне {day} из {total_days}
- Сегодняшняя тема: {topic}
- Уровень подписки: {tier}
- Завершено дней: {completed_days}
- Текущая серия: {streak} дней

Правила:
1. Будь ободряющим и поддерживающим
2. Объясняй концепции ясно, не давая готовых решений
3. Приводи примеры кода на {language}
4. Ссылайся на материал текущего дня, когда это уместно
5. Адаптируй сложность к уровню студента (День {day})
6. Держи ответы краткими, но полезными

Помни: Твоя цель - направлять обучение, а не решать задачи за студента.""",
    "en": """You are an AI programming learning assistant.
Your role is to help students learn {language} programming.

Current Context:
- Student is on Day {day} of {total_days}
- Today's topic: {topic}
- Subscription tier: {tier}
- Completed days: {completed_days}
- Current streak: {streak} days

Guidelines:
1. Be encouraging and supportive
2. Explain concepts clearly without giving complete solutions
3. Provide code examples in {language}
4. Reference the current day's material when relevant
5. Adapt complexity to the student's level (Day {day})
6. Keep responses concise but helpful

Remember: Your goal is to guide learning, not to solve problems for the student.""",
}

USER_TEMPLATES = {
    RequestType.QUESTION: {
        "ru": "Вопрос студента: {message}{history}{theory}",
        "en": "Student Question: {message}{history}{theory}",
    },
    RequestType.CODE_HELP: {
        "ru": "Студент просит помощь с кодом: {message}{code}{history}{task}",
        "en": "Student needs help with code: {message}{code}{history}{task}",
    },
    RequestType.ADVICE: {
        "ru": (
            "Студент просит совет по обучению: {message}\n\n"
            "Прогресс студента:\n"
            "- Завершено дней: {completed_days}\n"
            "- Всего задач выполнено: {total_tasks}\n"
            "- Текущая серия: {streak} дней{history}"
        ),
        "en": (
            "Student requests learning advice: {message}\n\n"
            "Student Progress:\n"
            "- Completed days: {completed_days}\n"
            "- Total tasks completed: {total_tasks}\n"
            "- Current streak: {streak} days{history}"
        ),
    },
    RequestType.GENERAL: {
        "ru": "Сообщение студента: {message}{history}",
        "en": "Student Message: {message}{history}",
    },
}

_LABELS = {
    "ru": {
        "history": "Предыдущий разговор:",
        "student": "Студент",
        "assistant": "Ассистент",
        "code": "Код студента:",
        "theory": "Материал текущего дня:",
        "task": "Текущая задача:",
    },
    "en": {
        "history": "Previous Conversation:",
        "student": "Student",
        "assistant": "Assistant",
        "code": "Student code:",
        "theory": "Current day material:",
        "task": "Current Task:",
    },
}


def _english_topic(day: int) -> str:
    if day <= 10:
        return "Programming Basics"
    if day <= 30:
        return "Data Structures"
    if day <= 60:
        return "Algorithms"
    return "Advanced Topics"


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max(max_length, 0)] + "..."


class PromptBuilder:
    """Builds chat messages with the learning context injected."""

    def __init__(self, locale: str = "ru", max_prompt_length: int = MAX_PROMPT_LENGTH):
        self.locale = locale if locale in SYSTEM_TEMPLATES else "ru"
        self.max_prompt_length = max_prompt_length

    def build_messages(self, request: AssistantRequest, context: AssistantContext) -> List[Dict[str, str]]:
        """System + user messages for one chat turn, within max_prompt_length overall."""
        system_prompt = self.build_system_prompt(context)
        user_prompt = self.build_user_prompt(request, context)

        budget = self.max_prompt_length - len(system_prompt)
        if len(user_prompt) > budget:
            keep = budget - len(TRUNCATION_MARKER) - 5
            user_prompt = f"{truncate_text(user_prompt, keep)}\n\n{TRUNCATION_MARKER}"

        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    def build_system_prompt(self, context: AssistantContext) -> str:
        if self.locale == "ru":
            topic = get_day_topic(context.current_day).topic
        else:
            topic = _english_topic(context.current_day)

        return SYSTEM_TEMPLATES[self.locale].format(
            language=language_label(context.language_id),
            day=context.current_day,
            total_days=TOTAL_COURSE_DAYS,
            topic=topic,
            tier=context.tier.value,
            completed_days=len(context.completed_days),
            streak=context.current_streak,
        )

    def build_user_prompt(self, request: AssistantRequest, context: AssistantContext) -> str:
        labels = _LABELS[self.locale]
        template = USER_TEMPLATES.get(request.request_type, USER_TEMPLATES[RequestType.GENERAL])[self.locale]

        code = ""
        if request.code:
            code = f"\n\n{labels['code']}\n```{context.language_id}\n{request.code}\n```"

        theory = ""
        if context.day_theory:
            theory = f"\n\n{labels['theory']}\n{truncate_text(context.day_theory, MAX_THEORY_LENGTH)}"

        task = ""
        if request.task_id:
            match = next((t for t in context.day_tasks if t.id == request.task_id), None)
            if match is not None:
                task = f"\n\n{labels['task']} {match.title}\n{match.description}"

        # str.format on the template only; user text is substituted as a value
        return template.format(
            message=request.message,
            history=self.format_conversation_history(context.recent_messages),
            code=code,
            theory=theory,
            task=task,
            completed_days=len(context.completed_days),
            total_tasks=context.total_tasks_completed,
            streak=context.current_streak,
        )

    def format_conversation_history(self, messages: Optional[Sequence[Message]]) -> str:
        if not messages:
            return ""
        labels = _LABELS[self.locale]
        lines = [
            f"{labels['student'] if m.role == Role.USER else labels['assistant']}: {m.content}"
            for m in list(messages)[-HISTORY_MESSAGES:]
        ]
        return f"\n\n{labels['history']}\n" + "\n".join(lines)


def create_prompt_builder(locale: str = "ru") -> PromptBuilder:
    return PromptBuilder(locale=locale)
