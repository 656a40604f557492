"""
Assistant Errors

Error codes, the AssistantError base class and factories that attach a
user-facing (localized) message to each failure. Internal error text stays
in the logs; only user_message ever reaches the chat UI.
"""

from enum import Enum
from typing import Any, Dict, Optional


class AssistantErrorCode(str, Enum):
    # Authentication
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INVALID_SESSION = "INVALID_SESSION"
    EXPIRED_SUBSCRIPTION = "EXPIRED_SUBSCRIPTION"

    # Validation
    EMPTY_MESSAGE = "EMPTY_MESSAGE"
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"
    INVALID_REQUEST_TYPE = "INVALID_REQUEST_TYPE"
    CONTENT_FILTERED = "CONTENT_FILTERED"

    # Sessions
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    # Rate limits
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TIER_LIMIT_REACHED = "TIER_LIMIT_REACHED"

    # AI service
    AI_TIMEOUT = "AI_TIMEOUT"
    AI_UNAVAILABLE = "AI_UNAVAILABLE"
    INVALID_RESPONSE = "INVALID_RESPONSE"

    # Network
    NETWORK_ERROR = "NETWORK_ERROR"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    SERVER_ERROR = "SERVER_ERROR"


_USER_MESSAGES: Dict[str, Dict[AssistantErrorCode, str]] = {
    "ru": {
        AssistantErrorCode.NOT_AUTHENTICATED: "Пожалуйста, войдите в систему",
        AssistantErrorCode.INVALID_SESSION: "Сессия истекла. Пожалуйста, войдите снова",
        AssistantErrorCode.EXPIRED_SUBSCRIPTION: "Ваша подписка истекла",
        AssistantErrorCode.EMPTY_MESSAGE: "Сообщение не может быть пустым",
        AssistantErrorCode.MESSAGE_TOO_LONG: "Сообщение слишком длинное (максимум 2000 символов)",
        AssistantErrorCode.INVALID_REQUEST_TYPE: "Неверный тип запроса",
        AssistantErrorCode.CONTENT_FILTERED: "Сообщение содержит недопустимый контент",
        AssistantErrorCode.SESSION_NOT_FOUND: "Сессия не найдена",
        AssistantErrorCode.DAILY_LIMIT_EXCEEDED: "Вы достигли дневного лимита запросов",
        AssistantErrorCode.RATE_LIMIT_EXCEEDED: "Слишком много запросов. Пожалуйста, подождите",
        AssistantErrorCode.TIER_LIMIT_REACHED: "Достигнут лимит для вашего тарифа",
        AssistantErrorCode.AI_TIMEOUT: "Превышено время ожидания ответа",
        AssistantErrorCode.AI_UNAVAILABLE: "AI сервис временно недоступен",
        AssistantErrorCode.INVALID_RESPONSE: "Получен некорректный ответ от AI",
        AssistantErrorCode.NETWORK_ERROR: "Ошибка сети. Проверьте подключение",
        AssistantErrorCode.REQUEST_TIMEOUT: "Превышено время ожидания",
        AssistantErrorCode.SERVER_ERROR: "Ошибка сервера. Попробуйте позже",
    },
    "en": {
        AssistantErrorCode.NOT_AUTHENTICATED: "Please sign in",
        AssistantErrorCode.INVALID_SESSION: "Your session has expired. Please sign in again",
        AssistantErrorCode.EXPIRED_SUBSCRIPTION: "Your subscription has expired",
        AssistantErrorCode.EMPTY_MESSAGE: "Message cannot be empty",
        AssistantErrorCode.MESSAGE_TOO_LONG: "Message is too long (max 2000 characters)",
        AssistantErrorCode.INVALID_REQUEST_TYPE: "Invalid request type",
        AssistantErrorCode.CONTENT_FILTERED: "Message contains inappropriate content",
        AssistantErrorCode.SESSION_NOT_FOUND: "Session not found",
        AssistantErrorCode.DAILY_LIMIT_EXCEEDED: "You have reached the daily request limit",
        AssistantErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests. Please wait",
        AssistantErrorCode.TIER_LIMIT_REACHED: "Your plan limit has been reached",
        AssistantErrorCode.AI_TIMEOUT: "The assistant took too long to respond",
        AssistantErrorCode.AI_UNAVAILABLE: "The AI service is temporarily unavailable",
        AssistantErrorCode.INVALID_RESPONSE: "Received an invalid response from the AI",
        AssistantErrorCode.NETWORK_ERROR: "Network error. Check your connection",
        AssistantErrorCode.REQUEST_TIMEOUT: "Request timed out",
        AssistantErrorCode.SERVER_ERROR: "Server error. Please try again later",
    },
}

_RETRYABLE = {
    AssistantErrorCode.RATE_LIMIT_EXCEEDED,
    AssistantErrorCode.AI_TIMEOUT,
    AssistantErrorCode.AI_UNAVAILABLE,
    AssistantErrorCode.INVALID_RESPONSE,
    AssistantErrorCode.NETWORK_ERROR,
    AssistantErrorCode.REQUEST_TIMEOUT,
    AssistantErrorCode.SERVER_ERROR,
}

_UPGRADE_CODES = {
    AssistantErrorCode.EXPIRED_SUBSCRIPTION,
    AssistantErrorCode.TIER_LIMIT_REACHED,
}


def user_message_for(code: AssistantErrorCode, locale: str = "ru") -> str:
    """Localized user-facing text for an error code."""
    messages = _USER_MESSAGES.get(locale, _USER_MESSAGES["ru"])
    return messages[code]


class AssistantError(Exception):
    """Base error for the assistant, carrying a user-safe message."""

    def __init__(
        self,
        code: AssistantErrorCode,
        user_message: str,
        retryable: bool = False,
        upgrade_prompt: Optional[Dict[str, str]] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(detail or user_message)
        self.code = code
        self.user_message = user_message
        self.retryable = retryable
        self.upgrade_prompt = upgrade_prompt

    def to_error_response(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.user_message,
            "userMessage": self.user_message,
            "retryable": self.retryable,
        }
        if self.upgrade_prompt:
            error["upgradePrompt"] = self.upgrade_prompt
        return {"error": error}


class ContentRejected(AssistantError):
    """User input refused by the content filter."""

    def __init__(self, reason: str, blocked=None):
        super().__init__(AssistantErrorCode.CONTENT_FILTERED, reason)
        self.reason = reason
        self.blocked = blocked

    def to_error_response(self) -> Dict[str, Any]:
        body = super().to_error_response()
        if self.blocked:
            body["error"]["blocked"] = list(self.blocked)
        return body


class SessionNotFound(AssistantError):
    """Session id does not exist (never created, cleared or expired)."""

    def __init__(self, session_id: str, locale: str = "ru"):
        super().__init__(
            AssistantErrorCode.SESSION_NOT_FOUND,
            user_message_for(AssistantErrorCode.SESSION_NOT_FOUND, locale),
            detail=f"Session {session_id} not found",
        )
        self.session_id = session_id


class ProviderCallFailed(AssistantError):
    """The chat-completion provider call failed (network, HTTP or empty output)."""

    def __init__(
        self,
        detail: str,
        status: Optional[int] = None,
        code: AssistantErrorCode = AssistantErrorCode.AI_UNAVAILABLE,
        locale: str = "ru",
    ):
        super().__init__(code, user_message_for(code, locale), retryable=True, detail=detail)
        self.status = status


def create_error(code: AssistantErrorCode, locale: str = "ru", detail: Optional[str] = None) -> AssistantError:
    """Build an AssistantError with the localized message, retry flag and upgrade hint."""
    return AssistantError(
        code,
        user_message_for(code, locale),
        retryable=code in _RETRYABLE,
        upgrade_prompt={"tier": "premium", "url": "/pricing"} if code in _UPGRADE_CODES else None,
        detail=detail,
    )
