"""
Content Filter

Validates and sanitizes raw user input before anything else touches it:
length limit, HTML stripping, a locale blocklist and prompt-injection
patterns. Pure functions over the input and the static lists below.
"""

import html
import re
from dataclasses import dataclass
from typing import List, Optional

from ai_learning_assistant.config import MAX_MESSAGE_LENGTH
from ai_learning_assistant.models import ContentFilterResult

# Basic blocklists, extend as needed
INAPPROPRIATE_KEYWORDS = {
    "ru": [
        "дурак",
        "идиот",
        "тупой",
    ],
    "en": [
        "stupid",
        "idiot",
        "dumb",
    ],
}

PROMPT_INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(previous|all|above)\s+(instructions?|prompts?|rules?)", re.IGNORECASE),
    re.compile(r"forget\s+(everything|all|previous)", re.IGNORECASE),
    re.compile(r"you\s+are\s+(now|a)\s+", re.IGNORECASE),
    re.compile(r"system\s*:", re.IGNORECASE),
    re.compile(r"\[system\]", re.IGNORECASE),
    re.compile(r"<system>", re.IGNORECASE),
    re.compile(r"act\s+as\s+(if|a)", re.IGNORECASE),
    re.compile(r"pretend\s+(you|to\s+be)", re.IGNORECASE),
    re.compile(r"roleplay\s+as", re.IGNORECASE),
    re.compile(r"new\s+instructions?", re.IGNORECASE),
    re.compile(r"override\s+(instructions?|rules?)", re.IGNORECASE),
]

_TAG_RE = re.compile(r"<[^>]*>")
_INLINE_SPACE_RE = re.compile(r"[^\S\n]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")

_REASONS = {
    "ru": {
        "too_long": "Сообщение слишком длинное (максимум {max_length} символов)",
        "inappropriate": "Сообщение содержит недопустимый контент",
        "prompt_injection": "Обнаружена попытка манипуляции системой",
    },
    "en": {
        "too_long": "Message too long (max {max_length} characters)",
        "inappropriate": "Message contains inappropriate content",
        "prompt_injection": "Prompt injection attempt detected",
    },
}


@dataclass
class ContentFilterConfig:
    max_length: int = MAX_MESSAGE_LENGTH
    strip_html: bool = True
    check_inappropriate: bool = True
    check_prompt_injection: bool = True
    locale: str = "ru"


class ContentFilter:
    """Filters and sanitizes user input."""

    def __init__(self, config: Optional[ContentFilterConfig] = None, **overrides):
        self.config = config or ContentFilterConfig()
        for key, value in overrides.items():
            setattr(self.config, key, value)

    def filter_content(self, content: str, locale: Optional[str] = None) -> ContentFilterResult:
        """
        Filter a raw message.

        Args:
            content: Raw user input
            locale: "ru" or "en"; defaults to the configured locale

        Returns:
            ContentFilterResult; reason is set iff the message is rejected
        """
        locale = self._resolve_locale(locale)
        content = content or ""

        if len(content) > self.config.max_length:
            return self._reject(locale, "too_long")

        sanitized = self.strip_html(content) if self.config.strip_html else content

        if self.config.check_inappropriate:
            blocked = self.find_inappropriate(sanitized, locale)
            if blocked:
                return self._reject(locale, "inappropriate", blocked=blocked)

        if self.config.check_prompt_injection and self.has_prompt_injection(sanitized):
            return self._reject(locale, "prompt_injection")

        return ContentFilterResult(allowed=True, sanitized=self.trim_whitespace(sanitized))

    @staticmethod
    def strip_html(content: str) -> str:
        """Remove tags, decode entities, then remove any tags the decoding revealed."""
        stripped = _TAG_RE.sub("", content)
        return _TAG_RE.sub("", html.unescape(stripped))

    @staticmethod
    def find_inappropriate(content: str, locale: str) -> List[str]:
        """Every blocklisted term contained in the text (case-insensitive)."""
        keywords = INAPPROPRIATE_KEYWORDS.get(locale, INAPPROPRIATE_KEYWORDS["ru"])
        lowered = content.lower()
        return [keyword for keyword in keywords if keyword.lower() in lowered]

    @staticmethod
    def has_prompt_injection(content: str) -> bool:
        return any(pattern.search(content) for pattern in PROMPT_INJECTION_PATTERNS)

    @staticmethod
    def trim_whitespace(content: str) -> str:
        # Line breaks are kept so pasted code survives, at most one blank line in a row
        collapsed = _INLINE_SPACE_RE.sub(" ", content)
        collapsed = "\n".join(line.strip() for line in collapsed.split("\n"))
        collapsed = _BLANK_LINES_RE.sub("\n\n", collapsed)
        return collapsed.strip()

    def validate_length(self, content: str) -> bool:
        return 0 < len(content) <= self.config.max_length

    @staticmethod
    def is_empty(content: str) -> bool:
        return not content or not content.strip()

    def _resolve_locale(self, locale: Optional[str]) -> str:
        locale = (locale or self.config.locale or "ru").lower()
        return locale if locale in _REASONS else "ru"

    def _reject(self, locale: str, code: str, blocked: Optional[List[str]] = None) -> ContentFilterResult:
        reason = _REASONS[locale][code].format(max_length=self.config.max_length)
        return ContentFilterResult(
            allowed=False,
            sanitized="",
            reason=reason,
            blocked=blocked,
            code=code,
        )


def create_content_filter(**overrides) -> ContentFilter:
    return ContentFilter(**overrides)


def filter_content(content: str, locale: str = "ru") -> ContentFilterResult:
    """Filter with the default configuration."""
    return ContentFilter(locale=locale).filter_content(content, locale)


def sanitize_input(content: str) -> str:
    """Strip HTML and trim; returns "" for rejected input."""
    return ContentFilter().filter_content(content).sanitized
