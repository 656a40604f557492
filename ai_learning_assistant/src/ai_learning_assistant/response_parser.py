"""
Response Parser

Turns raw model text into an AssistantResponse: fenced code blocks are
extracted with normalized language names, list items become suggestions and
"related topics" lines become topics. Parsing never raises.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from ai_learning_assistant.models import AssistantResponse, CodeBlock

logger = logging.getLogger(__name__)

_CODE_BLOCK_RE = re.compile(r"```([^\n`]*)\n(.*?)```", re.DOTALL)
_ANY_FENCE_RE = re.compile(r"```.*?```", re.DOTALL)
_BULLET_RE = re.compile(r"^\s*[•\-\*]\s+(.+)$", re.MULTILINE)
_NUMBERED_RE = re.compile(r"^\s*\d+\.\s+(.+)$", re.MULTILINE)
_RELATED_TOPIC_PATTERNS = [
    re.compile(r"(?:связанные темы|related topics):\s*(.+)", re.IGNORECASE),
    re.compile(r"(?:см\. также|see also):\s*(.+)", re.IGNORECASE),
    re.compile(r"(?:дополнительно|additionally):\s*(.+)", re.IGNORECASE),
]

LANGUAGE_ALIASES = {
    "js": "javascript",
    "jsx": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "python3": "python",
    "c++": "cpp",
    "cxx": "cpp",
    "cs": "csharp",
    "c#": "csharp",
    "golang": "go",
    "sh": "bash",
    "shell": "bash",
    "zsh": "bash",
    "yml": "yaml",
    "rb": "ruby",
    "kt": "kotlin",
    "rs": "rust",
    "text": "plaintext",
    "txt": "plaintext",
}

KNOWN_LANGUAGES = {
    "python", "javascript", "typescript", "java", "cpp", "c", "csharp", "go",
    "rust", "kotlin", "swift", "php", "ruby", "sql", "bash", "html", "css",
    "json", "yaml", "xml", "markdown", "plaintext",
}

FALLBACK_MESSAGES = {
    "ru": "Извините, произошла ошибка при обработке ответа.",
    "en": "Sorry, something went wrong while processing the response.",
}


def normalize_language(tag: Optional[str]) -> str:
    """Canonical language name for a fence tag; unknown or missing tags give plaintext."""
    if not tag:
        return "plaintext"
    parts = tag.strip().lower().split()
    if not parts:
        return "plaintext"
    name = LANGUAGE_ALIASES.get(parts[0], parts[0])
    return name if name in KNOWN_LANGUAGES else "plaintext"


@dataclass
class ResponseParserConfig:
    extract_code_blocks: bool = True
    extract_suggestions: bool = True
    extract_related_topics: bool = True
    locale: str = "ru"


class ResponseParser:
    """Parses AI responses and extracts structured data."""

    def __init__(self, config: Optional[ResponseParserConfig] = None, **overrides):
        self.config = config or ResponseParserConfig()
        for key, value in overrides.items():
            setattr(self.config, key, value)

    def parse_response(self, raw_response: str) -> AssistantResponse:
        """Parse raw model text; degenerate input yields a fallback message."""
        try:
            text = raw_response if isinstance(raw_response, str) else ""
            code_blocks = self.extract_code_blocks(text) if self.config.extract_code_blocks else None
            suggestions = self.extract_suggestions(text) if self.config.extract_suggestions else None
            related_topics = (
                self.extract_related_topics(text) if self.config.extract_related_topics else None
            )
            message = self.clean_message(text)

            if not message and not code_blocks and not suggestions and not related_topics:
                return self._fallback_response(text)

            return AssistantResponse(
                message=message,
                code_examples=code_blocks,
                suggestions=suggestions,
                related_topics=related_topics,
            )
        except Exception as e:
            logger.error(f"❌ [ResponseParser] Failed to parse response: {e}")
            return self._fallback_response(raw_response if isinstance(raw_response, str) else "")

    @staticmethod
    def extract_code_blocks(text: str) -> Optional[List[CodeBlock]]:
        blocks = []
        for match in _CODE_BLOCK_RE.finditer(text):
            code = match.group(2).strip()
            if code:
                blocks.append(CodeBlock(language=normalize_language(match.group(1)), code=code))
        return blocks or None

    @staticmethod
    def extract_suggestions(text: str) -> Optional[List[str]]:
        prose = _ANY_FENCE_RE.sub("", text)
        suggestions = [m.group(1).strip() for m in _BULLET_RE.finditer(prose)]
        suggestions += [m.group(1).strip() for m in _NUMBERED_RE.finditer(prose)]
        suggestions = [s for s in suggestions if s]
        return suggestions or None

    @staticmethod
    def extract_related_topics(text: str) -> Optional[List[str]]:
        prose = _ANY_FENCE_RE.sub("", text)
        topics: List[str] = []
        for pattern in _RELATED_TOPIC_PATTERNS:
            match = pattern.search(prose)
            if match:
                topics.extend(t.strip() for t in re.split(r"[,;]", match.group(1)) if t.strip())
        return topics or None

    @staticmethod
    def clean_message(text: str) -> str:
        """Message text with fenced blocks removed."""
        cleaned = _ANY_FENCE_RE.sub("", text)
        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
        return cleaned.strip()

    @staticmethod
    def validate_response(response: AssistantResponse) -> bool:
        has_message = bool(response.message and response.message.strip())
        has_content = bool(response.code_examples or response.suggestions or response.related_topics)
        if not has_message and not has_content:
            return False
        for block in response.code_examples or []:
            if not block.language or not block.code:
                return False
        return True

    def format_for_display(self, response: AssistantResponse) -> str:
        """Flatten a response back into markdown text."""
        parts = [response.message or ""]

        for block in response.code_examples or []:
            parts.append(f"```{block.language}\n{block.code}\n```")

        if response.suggestions:
            title = "**Рекомендации:**" if self.config.locale == "ru" else "**Suggestions:**"
            parts.append(title + "\n" + "\n".join(f"• {s}" for s in response.suggestions))

        if response.related_topics:
            title = "**Связанные темы:**" if self.config.locale == "ru" else "**Related topics:**"
            parts.append(f"{title} {', '.join(response.related_topics)}")

        return "\n\n".join(p for p in parts if p).strip()

    def _fallback_response(self, raw_response: str) -> AssistantResponse:
        text = (raw_response or "").strip()
        if not text:
            text = FALLBACK_MESSAGES.get(self.config.locale, FALLBACK_MESSAGES["ru"])
        return AssistantResponse(message=text)


def create_response_parser(**overrides) -> ResponseParser:
    return ResponseParser(**overrides)


def parse_response(raw_response: str, locale: str = "ru") -> AssistantResponse:
    """Parse with the default configuration."""
    return ResponseParser(locale=locale).parse_response(raw_response)


def format_for_display(response: AssistantResponse, locale: str = "ru") -> str:
    return ResponseParser(locale=locale).format_for_display(response)
