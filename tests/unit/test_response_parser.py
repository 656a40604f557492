"""
Unit Tests for Response Parser

Tests code-block extraction, language normalization and the fallback path.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "ai_learning_assistant", "src"))

from ai_learning_assistant.models import AssistantResponse, CodeBlock
from ai_learning_assistant.response_parser import (
    FALLBACK_MESSAGES,
    ResponseParser,
    format_for_display,
    normalize_language,
    parse_response,
)


class TestResponseParser:
    """Test suite for ResponseParser."""

    @pytest.fixture
    def parser(self):
        return ResponseParser()

    def test_extracts_each_non_empty_block(self, parser):
        raw = (
            "Два примера:\n"
            "```py\nprint('hi')\n```\n"
            "и ещё\n"
            "```js\n   console.log(1);   \n```\n"
        )
        response = parser.parse_response(raw)

        assert response.code_examples == [
            CodeBlock(language="python", code="print('hi')"),
            CodeBlock(language="javascript", code="console.log(1);"),
        ]

    def test_empty_blocks_dropped(self, parser):
        raw = "Пустой блок:\n```python\n   \n```\nи текст"
        response = parser.parse_response(raw)

        assert response.code_examples is None

    def test_no_fences_gives_none(self, parser):
        response = parser.parse_response("Просто текст без кода.")

        assert response.code_examples is None
        assert response.message == "Просто текст без кода."

    def test_message_excludes_code(self, parser):
        response = parser.parse_response("Вот пример:\n```python\nx = 1\n```\nГотово")

        assert "```" not in response.message
        assert "x = 1" not in response.message
        assert response.message.startswith("Вот пример:")
        assert response.message.endswith("Готово")

    def test_block_without_tag_is_plaintext(self, parser):
        response = parser.parse_response("```\nsome output\n```")

        assert response.code_examples == [CodeBlock(language="plaintext", code="some output")]

    def test_suggestions_from_lists(self, parser):
        raw = "Советы:\n- Повтори циклы\n• Реши задачу\n1. Напиши тест\n2. Прочитай документацию"
        response = parser.parse_response(raw)

        assert response.suggestions == ["Повтори циклы", "Реши задачу", "Напиши тест", "Прочитай документацию"]

    def test_list_items_inside_code_are_not_suggestions(self, parser):
        response = parser.parse_response("Пример:\n```markdown\n- item\n```")

        assert response.suggestions is None

    def test_related_topics(self, parser):
        response = parser.parse_response("Ответ.\nСвязанные темы: циклы, функции; рекурсия")

        assert response.related_topics == ["циклы", "функции", "рекурсия"]

    def test_see_also_english(self, parser):
        response = parser.parse_response("Answer.\nSee also: loops, lists")

        assert response.related_topics == ["loops", "lists"]

    @pytest.mark.parametrize("raw", ["", "   \n  ", None])
    def test_degenerate_input_falls_back(self, parser, raw):
        response = parser.parse_response(raw)

        assert response.message == FALLBACK_MESSAGES["ru"]
        assert response.code_examples is None

    def test_english_fallback(self):
        response = parse_response("", locale="en")

        assert response.message == FALLBACK_MESSAGES["en"]

    def test_only_code_keeps_blocks(self, parser):
        response = parser.parse_response("```python\nx = 1\n```")

        assert response.message == ""
        assert response.code_examples == [CodeBlock(language="python", code="x = 1")]
        assert parser.validate_response(response)

    def test_validate_response(self, parser):
        assert parser.validate_response(AssistantResponse(message="ok"))
        assert not parser.validate_response(AssistantResponse(message="  "))
        assert not parser.validate_response(
            AssistantResponse(message="ok", code_examples=[CodeBlock(language="python", code="")])
        )


class TestLanguageNormalization:

    @pytest.mark.parametrize("tag,expected", [
        ("js", "javascript"),
        ("ts", "typescript"),
        ("py", "python"),
        ("c++", "cpp"),
        ("cs", "csharp"),
        ("c#", "csharp"),
        ("sh", "bash"),
        ("golang", "go"),
        ("yml", "yaml"),
        ("Python", "python"),
        ("java", "java"),
        ("brainfuck", "plaintext"),
        ("", "plaintext"),
        (None, "plaintext"),
        ("python title=example.py", "python"),
    ])
    def test_normalize_language(self, tag, expected):
        assert normalize_language(tag) == expected


class TestFormatForDisplay:

    def test_code_blocks_reemitted_verbatim(self):
        response = AssistantResponse(
            message="Смотри пример",
            code_examples=[CodeBlock(language="python", code="for i in range(3):\n    print(i)")],
            suggestions=["Попробуй while"],
            related_topics=["циклы"],
        )
        text = format_for_display(response)

        assert "Смотри пример" in text
        assert "```python\nfor i in range(3):\n    print(i)\n```" in text
        assert "**Рекомендации:**" in text
        assert "• Попробуй while" in text
        assert "**Связанные темы:** циклы" in text

    def test_parse_then_display_keeps_code(self):
        raw = "Текст\n```go\nfmt.Println(1)\n```"
        text = format_for_display(parse_response(raw))

        assert "fmt.Println(1)" in text
        assert "```go" in text
