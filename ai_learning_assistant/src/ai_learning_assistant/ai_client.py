"""
AI Client

Thin wrapper over openai.AsyncOpenAI pointed at an OpenAI-compatible
chat-completions endpoint. The raw response body is read and resolved here:
providers answer either with a single JSON completion or with an SSE stream,
and both become a ChatCompletionResult.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import openai
from openai import AsyncOpenAI

from ai_learning_assistant.config import AssistantSettings, get_settings
from ai_learning_assistant.errors import AssistantErrorCode, ProviderCallFailed

logger = logging.getLogger(__name__)


# ==================== Provider payloads ====================

@dataclass
class SingleCompletion:
    """A regular JSON chat.completion body."""
    payload: Dict[str, Any]

    @property
    def content(self) -> str:
        return extract_message_content(self.payload)

    def to_completion(self) -> Dict[str, Any]:
        return self.payload


@dataclass
class StreamedCompletion:
    """An SSE body: the parsed `data:` chunks of a streamed completion."""
    chunks: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def content(self) -> str:
        parts = []
        for chunk in self.chunks:
            choices = chunk.get("choices") or [{}]
            choice = choices[0] if isinstance(choices[0], dict) else {}
            delta = choice.get("delta") or {}
            message = choice.get("message") or {}
            if isinstance(delta.get("content"), str):
                parts.append(delta["content"])
            elif isinstance(message.get("content"), str):
                parts.append(message["content"])
        return "".join(parts)

    def to_completion(self) -> Dict[str, Any]:
        """Synthesize the equivalent non-streamed chat.completion object."""
        last = self.chunks[-1] if self.chunks else {}
        role = "assistant"
        for chunk in self.chunks:
            delta = ((chunk.get("choices") or [{}])[0] or {}).get("delta") or {}
            if isinstance(delta.get("role"), str):
                role = delta["role"]
                break
        last_choice = (last.get("choices") or [{}])[0] or {}
        return {
            "id": last.get("id", "sse"),
            "object": "chat.completion",
            "created": last.get("created", int(time.time())),
            "model": last.get("model"),
            "choices": [
                {
                    "index": 0,
                    "finish_reason": last_choice.get("finish_reason"),
                    "message": {"role": role, "content": self.content},
                }
            ],
            "usage": last.get("usage"),
        }


ProviderPayload = Union[SingleCompletion, StreamedCompletion]


def parse_sse_payload(body: str) -> Optional[StreamedCompletion]:
    """Parse `data:` lines of an SSE body; None when no JSON chunk is found."""
    chunks = []
    for line in body.splitlines():
        line = line.strip()
        if not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if not data or data == "[DONE]":
            continue
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            continue
        if isinstance(chunk, dict):
            chunks.append(chunk)
    return StreamedCompletion(chunks) if chunks else None


def parse_response_payload(body: str) -> Optional[ProviderPayload]:
    """Resolve a raw provider body into SingleCompletion or StreamedCompletion."""
    if not body:
        return None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return parse_sse_payload(body)
    if isinstance(payload, dict):
        return SingleCompletion(payload)
    return None


def _content_part_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, dict):
        text = part.get("text")
        if isinstance(text, str):
            return text
        if isinstance(text, dict) and isinstance(text.get("value"), str):
            return text["value"]
    return ""


def extract_message_content(payload: Any) -> str:
    """Text of the first choice; list-of-parts content is joined with newlines."""
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    choice = choices[0]
    delta = choice.get("delta") or {}
    if isinstance(delta.get("content"), str):
        return delta["content"]
    content = (choice.get("message") or {}).get("content")
    if isinstance(content, list):
        return "\n".join(t for t in (_content_part_text(p) for p in content) if t)
    return content if isinstance(content, str) else ""


# ==================== Client ====================

@dataclass
class ChatCompletionResult:
    data: Any
    raw: str
    model: str
    used_fallback: bool = False


class AIClient:
    """Chat-completion client for an OpenAI-compatible endpoint."""

    def __init__(self, settings: Optional[AssistantSettings] = None, client: Optional[AsyncOpenAI] = None):
        """
        Initialize AIClient.

        Args:
            settings: Provider settings (defaults to the environment)
            client: Preconfigured AsyncOpenAI client, mainly for tests
        """
        self.settings = settings or get_settings()
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or self.settings.is_ai_configured

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.is_ai_configured:
                raise ProviderCallFailed("AI_API_TOKEN or HF_TOKEN is not defined")
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.request_timeout,
                max_retries=0,
            )
        return self._client

    async def call_chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, str]] = None,
    ) -> ChatCompletionResult:
        """
        POST {base_url}/chat/completions and resolve the body.

        Raises:
            ProviderCallFailed: on any openai.APIError (timeouts, connection
                errors, non-2xx statuses, ...), unreadable bodies and empty
                completions
        """
        params: Dict[str, Any] = {"model": model, "messages": messages, "stream": False}
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        if response_format:
            params["response_format"] = response_format

        try:
            response = await self.client.chat.completions.with_raw_response.create(**params)
            body = response.text
        except openai.APITimeoutError as e:
            logger.error(f"❌ [AIClient] Request to {model} timed out")
            raise ProviderCallFailed(f"Request timeout: {e}", code=AssistantErrorCode.AI_TIMEOUT) from e
        except openai.APIConnectionError as e:
            logger.error(f"❌ [AIClient] Connection error for {model}: {e}")
            raise ProviderCallFailed(f"Connection error: {e}", code=AssistantErrorCode.NETWORK_ERROR) from e
        except openai.APIStatusError as e:
            logger.error(f"❌ [AIClient] {model} returned HTTP {e.status_code}: {e.message}")
            raise ProviderCallFailed(f"ai_request_failed: {e.message}", status=e.status_code) from e
        except openai.APIError as e:
            logger.error(f"❌ [AIClient] {model} failed: {e}")
            raise ProviderCallFailed(f"ai_request_failed: {e}") from e

        logger.debug(f"🔍 [AIClient] Raw response (first 500 chars): {body[:500]}")

        payload = parse_response_payload(body)
        if payload is None:
            raise ProviderCallFailed(
                f"Unreadable response body from {model}",
                code=AssistantErrorCode.INVALID_RESPONSE,
            )

        raw = payload.content.strip()
        if not raw:
            raise ProviderCallFailed(f"{model} returned an empty completion", code=AssistantErrorCode.INVALID_RESPONSE)

        return ChatCompletionResult(data=payload.to_completion(), raw=raw, model=model)
