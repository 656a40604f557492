"""AI learning assistant orchestration core"""
from .content_filter import ContentFilter, filter_content
from .context_aggregator import ContextAggregator
from .errors import AssistantError, AssistantErrorCode, ContentRejected, ProviderCallFailed, SessionNotFound
from .model_router import ModelRouter, RouterOptions, RouterResult
from .models import AssistantContext, AssistantRequest, AssistantResponse, RequestType, Tier
from .response_cache import TTLCache, response_cache_key
from .response_parser import ResponseParser, parse_response
from .service import AssistantService, get_assistant_service
from .session_manager import SessionManager

__all__ = [
    "AssistantContext",
    "AssistantError",
    "AssistantErrorCode",
    "AssistantRequest",
    "AssistantResponse",
    "AssistantService",
    "ContentFilter",
    "ContentRejected",
    "ContextAggregator",
    "ModelRouter",
    "ProviderCallFailed",
    "RequestType",
    "ResponseParser",
    "RouterOptions",
    "RouterResult",
    "SessionManager",
    "SessionNotFound",
    "TTLCache",
    "Tier",
    "filter_content",
    "get_assistant_service",
    "parse_response",
    "response_cache_key",
]
