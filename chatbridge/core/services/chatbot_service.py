"""Core service for the chatbot inference endpoints.

Sends conversation history to the backend's completion endpoint and exposes
the model list, service status and web search endpoints. Failures propagate
as ApiError so callers can show a specific message.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping

from chatbridge.domain.models.common import Endpoint, JsonObject
from chatbridge.infrastructure.config.settings import DEFAULT_CHAT_MODEL, DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from chatbridge.infrastructure.http.api_client import ResilientApiClient

logger = logging.getLogger(__name__)

CHATBOT_ENDPOINT = Endpoint("/api/chatbot/gemini")
MODELS_ENDPOINT = Endpoint("/api/chatbot/models")
STATUS_ENDPOINT = Endpoint("/api/chatbot/status")
SEARCH_STATUS_ENDPOINT = Endpoint("/api/search/status")
SEARCH_ENDPOINT = Endpoint("/api/search/comprehensive")

DEFAULT_SEARCH_SOURCES = ("google", "wikipedia")


def validate_conversation_history(messages: Iterable[Mapping[str, Any]]) -> List[Dict[str, str]]:
    """Keeps messages with a role and non-blank content, trimmed to {role, content}."""
    validated = []
    for message in messages:
        if "role" not in message or "content" not in message:
            continue
        content = str(message["content"]).strip()
        if not content:
            continue
        validated.append({"role": message["role"], "content": content})
    return validated


class ChatbotService:
    """Chat completion, model listing, status and search."""

    def __init__(
        self,
        api_client: ResilientApiClient,
        default_model: str = DEFAULT_CHAT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ):
        self.api_client = api_client
        self.default_model = default_model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def send_to_ai(
        self,
        messages: Iterable[Mapping[str, Any]],
        model: str = None,
        max_tokens: int = None,
        temperature: float = None,
    ) -> JsonObject:
        """Sends the conversation to the chatbot endpoint.

        Args:
            messages: Conversation history as {role, content} mappings.
            model: Model name; defaults to the configured model.
            max_tokens: Completion token limit.
            temperature: Sampling temperature.

        Returns:
            The decoded response, e.g. {'success': True, 'response': '...'}.

        Raises:
            QuotaExceeded: The backend's inference quota is used up.
            ApiError: Any other classified failure.
        """
        payload = {
            "model": model or self.default_model,
            "messages": validate_conversation_history(messages),
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }
        logger.debug(f"Sending {len(payload['messages'])} message(s) to {CHATBOT_ENDPOINT} with model {payload['model']}")
        data = await self.api_client.post(CHATBOT_ENDPOINT, payload)
        return data if isinstance(data, dict) else {"success": False, "response": data}

    async def get_available_models(self) -> List[str]:
        data = await self.api_client.get(MODELS_ENDPOINT)
        return [str(m) for m in (data or {}).get("models") or []]

    async def get_ai_service_status(self) -> JsonObject:
        return await self.api_client.get(STATUS_ENDPOINT) or {}

    async def get_search_status(self) -> JsonObject:
        return await self.api_client.get(SEARCH_STATUS_ENDPOINT) or {}

    async def perform_search(self, query: str, sources: Iterable[str] = DEFAULT_SEARCH_SOURCES) -> JsonObject:
        if not query.strip():
            raise ValueError("Search query is required")
        payload = {"query": query, "sources": list(sources)}
        return await self.api_client.post(SEARCH_ENDPOINT, payload) or {}

    async def test_connection(self) -> bool:
        return await self.api_client.test_connection()
