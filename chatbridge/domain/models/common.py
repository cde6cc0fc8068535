"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like endpoints, tokens,
chat identifiers and cache keys, ensuring consistency and type safety.
"""

from typing import Any, Dict, List, NewType, Union

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
Endpoint = NewType("Endpoint", str)            # Path relative to the backend origin, e.g. '/api/health'
AuthToken = NewType("AuthToken", str)          # Bearer token issued by the identity provider
PromptText = NewType("PromptText", str)        # User's text prompt
AIResponse = NewType("AIResponse", str)        # Reply text returned by the chatbot endpoint

# === Chat History Context ===
ChatId = NewType("ChatId", str)                # Unique ID for a stored chat
MessageRole = NewType("MessageRole", str)      # 'user', 'assistant', 'system'

# === Caching Context ===
CacheKey = NewType("CacheKey", str)            # Unique key for a cache entry
CachePrefix = NewType("CachePrefix", str)      # Prefix for categorizing cache keys (e.g., 'episodes')

# Decoded JSON payloads exchanged with the backend
JsonValue = Union[Dict[str, Any], List[Any], str, int, float, bool, None]
JsonObject = Dict[str, Any]

# --- Roles ---
ROLE_USER = MessageRole("user")
ROLE_ASSISTANT = MessageRole("assistant")
ROLE_SYSTEM = MessageRole("system")
