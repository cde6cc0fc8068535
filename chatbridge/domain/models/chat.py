"""Domain models specific to chat interactions.

Includes the `ChatMessage` entity, the `Chat` aggregate root and the
`ChatHistoryResponse` returned by the chat history endpoint. JSON field
names follow the backend document schema (camelCase).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from chatbridge.domain.models.common import ChatId, MessageRole, ROLE_USER

NEW_CHAT_TITLE = "New Chat"
UNTITLED_CHAT_TITLE = "Untitled Chat"
TITLE_MAX_LENGTH = 30


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parses an ISO-8601 timestamp, falling back to the current time."""
    if not isinstance(value, str) or not value:
        return utcnow()
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return utcnow()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_object(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"Expected a JSON object for {what}, got {type(value).__name__}")
    return value


def _require_list(value: Any, what: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"Expected a JSON array for {what}, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class ChatMessage:
    """Entity representing a single message within a chat."""
    id: str
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ChatMessage":
        data = _require_object(data, "chat message")
        return cls(
            id=str(data.get("id") or ""),
            role=MessageRole(data.get("role") or ROLE_USER),
            content=str(data.get("content") or ""),
            timestamp=parse_timestamp(data.get("timestamp")),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_api_message(self) -> Dict[str, str]:
        """Converts this message to the {role, content} shape the chatbot endpoint expects."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Chat:
    """Aggregate root representing a stored conversation."""
    id: ChatId
    title: str
    messages: List[ChatMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Chat":
        data = _require_object(data, "chat")
        return cls(
            id=ChatId(str(data.get("id") or "")),
            title=data.get("title") or UNTITLED_CHAT_TITLE,
            messages=[ChatMessage.from_json(m) for m in _require_list(data.get("messages"), "messages")],
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_json() for m in self.messages],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    def copy_with(self, **changes: Any) -> "Chat":
        return replace(self, **changes)

    @property
    def last_user_message(self) -> str:
        for message in reversed(self.messages):
            if message.role == ROLE_USER:
                return message.content
        return NEW_CHAT_TITLE

    def generate_title(self) -> str:
        """Builds a title from the first user message."""
        first = next((m.content for m in self.messages if m.role == ROLE_USER), NEW_CHAT_TITLE)
        if len(first) > TITLE_MAX_LENGTH:
            return f"{first[:TITLE_MAX_LENGTH]}..."
        return first

    def get_history_for_api(self) -> List[Dict[str, str]]:
        return [m.to_api_message() for m in self.messages]


@dataclass(frozen=True)
class ChatHistoryResponse:
    """Envelope returned by GET/POST on the chat history endpoint."""
    success: bool
    chats: List[Chat]
    user_id: str = ""
    database: str = ""
    collection: str = ""
    timestamp: str = ""

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> "ChatHistoryResponse":
        data = data or {}
        return cls(
            success=bool(data.get("success", False)),
            chats=[Chat.from_json(c) for c in _require_list(data.get("chats"), "chats")],
            user_id=data.get("userId") or "",
            database=data.get("database") or "",
            collection=data.get("collection") or "",
            timestamp=data.get("timestamp") or "",
        )
