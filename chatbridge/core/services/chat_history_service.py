"""Core service for persisted chat history.

History lives on the backend as a single document per user. Reads degrade
to an empty history so the chat session can always start; writes raise so
callers learn when a conversation was not saved.
"""

import logging
import time
import uuid
from datetime import datetime
from typing import List, Optional

from chatbridge.domain.errors import ApiError
from chatbridge.domain.models.chat import Chat, ChatHistoryResponse, ChatMessage, NEW_CHAT_TITLE, utcnow
from chatbridge.domain.models.common import ChatId, Endpoint, MessageRole, ROLE_USER
from chatbridge.infrastructure.http.api_client import ResilientApiClient

logger = logging.getLogger(__name__)

CHAT_HISTORY_ENDPOINT = Endpoint("/api/chatbot/chats")
MAX_STORED_CHATS = 50


def new_message(role: MessageRole, content: str) -> ChatMessage:
    return ChatMessage(id=uuid.uuid4().hex, role=role, content=content, timestamp=utcnow())


def format_chat_date(date: datetime, now: Optional[datetime] = None) -> str:
    """Formats a chat timestamp relative to `now` ('Today', '3 days ago', '1/2/2024')."""
    now = now or utcnow()
    if date.tzinfo is not None and now.tzinfo is not None:
        date = date.astimezone(now.tzinfo)
    days = (now.date() - date.date()).days
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    return f"{date.day}/{date.month}/{date.year}"


class ChatHistoryService:
    """Loads, saves and edits the user's stored chats."""

    def __init__(self, api_client: ResilientApiClient, max_chats: int = MAX_STORED_CHATS):
        self.api_client = api_client
        self.max_chats = max_chats

    async def _load_chats(self) -> List[Chat]:
        """Strict load: any failure propagates."""
        data = await self.api_client.get(CHAT_HISTORY_ENDPOINT)
        response = ChatHistoryResponse.from_json(data if isinstance(data, dict) else None)
        if not response.success:
            raise ApiError("Chat history response was not successful", endpoint=CHAT_HISTORY_ENDPOINT)
        return response.chats

    async def get_chat_history(self) -> List[Chat]:
        """Returns stored chats, or an empty list if they cannot be loaded."""
        try:
            chats = await self._load_chats()
        except (ApiError, ValueError, TypeError) as e:
            logger.warning(f"Could not load chat history: {e}")
            return []
        logger.debug(f"Loaded {len(chats)} chat(s) from history")
        return chats

    async def save_chat_history(self, chats: List[Chat]) -> bool:
        """Replaces the stored history.

        Returns:
            The backend's success flag.

        Raises:
            ApiError: The history could not be saved.
        """
        data = await self.api_client.post(CHAT_HISTORY_ENDPOINT, {"chats": [c.to_json() for c in chats]})
        success = bool(isinstance(data, dict) and data.get("success"))
        if not success:
            logger.warning("Backend reported an unsuccessful chat history save")
        return success

    async def save_chat(self, chat: Chat) -> bool:
        chats = await self._load_chats()
        if any(c.id == chat.id for c in chats):
            # Existing chats keep their position
            updated = [chat if c.id == chat.id else c for c in chats]
        else:
            updated = [chat] + chats
        return await self.save_chat_history(updated[:self.max_chats])

    async def delete_chat(self, chat_id: str) -> bool:
        chats = await self._load_chats()
        remaining = [c for c in chats if c.id != chat_id]
        if len(remaining) == len(chats):
            logger.info(f"Chat {chat_id} not found; nothing to delete")
            return False
        return await self.save_chat_history(remaining)

    async def get_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        for chat in await self.get_chat_history():
            if chat.id == chat_id:
                return chat
        return None

    def create_new_chat(self) -> Chat:
        now = utcnow()
        return Chat(
            id=ChatId(str(int(time.time() * 1000))),
            title=NEW_CHAT_TITLE,
            messages=[],
            created_at=now,
            updated_at=now,
        )

    def add_message_to_chat(self, chat: Chat, message: ChatMessage) -> Chat:
        """Returns a copy of `chat` with `message` appended."""
        updated = chat.copy_with(messages=chat.messages + [message], updated_at=utcnow())
        if message.role == ROLE_USER and chat.title == NEW_CHAT_TITLE:
            updated = updated.copy_with(title=updated.generate_title())
        return updated

    format_chat_date = staticmethod(format_chat_date)
