"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), delegates the work to
the application services and renders the results through the UserInterface.
Every classified API failure is shown as its user-facing message.
"""

import logging
from typing import Any, Dict, List, Optional

from chatbridge.core.services.chat_history_service import ChatHistoryService, format_chat_date
from chatbridge.core.services.chat_service import ChatService
from chatbridge.core.services.chatbot_service import ChatbotService
from chatbridge.core.services.media_service import MediaService
from chatbridge.domain.errors import ApiError, QuotaExceeded
from chatbridge.domain.interfaces.cache import CACHE_LEVELS
from chatbridge.domain.interfaces.user_interface import UserInterface
from chatbridge.domain.models.common import PromptText
from chatbridge.infrastructure.http.api_client import ResilientApiClient

logger = logging.getLogger(__name__)

EPISODE_COLUMNS = ("Title", "Published", "Duration")
FILE_COLUMNS = ("Name", "Type", "Size", "Last Modified")
CHAT_COLUMNS = ("ID", "Title", "Messages", "Updated")


def _items(payload: Any) -> List[Dict[str, Any]]:
    """Extracts the list from a {success, data: [...]} envelope."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, list):
            return data
    return []


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        chat_service: ChatService,
        chatbot_service: ChatbotService,
        history_service: ChatHistoryService,
        media_service: MediaService,
        api_client: ResilientApiClient,
        ui: UserInterface,
    ):
        self.chat_service = chat_service
        self.chatbot_service = chatbot_service
        self.history_service = history_service
        self.media_service = media_service
        self.api_client = api_client
        self.ui = ui

    def _report(self, action: str, error: ApiError) -> None:
        logger.error(f"{action} failed: {error}")
        if isinstance(error, QuotaExceeded):
            self.ui.display_warning(error.user_message)
        else:
            self.ui.display_error(error.user_message)

    # --- Chat ---

    async def start_chat(self, chat_id: Optional[str] = None) -> None:
        """Handles the interactive chat mode."""
        logger.info("Starting interactive chat session.")
        try:
            await self.chat_service.start_session(chat_id)
        except ApiError as e:
            self._report("Chat session", e)

    async def handle_ask(self, prompt: str) -> None:
        """Sends a single prompt in a fresh chat and prints the reply."""
        if not prompt.strip():
            self.ui.display_error("Prompt must not be empty.")
            return
        try:
            self.chat_service.current_chat = self.history_service.create_new_chat()
            reply = await self.chat_service.send_message(PromptText(prompt.strip()))
        except ApiError as e:
            self._report("Ask", e)
            return
        if reply is None:
            self.ui.display_error("The assistant did not return a response.")
            return
        self.ui.display_output(reply, title="AI")

    # --- Backend status ---

    async def handle_health(self) -> None:
        try:
            health = await self.media_service.check_health()
        except ApiError as e:
            self._report("Health check", e)
            return
        self.ui.display_mapping(f"Backend health ({self.api_client.base_url})", health)

    async def handle_models(self) -> None:
        try:
            models = await self.chatbot_service.get_available_models()
        except ApiError as e:
            self._report("Listing models", e)
            return
        self.ui.display_table("Available models", ("Model",), [(m,) for m in models])

    async def handle_status(self) -> None:
        try:
            ai_status = await self.chatbot_service.get_ai_service_status()
            search_status = await self.chatbot_service.get_search_status()
        except ApiError as e:
            self._report("Status check", e)
            return
        self.ui.display_mapping("AI service status", ai_status)
        self.ui.display_mapping("Search service status", search_status)

    async def handle_search(self, query: str) -> None:
        try:
            results = await self.chatbot_service.perform_search(query)
        except ValueError as e:
            self.ui.display_error(str(e))
            return
        except ApiError as e:
            self._report("Search", e)
            return
        self.ui.display_mapping(f"Search results for '{query}'", results)

    # --- Chat history ---

    async def handle_history_list(self) -> None:
        chats = await self.history_service.get_chat_history()
        rows = [
            (chat.id, chat.title, len(chat.messages), format_chat_date(chat.updated_at))
            for chat in chats
        ]
        self.ui.display_table("Stored chats", CHAT_COLUMNS, rows)

    async def handle_history_show(self, chat_id: str) -> None:
        chat = await self.history_service.get_chat_by_id(chat_id)
        if chat is None:
            self.ui.display_error(f"Chat {chat_id} not found.")
            return
        self.ui.display_chat_history(chat.messages, title=chat.title)

    async def handle_history_delete(self, chat_id: str) -> None:
        try:
            deleted = await self.history_service.delete_chat(chat_id)
        except ApiError as e:
            self._report("Deleting chat", e)
            return
        if deleted:
            self.ui.display_info(f"Chat {chat_id} deleted.")
        else:
            self.ui.display_warning(f"Chat {chat_id} was not deleted.")

    # --- Media ---

    async def handle_episodes(self, search: Optional[str] = None, limit: Optional[int] = None) -> None:
        try:
            if search:
                payload = await self.media_service.search_episodes(search, limit=limit)
            else:
                payload = await self.media_service.get_episodes(limit=limit)
        except ApiError as e:
            self._report("Listing episodes", e)
            return
        rows = [(ep.get("title"), ep.get("pubDate"), ep.get("duration")) for ep in _items(payload)]
        self.ui.display_table("Podcast episodes", EPISODE_COLUMNS, rows)

    async def handle_files(
        self,
        search: Optional[str] = None,
        file_type: Optional[str] = None,
        sort: Optional[str] = None,
        page: int = 1,
        limit: int = 12,
    ) -> None:
        try:
            payload = await self.media_service.get_files_page(
                page=page, limit=limit, search=search, type=file_type, sort=sort
            )
        except ApiError as e:
            self._report("Listing files", e)
            return
        rows = [
            (f.get("name"), f.get("contentType"), f.get("size"), f.get("lastModified"))
            for f in _items(payload)
        ]
        self.ui.display_table(f"Files (page {page})", FILE_COLUMNS, rows)

    async def handle_file_info(self, filename: str) -> None:
        try:
            info = await self.media_service.get_file_info(filename)
        except ValueError as e:
            self.ui.display_error(str(e))
            return
        except ApiError as e:
            self._report("File info", e)
            return
        data = info.get("data") if isinstance(info.get("data"), dict) else info
        self.ui.display_mapping(f"File: {filename}", data)

    async def handle_download_url(self, filename: str, expiry_minutes: int = 60) -> None:
        try:
            result = await self.media_service.get_file_download_url(filename, expiry_minutes)
        except ValueError as e:
            self.ui.display_error(str(e))
            return
        except ApiError as e:
            self._report("Download URL", e)
            return
        data = result.get("data") if isinstance(result.get("data"), dict) else result
        url = data.get("downloadUrl")
        if not url:
            self.ui.display_error(f"No download URL returned for {filename}.")
            return
        self.ui.display_output(url, title="Download URL")

    # --- Cache ---

    async def handle_clear_cache(self, level: str = 'all', remote: bool = False) -> None:
        """Handles the 'clear-cache' command."""
        logger.info(f"Handling 'clear-cache' command for level: {level} (remote={remote})")
        if level not in CACHE_LEVELS:
            self.ui.display_error(f"Invalid cache level. Choose one of: {', '.join(CACHE_LEVELS)}.")
            return
        try:
            if remote:
                await self.media_service.clear_remote_cache(level=level)
            else:
                await self.api_client.clear_cache(level)
        except ApiError as e:
            self._report("Clearing cache", e)
            return
        suffix = " and backend caches" if remote else ""
        self.ui.display_info(f"Cache level '{level}'{suffix} cleared successfully.")
