"""Core service for managing interactive chat sessions.

Runs the chat loop: reads prompts from the user interface, keeps the current
`Chat` up to date, sends the conversation to the chatbot endpoint, and saves
the chat after each exchange.
"""

import asyncio
import logging
import time
from typing import Optional

from chatbridge.core.services.chat_history_service import ChatHistoryService, new_message
from chatbridge.core.services.chatbot_service import ChatbotService
from chatbridge.domain.errors import ApiError, AuthRequired, QuotaExceeded
from chatbridge.domain.interfaces.user_interface import UserInterface
from chatbridge.domain.models.chat import Chat
from chatbridge.domain.models.common import AIResponse, PromptText, ROLE_ASSISTANT, ROLE_USER

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("exit", "quit")
HISTORY_COMMANDS = ("/history", "/h")
HELP_COMMANDS = ("/help", "/?")
NEW_CHAT_COMMANDS = ("/new",)

NO_RESPONSE_MESSAGE = "The assistant did not return a response."

HELP_TEXT = """
Available commands:
- /history or /h - Display the current chat
- /new - Start a new chat
- /help or /? - Show this help message
- exit or quit - End the chat session
"""


class ChatService:
    """Orchestrates the interactive chat functionality."""

    def __init__(
        self,
        chatbot_service: ChatbotService,
        history_service: ChatHistoryService,
        ui: UserInterface,
        backend_url: str = "",
    ):
        self.chatbot_service = chatbot_service
        self.history_service = history_service
        self.ui = ui
        self.backend_url = backend_url
        self.current_chat: Optional[Chat] = None
        self.message_count = 0

    async def _resolve_chat(self, chat_id: Optional[str]) -> Chat:
        if chat_id:
            chat = await self.history_service.get_chat_by_id(chat_id)
            if chat is not None:
                logger.info(f"Resuming chat {chat.id} ({len(chat.messages)} messages)")
                return chat
            self.ui.display_warning(f"Chat {chat_id} not found. Starting a new chat.")
        return self.history_service.create_new_chat()

    async def send_message(self, prompt: PromptText) -> Optional[AIResponse]:
        """Sends one user turn and records the reply in the current chat.

        Returns:
            The assistant's reply, or None when the backend returned no text.

        Raises:
            ApiError: The chatbot endpoint call failed.
        """
        if self.current_chat is None:
            self.current_chat = self.history_service.create_new_chat()

        chat = self.history_service.add_message_to_chat(self.current_chat, new_message(ROLE_USER, prompt))
        self.current_chat = chat
        self.message_count += 1

        data = await self.chatbot_service.send_to_ai(chat.get_history_for_api())
        reply = data.get("response") if data.get("success") else None
        if not reply:
            logger.warning(f"Chatbot returned no response: {data.get('error') or data}")
            return None

        self.current_chat = self.history_service.add_message_to_chat(chat, new_message(ROLE_ASSISTANT, str(reply)))
        self.message_count += 1
        await self._save_current_chat()
        return AIResponse(str(reply))

    async def _save_current_chat(self) -> None:
        try:
            saved = await self.history_service.save_chat(self.current_chat)
        except ApiError as e:
            logger.error(f"Failed to save chat {self.current_chat.id}: {e}")
            self.ui.display_warning(f"Chat could not be saved: {e.user_message}")
            return
        if not saved:
            self.ui.display_warning("Chat could not be saved.")

    async def start_session(self, chat_id: Optional[str] = None) -> None:
        """Starts a chat session, optionally resuming a stored chat."""
        self.current_chat = await self._resolve_chat(chat_id)
        self.message_count = 0
        await self.start_chat_loop()

    async def start_chat_loop(self) -> None:
        """Runs the main asynchronous loop for a chat session."""
        if self.current_chat is None:
            logger.error("Cannot start chat loop: no current chat.")
            return

        self.ui.display_session_header(self.backend_url, self.current_chat.title)
        logger.info(f"Chat session for chat {self.current_chat.id} started.")
        session_start = time.time()

        while True:
            try:
                user_input = await asyncio.to_thread(self.ui.get_prompt, "You: ")
                prompt = PromptText(user_input.strip())
                command = prompt.lower()

                if command in EXIT_COMMANDS:
                    self.ui.display_info("Ending chat session.")
                    break
                if command in HISTORY_COMMANDS:
                    self.ui.display_chat_history(self.current_chat.messages, title=self.current_chat.title)
                    continue
                if command in HELP_COMMANDS:
                    self.ui.display_info(HELP_TEXT)
                    continue
                if command in NEW_CHAT_COMMANDS:
                    self.current_chat = self.history_service.create_new_chat()
                    self.ui.display_info("Started a new chat.")
                    continue
                if not prompt:
                    continue

                self.ui.display_thinking()
                reply = await self.send_message(prompt)
                if reply is None:
                    self.ui.display_error(NO_RESPONSE_MESSAGE)
                    continue
                self.ui.display_output(reply, title="AI")

            except QuotaExceeded as e:
                self.ui.display_warning(e.user_message)
            except AuthRequired as e:
                logger.critical(f"Chat loop terminating due to authentication error: {e}")
                self.ui.display_error(e.user_message)
                break
            except ApiError as e:
                self.ui.display_error(e.user_message)
            except (KeyboardInterrupt, EOFError):
                logger.info("Chat session interrupted by user.")
                self.ui.display_info("Ending chat session.")
                break

        self.ui.display_session_footer(self.message_count, time.time() - session_start)
        logger.info(f"Chat session for chat {self.current_chat.id} finished.")
