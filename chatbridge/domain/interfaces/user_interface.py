"""Interface for interacting with the user (input/output).

Defines the contract for displaying information, errors, warnings,
tables and getting input from the user, allowing different UI
implementations (e.g., console, GUI).
"""

import abc
from typing import Any, Dict, List, Sequence

from chatbridge.domain.models.common import PromptText


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays standard output to the user.

        Args:
            output: The text to display (Markdown is allowed).
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def get_prompt(self, prompt_message: str = "Input: ") -> PromptText:
        """Gets input from the user synchronously.

        Note: For async contexts, the caller should wrap this in asyncio.to_thread.

        Args:
            prompt_message: The message to display before the input prompt.

        Returns:
            The user's input as PromptText.
        """
        pass

    def display_table(self, title: str, columns: Sequence[str], rows: List[Sequence[Any]]) -> None:
        """Displays tabular data (episodes, files, stored chats)."""
        pass

    def display_mapping(self, title: str, data: Dict[str, Any]) -> None:
        """Displays a key/value mapping such as a status payload."""
        pass

    def display_chat_history(self, history: list, **kwargs: Any) -> None:
        """Displays the messages of a chat.

        Args:
            history: List of ChatMessage objects
            **kwargs: Additional display options
        """
        pass

    def display_thinking(self, **kwargs: Any) -> None:
        """Displays a 'thinking' indicator while waiting for the backend."""
        pass

    def display_session_header(self, backend_url: str, chat_title: str) -> None:
        pass

    def display_session_footer(self, message_count: int, session_duration_secs: float) -> None:
        pass
