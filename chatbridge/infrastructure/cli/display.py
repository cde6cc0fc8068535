import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from rich.align import Align
from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chatbridge.domain.interfaces.user_interface import UserInterface
from chatbridge.domain.models.common import PromptText

logger = logging.getLogger(__name__)

MAX_HISTORY_CONTENT_LENGTH = 100


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()
        self.session_start_time = time.time()
        self.message_count = 0
        self.last_sender: Optional[str] = None

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_output(self, output: str, **kwargs: Any) -> None:
        """Displays output text, rendering Markdown inside a titled panel.

        Args:
            output: The text to display.
            **kwargs: Additional arguments including:
                - title: The sender of the message (default: "AI")
                - message_type: "normal" or "thinking"
        """
        title = kwargs.get("title", "AI")
        message_type = kwargs.get("message_type", "normal")
        self.message_count += 1

        is_continuation = self.last_sender == title
        self.last_sender = title
        timestamp = datetime.now().strftime("%H:%M:%S")

        if title.lower() == "ai":
            if message_type == "thinking":
                box_style, style = SIMPLE, "cyan"
                header = f"[bold cyan]{title} thinking...[/bold cyan] [dim]{timestamp}[/dim]"
            else:
                box_style, style = ROUNDED, "blue"
                header = f"[bold white]{title}[/bold white] [dim]{timestamp}[/dim]"
        else:
            box_style, style = SIMPLE, "green"
            header = f"[bold white]{title}[/bold white] [dim]{timestamp}[/dim]"

        if not is_continuation:
            self.console.print("")

        self.console.print(Panel(
            Markdown(str(output)),
            title=header,
            title_align="left",
            border_style=style,
            box=box_style,
            padding=(0, 1)
        ))

    def get_prompt(self, prompt_message: str = "> ") -> PromptText:
        """Gets input from the user with a styled prompt.

        Args:
            prompt_message: The message to display before the input cursor.

        Returns:
            The text input by the user.
        """
        self.last_sender = None
        self.console.print("")
        user_input = self.console.input(f"[bold green]{prompt_message}[/bold green]")
        self.message_count += 1
        return PromptText(user_input)

    def _print_panel(self, message: str, title: str, color: str, box=SIMPLE) -> None:
        self.console.print(Panel(
            Text(message, style="white"),
            title=f"[bold {color}]{title}[/bold {color}]",
            border_style=color,
            box=box,
            padding=(0, 1)
        ))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        self._print_panel(error_message, "Error", "red", box=HEAVY)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self._print_panel(info_message, "Info", "blue")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        self._print_panel(warning_message, "Warning", "yellow", box=HEAVY)

    def display_table(self, title: str, columns: Sequence[str], rows: List[Sequence[Any]]) -> None:
        """Displays rows under the given column headings.

        Args:
            title: Table title.
            columns: Column headings.
            rows: Row values; each is converted with str().
        """
        if not rows:
            self.display_info(f"{title}: nothing to show.")
            return
        table = Table(title=title, show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*("" if value is None else str(value) for value in row))
        self.console.print(table)

    def display_mapping(self, title: str, data: Dict[str, Any]) -> None:
        table = Table(title=title, show_header=False, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Key", style="bold cyan")
        table.add_column("Value", style="white")
        for key, value in (data or {}).items():
            table.add_row(str(key), str(value))
        self.console.print(table)

    def display_session_header(self, backend_url: str, chat_title: str) -> None:
        """Displays a stylized header for a new chat session."""
        table = Table(show_header=False, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Content", style="cyan")
        table.add_row("[bold cyan]chatbridge Interactive Chat Session[/bold cyan]")
        table.add_row(f"Backend: [bold]{backend_url}[/bold]")
        table.add_row(f"Chat: [bold]{chat_title}[/bold]")
        table.add_row(f"Session started at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        table.add_row("Type 'exit' or 'quit' to end the session, '/help' for commands")
        self.console.print("")
        self.console.print(Align.center(table))
        self.console.print("")

    def display_session_footer(self, message_count: int, session_duration_secs: float) -> None:
        """Displays a summary at the end of a chat session.

        Args:
            message_count: Number of messages exchanged
            session_duration_secs: Session duration in seconds
        """
        minutes, seconds = divmod(int(session_duration_secs), 60)
        hours, minutes = divmod(minutes, 60)
        duration_str = f"{hours}h {minutes}m {seconds}s" if hours else f"{minutes}m {seconds}s"

        table = Table(show_header=False, box=SIMPLE, border_style="cyan", padding=(0, 1))
        table.add_column("Content", style="cyan")
        table.add_row("[bold cyan]Chat Session Summary[/bold cyan]")
        table.add_row(f"Messages exchanged: [bold]{message_count}[/bold]")
        table.add_row(f"Session duration: [bold]{duration_str}[/bold]")
        self.console.print("")
        self.console.print(Align.center(table))
        self.console.print("")

    def display_chat_history(self, history: List[Any], **kwargs: Any) -> None:
        """Displays the messages of a chat as a table.

        Args:
            history: List of ChatMessage objects
            **kwargs: title overrides the panel heading
        """
        logger.debug(f"Displaying chat history with {len(history)} messages")
        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Time", style="dim")
        table.add_column("Role", style="bold")
        table.add_column("Message", style="white")

        for i, message in enumerate(history, 1):
            role = str(message.role).capitalize()
            timestamp = message.timestamp.strftime("%H:%M:%S")
            content = str(message.content)
            if len(content) > MAX_HISTORY_CONTENT_LENGTH:
                content = content[:MAX_HISTORY_CONTENT_LENGTH - 3] + "..."
            role_style = "bold green" if role.lower() == "user" else "bold blue"
            table.add_row(str(i), timestamp, f"[{role_style}]{role}[/{role_style}]", content)

        self.console.print("")
        self.console.print(Panel(
            Text(kwargs.get("title", "Chat History"), justify="center"),
            border_style="cyan",
            box=SIMPLE
        ))
        self.console.print(table)
        self.console.print("")

    def display_thinking(self, **kwargs: Any) -> None:
        message = kwargs.get("message", "Thinking...")
        self.display_output(message, title="AI", message_type="thinking")
