"""Main entry point for the chatbridge application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Annotated, Any, Coroutine, Dict, Optional

import httpx
import typer

# --- Core Layer ---
from chatbridge.core.command_handler import CommandHandler
from chatbridge.core.services.chat_history_service import ChatHistoryService
from chatbridge.core.services.chat_service import ChatService
from chatbridge.core.services.chatbot_service import ChatbotService
from chatbridge.core.services.media_service import MediaService

# --- Infrastructure Layer ---
from chatbridge.domain.interfaces.token_provider import TokenProvider
from chatbridge.domain.interfaces.user_interface import UserInterface
from chatbridge.infrastructure.auth.token_providers import ConfigTokenProvider
from chatbridge.infrastructure.cache.caching_service import CachingServiceImpl
from chatbridge.infrastructure.cli.display import ConsoleDisplay
from chatbridge.infrastructure.config.settings import (
    get_cache_dir,
    get_cache_ttl,
    get_chat_model,
    get_client_config,
    get_max_tokens,
    get_temperature,
    load_configuration,
)
from chatbridge.infrastructure.http.api_client import ResilientApiClient
from chatbridge.infrastructure.monitoring.logger_setup import setup_logging_from_config

logger = logging.getLogger(__name__)

# --- Dependency Injection Container (Manual) ---

def create_dependencies(
    transport: Optional[httpx.AsyncBaseTransport] = None,
    ui: Optional[UserInterface] = None,
    token_provider: Optional[TokenProvider] = None,
    configure_logging: bool = True,
) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.

    Args:
        transport: Optional httpx transport (tests pass an httpx.MockTransport).
        ui: User interface; defaults to the Rich console display.
        token_provider: Bearer token source; defaults to config-backed tokens.
        configure_logging: Whether to apply the 'logging.*' settings.
    """
    # 1. Load Configuration First
    load_configuration()
    if configure_logging:
        setup_logging_from_config()
    logger.info("Initializing application dependencies...")

    dependencies: Dict[str, Any] = {}

    # 2. Infrastructure adapters
    dependencies['ui'] = ui or ConsoleDisplay()
    dependencies['cache_service'] = CachingServiceImpl(ttl=get_cache_ttl(), l2_dir=get_cache_dir())
    dependencies['token_provider'] = token_provider or ConfigTokenProvider()
    client_config = get_client_config()
    dependencies['api_client'] = ResilientApiClient(
        client_config,
        token_provider=dependencies['token_provider'],
        cache_service=dependencies['cache_service'],
        transport=transport,
    )

    # 3. Core services
    dependencies['chatbot_service'] = ChatbotService(
        dependencies['api_client'],
        default_model=get_chat_model(),
        max_tokens=get_max_tokens(),
        temperature=get_temperature(),
    )
    dependencies['history_service'] = ChatHistoryService(dependencies['api_client'])
    dependencies['media_service'] = MediaService(dependencies['api_client'], cache_ttl=get_cache_ttl())
    dependencies['chat_service'] = ChatService(
        chatbot_service=dependencies['chatbot_service'],
        history_service=dependencies['history_service'],
        ui=dependencies['ui'],
        backend_url=client_config.base_url,
    )

    # 4. Command handler
    dependencies['command_handler'] = CommandHandler(
        chat_service=dependencies['chat_service'],
        chatbot_service=dependencies['chatbot_service'],
        history_service=dependencies['history_service'],
        media_service=dependencies['media_service'],
        api_client=dependencies['api_client'],
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


# Built lazily by get_dependencies()
_dependencies: Optional[Dict[str, Any]] = None


def get_dependencies() -> Dict[str, Any]:
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def get_handler() -> CommandHandler:
    return get_dependencies()['command_handler']


# --- Typer App Definition ---
app = typer.Typer(
    name="chatbridge",
    help="chatbridge: terminal client for the chatbot, podcast and file gallery backend.",
    add_completion=False,
)
history_app = typer.Typer(help="Manage stored chats.")
app.add_typer(history_app, name="history")


# --- Helper for Running Async Commands ---
async def _run_and_close(coro: Coroutine[Any, Any, None]) -> None:
    try:
        await coro
    finally:
        # The httpx connection pool is bound to this event loop
        if _dependencies is not None:
            await _dependencies['api_client'].aclose()


def run_async(coro: Coroutine[Any, Any, None]) -> None:
    """Runs an async handler from a sync Typer command, then closes the HTTP client."""
    try:
        asyncio.run(_run_and_close(coro))
    except KeyboardInterrupt:
        logger.info("Command interrupted by user.")
    except Exception as e:
        logger.error(f"Error executing async command: {e}", exc_info=True)
        get_dependencies()['ui'].display_error(f"Command execution failed: {e}")
        raise typer.Exit(code=1)


# --- CLI Commands ---

@app.command()
def chat(
    chat_id: Annotated[Optional[str], typer.Option("--chat", "-c", help="Resume a stored chat by ID.")] = None,
):
    """Start an interactive chat session."""
    run_async(get_handler().start_chat(chat_id))


@app.command()
def ask(
    prompt: Annotated[str, typer.Argument(help="The prompt to send to the assistant.")],
):
    """Send a single prompt and print the reply."""
    run_async(get_handler().handle_ask(prompt))


@app.command()
def health():
    """Check the backend health endpoint."""
    run_async(get_handler().handle_health())


@app.command()
def models():
    """List the models offered by the chatbot endpoint."""
    run_async(get_handler().handle_models())


@app.command()
def status():
    """Show AI and search service status."""
    run_async(get_handler().handle_status())


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Search query.")],
):
    """Run a comprehensive web search through the backend."""
    run_async(get_handler().handle_search(query))


@history_app.command("list")
def history_list():
    """List stored chats."""
    run_async(get_handler().handle_history_list())


@history_app.command("show")
def history_show(
    chat_id: Annotated[str, typer.Argument(help="ID of the chat to show.")],
):
    """Show the messages of a stored chat."""
    run_async(get_handler().handle_history_show(chat_id))


@history_app.command("delete")
def history_delete(
    chat_id: Annotated[str, typer.Argument(help="ID of the chat to delete.")],
):
    """Delete a stored chat."""
    run_async(get_handler().handle_history_delete(chat_id))


@app.command()
def episodes(
    search: Annotated[Optional[str], typer.Option("--search", "-s", help="Filter episodes by text.")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", help="Maximum number of episodes.")] = None,
):
    """List podcast episodes."""
    run_async(get_handler().handle_episodes(search=search, limit=limit))


@app.command()
def files(
    search: Annotated[Optional[str], typer.Option("--search", "-s", help="Filter files by name.")] = None,
    file_type: Annotated[Optional[str], typer.Option("--type", "-t", help="Filter by file type (e.g. 'image').")] = None,
    sort: Annotated[Optional[str], typer.Option("--sort", help="Sort order understood by the backend (e.g. 'name', 'date').")] = None,
    page: Annotated[int, typer.Option("--page", min=1, help="Page number.")] = 1,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Files per page.")] = 12,
):
    """List files in the gallery."""
    run_async(get_handler().handle_files(search=search, file_type=file_type, sort=sort, page=page, limit=limit))


@app.command(name="file-info")
def file_info(
    name: Annotated[str, typer.Argument(help="File name.")],
):
    """Show metadata for one file."""
    run_async(get_handler().handle_file_info(name))


@app.command(name="download-url")
def download_url(
    name: Annotated[str, typer.Argument(help="File name.")],
    expiry: Annotated[int, typer.Option("--expiry", min=1, help="Link lifetime in minutes.")] = 60,
):
    """Print a signed download URL for a file."""
    run_async(get_handler().handle_download_url(name, expiry))


@app.command(name="clear-cache")
def clear_cache_command(
    level: Annotated[str, typer.Option(help="Level ('l1', 'l2', 'all').")] = 'all',
    remote: Annotated[bool, typer.Option("--remote", help="Also clear the backend's caches.")] = False,
):
    """Clears the response cache."""
    run_async(get_handler().handle_clear_cache(level, remote))


@app.callback(invoke_without_command=True)
def main_callback(ctx: typer.Context):
    """Main entry point. Starts chat if no command is given."""
    if ctx.invoked_subcommand is None:
        logger.info("No command invoked, starting interactive chat mode.")
        run_async(get_handler().start_chat())


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    try:
        app()
    finally:
        if _dependencies is not None:
            _dependencies['cache_service'].close()
            logger.debug("chatbridge application finished.")


if __name__ == "__main__":
    cli_entry_point()
