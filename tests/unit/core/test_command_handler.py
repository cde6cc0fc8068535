import asyncio

import pytest
from unittest.mock import MagicMock

from chatbridge.core.command_handler import CommandHandler
from chatbridge.core.services.chat_history_service import ChatHistoryService
from chatbridge.core.services.chat_service import ChatService
from chatbridge.core.services.chatbot_service import ChatbotService
from chatbridge.core.services.media_service import MediaService
from chatbridge.domain.errors import HttpError, NetworkError, QuotaExceeded
from chatbridge.domain.interfaces.user_interface import UserInterface
from chatbridge.domain.models.chat import Chat
from chatbridge.domain.models.common import ChatId
from chatbridge.infrastructure.http.api_client import ResilientApiClient


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def mocks(mocker):
    chat_service = MagicMock(spec=ChatService)
    chat_service.start_session = mocker.AsyncMock()
    chat_service.send_message = mocker.AsyncMock(return_value="An answer")
    chatbot = MagicMock(spec=ChatbotService)
    history = MagicMock(spec=ChatHistoryService)
    media = MagicMock(spec=MediaService)
    api_client = MagicMock(spec=ResilientApiClient)
    api_client.base_url = "https://backend.test"
    api_client.clear_cache = mocker.AsyncMock()
    return {
        'chat_service': chat_service,
        'chatbot_service': chatbot,
        'history_service': history,
        'media_service': media,
        'api_client': api_client,
    }


@pytest.fixture
def handler(mocks, mock_ui):
    return CommandHandler(ui=mock_ui, **mocks)


def test_start_chat_passes_chat_id(handler: CommandHandler, mocks):
    asyncio.run(handler.start_chat("42"))
    mocks['chat_service'].start_session.assert_awaited_once_with("42")


def test_handle_ask(handler: CommandHandler, mocks, mock_ui):
    asyncio.run(handler.handle_ask("  What is RSS?  "))

    mocks['history_service'].create_new_chat.assert_called_once()
    mocks['chat_service'].send_message.assert_awaited_once_with("What is RSS?")
    mock_ui.display_output.assert_called_once_with("An answer", title="AI")


def test_handle_ask_empty_prompt(handler: CommandHandler, mocks, mock_ui):
    asyncio.run(handler.handle_ask("   "))
    mocks['chat_service'].send_message.assert_not_awaited()
    mock_ui.display_error.assert_called_once_with("Prompt must not be empty.")


def test_handle_ask_quota_is_warning(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['chat_service'].send_message = mocker.AsyncMock(side_effect=QuotaExceeded("quota", retry_after=5))
    asyncio.run(handler.handle_ask("hi"))
    mock_ui.display_warning.assert_called_once_with("API quota exceeded. Please try again in 5 seconds.")


def test_handle_health(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['media_service'].check_health = mocker.AsyncMock(return_value={"status": "healthy"})
    asyncio.run(handler.handle_health())
    mock_ui.display_mapping.assert_called_once_with("Backend health (https://backend.test)", {"status": "healthy"})


def test_handle_health_network_error(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['media_service'].check_health = mocker.AsyncMock(side_effect=NetworkError("refused"))
    asyncio.run(handler.handle_health())
    mock_ui.display_error.assert_called_once_with("Network error. Please check your internet connection.")


def test_handle_models(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['chatbot_service'].get_available_models = mocker.AsyncMock(return_value=["a", "b"])
    asyncio.run(handler.handle_models())
    mock_ui.display_table.assert_called_once_with("Available models", ("Model",), [("a",), ("b",)])


def test_handle_status(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['chatbot_service'].get_ai_service_status = mocker.AsyncMock(return_value={"gemini": "up"})
    mocks['chatbot_service'].get_search_status = mocker.AsyncMock(return_value={"google": "up"})
    asyncio.run(handler.handle_status())
    assert mock_ui.display_mapping.call_count == 2


def test_handle_search_empty_query(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['chatbot_service'].perform_search = mocker.AsyncMock(side_effect=ValueError("Search query is required"))
    asyncio.run(handler.handle_search(""))
    mock_ui.display_error.assert_called_once_with("Search query is required")


def test_handle_history_list(handler: CommandHandler, mocks, mock_ui, mocker):
    chat = Chat(id=ChatId("1"), title="First")
    mocks['history_service'].get_chat_history = mocker.AsyncMock(return_value=[chat])
    asyncio.run(handler.handle_history_list())

    title, columns, rows = mock_ui.display_table.call_args.args
    assert title == "Stored chats"
    assert rows == [("1", "First", 0, "Today")]


def test_handle_history_show_missing(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['history_service'].get_chat_by_id = mocker.AsyncMock(return_value=None)
    asyncio.run(handler.handle_history_show("9"))
    mock_ui.display_error.assert_called_once_with("Chat 9 not found.")


def test_handle_history_delete(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['history_service'].delete_chat = mocker.AsyncMock(return_value=True)
    asyncio.run(handler.handle_history_delete("1"))
    mock_ui.display_info.assert_called_once_with("Chat 1 deleted.")


def test_handle_history_delete_error(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['history_service'].delete_chat = mocker.AsyncMock(side_effect=HttpError(500, "db"))
    asyncio.run(handler.handle_history_delete("1"))
    mock_ui.display_error.assert_called_once_with("Server error. Please try again later.")


def test_handle_episodes(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['media_service'].get_episodes = mocker.AsyncMock(return_value={
        "success": True,
        "data": [{"title": "Ep 1", "pubDate": "Mon, 01 Jan 2024", "duration": "30:00"}],
    })
    asyncio.run(handler.handle_episodes(limit=5))

    mocks['media_service'].get_episodes.assert_awaited_once_with(limit=5)
    title, columns, rows = mock_ui.display_table.call_args.args
    assert rows == [("Ep 1", "Mon, 01 Jan 2024", "30:00")]


def test_handle_episodes_search(handler: CommandHandler, mocks, mocker):
    mocks['media_service'].search_episodes = mocker.AsyncMock(return_value={"data": []})
    asyncio.run(handler.handle_episodes(search="tech"))
    mocks['media_service'].search_episodes.assert_awaited_once_with("tech", limit=None)


def test_handle_files(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['media_service'].get_files_page = mocker.AsyncMock(return_value={
        "data": [{"name": "a.png", "contentType": "image/png", "size": 10, "lastModified": "2024-01-01"}],
    })
    asyncio.run(handler.handle_files(file_type="image", page=2))

    mocks['media_service'].get_files_page.assert_awaited_once_with(page=2, limit=12, search=None, type="image", sort=None)
    title, columns, rows = mock_ui.display_table.call_args.args
    assert title == "Files (page 2)"
    assert rows == [("a.png", "image/png", 10, "2024-01-01")]


def test_handle_download_url(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['media_service'].get_file_download_url = mocker.AsyncMock(
        return_value={"success": True, "data": {"downloadUrl": "https://blob.test/a.png?sig=1"}}
    )
    asyncio.run(handler.handle_download_url("a.png", 30))

    mocks['media_service'].get_file_download_url.assert_awaited_once_with("a.png", 30)
    mock_ui.display_output.assert_called_once_with("https://blob.test/a.png?sig=1", title="Download URL")


def test_handle_file_info_requires_name(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['media_service'].get_file_info = mocker.AsyncMock(side_effect=ValueError("Filename is required"))
    asyncio.run(handler.handle_file_info(""))
    mock_ui.display_error.assert_called_once_with("Filename is required")


def test_handle_clear_cache(handler: CommandHandler, mocks, mock_ui):
    asyncio.run(handler.handle_clear_cache('l1'))
    mocks['api_client'].clear_cache.assert_awaited_once_with('l1')
    mock_ui.display_info.assert_called_once_with("Cache level 'l1' cleared successfully.")


def test_handle_clear_cache_remote(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['media_service'].clear_remote_cache = mocker.AsyncMock(return_value={"success": True})
    asyncio.run(handler.handle_clear_cache('all', remote=True))
    mocks['media_service'].clear_remote_cache.assert_awaited_once_with(level='all')
    mock_ui.display_info.assert_called_once_with("Cache level 'all' and backend caches cleared successfully.")


def test_handle_clear_cache_invalid_level(handler: CommandHandler, mocks, mock_ui):
    asyncio.run(handler.handle_clear_cache('l3'))
    mocks['api_client'].clear_cache.assert_not_awaited()
    mock_ui.display_error.assert_called_once()


def test_handle_clear_cache_remote_keeps_requested_level(handler: CommandHandler, mocks, mock_ui, mocker):
    mocks['media_service'].clear_remote_cache = mocker.AsyncMock(return_value={"success": True})
    asyncio.run(handler.handle_clear_cache('l1', remote=True))

    mocks['media_service'].clear_remote_cache.assert_awaited_once_with(level='l1')
    mocks['api_client'].clear_cache.assert_not_awaited()
    mock_ui.display_info.assert_called_once_with("Cache level 'l1' and backend caches cleared successfully.")
