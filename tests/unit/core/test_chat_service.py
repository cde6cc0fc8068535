import asyncio

import pytest
from unittest.mock import MagicMock

from chatbridge.core.services.chat_history_service import ChatHistoryService
from chatbridge.core.services.chat_service import ChatService, HELP_TEXT
from chatbridge.core.services.chatbot_service import ChatbotService
from chatbridge.domain.errors import AuthRequired, HttpError, QuotaExceeded
from chatbridge.domain.interfaces.user_interface import UserInterface
from chatbridge.domain.models.chat import Chat
from chatbridge.domain.models.common import ChatId


@pytest.fixture
def mock_ui():
    mock = MagicMock(spec=UserInterface)
    mock.get_prompt.side_effect = ["Hello AI", "exit"]
    return mock


@pytest.fixture
def mock_chatbot(mocker):
    mock = MagicMock(spec=ChatbotService)
    mock.send_to_ai = mocker.AsyncMock(return_value={"success": True, "response": "Hello human"})
    return mock


@pytest.fixture
def history_service(mocker):
    """Real chat bookkeeping with the network calls mocked out."""
    service = ChatHistoryService(api_client=MagicMock())
    mocker.patch.object(service, "save_chat", mocker.AsyncMock(return_value=True))
    mocker.patch.object(service, "get_chat_by_id", mocker.AsyncMock(return_value=None))
    return service


@pytest.fixture
def chat_service(mock_chatbot, history_service, mock_ui):
    return ChatService(
        chatbot_service=mock_chatbot,
        history_service=history_service,
        ui=mock_ui,
        backend_url="https://backend.test",
    )


def test_start_session_loop(chat_service: ChatService, mock_chatbot, history_service, mock_ui):
    """One exchange is sent, displayed and saved before exiting."""
    asyncio.run(chat_service.start_session())

    assert mock_ui.get_prompt.call_count == 2
    mock_ui.get_prompt.assert_any_call("You: ")
    mock_ui.display_output.assert_called_once_with("Hello human", title="AI")
    mock_ui.display_info.assert_any_call("Ending chat session.")
    mock_chatbot.send_to_ai.assert_awaited_once_with([{"role": "user", "content": "Hello AI"}])

    saved_chat = history_service.save_chat.await_args.args[0]
    assert saved_chat.title == "Hello AI"
    assert [m.role for m in saved_chat.messages] == ["user", "assistant"]
    mock_ui.display_session_footer.assert_called_once()
    assert mock_ui.display_session_footer.call_args.args[0] == 2


def test_start_session_exit_immediately(chat_service: ChatService, mock_chatbot, mock_ui):
    mock_ui.get_prompt.side_effect = ["quit"]
    asyncio.run(chat_service.start_session())

    mock_chatbot.send_to_ai.assert_not_awaited()
    mock_ui.display_output.assert_not_called()


def test_history_help_and_new_commands(chat_service: ChatService, mock_chatbot, mock_ui):
    mock_ui.get_prompt.side_effect = ["/help", "/history", "/new", "", "exit"]
    asyncio.run(chat_service.start_session())

    mock_ui.display_info.assert_any_call(HELP_TEXT)
    mock_ui.display_chat_history.assert_called_once()
    mock_ui.display_info.assert_any_call("Started a new chat.")
    mock_chatbot.send_to_ai.assert_not_awaited()


def test_history_is_sent_with_each_turn(chat_service: ChatService, mock_chatbot, mock_ui):
    mock_ui.get_prompt.side_effect = ["first", "second", "exit"]
    asyncio.run(chat_service.start_session())

    last_messages = mock_chatbot.send_to_ai.await_args.args[0]
    assert [m["content"] for m in last_messages] == ["first", "Hello human", "second"]


def test_quota_exceeded_shows_warning_and_continues(chat_service: ChatService, mock_chatbot, mock_ui, mocker):
    mock_chatbot.send_to_ai = mocker.AsyncMock(side_effect=[
        QuotaExceeded("quota", retry_after=12),
        {"success": True, "response": "Back again"},
    ])
    mock_ui.get_prompt.side_effect = ["one", "two", "exit"]

    asyncio.run(chat_service.start_session())

    mock_ui.display_warning.assert_called_once_with("API quota exceeded. Please try again in 12 seconds.")
    mock_ui.display_output.assert_called_once_with("Back again", title="AI")


def test_auth_error_ends_session(chat_service: ChatService, mock_chatbot, mock_ui, mocker):
    mock_chatbot.send_to_ai = mocker.AsyncMock(side_effect=AuthRequired(401))
    mock_ui.get_prompt.side_effect = ["one", "never read"]

    asyncio.run(chat_service.start_session())

    assert mock_ui.get_prompt.call_count == 1
    mock_ui.display_error.assert_called_once_with("Authentication required. Please log in again.")


def test_other_api_errors_are_displayed(chat_service: ChatService, mock_chatbot, mock_ui, mocker):
    mock_chatbot.send_to_ai = mocker.AsyncMock(side_effect=HttpError(503, "down"))
    mock_ui.get_prompt.side_effect = ["one", "exit"]

    asyncio.run(chat_service.start_session())

    mock_ui.display_error.assert_called_once_with("Server error. Please try again later.")


def test_unsuccessful_response_is_reported(chat_service: ChatService, mock_chatbot, history_service, mock_ui, mocker):
    mock_chatbot.send_to_ai = mocker.AsyncMock(return_value={"success": False, "error": "model overloaded"})

    asyncio.run(chat_service.start_session())

    mock_ui.display_error.assert_called_once_with("The assistant did not return a response.")
    history_service.save_chat.assert_not_awaited()


def test_save_failure_is_a_warning(chat_service: ChatService, history_service, mock_ui, mocker):
    history_service.save_chat = mocker.AsyncMock(side_effect=HttpError(500, "db"))

    asyncio.run(chat_service.start_session())

    mock_ui.display_output.assert_called_once_with("Hello human", title="AI")
    mock_ui.display_warning.assert_called_once_with("Chat could not be saved: Server error. Please try again later.")


def test_resume_existing_chat(chat_service: ChatService, history_service, mock_chatbot, mock_ui, mocker):
    stored = Chat(id=ChatId("123"), title="Stored chat")
    history_service.get_chat_by_id = mocker.AsyncMock(return_value=stored)
    mock_ui.get_prompt.side_effect = ["exit"]

    asyncio.run(chat_service.start_session("123"))

    assert chat_service.current_chat is stored
    mock_ui.display_session_header.assert_called_once_with("https://backend.test", "Stored chat")


def test_resume_missing_chat_starts_new_one(chat_service: ChatService, mock_ui):
    mock_ui.get_prompt.side_effect = ["exit"]

    asyncio.run(chat_service.start_session("999"))

    mock_ui.display_warning.assert_called_once_with("Chat 999 not found. Starting a new chat.")
    assert chat_service.current_chat.title == "New Chat"
