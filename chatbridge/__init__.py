"""chatbridge: command-line client for the chatbot, chat history and media backend."""

__version__ = "1.0.0"
