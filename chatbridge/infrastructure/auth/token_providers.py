"""Concrete TokenProvider implementations.

The identity provider itself is external; these adapters only hand an
already-issued token to the API client.
"""

import logging
from pathlib import Path
from typing import Optional

from chatbridge.domain.interfaces.token_provider import TokenProvider
from chatbridge.domain.models.common import AuthToken
from chatbridge.infrastructure.config.settings import get_config

logger = logging.getLogger(__name__)


class StaticTokenProvider(TokenProvider):
    """Returns a fixed token (or None for anonymous access)."""

    def __init__(self, token: Optional[str] = None):
        self._token = AuthToken(token) if token else None

    async def get_token(self) -> Optional[AuthToken]:
        return self._token


class ConfigTokenProvider(TokenProvider):
    """Reads the token from configuration on every call.

    `auth.token` wins over `auth.token_file`; the file's first line is used so
    a token refreshed on disk by an external sign-in tool is picked up without
    restarting.
    """

    async def get_token(self) -> Optional[AuthToken]:
        token = get_config('auth.token')
        if token:
            return AuthToken(str(token).strip())

        token_file = get_config('auth.token_file')
        if not token_file:
            return None
        path = Path(str(token_file)).expanduser()
        try:
            lines = path.read_text(encoding='utf-8').splitlines()
        except OSError as e:
            logger.warning(f"Could not read token file {path}: {e}")
            return None
        first_line = lines[0].strip() if lines else ""
        return AuthToken(first_line) if first_line else None
