"""Interface for bearer token sources.

The backend authenticates callers with tokens issued by an external identity
provider. The host application supplies an implementation; the API client
only asks it for the current token before each attempt.
"""

import abc
from typing import Optional

from chatbridge.domain.models.common import AuthToken


class TokenProvider(abc.ABC):
    """Abstract Base Class for retrieving the current bearer token."""

    @abc.abstractmethod
    async def get_token(self) -> Optional[AuthToken]:
        """Returns the current token, or None when no user is signed in.

        A None result is not an error: the request proceeds unauthenticated.
        """
        pass
