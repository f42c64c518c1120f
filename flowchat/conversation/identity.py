"""Session identity resolution.

Two strategies exist and one is picked per engine instance:

- ``PUSH_CHANNEL``: the push channel assigns an id once connected.
- ``LOCAL``: a random alphanumeric token is generated on this side.

Whichever strategy is active, an id persisted by a prior run wins over the
channel-assigned id, which wins over a freshly generated one.
"""

import secrets
import string
from enum import Enum

from flowchat.observability.logging import get_logger

logger = get_logger(__name__)

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits


def generate_random_string(length: int = 10) -> str:
    """Random alphanumeric token."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


class IdentityStrategy(str, Enum):
    PUSH_CHANNEL = "push_channel"
    LOCAL = "local"


class SessionIdentity:
    """Holds the candidate ids for one conversation and resolves the winner."""

    def __init__(
        self,
        strategy: IdentityStrategy,
        persisted_id: str | None = None,
        token_length: int = 10,
    ) -> None:
        self._strategy = strategy
        self._token_length = token_length
        self._persisted_id = persisted_id or None
        self._channel_id: str | None = None
        self._local_id: str | None = None
        if strategy == IdentityStrategy.LOCAL:
            self._local_id = self._persisted_id or generate_random_string(token_length)

    @property
    def strategy(self) -> IdentityStrategy:
        return self._strategy

    @property
    def persisted_id(self) -> str | None:
        """Id resumed from a prior run, if any."""
        return self._persisted_id

    @property
    def channel_id(self) -> str | None:
        """Id assigned by the push channel, once connected."""
        return self._channel_id

    @property
    def local_id(self) -> str | None:
        """Locally generated token (local strategy only)."""
        return self._local_id

    def assign_channel_id(self, channel_id: str | None) -> None:
        self._channel_id = channel_id or None
        logger.debug("session_channel_id_assigned", has_channel_id=self._channel_id is not None)

    def resolve(self) -> str | None:
        """The winning id: persisted, then channel-assigned, then generated."""
        return self._persisted_id or self._channel_id or self._local_id

    def renew(self) -> str:
        """Start a new conversation under a fresh token.

        The fresh token replaces the persisted one so that it wins from now
        on; the channel id stays as the transport handle.
        """
        token = generate_random_string(self._token_length)
        self._persisted_id = token
        if self._strategy == IdentityStrategy.LOCAL:
            self._local_id = token
        logger.info("session_identity_renewed", strategy=self._strategy.value)
        return token
