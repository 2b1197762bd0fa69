# chat_relay/domain/errors.py


class ChatRelayError(Exception):
    pass


class IdentityConflict(ChatRelayError):
    """Username lookup found nothing and creating the user failed as well."""

    def __init__(self, username: str):
        super().__init__(f"Could not find or create user '{username}'")
        self.username = username


class SendFailure(ChatRelayError):
    """A message insert failed; the content was not persisted."""


class QueryFailure(ChatRelayError):
    """A history fetch failed."""


class TransientFeedFailure(ChatRelayError):
    """The change feed connection dropped. Logged, never surfaced to callers."""
