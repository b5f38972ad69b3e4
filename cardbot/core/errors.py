"""Typed failures raised by the core components."""


class CardBotError(Exception):
    """Base class for all domain errors."""


class ValidationError(CardBotError):
    """A single field failed validation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class NoActiveConversationError(CardBotError):
    """An update was attempted for a user without a live conversation."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"No active conversation found for user {user_id}")
        self.user_id = user_id


class ConnectionRequestError(CardBotError):
    """Base class for connection lifecycle failures."""


class UserNotFoundError(ConnectionRequestError):
    """One or both users do not exist."""

    def __init__(self, user_id: int | None = None) -> None:
        super().__init__("One or both users do not exist")
        self.user_id = user_id


class PrivacyDeniedError(ConnectionRequestError):
    """The receiver is not accepting new connections."""

    def __init__(self) -> None:
        super().__init__("This user is not accepting new connections.")


class ConnectionExistsError(ConnectionRequestError):
    """A connection record already exists for the pair, in any status."""

    def __init__(self, status: str | None = None) -> None:
        super().__init__("Connection already exists")
        self.status = status


class QuotaExceededError(ConnectionRequestError):
    """The requester already has the maximum number of outgoing pending requests."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Maximum pending requests limit reached ({limit})")
        self.limit = limit


class SelfConnectionError(ConnectionRequestError):
    """A user tried to connect with themselves."""

    def __init__(self) -> None:
        super().__init__("You cannot connect with yourself.")
