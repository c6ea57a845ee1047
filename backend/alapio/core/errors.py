# alapio/core/errors.py


class StorageError(Exception):
    """Any persistence failure: constraint violation, I/O error, unreachable store."""


class DuplicateMessageIdError(StorageError):
    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"Message id already exists: {message_id}")


class UnauthenticatedEventError(Exception):
    """A realtime event arrived before join, or claims another user's identity."""


class EventValidationError(Exception):
    """A realtime frame that is not a well-formed event."""
