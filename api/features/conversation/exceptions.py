"""Exceptions for the Conversation feature."""
from api.shared.exceptions import InvalidStateError, NotFoundError, ValidationError


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation does not exist (or is not in a usable state)."""

    def __init__(self, conversation_id: int):
        super().__init__("Conversation", str(conversation_id))
        self.error_code = "CONVERSATION_NOT_FOUND"
        self.conversation_id = conversation_id


class ConversationInvalidStateError(InvalidStateError):
    """Raised when a conversation is in the wrong lifecycle state."""

    def __init__(self, conversation_id: int, current_state: str, required_state: str):
        message = (
            f"Conversation '{conversation_id}' is {current_state}, "
            f"but must be {required_state}"
        )
        super().__init__(
            message,
            {
                "conversation_id": conversation_id,
                "current_state": current_state,
                "required_state": required_state,
            },
        )


class InvalidCursorError(ValidationError):
    """Raised when a pagination cursor cannot be decoded."""

    def __init__(self, cursor: str):
        super().__init__("Invalid pagination cursor", {"cursor": cursor})


class MissingContentError(ValidationError):
    """Raised when a posted message has no content."""

    def __init__(self):
        super().__init__("Missing content", {"field": "content"})
