# utils/validators.py - Input validation utilities
from config import MAX_MESSAGE_LENGTH


def validate_message(message: str) -> str:
    """
    Validate an inbound chat message.

    Args:
        message: The raw message text

    Returns:
        The message, unchanged

    Raises:
        ValueError: If the message is not a string or is too long
    """
    if not isinstance(message, str):
        raise ValueError("message must be a string")

    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValueError(f"message exceeds maximum length ({MAX_MESSAGE_LENGTH} characters)")

    return message
