from stranger_chat.utils.error_codes import ValidationError


def validate_nickname(nickname: str) -> str:
    """
    Returns the trimmed nickname.
    Raises ValidationError when nothing is left after trimming.
    """
    cleaned = (nickname or "").strip()
    if not cleaned:
        raise ValidationError("Nickname must not be empty")
    return cleaned


def validate_message_text(message: str) -> str:
    """Returns the trimmed text; any non-empty text may go on the wire."""
    cleaned = (message or "").strip()
    if not cleaned:
        raise ValidationError("Message must not be empty")
    return cleaned
