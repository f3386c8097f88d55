"""
Client-side input validation.

Everything here runs before a request is dispatched, so an empty search or a
blank message never reaches the network. Failures raise
``ieum.core.errors.ValidationError`` (a ``ValueError``, which lets pydantic
field validators surface them too).
"""
import re
from typing import Iterable, List, Optional

from ieum.core.errors import ValidationError


class InputValidator:
    """Validates and normalizes user input."""

    NULL_BYTE_PATTERN = re.compile(r'\x00')
    CONTROL_CHAR_PATTERN = re.compile(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]')  # Except \t=0x09, \n=0x0a, \r=0x0d
    NEWLINE_PATTERN = re.compile(r'[\r\n]')

    MAX_MESSAGE_LENGTH = 5000
    MAX_ROOM_NAME_LENGTH = 100
    MAX_PARTICIPANTS = 100

    @staticmethod
    def sanitize_string(value: str, max_length: Optional[int] = None, allow_newlines: bool = False) -> str:
        """
        Reject strings carrying null bytes or control characters.

        Args:
            value: Input string
            max_length: Optional max length
            allow_newlines: Allow \\n and \\r characters (for message text)

        Returns:
            The unchanged string

        Raises:
            ValidationError: If input contains forbidden characters or is too long
        """
        if not isinstance(value, str):
            raise ValidationError("Input must be string")

        if InputValidator.NULL_BYTE_PATTERN.search(value):
            raise ValidationError("Null bytes not allowed")

        if InputValidator.CONTROL_CHAR_PATTERN.search(value):
            raise ValidationError("Control characters not allowed")

        if not allow_newlines and InputValidator.NEWLINE_PATTERN.search(value):
            raise ValidationError("Line breaks not allowed")

        if max_length and len(value) > max_length:
            raise ValidationError(f"Input exceeds max length of {max_length}")

        return value

    @staticmethod
    def validate_search_query(query: str, min_length: int = 2) -> str:
        """Friend search needs at least ``min_length`` non-blank characters."""
        if query is None:
            raise ValidationError("Search query required")

        cleaned = query.strip()
        if len(cleaned) < min_length:
            raise ValidationError(f"Search query must be at least {min_length} characters")

        return InputValidator.sanitize_string(cleaned, max_length=100)

    @staticmethod
    def validate_message_text(text: Optional[str], has_media: bool = False) -> str:
        """Trim message text; blank text is only allowed alongside media."""
        cleaned = (text or "").strip()
        if not cleaned and not has_media:
            raise ValidationError("Message cannot be empty")

        return InputValidator.sanitize_string(
            cleaned,
            max_length=InputValidator.MAX_MESSAGE_LENGTH,
            allow_newlines=True,
        )

    @staticmethod
    def validate_room_name(name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Room name required")
        return InputValidator.sanitize_string(cleaned, max_length=InputValidator.MAX_ROOM_NAME_LENGTH)

    @staticmethod
    def validate_participants(participant_ids: Iterable[int]) -> List[int]:
        """
        Normalize the participant list of a new room.

        Order is kept, duplicates are dropped, at least one participant is required.
        """
        unique: List[int] = []
        for pid in participant_ids:
            if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
                raise ValidationError("Invalid participant id")
            if pid not in unique:
                unique.append(pid)

        if not unique:
            raise ValidationError("Select at least one participant")

        if len(unique) > InputValidator.MAX_PARTICIPANTS:
            raise ValidationError(f"Too many participants (max {InputValidator.MAX_PARTICIPANTS})")

        return unique

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """Strip directories and unsafe characters from an upload file name."""
        if not filename or len(filename) > 255:
            raise ValidationError("Invalid filename length")

        # Remove path separators and traversal attempts
        filename = filename.replace('\\', '/').split('/')[-1]

        # Allow alphanumeric, dot, dash, underscore, space, parentheses
        filename = re.sub(r'[^a-zA-Z0-9._\-() ]', '', filename)

        # Remove multiple consecutive spaces/dots
        filename = re.sub(r'[ ]{2,}', ' ', filename)
        filename = re.sub(r'[.]{2,}', '.', filename)
        filename = filename.strip(' .')

        if not filename:
            raise ValidationError("Filename becomes empty after sanitization")

        return filename
