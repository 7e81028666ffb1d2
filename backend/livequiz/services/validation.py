import re
from typing import Optional

NICKNAME_MIN_LENGTH = 2
NICKNAME_MAX_LENGTH = 20

_NICKNAME_CHARS = re.compile(r'^[A-Za-z0-9_\s-]+$')
_JOIN_CODE_CHARS = re.compile(r'^[A-Z0-9]+$')


def is_valid_nickname(text: str) -> bool:
    """True iff the nickname is between 2 and 20 characters long."""
    return NICKNAME_MIN_LENGTH <= len(text) <= NICKNAME_MAX_LENGTH


def nickname_error(text) -> Optional[str]:
    """Reason a submitted nickname can't be used, or None if it can."""
    if not isinstance(text, str):
        return 'Nickname is required'
    cleaned = text.strip()
    if not is_valid_nickname(cleaned):
        return f'Nickname must be {NICKNAME_MIN_LENGTH}-{NICKNAME_MAX_LENGTH} characters'
    if not _NICKNAME_CHARS.match(cleaned):
        return 'Nickname can only contain letters, numbers, spaces, hyphens, and underscores'
    return None


def is_valid_join_code(code, length: int = 6) -> bool:
    return isinstance(code, str) and len(code) == length and bool(_JOIN_CODE_CHARS.match(code))
