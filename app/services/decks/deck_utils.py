import re

from app.core.errors import ForbiddenError

DEFAULT_DECK_NAME = "Uncategorized"
MIGRATION_TAG_PREFIX = "#deleted-from-"
MAX_TAG_NAME_LENGTH = 50

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def sanitize_deck_name(name: str) -> str:
    """
    Make a deck name safe for use inside a tag name.

    "My Deck!! 2024" -> "My-Deck-2024". Idempotent.
    """
    sanitized = _INVALID_CHARS.sub("-", name.strip())
    sanitized = _REPEATED_HYPHENS.sub("-", sanitized)
    return sanitized.strip("-")


def migration_tag_name(deck_name: str) -> str:
    """Tag marking cards moved out of a deleted deck, cut to fit tags.name."""
    budget = MAX_TAG_NAME_LENGTH - len(MIGRATION_TAG_PREFIX)
    suffix = sanitize_deck_name(deck_name)[:budget].rstrip("-")
    return f"{MIGRATION_TAG_PREFIX}{suffix}"


def validate_default_deck_rename(is_default: bool, new_name: str | None) -> None:
    # The default deck keeps its name
    if is_default and new_name is not None and new_name != DEFAULT_DECK_NAME:
        raise ForbiddenError(f"Default deck can only be named '{DEFAULT_DECK_NAME}'")
