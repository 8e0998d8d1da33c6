# app/models/__init__.py

from .deck import Deck
from .flashcard import Flashcard
from .tag import Tag, FlashcardTag
from .generation import Generation, GenerationErrorLog

__all__ = [
    "Deck",
    "Flashcard",
    "Tag",
    "FlashcardTag",
    "Generation",
    "GenerationErrorLog",
]
