import enum


class DeckVisibility(str, enum.Enum):
    private = "private"


class FlashcardSource(str, enum.Enum):
    manual = "manual"
    ai_full = "ai-full"
    ai_edited = "ai-edited"


class TagScope(str, enum.Enum):
    global_ = "global"
    deck = "deck"


class SortOrder(str, enum.Enum):
    asc = "asc"
    desc = "desc"
