from app.core.ai_config import (
    MAX_BACK_LENGTH,
    MAX_FLASHCARDS,
    MAX_FRONT_LENGTH,
    MIN_FLASHCARDS,
)


FLASHCARD_SYSTEM_PROMPT = (
    "You are an experienced educator who writes flashcards for spaced-repetition study.\n\n"
    "Turn the provided text into clear, accurate flashcards that:\n"
    "- cover key concepts, definitions, facts and relationships\n"
    "- use plain, unambiguous language\n"
    "- are neither too broad nor too narrow\n"
    "- do not repeat or overlap each other\n\n"
    "Rules:\n"
    "1. Each flashcard tests exactly ONE piece of knowledge.\n"
    f"2. Front: a clear question or prompt, at most {MAX_FRONT_LENGTH} characters.\n"
    f"3. Back: a concise answer or explanation, at most {MAX_BACK_LENGTH} characters.\n"
    "4. Prefer important information over trivia.\n"
    "5. Add a short example when it clarifies a concept.\n"
    "6. Write 8-15 flashcards depending on how rich the text is.\n\n"
    "Output format:\n"
    'Return a JSON object with a "flashcards" array. Every item has a "front" string '
    'and a "back" string. Do not include markdown, backticks, or commentary.'
)


def build_flashcard_prompt(source_text: str) -> str:
    """Wrap the user's source text in the fixed instruction template."""
    return (
        "Generate flashcards from the text below. Write 8-15 high-quality flashcards "
        "that capture its most important concepts and information.\n\n"
        "Source text:\n"
        '"""\n'
        f"{source_text}\n"
        '"""\n\n'
        "Remember:\n"
        "- focus on key concepts, definitions and important facts\n"
        "- each flashcard must be clear and test one specific thing\n"
        f"- front: max {MAX_FRONT_LENGTH} characters (question/prompt)\n"
        f"- back: max {MAX_BACK_LENGTH} characters (answer/explanation)\n"
        '- output valid JSON shaped as {"flashcards": [{"front": "...", "back": "..."}]}'
    )


# JSON schema passed as response_format for providers that support structured output
FLASHCARD_RESPONSE_SCHEMA = {
    "name": "flashcards",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "flashcards": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "front": {
                            "type": "string",
                            "description": f"Question or prompt (max {MAX_FRONT_LENGTH} characters)",
                            "maxLength": MAX_FRONT_LENGTH,
                        },
                        "back": {
                            "type": "string",
                            "description": f"Answer or explanation (max {MAX_BACK_LENGTH} characters)",
                            "maxLength": MAX_BACK_LENGTH,
                        },
                    },
                    "required": ["front", "back"],
                    "additionalProperties": False,
                },
                "minItems": MIN_FLASHCARDS,
                "maxItems": MAX_FLASHCARDS,
            },
        },
        "required": ["flashcards"],
        "additionalProperties": False,
    },
}
