"""Word counting and budget checks."""


def count_words(text: object) -> int:
    """Count whitespace-separated words; anything but a non-empty string is 0."""
    if not text or not isinstance(text, str):
        return 0
    return len(text.split())


def within_reply_budget(word_count: int, limit: int) -> bool:
    return 1 <= word_count <= limit


def within_debate_budget(words_used: int, word_count: int, limit: int) -> bool:
    return words_used + word_count <= limit
