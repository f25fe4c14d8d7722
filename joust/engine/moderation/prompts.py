"""Prompt generation for the debate moderator."""


def create_fallacy_prompt(statement: str, no_fallacy_token: str) -> str:
    """Prompt asking for a logical-fallacy analysis of one debate statement."""
    return (
        "You are an AI debate moderator. Analyze the following statement for logical "
        "fallacies. The statement is part of an ongoing debate. If you identify one or "
        "more fallacies, name each fallacy and give a brief, neutral explanation of how "
        "the statement commits it. Keep the analysis clear, concise and objective. "
        f"If no fallacies are present, respond with ONLY the text '{no_fallacy_token}'. "
        f'Statement: "{statement.strip()}"'
    )


def create_question_prompt(question: str) -> str:
    """Prompt asking for a neutral answer to a participant's question."""
    return (
        "You are an AI assistant participating in a debate. A participant has asked you "
        "a question. Provide a concise, factual and neutral answer. "
        f'Question: "{question.strip()}"'
    )


def is_no_fallacy_response(response: str, no_fallacy_token: str) -> bool:
    return response.strip().upper() == no_fallacy_token.upper()


def extract_question(text: str, mention_token: str) -> str | None:
    """Question addressed to the assistant, or None when the text has no mention."""
    stripped = text.strip()
    if not stripped.lower().startswith(mention_token.lower()):
        return None
    question = stripped[len(mention_token):].strip()
    return question or None
