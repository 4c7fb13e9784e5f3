"""Clarification question templates for requests missing required parameters.

One question per missing required parameter, looked up by parameter name.
Unknown parameter names fall back to a generic template.
"""

from collections.abc import Iterable

DEFAULT_CLARIFICATION = "What would you like me to help you with?"

GENERIC_QUESTION_TEMPLATE = "What {param} would you like me to use?"

# Pre-built questions keyed by DriveTool parameter name
CLARIFICATION_TEMPLATES: dict[str, str] = {
    "fileName": "What would you like to name the file?",
    "folderName": "What would you like to name the folder?",
    "content": "What content would you like in the file?",
    "query": "What would you like me to search for?",
    "fileId": "Which file would you like me to work with?",
    "email": "What email address would you like to share with?",
    "folderId": "Which folder should I use?",
}


def question_for(param: str) -> str:
    """Return the clarification question for one parameter name."""
    template = CLARIFICATION_TEMPLATES.get(param)
    if template is None:
        return GENERIC_QUESTION_TEMPLATE.format(param=param)
    return template


def build_clarification_questions(missing: Iterable[str]) -> list[str]:
    """Return one question per missing parameter, in the given order."""
    return [question_for(param) for param in missing]


def format_clarification_message(questions: list[str]) -> str:
    """Join questions into the user-facing clarification message."""
    if not questions:
        return "I need some clarification: Please provide more details."
    return "I need some clarification: " + ". ".join(questions)
