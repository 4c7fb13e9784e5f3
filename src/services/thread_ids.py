"""Sequential, gap-tolerant thread identifiers.

Thread ids take the form ``{user_id}-{n}``. The next ``n`` is one more than
the largest trailing number among the user's existing ids, so gaps left
by deleted threads below the maximum are never filled.
"""

from collections.abc import Iterable

DEFAULT_TITLE_TEMPLATE = "Chat {n}"


def thread_sequence_number(thread_id: str) -> int:
    """Trailing numeric part of a thread id, or 0 when it does not parse."""
    suffix = thread_id.rsplit("-", 1)[-1]
    try:
        value = int(suffix)
    except ValueError:
        return 0
    return value if value > 0 else 0


def next_thread_number(existing_ids: Iterable[str]) -> int:
    """Return max(trailing numbers) + 1, or 1 when none parse."""
    numbers = [thread_sequence_number(tid) for tid in existing_ids]
    numbers = [n for n in numbers if n > 0]
    return max(numbers) + 1 if numbers else 1


def make_thread_id(user_id: str, number: int) -> str:
    return f"{user_id}-{number}"


def default_thread_title(number: int) -> str:
    return DEFAULT_TITLE_TEMPLATE.format(n=number)
