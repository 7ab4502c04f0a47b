from __future__ import annotations

from collections.abc import Iterable


def clean_cell(text: str | None) -> str | None:
    """Normalize one CSV cell.

    - None/"" and whitespace-only -> None
    - otherwise the value with surrounding whitespace removed
    """

    if text is None:
        return None
    s = str(text).strip()
    return s or None


def match_choice(text: str | None, choices: Iterable[str]) -> str | None:
    """Return the canonical spelling of `text` from `choices` (case-insensitive).

    Blank input returns None. Raises ValueError if the value is not allowed.
    """

    choices = tuple(choices)
    s = clean_cell(text)
    if s is None:
        return None
    for choice in choices:
        if choice.lower() == s.lower():
            return choice
    raise ValueError(f"{s!r} is not one of {', '.join(choices)}")
