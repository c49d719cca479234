"""Keyword normalization and activity matching."""
import unicodedata

from .models import Activity


def _is_han(char: str) -> bool:
    code = ord(char)
    return (
        0x4E00 <= code <= 0x9FFF
        or 0x3400 <= code <= 0x4DBF
        or 0x20000 <= code <= 0x2EBEF
        or 0xF900 <= code <= 0xFAFF
        or 0x3007 == code
    )


def _keep(char: str) -> bool:
    category = unicodedata.category(char)
    return category.startswith("L") or category == "Nd" or _is_han(char)


def normalize(text: str) -> str:
    """Lowercase ``text`` and drop everything but letters, digits and Han ideographs.

    >>> normalize("Taylor Swift!")
    'taylorswift'
    """
    return "".join(char.lower() for char in text if _keep(char))


def keyword_matches(normalized_keyword: str, title: str) -> bool:
    """Case- and punctuation-insensitive substring match against a title."""
    if not normalized_keyword:
        return False
    return normalized_keyword in normalize(title)


def is_candidate(activity: Activity, normalized_keyword: str) -> bool:
    """Whether an activity is well-formed and matches the keyword."""
    if activity.activity_id == 0 or not activity.title:
        return False
    return keyword_matches(normalized_keyword, activity.title)
