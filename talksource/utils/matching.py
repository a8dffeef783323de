import re
from typing import List, Literal, Optional, Sequence, TypeVar

T = TypeVar("T")

# Words of two or more letters, in any script
WORD_REGEXP = re.compile(r"[^\W\d_]{2,}")


def _unique_words(text: str, case_insensitive: bool) -> List[str]:
    if case_insensitive:
        text = text.lower()
    seen = set()
    words = []
    for word in WORD_REGEXP.findall(text):
        if word not in seen:
            seen.add(word)
            words.append(word)
    return words


def calculate_word_overlap(s1: str, s2: str, case_insensitive: bool = False) -> float:
    """
    Share of words two strings have in common, between 0 and 1.

    The denominator is the number of unique words in `s2` plus the words of
    `s1` missing from `s2`, i.e. the size of the union.
    """
    words1 = _unique_words(s1 or "", case_insensitive)
    words2 = _unique_words(s2 or "", case_insensitive)
    if not words1 or not words2:
        return 0.0

    words2_set = set(words2)
    overlap = sum(1 for word in words1 if word in words2_set)
    total = len(words2) + (len(words1) - overlap)
    return overlap / total


def get_oldest_or_newest(
    items: Sequence[T],
    which: Literal["oldest", "newest"] = "oldest",
    allow_dateless: bool = True,
) -> Optional[T]:
    """
    Picks the item with the oldest (or newest) `date` attribute.

    Items without a date only win when no dated item exists and
    `allow_dateless` is set, in which case the first one is returned.
    """
    candidate = None
    for item in items:
        date = getattr(item, "date", None)
        if candidate is None:
            if date is not None or allow_dateless:
                candidate = item
            continue
        candidate_date = getattr(candidate, "date", None)
        if date is None:
            continue
        if candidate_date is None:
            candidate = item
        elif (which == "oldest" and date < candidate_date) or (which == "newest" and date > candidate_date):
            candidate = item
    return candidate
