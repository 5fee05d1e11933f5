"""Label and summarize clusters from their members' titles."""

import re
from collections import Counter
from typing import Iterable

OUTLIER_LABEL = "Uncategorized"
OUTLIER_SUMMARY = "Notes that are not close enough to any topic to join a cluster"

MIN_TOKEN_LENGTH = 3
TOP_TOKENS = 2

STOPWORDS = frozenset({
    "the", "and", "for", "with", "from", "that", "this", "into", "about",
    "are", "was", "were", "has", "have", "not", "but", "you", "your", "our",
})

_PUNCT_RE = re.compile(r"[^\w\s]")


def title_tokens(title: str, min_length: int = MIN_TOKEN_LENGTH) -> list[str]:
    words = _PUNCT_RE.sub(" ", title.lower()).split()
    return [w for w in words if len(w) >= min_length and w not in STOPWORDS]


def describe_cluster(
    titles: Iterable[str],
    top_n: int = TOP_TOKENS,
    min_length: int = MIN_TOKEN_LENGTH,
) -> tuple[str, str]:
    """(label, summary) from the most frequent title tokens.

    Ties keep first-seen order, so the result only depends on title order.
    """
    titles = list(titles)
    counts: Counter[str] = Counter()
    for title in titles:
        counts.update(title_tokens(title, min_length))

    n = len(titles)
    noun = "note" if n == 1 else "notes"
    top = [word for word, _ in counts.most_common(top_n)]
    if not top:
        return "Miscellaneous", f"{n} {noun} with no common title words"
    return " ".join(w.title() for w in top), f"{n} {noun} about {' and '.join(top)}"


def describe_outliers() -> tuple[str, str]:
    return OUTLIER_LABEL, OUTLIER_SUMMARY
