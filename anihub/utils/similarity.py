from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Tuple

from rapidfuzz.distance import Levenshtein

# ===========================
# Constants
# ===========================
DEFAULT_MATCH_THRESHOLD = 0.3


# ===========================
# Candidate Type
# ===========================
@dataclass(frozen=True)
class Candidate:
    label: str
    score: float


# ===========================
# Similarity Score
# ===========================
def edit_distance(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]; 1.0 means identical ignoring case."""
    a = a.lower()
    b = b.lower()

    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    if not longer:
        return 1.0

    return (len(longer) - edit_distance(longer, shorter)) / float(len(longer))


# ===========================
# Best Match Selection
# ===========================
def best_item(query: str, items: Iterable[Any], key: Callable[[Any], str],
              threshold: float = DEFAULT_MATCH_THRESHOLD) -> Optional[Tuple[Any, Candidate]]:
    best = None
    best_candidate = Candidate(label="", score=0.0)

    for item in items:
        label = key(item)
        score = similarity(query, label)
        # strict comparison keeps the first of equally scored labels and never picks a zero score
        if score > best_candidate.score:
            best = item
            best_candidate = Candidate(label=label, score=score)

    if best is None or best_candidate.score < threshold:
        return None

    return best, best_candidate


def best_match(query: str, labels: Iterable[str],
               threshold: float = DEFAULT_MATCH_THRESHOLD) -> Optional[Candidate]:
    result = best_item(query, labels, key=lambda label: label, threshold=threshold)
    return result[1] if result else None
