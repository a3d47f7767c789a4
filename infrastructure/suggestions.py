"""
KEYSTONE SUGGESTIONS - "Did you mean ...?"

Typo-tolerant matching of an input string against known candidates
(node IDs, statuses, block types, field names).

Ranking:
1. Case-insensitive Levenshtein distance
2. A one-point bonus when one string is a prefix of the other
3. Ties by length difference, then alphabetically

Suggestion generation never raises; bad input yields no suggestions.
"""
from typing import Iterable, List, Optional


DEFAULT_THRESHOLD = 2
DEFAULT_MAX_SUGGESTIONS = 3


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit cost insert, delete and substitute."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


class Suggester:
    """
    Finds the closest candidates to a mistyped string.

    Usage:
        suggester = Suggester()
        suggester.suggest("aproved", ["draft", "approved"])  # ["approved"]
        suggester.format_suggestion(["a", "b"])             # "did you mean 'a' or 'b'?"
    """

    def __init__(self, threshold: int = DEFAULT_THRESHOLD, max_suggestions: int = DEFAULT_MAX_SUGGESTIONS):
        self.threshold = threshold
        self.max_suggestions = max_suggestions

    def suggest(self, value: str, candidates: Iterable[str]) -> List[str]:
        return self.suggest_with_threshold(value, candidates, self.threshold)

    def suggest_with_threshold(self, value: str, candidates: Iterable[str], threshold: int) -> List[str]:
        if not isinstance(value, str) or not value or candidates is None:
            return []
        pool = [c for c in candidates if isinstance(c, str) and c]
        if not pool:
            return []

        needle = value.lower()
        scored = []
        for candidate in pool:
            lowered = candidate.lower()
            if lowered == needle:
                # The input is already valid (modulo case)
                return []
            distance = levenshtein_distance(needle, lowered)
            if lowered.startswith(needle) or needle.startswith(lowered):
                distance = max(0, distance - 1)
            if distance <= threshold:
                scored.append((distance, abs(len(candidate) - len(value)), candidate))

        scored.sort()
        return [candidate for _, _, candidate in scored[:self.max_suggestions]]

    def best(self, value: str, candidates: Iterable[str]) -> Optional[str]:
        """The single closest candidate, or None."""
        matches = self.suggest(value, candidates)
        return matches[0] if matches else None

    @staticmethod
    def format_suggestion(suggestions: List[str]) -> str:
        if not suggestions:
            return ""
        quoted = [f"'{s}'" for s in suggestions]
        if len(quoted) == 1:
            return f"did you mean {quoted[0]}?"
        if len(quoted) == 2:
            return f"did you mean {quoted[0]} or {quoted[1]}?"
        return f"did you mean {', '.join(quoted[:-1])}, or {quoted[-1]}?"
