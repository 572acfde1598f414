"""
Normalized edit-distance similarity between step texts.

``sim(a, b) = 1 - levenshtein(lower(a), lower(b)) / max(len(a), len(b))``,
in [0, 1] and symmetric.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class SimilarityScorer:
    """Levenshtein similarity with a bounded distance cache."""

    def __init__(self, cache_size: int = 10000):
        self._cache_size = cache_size
        self._levenshtein_cache: Dict[Tuple[str, str], int] = {}

    def calculate_similarity(self, a: str, b: str) -> float:
        """
        Similarity of two strings, case-insensitive.

        Args:
            a: First string
            b: Second string

        Returns:
            Score in [0, 1]; 1.0 for identical strings
        """
        a = a.lower()
        b = b.lower()
        if not a and not b:
            return 1.0
        if not a or not b:
            return 0.0
        if a == b:
            return 1.0

        distance = self.levenshtein_distance(a, b)
        return 1.0 - (distance / max(len(a), len(b)))

    def levenshtein_distance(self, s1: str, s2: str) -> int:
        """Edit distance, cached on the unordered pair."""
        cache_key = (s1, s2) if s1 <= s2 else (s2, s1)
        cached = self._levenshtein_cache.get(cache_key)
        if cached is not None:
            return cached

        distance = self._levenshtein_distance(*cache_key)
        if len(self._levenshtein_cache) >= self._cache_size:
            self._levenshtein_cache.clear()
        self._levenshtein_cache[cache_key] = distance
        return distance

    def find_best_match(self, target: str, candidates: Iterable[str],
                        threshold: float = 0.0) -> Optional[Tuple[str, float]]:
        """
        Find the candidate most similar to ``target``.

        Args:
            target: String to match
            candidates: Strings to compare against
            threshold: Minimum similarity to accept

        Returns:
            Tuple of (best_candidate, score) or None if nothing reaches threshold
        """
        best_match = None
        best_score = -1.0

        for candidate in candidates:
            score = self.calculate_similarity(target, candidate)
            if score > best_score and score >= threshold:
                best_score = score
                best_match = candidate

        if best_match is None:
            return None
        return best_match, best_score

    def rank_candidates(self, target: str, candidates: Iterable[str],
                        top_k: int = 10) -> List[Tuple[str, float]]:
        """Candidates sorted by similarity, highest first."""
        scored = [(c, self.calculate_similarity(target, c)) for c in candidates]
        scored.sort(key=lambda x: x[1], reverse=True)
        return scored[:top_k]

    def clear_cache(self) -> None:
        self._levenshtein_cache.clear()

    def _levenshtein_distance(self, s1: str, s2: str) -> int:
        """Calculate Levenshtein (edit) distance between two strings."""
        if len(s1) < len(s2):
            s1, s2 = s2, s1

        if len(s2) == 0:
            return len(s1)

        previous_row = list(range(len(s2) + 1))
        for i, c1 in enumerate(s1):
            current_row = [i + 1]
            for j, c2 in enumerate(s2):
                insertions = previous_row[j + 1] + 1
                deletions = current_row[j] + 1
                substitutions = previous_row[j] + (c1 != c2)
                current_row.append(min(insertions, deletions, substitutions))
            previous_row = current_row

        return previous_row[-1]


_default_scorer = SimilarityScorer()


def calculate_similarity(a: str, b: str) -> float:
    """Similarity using the shared scorer."""
    return _default_scorer.calculate_similarity(a, b)


def levenshtein_distance(a: str, b: str) -> int:
    return _default_scorer.levenshtein_distance(a, b)
