"""
Learned Pattern Knowledge Base (LLKB).

Persists text -> action associations observed in successful runs so that
steps the core patterns cannot parse still resolve the next time they appear.
The store is one JSON document (``learned-patterns.json``) under the LLKB
root. Several processes may write it at once; mutations run under an advisory
sentinel lock with a bounded wait, and every write is atomic (temp file +
``os.replace``).

Reads never fail: a missing, unreadable or malformed document is treated as
an empty store and a warning is logged.

Lookups also consult the read-only ``discovered-patterns.json`` written by
discovery tooling (see ``discovered_patterns``); learning only ever touches
the learned document.
"""

import json
import math
import os
import random
import re
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from ..core.config import settings
from ..core.exceptions import PatternStoreError
from ..core.logging_config import get_component_logger
from ..core.models import (
    Action,
    LearnedMatch,
    LearnedPattern,
    PatternLayer,
    PatternStats,
    PromotedPattern,
    PruneResult,
)
from .discovered_patterns import DISCOVERED_CACHE_TTL, DISCOVERED_FILE, load_discovered_patterns
from .similarity_scorer import SimilarityScorer
from .text_normalizer import TextNormalizer

logger = get_component_logger("llkb")

PATTERNS_FILE = "learned-patterns.json"
EXPORT_FILE = "autogen-patterns.json"
STORE_VERSION = "1.0.0"

WILSON_Z = 1.96
NEW_PATTERN_CONFIDENCE = 0.5

LOCK_MAX_WAIT_MS = 5000
STALE_LOCK_THRESHOLD_MS = 30000
LOCK_RETRY_INTERVAL_MS = 50

# Promotion thresholds used by get_promotable_patterns
PROMOTION_MIN_CONFIDENCE = 0.9
PROMOTION_MIN_SUCCESSES = 5
PROMOTION_MIN_SOURCES = 2


# ═══════════════════════════════════════════════════════════════════════════
# PYDANTIC MODELS FOR ON-DISK DOCUMENT VALIDATION
# ═══════════════════════════════════════════════════════════════════════════

class PatternEntry(BaseModel):
    """Schema for one stored pattern."""
    id: str = Field(description="Pattern identifier (LP...)")
    originalText: str = Field(description="Step text as first recorded")
    normalizedText: str = Field(description="Lookup key")
    mappedAction: Dict[str, Any] = Field(description="Action the text resolves to")
    confidence: float = Field(default=NEW_PATTERN_CONFIDENCE, ge=0.0, le=1.0)
    sourceJourneys: List[str] = Field(default_factory=list)
    successCount: int = Field(default=0, ge=0)
    failCount: int = Field(default=0, ge=0)
    lastUsed: Optional[str] = Field(default=None)
    createdAt: Optional[str] = Field(default=None)
    promotedToCore: bool = Field(default=False)
    promotedAt: Optional[str] = Field(default=None)
    layer: str = Field(default=PatternLayer.APP_SPECIFIC.value)


class PatternDocument(BaseModel):
    """Schema for the whole learned-patterns.json file."""
    version: str = Field(default=STORE_VERSION)
    lastUpdated: Optional[str] = Field(default=None)
    patterns: List[Dict[str, Any]] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════
# LOCKING AND CACHING
# ═══════════════════════════════════════════════════════════════════════════

class FileLock:
    """Advisory sentinel-file lock.

    The lock is a ``<file>.lock`` sentinel created with ``O_CREAT | O_EXCL``.
    A sentinel older than ``stale_after_ms`` is treated as abandoned and
    removed. When the lock cannot be taken within ``max_wait_ms`` a warning
    is logged and the caller proceeds unlocked; the lock never deadlocks.

    Example:
        >>> with FileLock("/path/to/learned-patterns.json"):
        ...     # Protected region
        ...     pass
    """

    def __init__(self, target_path: str, max_wait_ms: int = LOCK_MAX_WAIT_MS,
                 stale_after_ms: int = STALE_LOCK_THRESHOLD_MS,
                 retry_interval_ms: int = LOCK_RETRY_INTERVAL_MS):
        self.lock_path = f"{target_path}.lock"
        self.max_wait_ms = max_wait_ms
        self.stale_after_ms = stale_after_ms
        self.retry_interval_ms = retry_interval_ms
        self.acquired = False

    def try_acquire(self) -> bool:
        """Make one attempt to create the sentinel.

        Returns:
            True if this process now holds the lock
        """
        os.makedirs(os.path.dirname(self.lock_path) or ".", exist_ok=True)

        if os.path.exists(self.lock_path):
            try:
                age_ms = (time.time() - os.stat(self.lock_path).st_mtime) * 1000
            except FileNotFoundError:
                age_ms = 0
            if age_ms <= self.stale_after_ms:
                return False
            logger.warning(f"⚠️ Removing stale lock {self.lock_path} ({age_ms:.0f}ms old)")
            try:
                os.unlink(self.lock_path)
            except FileNotFoundError:
                pass

        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as handle:
            handle.write(str(int(time.time() * 1000)))
        self.acquired = True
        return True

    def acquire(self) -> bool:
        """Wait for the lock, up to ``max_wait_ms``.

        Returns:
            True if acquired, False if the wait budget ran out
        """
        deadline = time.monotonic() + self.max_wait_ms / 1000
        while time.monotonic() < deadline:
            if self.try_acquire():
                return True
            time.sleep(self.retry_interval_ms / 1000)

        logger.warning(
            f"⚠️ Could not acquire lock on {self.lock_path} within "
            f"{self.max_wait_ms}ms, proceeding without lock")
        return False

    def release(self) -> None:
        """Remove the sentinel if this process created it."""
        if not self.acquired:
            return
        self.acquired = False
        try:
            os.unlink(self.lock_path)
        except OSError as e:
            logger.warning(f"Could not delete lock file {self.lock_path}: {e}")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


class PatternCache:
    """Short-lived in-memory copy of one store file."""

    def __init__(self, owner: str, ttl: float = 5.0):
        self.owner = owner
        self.ttl = ttl
        self._patterns: Optional[List[LearnedPattern]] = None
        self._loaded_at = 0.0

    def get(self) -> Optional[List[LearnedPattern]]:
        if self._patterns is None:
            return None
        if time.monotonic() - self._loaded_at >= self.ttl:
            self._patterns = None
            return None
        return self._patterns

    def put(self, patterns: List[LearnedPattern]) -> None:
        self._patterns = patterns
        self._loaded_at = time.monotonic()

    def invalidate(self) -> None:
        self._patterns = None


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def calculate_confidence(success_count: int, fail_count: int) -> float:
    """
    Wilson score lower bound of the success rate at 95% confidence.

    Args:
        success_count: Recorded successes
        fail_count: Recorded failures

    Returns:
        Confidence in [0, 1]; 0.5 when nothing has been recorded
    """
    n = success_count + fail_count
    if n == 0:
        return NEW_PATTERN_CONFIDENCE

    p = success_count / n
    z2 = WILSON_Z * WILSON_Z
    denominator = 1 + z2 / n
    center = p + z2 / (2 * n)
    spread = WILSON_Z * math.sqrt((p * (1 - p) + z2 / (4 * n)) / n)

    return max(0.0, min(1.0, (center - spread) / denominator))


def _to_base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    result = ""
    while number:
        number, remainder = divmod(number, 36)
        result = digits[remainder] + result
    return result


def generate_pattern_id() -> str:
    """Time-ordered id of the form ``LP<base36 ms><4 random chars>``."""
    suffix = "".join(random.choice("0123456789abcdefghijklmnopqrstuvwxyz") for _ in range(4))
    return f"LP{_to_base36(int(time.time() * 1000))}{suffix}".upper()


def generate_regex_from_text(text: str) -> str:
    """
    Build an anchored regular expression that generalizes a step text.

    Quoted substrings become capture groups, articles become optional and
    common verbs accept both singular and plural forms.

    Args:
        text: Original step text

    Returns:
        Regex source string
    """
    pattern = re.sub(r"([.*+?^${}()|\[\]\\])", r"\\\1", text.lower())
    pattern = re.sub(r'"[^"]+"', '"([^"]+)"', pattern)
    pattern = re.sub(r"'[^']+'", "'([^']+)'", pattern)
    pattern = re.sub(r"\b(the|a|an)\s+", r"(?:\1\\s+)?", pattern)
    pattern = re.sub(r"^user\s+", r"(?:user\\s+)?", pattern)
    for verb in ("click", "fill", "select", "type", "see", "wait"):
        pattern = re.sub(rf"\b{verb}s?\b", f"{verb}s?", pattern)
    return f"^{pattern}$"


# ═══════════════════════════════════════════════════════════════════════════
# STORE
# ═══════════════════════════════════════════════════════════════════════════

class LearnedPatternStore:
    """File-backed store of learned step patterns.

    One instance owns one LLKB root and its read cache. Instances pointed at
    the same root share the file but not the cache.
    """

    def __init__(self, llkb_root: Optional[str] = None, cache_ttl: Optional[float] = None,
                 normalizer: Optional[TextNormalizer] = None,
                 scorer: Optional[SimilarityScorer] = None):
        self.llkb_root = Path(llkb_root or settings.LLKB_ROOT)
        self.file_path = self.llkb_root / PATTERNS_FILE
        self.normalizer = normalizer or TextNormalizer()
        self.scorer = scorer or SimilarityScorer()
        self.cache = PatternCache(
            str(self.file_path),
            settings.LLKB_CACHE_TTL if cache_ttl is None else cache_ttl,
        )
        self.discovered_path = self.llkb_root / DISCOVERED_FILE
        self.discovered_cache = PatternCache(
            str(self.discovered_path),
            DISCOVERED_CACHE_TTL if cache_ttl is None else cache_ttl,
        )

    def normalize_key(self, text: str) -> str:
        return self.normalizer.normalize(text)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load_patterns(self, bypass_cache: bool = False) -> List[LearnedPattern]:
        """
        Load all patterns.

        Args:
            bypass_cache: Re-read the file even when the cache is fresh

        Returns:
            Patterns in file order; empty when the file is missing or invalid
        """
        if not bypass_cache:
            cached = self.cache.get()
            if cached is not None:
                return cached

        patterns = self._read_file()
        self.cache.put(patterns)
        return patterns

    def load_discovered_patterns(self, bypass_cache: bool = False) -> List[LearnedPattern]:
        """Patterns from discovered-patterns.json, converted to actions. Read-only."""
        if not bypass_cache:
            cached = self.discovered_cache.get()
            if cached is not None:
                return cached

        patterns = load_discovered_patterns(self.discovered_path, self.normalize_key)
        self.discovered_cache.put(patterns)
        return patterns

    def save_patterns(self, patterns: Iterable[LearnedPattern]) -> None:
        """
        Atomically replace the store file.

        Raises:
            PatternStoreError: If the file cannot be written
        """
        document = {
            "version": STORE_VERSION,
            "lastUpdated": datetime.now().isoformat(),
            "patterns": [p.to_dict() for p in patterns],
        }
        self._atomic_write_json(self.file_path, document)
        self.cache.invalidate()

    def _read_file(self) -> List[LearnedPattern]:
        if not self.file_path.exists():
            return []

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            document = PatternDocument.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"⚠️ Failed to load learned patterns from {self.file_path}: {e}")
            return []

        patterns: List[LearnedPattern] = []
        for index, entry in enumerate(document.patterns):
            try:
                PatternEntry.model_validate(entry)
                patterns.append(LearnedPattern.from_dict(entry))
            except (ValidationError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"⚠️ Skipping invalid learned pattern #{index} in {self.file_path}: {e}")
        return patterns

    def _atomic_write_json(self, path: Path, document: Dict[str, Any]) -> None:
        tmp_path = path.with_name(f"{path.name}.tmp.{os.getpid()}.{int(time.time() * 1000)}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise PatternStoreError(f"Failed to write {path}: {e}") from e

    # ------------------------------------------------------------------
    # Learning
    # ------------------------------------------------------------------

    def record_success(self, text: str, action: Action, journey_id: str) -> LearnedPattern:
        """
        Record that ``text`` resolved to ``action`` in a passing run.

        Args:
            text: Original step text
            action: Action the step resolved to
            journey_id: Journey that exercised the step

        Returns:
            The created or updated pattern
        """
        with FileLock(str(self.file_path)):
            patterns = self.load_patterns(bypass_cache=True)
            key = self.normalize_key(text)
            now = datetime.now()

            pattern = next((p for p in patterns if p.normalized_text == key), None)
            if pattern is not None:
                pattern.success_count += 1
                pattern.confidence = calculate_confidence(pattern.success_count, pattern.fail_count)
                pattern.last_used = now
                if journey_id not in pattern.source_journeys:
                    pattern.source_journeys.append(journey_id)
                logger.debug(f"LLKB: success #{pattern.success_count} for {pattern.id} "
                             f"(confidence {pattern.confidence:.2f})")
            else:
                pattern = LearnedPattern(
                    id=generate_pattern_id(),
                    original_text=text,
                    normalized_text=key,
                    mapped_action=action,
                    confidence=NEW_PATTERN_CONFIDENCE,
                    source_journeys=[journey_id],
                    success_count=1,
                    fail_count=0,
                    last_used=now,
                    created_at=now,
                )
                patterns.append(pattern)
                logger.info(f"📚 LLKB: learned new pattern {pattern.id} for '{text}'")

            self.save_patterns(patterns)
            return pattern

    def record_failure(self, text: str, journey_id: str) -> Optional[LearnedPattern]:
        """
        Record that a learned mapping for ``text`` failed.

        Failures on text the store has never seen are not recorded.

        Returns:
            The updated pattern, or None if none exists for the text
        """
        with FileLock(str(self.file_path)):
            patterns = self.load_patterns(bypass_cache=True)
            key = self.normalize_key(text)

            pattern = next((p for p in patterns if p.normalized_text == key), None)
            if pattern is None:
                return None

            pattern.fail_count += 1
            pattern.confidence = calculate_confidence(pattern.success_count, pattern.fail_count)
            pattern.last_used = datetime.now()
            self.save_patterns(patterns)
            logger.info(f"📉 LLKB: failure recorded for {pattern.id} from {journey_id} "
                        f"(confidence {pattern.confidence:.2f})")
            return pattern

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def match(self, text: str, min_confidence: Optional[float] = None,
              min_similarity: Optional[float] = None,
              use_fuzzy: bool = True) -> Optional[LearnedMatch]:
        """
        Look a step up among non-promoted learned patterns and discovered patterns.

        Within each source an exact normalized-text match wins. Otherwise, the
        pattern with the best confidence x similarity above ``min_similarity``
        is returned; ties go to the more specific layer. When both sources
        match, the discovered pattern wins unless the learned one scores higher.

        Args:
            text: Step text
            min_confidence: Minimum pattern confidence (default from settings)
            min_similarity: Minimum fuzzy similarity (default from settings)
            use_fuzzy: Allow non-exact matches

        Returns:
            LearnedMatch or None
        """
        min_confidence = settings.LLKB_MIN_CONFIDENCE if min_confidence is None else min_confidence
        min_similarity = settings.LLKB_MIN_SIMILARITY if min_similarity is None else min_similarity

        key = self.normalize_key(text)
        learned = self._best_match(
            key, [p for p in self.load_patterns() if not p.promoted_to_core],
            min_confidence, min_similarity, use_fuzzy)
        discovered = self._best_match(
            key, self.load_discovered_patterns(), min_confidence, min_similarity, use_fuzzy)

        if learned is None or discovered is None:
            return learned or discovered
        return discovered if discovered.score >= learned.score else learned

    def _best_match(self, key: str, patterns: List[LearnedPattern], min_confidence: float,
                    min_similarity: float, use_fuzzy: bool) -> Optional[LearnedMatch]:
        candidates = [p for p in patterns if p.confidence >= min_confidence]
        if not candidates:
            return None

        exact = [p for p in candidates if p.normalized_text == key]
        if exact:
            best = max(exact, key=lambda p: (p.layer.priority, p.confidence))
            return LearnedMatch(best.id, best.mapped_action, best.confidence, 1.0, best.layer)

        if not use_fuzzy:
            return None

        best_match: Optional[LearnedMatch] = None
        for pattern in candidates:
            similarity = self.scorer.calculate_similarity(key, pattern.normalized_text)
            if similarity < min_similarity:
                continue
            match = LearnedMatch(pattern.id, pattern.mapped_action, pattern.confidence,
                                 similarity, pattern.layer)
            if best_match is None or (match.score, match.layer.priority) > (best_match.score, best_match.layer.priority):
                best_match = match

        return best_match

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def get_promotable_patterns(self) -> List[PromotedPattern]:
        """Patterns trusted enough to become core rules, each with a generated regex."""
        return [
            PromotedPattern(
                pattern=p,
                generated_regex=generate_regex_from_text(p.original_text),
                priority=p.success_count * p.confidence,
            )
            for p in self.load_patterns()
            if p.confidence >= PROMOTION_MIN_CONFIDENCE
            and p.success_count >= PROMOTION_MIN_SUCCESSES
            and len(set(p.source_journeys)) >= PROMOTION_MIN_SOURCES
            and not p.promoted_to_core
        ]

    def mark_patterns_promoted(self, pattern_ids: Iterable[str]) -> int:
        """
        Flag patterns as promoted so the learned tier stops serving them.

        Returns:
            Number of patterns newly marked
        """
        ids = set(pattern_ids)
        with FileLock(str(self.file_path)):
            patterns = self.load_patterns(bypass_cache=True)
            now = datetime.now()
            marked = 0
            for pattern in patterns:
                if pattern.id in ids and not pattern.promoted_to_core:
                    pattern.promoted_to_core = True
                    pattern.promoted_at = now
                    marked += 1
            if marked:
                self.save_patterns(patterns)
        logger.info(f"⬆️ LLKB: marked {marked} pattern(s) as promoted")
        return marked

    def prune(self, max_age_days: int = 90, min_confidence: float = 0.3,
              min_success: int = 1) -> PruneResult:
        """
        Remove untrustworthy patterns. Promoted patterns are always kept.

        A pattern is removed when its confidence is below ``min_confidence``,
        when it has fewer than ``min_success`` successes, or when it is older
        than ``max_age_days`` and has never succeeded.

        Returns:
            PruneResult with removed and remaining counts
        """
        with FileLock(str(self.file_path)):
            patterns = self.load_patterns(bypass_cache=True)
            cutoff = datetime.now() - timedelta(days=max_age_days)

            def keep(p: LearnedPattern) -> bool:
                if p.promoted_to_core:
                    return True
                if p.confidence < min_confidence:
                    return False
                if min_success > 0 and p.success_count < min_success:
                    return False
                if p.created_at < cutoff and p.success_count == 0:
                    return False
                return True

            kept = [p for p in patterns if keep(p)]
            removed = len(patterns) - len(kept)
            if removed:
                self.save_patterns(kept)

        logger.info(f"🧹 LLKB: pruned {removed} pattern(s), {len(kept)} remaining")
        return PruneResult(removed=removed, remaining=len(kept))

    def stats(self) -> PatternStats:
        patterns = self.load_patterns()
        if not patterns:
            return PatternStats()

        return PatternStats(
            total=len(patterns),
            promoted=sum(1 for p in patterns if p.promoted_to_core),
            high_confidence=sum(1 for p in patterns if p.confidence >= 0.7),
            low_confidence=sum(1 for p in patterns if p.confidence < 0.3),
            avg_confidence=sum(p.confidence for p in patterns) / len(patterns),
            total_successes=sum(p.success_count for p in patterns),
            total_failures=sum(p.fail_count for p in patterns),
        )

    def export_patterns_to_config(self, output_path: Optional[str] = None,
                                  min_confidence: float = 0.7) -> Dict[str, Any]:
        """
        Export confident, non-promoted patterns as trigger regexes.

        Args:
            output_path: Destination file (default ``<llkb_root>/autogen-patterns.json``)
            min_confidence: Minimum confidence to export

        Returns:
            Dictionary with ``exported`` count and ``path``
        """
        exportable = [p for p in self.load_patterns()
                      if p.confidence >= min_confidence and not p.promoted_to_core]
        document = {
            "version": STORE_VERSION,
            "exportedAt": datetime.now().isoformat(),
            "patterns": [
                {
                    "id": p.id,
                    "trigger": generate_regex_from_text(p.original_text),
                    "action": p.mapped_action.to_dict(),
                    "confidence": p.confidence,
                    "sourceCount": len(p.source_journeys),
                }
                for p in exportable
            ],
        }
        path = Path(output_path) if output_path else self.llkb_root / EXPORT_FILE
        self._atomic_write_json(path, document)
        logger.info(f"📤 LLKB: exported {len(exportable)} pattern(s) to {path}")
        return {"exported": len(exportable), "path": str(path)}

    def clear(self) -> None:
        """Delete the store file."""
        if self.file_path.exists():
            self.file_path.unlink()
        self.cache.invalidate()
        logger.info(f"🗑️ LLKB: cleared {self.file_path}")
