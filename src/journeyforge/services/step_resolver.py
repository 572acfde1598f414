"""
Unified step resolution.

Turns a journey step into exactly one ``Action`` by trying, in order:

1. core patterns (on the trimmed text, then on its light normalization)
2. the learned pattern store
3. the curated-example fuzzy matcher
4. inference from locator hints alone
5. ``blocked``, carrying a reason and a rewrite suggestion

Inline hints are extracted first and override whatever the winning tier
inferred. Resolution never raises; a step nothing can parse becomes a
``blocked`` action that renders as a failing test line.
"""

import re
import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterable, List, Optional, Union

from ..core.config import settings
from ..core.exceptions import PatternStoreError
from ..core.logging_config import get_component_logger
from ..core.models import (
    Action,
    ResolutionSource,
    ResolvedStep,
    Step,
    StepHints,
)
from .fuzzy_matcher import FuzzyMatcher
from .learned_pattern_store import LearnedPatternStore
from .pattern_library import get_pattern_matches, match_core_pattern
from .step_hints import action_from_hints, apply_hints, extract_hints
from .text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)

ROLE_NOUNS = ("button", "link", "field", "input", "checkbox", "dropdown", "tab",
              "menu", "dialog", "modal", "heading", "table", "row", "option")


@dataclass
class ResolverConfig:
    """Thresholds and switches for the resolution tiers."""
    use_learned: bool = True
    use_fuzzy: bool = True
    llkb_min_confidence: float = field(default_factory=lambda: settings.LLKB_MIN_CONFIDENCE)
    llkb_min_similarity: float = field(default_factory=lambda: settings.LLKB_MIN_SIMILARITY)
    fuzzy_min_similarity: float = field(default_factory=lambda: settings.FUZZY_MIN_SIMILARITY)


@dataclass
class ResolutionStats:
    """How many steps each tier resolved."""
    core: int = 0
    learned: int = 0
    fuzzy: int = 0
    hints: int = 0
    blocked: int = 0

    @property
    def total(self) -> int:
        return self.core + self.learned + self.fuzzy + self.hints + self.blocked

    @property
    def resolution_rate(self) -> float:
        return (self.total - self.blocked) / self.total if self.total else 0.0

    def record(self, source: ResolutionSource) -> None:
        setattr(self, source.value, getattr(self, source.value) + 1)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {f.name: getattr(self, f.name) for f in fields(self)}
        data["total"] = self.total
        data["resolutionRate"] = self.resolution_rate
        return data


@dataclass
class JourneyResolution:
    journey_id: str
    steps: List[ResolvedStep]
    stats: ResolutionStats

    @property
    def blocked_steps(self) -> List[ResolvedStep]:
        return [s for s in self.steps if s.source is ResolutionSource.BLOCKED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "journeyId": self.journey_id,
            "steps": [s.to_dict() for s in self.steps],
            "stats": self.stats.to_dict(),
        }


REWRITE_SUGGESTIONS = [
    (re.compile(r"\b(go|goes|going|went|open\w*|navigat\w*|visit\w*)\b"),
     "Try: \"User navigates to /path\" or \"User opens /path\""),
    (re.compile(r"\b(click\w*|press\w*|taps?|tapped|tapping|buttons?)\b"),
     "Try: \"User clicks 'Button Name' button\" or \"Click the 'Label' button\""),
    (re.compile(r"\b(enter\w*|typ(e|es|ed|ing)|fill\w*|fields?)\b"),
     "Try: \"User enters 'value' in 'Field Label' field\""),
    (re.compile(r"\b(see|sees|seeing|saw|visible|display\w*)\b"),
     "Try: \"User should see 'Text'\" or \"'Element' is visible\""),
]


def suggest_rewrite(text: str) -> str:
    """Rewrite hint for a step no tier could parse."""
    lower = text.lower()
    for pattern, suggestion in REWRITE_SUGGESTIONS:
        if pattern.search(lower):
            return suggestion
    return ("Could not determine intent. Rephrase using a supported pattern or add "
            "locator hints such as (role=button, label=\"Save\")")


def blocked_reason(text: str) -> str:
    """Why a step was blocked, noting what was recognizable in it."""
    quoted = re.findall(r"['\"]([^'\"]+)['\"]", text)
    words = set(re.findall(r"[a-z]+", text.lower()))
    nouns = [n for n in ROLE_NOUNS if n in words]

    details = []
    if quoted:
        details.append(f"quoted text found ({', '.join(repr(q) for q in quoted)})")
    if nouns:
        details.append(f"element type found ({', '.join(nouns)})")
    if not details:
        details.append("no quoted text or element type found")
    return f"Could not map step: \"{text}\"; {'; '.join(details)}"


def _merge_hints(inline: StepHints, explicit: StepHints) -> StepHints:
    if explicit.is_empty:
        return inline
    overrides = {f.name: getattr(explicit, f.name) for f in fields(explicit)
                 if getattr(explicit, f.name) is not None}
    return replace(inline, **overrides)


class StepResolver:
    """Resolves journey steps through the tier chain."""

    def __init__(self, store: Optional[LearnedPatternStore] = None,
                 config: Optional[ResolverConfig] = None,
                 fuzzy_matcher: Optional[FuzzyMatcher] = None,
                 normalizer: Optional[TextNormalizer] = None):
        self.config = config or ResolverConfig()
        self.store = store
        self.normalizer = normalizer or TextNormalizer()
        self.fuzzy_matcher = fuzzy_matcher or FuzzyMatcher(
            min_similarity=self.config.fuzzy_min_similarity, normalizer=self.normalizer)

    def resolve_text(self, text: str, journey_id: Optional[str] = None) -> ResolvedStep:
        return self.resolve(Step(text), journey_id)

    def resolve(self, step: Union[Step, str], journey_id: Optional[str] = None) -> ResolvedStep:
        """
        Resolve one step.

        Args:
            step: Step (or raw text) to resolve
            journey_id: Journey the step belongs to, used in log context only

        Returns:
            ResolvedStep; its action is ``blocked`` when nothing matched
        """
        if isinstance(step, str):
            step = Step(step)

        clean_text, inline_hints, warnings = extract_hints(step.text)
        hints = _merge_hints(inline_hints, step.hints)
        trimmed = clean_text.strip()
        normalized = self.normalizer.light_normalization(trimmed)

        # Tier 1: core patterns
        for candidate in dict.fromkeys((trimmed, normalized)):
            core = match_core_pattern(candidate)
            if core is not None:
                pattern, action = core
                return ResolvedStep(step, apply_hints(action, hints), ResolutionSource.CORE,
                                    pattern_name=pattern.name, normalized_text=normalized,
                                    hint_warnings=warnings)

        # Tier 2: learned patterns
        if self.config.use_learned and self.store is not None:
            learned = self._match_learned(trimmed)
            if learned is not None:
                return ResolvedStep(step, apply_hints(learned.action, hints), ResolutionSource.LEARNED,
                                    pattern_id=learned.pattern_id, confidence=learned.score,
                                    similarity=learned.similarity, normalized_text=normalized,
                                    hint_warnings=warnings)

        # Tier 3: fuzzy corpus
        if self.config.use_fuzzy:
            fuzzy = self.fuzzy_matcher.match(trimmed)
            if fuzzy is not None:
                return ResolvedStep(step, apply_hints(fuzzy.action, hints), ResolutionSource.FUZZY,
                                    pattern_name=fuzzy.pattern_name, confidence=fuzzy.similarity,
                                    similarity=fuzzy.similarity, matched_example=fuzzy.matched_example,
                                    normalized_text=fuzzy.normalized_text, hint_warnings=warnings)

        # Tier 4: hints alone
        if hints.has_locator_hints:
            action = action_from_hints(trimmed, hints)
            if action is not None:
                return ResolvedStep(step, action, ResolutionSource.HINTS, confidence=0.5,
                                    normalized_text=normalized, hint_warnings=warnings)

        where = f" in {journey_id}" if journey_id else ""
        logger.warning(f"🚫 Blocked step{where}: '{step.text}'")
        action = Action.blocked(blocked_reason(trimmed), step.text, suggest_rewrite(trimmed))
        return ResolvedStep(step, action, ResolutionSource.BLOCKED, confidence=0.0,
                            normalized_text=normalized, hint_warnings=warnings)

    def resolve_journey(self, journey_id: str,
                        steps: Iterable[Union[Step, str]]) -> JourneyResolution:
        """
        Resolve every step of a journey in order.

        Args:
            journey_id: Journey identifier
            steps: Steps in journey order

        Returns:
            JourneyResolution with per-tier statistics
        """
        journey_logger = get_component_logger("resolver", journey_id=journey_id)
        journey_logger.log_operation_start("resolve_journey")

        stats = ResolutionStats()
        resolved = []
        for step in steps:
            result = self.resolve(step, journey_id)
            stats.record(result.source)
            resolved.append(result)

        journey_logger.info(
            f"✅ Resolved {stats.total - stats.blocked}/{stats.total} steps "
            f"(core={stats.core}, learned={stats.learned}, fuzzy={stats.fuzzy}, "
            f"hints={stats.hints}, blocked={stats.blocked})",
            extra={"operation": "resolve_journey", "metadata": stats.to_dict()})
        return JourneyResolution(journey_id, resolved, stats)

    def explain(self, text: str) -> Dict[str, Any]:
        """
        Every candidate each tier would offer for ``text`` (debugging).

        Returns:
            Dictionary keyed by tier name, plus the final resolution
        """
        clean_text, hints, warnings = extract_hints(text)
        trimmed = clean_text.strip()
        normalized = self.normalizer.light_normalization(trimmed)

        core = [{"pattern": name, "action": action.to_dict()}
                for name, action in get_pattern_matches(trimmed)]
        if normalized != trimmed:
            core.extend({"pattern": name, "action": action.to_dict(), "normalized": True}
                        for name, action in get_pattern_matches(normalized))

        learned = None
        if self.store is not None:
            match = self._match_learned(trimmed)
            if match is not None:
                learned = {"patternId": match.pattern_id, "action": match.action.to_dict(),
                           "confidence": match.confidence, "similarity": match.similarity}

        fuzzy = self.fuzzy_matcher.match(trimmed)
        return {
            "text": text,
            "cleanText": trimmed,
            "normalizedText": normalized,
            "canonicalText": self.normalizer.canonical_form(trimmed),
            "hints": hints.to_dict(),
            "hintWarnings": warnings,
            "core": core,
            "learned": learned,
            "fuzzy": None if fuzzy is None else {
                "pattern": fuzzy.pattern_name,
                "example": fuzzy.matched_example,
                "similarity": fuzzy.similarity,
                "action": fuzzy.action.to_dict(),
            },
            "resolution": self.resolve(text).to_dict(),
        }

    def _match_learned(self, text: str):
        try:
            return self.store.match(text, self.config.llkb_min_confidence,
                                    self.config.llkb_min_similarity)
        except (PatternStoreError, OSError) as e:
            logger.warning(f"⚠️ Learned pattern lookup failed, skipping tier: {e}")
            return None
