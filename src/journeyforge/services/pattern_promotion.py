"""
Promotion of learned patterns into core patterns.

Patterns that have proven themselves across journeys are reported with a
generated regex and a Python snippet defining the equivalent ``CorePattern``.
The snippet is written for human review; nothing is merged into the pattern
library automatically.
"""

import json
import math
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.models import ActionType, LearnedPattern
from .learned_pattern_store import LearnedPatternStore, generate_regex_from_text

logger = logging.getLogger(__name__)


@dataclass
class PromotionCriteria:
    """Thresholds a learned pattern must meet to be promoted."""
    min_confidence: float = 0.9
    min_success_count: int = 5
    min_source_journeys: int = 2
    max_fail_count: int = 2
    min_success_rate: float = 0.85


DEFAULT_PROMOTION_CRITERIA = PromotionCriteria()


@dataclass
class PromotedPatternDefinition:
    """Everything needed to write a core pattern for a learned one."""
    name: str
    regex: str
    action_type: str
    example: str
    extraction_logic: str
    llkb_pattern_id: str
    confidence_at_promotion: float
    source_journeys_count: int
    promoted_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "regex": self.regex,
            "actionType": self.action_type,
            "example": self.example,
            "extractionLogic": self.extraction_logic,
            "llkbPatternId": self.llkb_pattern_id,
            "confidenceAtPromotion": self.confidence_at_promotion,
            "sourceJourneysCount": self.source_journeys_count,
            "promotedAt": self.promoted_at.isoformat(),
        }


@dataclass
class NearPromotion:
    """A pattern missing at most two criteria."""
    pattern: LearnedPattern
    missing_criteria: List[str]
    estimated_uses_needed: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.pattern.to_dict(),
            "missingCriteria": list(self.missing_criteria),
            "estimatedUsesNeeded": self.estimated_uses_needed,
        }


@dataclass
class PromotionReport:
    """Result of analyzing the store for promotion candidates."""
    total_patterns: int
    promotable_patterns: List[PromotedPatternDefinition] = field(default_factory=list)
    near_promotion_patterns: List[NearPromotion] = field(default_factory=list)
    already_promoted: int = 0
    needs_more_data: int = 0
    analyzed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analyzedAt": self.analyzed_at.isoformat(),
            "totalPatterns": self.total_patterns,
            "promotablePatterns": [p.to_dict() for p in self.promotable_patterns],
            "nearPromotionPatterns": [p.to_dict() for p in self.near_promotion_patterns],
            "stats": {
                "alreadyPromoted": self.already_promoted,
                "eligibleForPromotion": len(self.promotable_patterns),
                "nearPromotion": len(self.near_promotion_patterns),
                "needsMoreData": self.needs_more_data,
            },
        }


_LOCATOR_ONLY = {
    ActionType.CLICK, ActionType.DBLCLICK, ActionType.RIGHT_CLICK, ActionType.HOVER,
    ActionType.FOCUS, ActionType.CLEAR, ActionType.CHECK, ActionType.UNCHECK,
    ActionType.EXPECT_VISIBLE, ActionType.EXPECT_NOT_VISIBLE, ActionType.EXPECT_HIDDEN,
    ActionType.EXPECT_ENABLED, ActionType.EXPECT_DISABLED,
    ActionType.WAIT_FOR_VISIBLE, ActionType.WAIT_FOR_HIDDEN,
}


def generate_pattern_name(text: str, action_type: str) -> str:
    """Name such as ``llkb-click-userClicksSubmit`` from the first four long words."""
    words = [w for w in text.lower().replace('"', "").replace("'", "").split() if len(w) > 2][:4]
    base_name = "".join(w if i == 0 else w.capitalize() for i, w in enumerate(words))
    return f"llkb-{action_type}-{base_name}"


def generate_extraction_logic(action_type: ActionType) -> str:
    if action_type in _LOCATOR_ONLY:
        return f"Extract locator from match groups, return Action({action_type.name}, locator)"
    if action_type is ActionType.FILL:
        return "Extract locator and value from match groups, return Action(FILL, locator, value)"
    if action_type is ActionType.GOTO:
        return "Extract URL/path from match groups, return Action(GOTO, url)"
    if action_type in (ActionType.EXPECT_TEXT, ActionType.EXPECT_CONTAINS_TEXT):
        return f"Extract locator and text from match groups, return Action({action_type.name}, locator, text)"
    if action_type is ActionType.WAIT_FOR_TIMEOUT:
        return "Extract milliseconds from match groups, return Action(WAIT_FOR_TIMEOUT, ms)"
    if action_type is ActionType.WAIT_FOR_NETWORK_IDLE:
        return "Return Action(WAIT_FOR_NETWORK_IDLE)"
    if action_type is ActionType.SELECT:
        return "Extract locator and option from match groups, return Action(SELECT, locator, option)"
    if action_type is ActionType.PRESS:
        return "Extract key from match groups, return Action(PRESS, key)"
    return "Extract parameters from match groups, return Action"


def _extractor_source(action_type: ActionType) -> str:
    text_locator = "LocatorSpec(LocatorStrategy.TEXT, m.group(1) or {default!r})"
    if action_type in _LOCATOR_ONLY:
        return f"lambda m: Action(ActionType.{action_type.name}, locator={text_locator.format(default='element')})"
    if action_type is ActionType.FILL:
        return (f"lambda m: Action(ActionType.FILL, locator={text_locator.format(default='field')}, "
                "value=ValueSpec(ValueType.LITERAL, m.group(2) or ''))")
    if action_type is ActionType.GOTO:
        return "lambda m: Action(ActionType.GOTO, url=m.group(1) or '/')"
    if action_type in (ActionType.EXPECT_TEXT, ActionType.EXPECT_CONTAINS_TEXT):
        return (f"lambda m: Action(ActionType.{action_type.name}, "
                f"locator={text_locator.format(default='element')}, text=m.group(2) or '')")
    if action_type is ActionType.WAIT_FOR_TIMEOUT:
        return "lambda m: Action(ActionType.WAIT_FOR_TIMEOUT, ms=int(m.group(1) or 1000))"
    if action_type is ActionType.WAIT_FOR_NETWORK_IDLE:
        return "lambda m: Action(ActionType.WAIT_FOR_NETWORK_IDLE)"
    if action_type is ActionType.SELECT:
        return (f"lambda m: Action(ActionType.SELECT, locator={text_locator.format(default='dropdown')}, "
                "option=m.group(2) or '')")
    if action_type is ActionType.PRESS:
        return "lambda m: Action(ActionType.PRESS, key=m.group(1) or 'Enter')"
    return (f"lambda m: Action.blocked('Unknown type: {action_type.value}', m.group(0), "
            "'Write an extractor for this pattern')")


def meets_promotion_criteria(pattern: LearnedPattern,
                             criteria: PromotionCriteria = DEFAULT_PROMOTION_CRITERIA) -> List[str]:
    """
    Check a pattern against the promotion thresholds.

    Returns:
        Human-readable descriptions of unmet criteria; empty when promotable
    """
    missing = []
    if pattern.confidence < criteria.min_confidence:
        missing.append(f"confidence: {pattern.confidence * 100:.1f}% < {criteria.min_confidence * 100:.1f}%")
    if pattern.success_count < criteria.min_success_count:
        missing.append(f"successCount: {pattern.success_count} < {criteria.min_success_count}")
    if len(pattern.source_journeys) < criteria.min_source_journeys:
        missing.append(f"sourceJourneys: {len(pattern.source_journeys)} < {criteria.min_source_journeys}")
    if pattern.fail_count > criteria.max_fail_count:
        missing.append(f"failCount: {pattern.fail_count} > {criteria.max_fail_count}")

    total = pattern.success_count + pattern.fail_count
    success_rate = pattern.success_count / (total or 1)
    if success_rate < criteria.min_success_rate:
        missing.append(f"successRate: {success_rate * 100:.1f}% < {criteria.min_success_rate * 100:.1f}%")
    return missing


def estimate_uses_needed(pattern: LearnedPattern, criteria: PromotionCriteria) -> int:
    needed = []
    if pattern.success_count < criteria.min_success_count:
        needed.append(criteria.min_success_count - pattern.success_count)
    if pattern.confidence < criteria.min_confidence:
        target = math.ceil(criteria.min_success_count * (1 + pattern.fail_count / 5))
        needed.append(max(0, target - pattern.success_count))
    return max(needed + [1])


def analyze_for_promotion(store: LearnedPatternStore,
                          criteria: Optional[PromotionCriteria] = None) -> PromotionReport:
    """
    Sort every stored pattern into promoted, promotable, near or needs-data.

    Args:
        store: Learned pattern store to analyze
        criteria: Thresholds (defaults to DEFAULT_PROMOTION_CRITERIA)

    Returns:
        PromotionReport
    """
    criteria = criteria or DEFAULT_PROMOTION_CRITERIA
    patterns = store.load_patterns()
    report = PromotionReport(total_patterns=len(patterns))

    for pattern in patterns:
        if pattern.promoted_to_core:
            report.already_promoted += 1
            continue

        missing = meets_promotion_criteria(pattern, criteria)
        action_type = pattern.mapped_action.type
        if not missing:
            report.promotable_patterns.append(PromotedPatternDefinition(
                name=generate_pattern_name(pattern.original_text, action_type.value),
                regex=generate_regex_from_text(pattern.original_text),
                action_type=action_type.value,
                example=pattern.original_text,
                extraction_logic=generate_extraction_logic(action_type),
                llkb_pattern_id=pattern.id,
                confidence_at_promotion=pattern.confidence,
                source_journeys_count=len(pattern.source_journeys),
            ))
        elif len(missing) <= 2 and pattern.success_count >= 2:
            report.near_promotion_patterns.append(NearPromotion(
                pattern=pattern,
                missing_criteria=missing,
                estimated_uses_needed=estimate_uses_needed(pattern, criteria),
            ))
        else:
            report.needs_more_data += 1

    logger.info(f"📊 Promotion analysis: {len(report.promotable_patterns)} promotable, "
                f"{len(report.near_promotion_patterns)} near, {report.already_promoted} already promoted")
    return report


def generate_promoted_patterns_code(patterns: List[PromotedPatternDefinition]) -> str:
    """
    Python source defining ``CorePattern`` entries for the given definitions.

    Returns:
        Module source; a single comment line when the list is empty
    """
    if not patterns:
        return "# No patterns ready for promotion\n"

    lines = [
        '"""',
        "LLKB-promoted patterns.",
        "",
        f"Generated at: {datetime.now().isoformat()}",
        "Review and merge into pattern_library.py after validation.",
        '"""',
        "",
        "from journeyforge.core.models import Action, ActionType, LocatorSpec, LocatorStrategy, ValueSpec, ValueType",
        "from journeyforge.services.pattern_library import CorePattern",
        "",
        "LLKB_PROMOTED_PATTERNS = [",
    ]
    for definition in patterns:
        action_type = ActionType(definition.action_type)
        lines.extend([
            "    # " + definition.extraction_logic,
            f"    # Example: {definition.example!r}",
            f"    # LLKB pattern {definition.llkb_pattern_id}, "
            f"confidence at promotion {definition.confidence_at_promotion * 100:.1f}%",
            "    CorePattern(",
            f"        name={definition.name!r},",
            f"        regex={definition.regex!r},",
            f"        action_type=ActionType.{action_type.name},",
            f"        extract={_extractor_source(action_type)},",
            "    ),",
        ])
    lines.extend(["]", ""])
    return "\n".join(lines)


def export_promotion_report(report: PromotionReport, output_dir: str) -> Dict[str, Optional[str]]:
    """
    Write the report as JSON and, when anything is promotable, the generated code.

    Returns:
        Dictionary with ``report_path`` and ``code_path`` (None if no code written)
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    report_path = out / f"promotion-report-{timestamp}.json"
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2)

    code_path = None
    if report.promotable_patterns:
        code_path = out / f"llkb_promoted_patterns_{timestamp}.py"
        with open(code_path, "w", encoding="utf-8") as f:
            f.write(generate_promoted_patterns_code(report.promotable_patterns))

    logger.info(f"💾 Promotion report written to {report_path}")
    return {"report_path": str(report_path), "code_path": str(code_path) if code_path else None}


def promote_patterns(store: LearnedPatternStore, pattern_ids: Optional[List[str]] = None,
                     criteria: Optional[PromotionCriteria] = None) -> Dict[str, List[str]]:
    """
    Mark patterns that meet the criteria as promoted.

    Args:
        store: Learned pattern store
        pattern_ids: Restrict to these ids (default: every pattern)
        criteria: Thresholds (defaults to DEFAULT_PROMOTION_CRITERIA)

    Returns:
        Dictionary with ``promoted`` and ``skipped`` id lists
    """
    criteria = criteria or DEFAULT_PROMOTION_CRITERIA
    promoted: List[str] = []
    skipped: List[str] = []

    for pattern in store.load_patterns(bypass_cache=True):
        if pattern.promoted_to_core:
            continue
        if pattern_ids is not None and pattern.id not in pattern_ids:
            continue
        missing = meets_promotion_criteria(pattern, criteria)
        if missing:
            skipped.append(pattern.id)
        else:
            promoted.append(pattern.id)

    if promoted:
        store.mark_patterns_promoted(promoted)
    return {"promoted": promoted, "skipped": skipped}


def get_promotion_stats(store: LearnedPatternStore) -> Dict[str, Any]:
    report = analyze_for_promotion(store)
    total = report.total_patterns
    return {
        "total": total,
        "promoted": report.already_promoted,
        "promotable": len(report.promotable_patterns),
        "nearPromotion": len(report.near_promotion_patterns),
        "needsWork": report.needs_more_data,
        "promotionRate": (report.already_promoted + len(report.promotable_patterns)) / total if total else 0.0,
    }
