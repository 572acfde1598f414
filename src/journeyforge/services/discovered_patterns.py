"""
Discovered patterns: the second, read-only LLKB source.

Discovery tooling writes ``discovered-patterns.json`` next to the learned
store. Its entries name the action by type ("click", "fill") and carry
selector hints instead of a full action, so each entry is converted into an
``Action`` before it can take part in matching. Entries whose type has no
action counterpart (``drag``, anything unknown) are skipped.

The file is never written here. A missing or malformed file reads as empty.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..core.logging_config import get_component_logger
from ..core.models import (
    Action,
    ActionType,
    LearnedPattern,
    LocatorSpec,
    LocatorStrategy,
    PatternLayer,
    ToastType,
    ValueSpec,
    ValueType,
)

logger = get_component_logger("llkb")

DISCOVERED_FILE = "discovered-patterns.json"
DISCOVERED_CACHE_TTL = 10.0

# Selector hint strategy -> locator strategy; xpath has no direct counterpart.
SELECTOR_STRATEGY_MAP: Dict[str, LocatorStrategy] = {
    "data-testid": LocatorStrategy.TESTID,
    "data-cy": LocatorStrategy.TESTID,
    "data-test": LocatorStrategy.TESTID,
    "role": LocatorStrategy.ROLE,
    "aria-label": LocatorStrategy.LABEL,
    "css": LocatorStrategy.CSS,
    "text": LocatorStrategy.TEXT,
    "xpath": LocatorStrategy.CSS,
}

# Fallback locator when an entry carries no selector hints.
DEFAULT_LOCATOR = LocatorSpec(LocatorStrategy.TESTID, "{{locator}}")


class SelectorHint(BaseModel):
    """One way discovery saw the element addressed."""
    strategy: str
    value: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class DiscoveredEntry(BaseModel):
    """Schema for one discovered pattern."""
    id: str
    normalizedText: str
    originalText: str
    mappedPrimitive: Union[str, Dict[str, Any]] = Field(
        description="Action type name, or a complete action object")
    confidence: float = Field(ge=0.0, le=1.0)
    layer: str = Field(default=PatternLayer.APP_SPECIFIC.value)
    category: Optional[str] = None
    selectorHints: List[SelectorHint] = Field(default_factory=list)
    sourceJourneys: List[str] = Field(default_factory=list)
    successCount: int = Field(default=0, ge=0)
    failCount: int = Field(default=0, ge=0)

    @field_validator("layer")
    @classmethod
    def validate_layer(cls, v: str) -> str:
        PatternLayer(v)
        return v


class DiscoveredDocument(BaseModel):
    """Schema for the whole discovered-patterns.json file."""
    version: Optional[str] = None
    patterns: List[Dict[str, Any]] = Field(default_factory=list)


def locator_from_selector_hints(hints: List[SelectorHint]) -> LocatorSpec:
    """Locator for the most confident hint; unknown strategies become test ids."""
    if not hints:
        return DEFAULT_LOCATOR
    best = max(hints, key=lambda h: h.confidence or 0.0)
    return LocatorSpec(SELECTOR_STRATEGY_MAP.get(best.strategy, LocatorStrategy.TESTID), best.value)


_BUILDERS: Dict[str, Callable[[LocatorSpec], Action]] = {
    # Interaction
    "click": lambda loc: Action(ActionType.CLICK, locator=loc),
    "dblclick": lambda loc: Action(ActionType.DBLCLICK, locator=loc),
    "rightClick": lambda loc: Action(ActionType.RIGHT_CLICK, locator=loc),
    "fill": lambda loc: Action(ActionType.FILL, locator=loc, value=ValueSpec(ValueType.LITERAL, "{{input}}")),
    "check": lambda loc: Action(ActionType.CHECK, locator=loc),
    "uncheck": lambda loc: Action(ActionType.UNCHECK, locator=loc),
    "select": lambda loc: Action(ActionType.SELECT, locator=loc, option="{{option}}"),
    "hover": lambda loc: Action(ActionType.HOVER, locator=loc),
    "focus": lambda loc: Action(ActionType.FOCUS, locator=loc),
    "clear": lambda loc: Action(ActionType.CLEAR, locator=loc),
    "press": lambda loc: Action(ActionType.PRESS, key="Enter", locator=loc),
    "keyboard": lambda loc: Action(ActionType.PRESS, key="Escape", locator=loc),
    "upload": lambda loc: Action(ActionType.UPLOAD, locator=loc, files=["{{file}}"]),
    # Navigation
    "navigate": lambda loc: Action(ActionType.GOTO, url="{{url}}"),
    "goto": lambda loc: Action(ActionType.GOTO, url="{{url}}"),
    "goBack": lambda loc: Action(ActionType.GO_BACK),
    "goForward": lambda loc: Action(ActionType.GO_FORWARD),
    "reload": lambda loc: Action(ActionType.RELOAD),
    # Assertions
    "assert": lambda loc: Action(ActionType.EXPECT_VISIBLE, locator=loc),
    "expectVisible": lambda loc: Action(ActionType.EXPECT_VISIBLE, locator=loc),
    "expectNotVisible": lambda loc: Action(ActionType.EXPECT_NOT_VISIBLE, locator=loc),
    "expectHidden": lambda loc: Action(ActionType.EXPECT_HIDDEN, locator=loc),
    "expectText": lambda loc: Action(ActionType.EXPECT_TEXT, locator=loc, text="{{text}}"),
    "expectContainsText": lambda loc: Action(ActionType.EXPECT_CONTAINS_TEXT, locator=loc, text="{{text}}"),
    "expectURL": lambda loc: Action(ActionType.EXPECT_URL, pattern="{{pattern}}"),
    "expectTitle": lambda loc: Action(ActionType.EXPECT_TITLE, title="{{title}}"),
    "expectValue": lambda loc: Action(ActionType.EXPECT_VALUE, locator=loc,
                                      value=ValueSpec(ValueType.LITERAL, "{{value}}")),
    "expectChecked": lambda loc: Action(ActionType.EXPECT_CHECKED, locator=loc),
    "expectEnabled": lambda loc: Action(ActionType.EXPECT_ENABLED, locator=loc),
    "expectDisabled": lambda loc: Action(ActionType.EXPECT_DISABLED, locator=loc),
    "expectCount": lambda loc: Action(ActionType.EXPECT_COUNT, locator=loc, count=0),
    # Signals
    "expectToast": lambda loc: Action(ActionType.EXPECT_TOAST, toast_type=ToastType.SUCCESS),
    "dismissModal": lambda loc: Action(ActionType.DISMISS_MODAL),
    "acceptAlert": lambda loc: Action(ActionType.ACCEPT_ALERT),
    "dismissAlert": lambda loc: Action(ActionType.DISMISS_ALERT),
    # Waits
    "waitForVisible": lambda loc: Action(ActionType.WAIT_FOR_VISIBLE, locator=loc),
    "waitForHidden": lambda loc: Action(ActionType.WAIT_FOR_HIDDEN, locator=loc),
    "waitForURL": lambda loc: Action(ActionType.WAIT_FOR_URL, pattern="{{pattern}}"),
    "waitForNetworkIdle": lambda loc: Action(ActionType.WAIT_FOR_NETWORK_IDLE),
    "waitForTimeout": lambda loc: Action(ActionType.WAIT_FOR_TIMEOUT, ms=1000),
    "waitForLoadingComplete": lambda loc: Action(ActionType.WAIT_FOR_LOADING_COMPLETE),
}


def action_from_discovered(entry: DiscoveredEntry) -> Optional[Action]:
    """
    Build the action a discovered entry maps to.

    Args:
        entry: Validated discovered entry

    Returns:
        The action, or None when the type name has no action counterpart
    """
    if isinstance(entry.mappedPrimitive, dict):
        return Action.from_dict(entry.mappedPrimitive)

    builder = _BUILDERS.get(entry.mappedPrimitive)
    if builder is None:
        return None
    return builder(locator_from_selector_hints(entry.selectorHints))


def load_discovered_patterns(path: Path, normalize: Callable[[str], str]) -> List[LearnedPattern]:
    """
    Read and convert discovered-patterns.json.

    Args:
        path: File to read
        normalize: Key normalization shared with the learned store

    Returns:
        Converted patterns; empty when the file is missing or invalid
    """
    if not path.exists():
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        document = DiscoveredDocument.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"⚠️ Failed to load discovered patterns from {path}: {e}")
        return []

    patterns: List[LearnedPattern] = []
    for index, raw_entry in enumerate(document.patterns):
        try:
            entry = DiscoveredEntry.model_validate(raw_entry)
            action = action_from_discovered(entry)
        except (ValidationError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"⚠️ Skipping invalid discovered pattern #{index} in {path}: {e}")
            continue
        if action is None:
            logger.debug(f"Skipping discovered pattern {entry.id}: no action for '{entry.mappedPrimitive}'")
            continue

        patterns.append(LearnedPattern(
            id=entry.id,
            original_text=entry.originalText,
            normalized_text=normalize(entry.normalizedText),
            mapped_action=action,
            confidence=entry.confidence,
            source_journeys=list(entry.sourceJourneys),
            success_count=entry.successCount,
            fail_count=entry.failCount,
            layer=PatternLayer(entry.layer),
        ))

    logger.debug(f"Loaded {len(patterns)} discovered pattern(s) from {path}")
    return patterns
