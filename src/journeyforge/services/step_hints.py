"""
Inline step hints.

A step may carry explicit overrides in parentheses, for example::

    User clicks the login control (role=button, label="Log in", exact=true)
    User waits for the report (testid=report-table) (timeout=15000)

Hints are authoritative: when present they replace the locator and behavior
fields the pattern tiers inferred. Malformed hints produce warnings and are
otherwise ignored; they never raise.
"""

import re
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from ..core.models import (
    Action,
    ActionType,
    LocatorSpec,
    LocatorStrategy,
    StepHints,
    ValueSpec,
    ValueType,
)

logger = logging.getLogger(__name__)

HINTS_SECTION_PATTERN = re.compile(
    r"\((?:[a-z]+=(?:\"[^\"]+\"|'[^']+'|[^,)\s]+)(?:,\s*)?)+\)", re.IGNORECASE)
HINT_ENTRY_PATTERN = re.compile(
    r"([a-z]+)=(?:\"([^\"]*)\"|'([^']*)'|([^,)\s]*))", re.IGNORECASE)

# Accepted value shape per hint key.
HINT_VALUE_PATTERNS: Dict[str, re.Pattern] = {
    "role": re.compile(r"[a-z]+", re.IGNORECASE),
    "testid": re.compile(r".+"),
    "label": re.compile(r".+"),
    "text": re.compile(r".+"),
    "exact": re.compile(r"true|false", re.IGNORECASE),
    "level": re.compile(r"[1-6]"),
    "signal": re.compile(r".+"),
    "module": re.compile(r"[a-z0-9_]+\.[a-z0-9_]+", re.IGNORECASE),
    "wait": re.compile(r"networkidle|domcontentloaded|load|commit", re.IGNORECASE),
    "timeout": re.compile(r"\d+"),
}

VALID_ROLES = frozenset([
    "alert", "alertdialog", "application", "article", "banner", "button",
    "cell", "checkbox", "columnheader", "combobox", "complementary",
    "contentinfo", "definition", "dialog", "directory", "document", "feed",
    "figure", "form", "grid", "gridcell", "group", "heading", "img", "link",
    "list", "listbox", "listitem", "log", "main", "marquee", "math", "menu",
    "menubar", "menuitem", "menuitemcheckbox", "menuitemradio", "navigation",
    "none", "note", "option", "presentation", "progressbar", "radio",
    "radiogroup", "region", "row", "rowgroup", "rowheader", "scrollbar",
    "search", "searchbox", "separator", "slider", "spinbutton", "status",
    "switch", "tab", "table", "tablist", "tabpanel", "term", "textbox",
    "timer", "toolbar", "tooltip", "tree", "treegrid", "treeitem",
])

_ACTIONS_WITH_LOCATOR = frozenset(t for t in ActionType if t not in (
    ActionType.GOTO, ActionType.GO_BACK, ActionType.GO_FORWARD, ActionType.RELOAD,
    ActionType.WAIT_FOR_URL, ActionType.EXPECT_URL, ActionType.EXPECT_TITLE,
    ActionType.WAIT_FOR_TIMEOUT, ActionType.WAIT_FOR_NETWORK_IDLE,
    ActionType.WAIT_FOR_LOADING_COMPLETE, ActionType.EXPECT_TOAST,
    ActionType.DISMISS_MODAL, ActionType.ACCEPT_ALERT, ActionType.DISMISS_ALERT,
    ActionType.CALL_MODULE, ActionType.BLOCKED,
))


def is_valid_role(role: str) -> bool:
    return role.lower() in VALID_ROLES


def contains_hints(text: str) -> bool:
    return HINTS_SECTION_PATTERN.search(text) is not None


def remove_hints(text: str) -> str:
    return re.sub(r"\s{2,}", " ", HINTS_SECTION_PATTERN.sub("", text)).strip()


def parse_module_hint(module_hint: str) -> Optional[Tuple[str, str]]:
    parts = module_hint.split(".")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def extract_hints(text: str) -> Tuple[str, StepHints, List[str]]:
    """Split hint sections off a step.

    Args:
        text: Raw step text

    Returns:
        Tuple of (clean_text, hints, warnings)
    """
    if not contains_hints(text):
        return text, StepHints(), []

    values: Dict[str, object] = {}
    warnings: List[str] = []

    for section in HINTS_SECTION_PATTERN.finditer(text):
        for entry in HINT_ENTRY_PATTERN.finditer(section.group(0)):
            key = entry.group(1).lower()
            value = next((g for g in entry.groups()[1:] if g), "")
            if not value:
                warnings.append(f"Empty value for hint: {key}")
                continue
            if key not in HINT_VALUE_PATTERNS:
                warnings.append(f"Unknown hint type: {key}")
                continue
            if not HINT_VALUE_PATTERNS[key].fullmatch(value):
                warnings.append(f"Invalid value for hint {key}: {value}")
                continue
            if key == "role" and not is_valid_role(value):
                # Still honored; the runner reports the real problem.
                warnings.append(f"Invalid ARIA role: {value}")

            if key == "exact":
                values[key] = value.lower() == "true"
            elif key in ("level", "timeout"):
                values[key] = int(value)
            elif key == "wait":
                values[key] = value.lower()
            else:
                values[key] = value

    for warning in warnings:
        logger.warning(f"⚠️ HINTS: {warning} in step '{text}'")

    return remove_hints(text), StepHints(**values), warnings


def build_locator_from_hints(hints: StepHints) -> Optional[LocatorSpec]:
    """Locator from hints, by priority testid > role > label > text."""
    if hints.testid:
        return LocatorSpec(LocatorStrategy.TESTID, hints.testid)

    if hints.role:
        options = {}
        if hints.label:
            options["name"] = hints.label
        if hints.exact:
            options["exact"] = True
        if hints.level:
            options["level"] = hints.level
        return LocatorSpec(LocatorStrategy.ROLE, hints.role, options)

    exact_options = {"exact": True} if hints.exact else None
    if hints.label:
        return LocatorSpec(LocatorStrategy.LABEL, hints.label, exact_options)
    if hints.text:
        return LocatorSpec(LocatorStrategy.TEXT, hints.text, exact_options)
    return None


def apply_hints(action: Action, hints: StepHints) -> Action:
    """Override an inferred action's fields with explicit hints."""
    if hints.is_empty or action.is_blocked:
        return action

    changes = {}
    if hints.has_locator_hints and action.type in _ACTIONS_WITH_LOCATOR:
        locator = build_locator_from_hints(hints)
        if locator is not None:
            changes["locator"] = locator

    if hints.timeout is not None:
        changes["timeout"] = hints.timeout
    if hints.signal:
        changes["signal"] = hints.signal
    if hints.module and action.type is ActionType.CALL_MODULE:
        parsed = parse_module_hint(hints.module)
        if parsed:
            changes["module"], changes["method"] = parsed
    if hints.wait and action.type is ActionType.GOTO:
        changes["wait_for_load"] = True

    return replace(action, **changes) if changes else action


def action_from_hints(text: str, hints: StepHints) -> Optional[Action]:
    """Infer an action from verb keywords when only locator hints resolve the target."""
    locator = build_locator_from_hints(hints)
    if locator is None:
        return None

    lower = text.lower()
    if "click" in lower or "press" in lower:
        action = Action(ActionType.CLICK, locator=locator)
    elif "enter" in lower or "type" in lower or "fill" in lower:
        value_match = re.search(r"['\"]([^'\"]+)['\"]", text)
        action = Action(ActionType.FILL, locator=locator,
                        value=ValueSpec(ValueType.LITERAL, value_match.group(1) if value_match else ""))
    elif "see" in lower or "visible" in lower or "display" in lower:
        action = Action(ActionType.EXPECT_VISIBLE, locator=locator)
    elif "check" in lower or "select" in lower:
        action = Action(ActionType.CHECK, locator=locator)
    else:
        action = Action(ActionType.CLICK, locator=locator)

    return apply_hints(action, hints)
