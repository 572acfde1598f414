"""
Fuzzy matching against a curated example corpus.

Last automatic tier before a step is blocked. Each core pattern is paired with
hand-written example phrasings for its family; a step is accepted when its
canonical form is at least ``min_similarity`` (0.85) similar to one of them.
Near-exact hits (>= 0.98) may use the pattern's own extractor; otherwise a
generic, best-effort action is synthesized from quoted substrings and verb
keywords.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..core.models import Action, ActionType, LocatorSpec, LocatorStrategy, ValueSpec, ValueType
from .pattern_library import ALL_PATTERNS, CorePattern
from .similarity_scorer import SimilarityScorer
from .text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)

EARLY_STOP_SIMILARITY = 0.98

# Pattern-name fragment -> example phrasings for that family.
EXAMPLE_CORPUS: List[Tuple[Tuple[str, ...], List[str]]] = [
    (("navigate", "goto"), [
        "navigate to /home",
        "go to /login",
        "open /dashboard",
        "visit the homepage",
        "navigate to the settings page",
    ]),
    (("click",), [
        "click the submit button",
        "click on save",
        "click cancel button",
        "press the login button",
        "tap the menu icon",
    ]),
    (("fill", "enter", "type"), [
        "enter username in the username field",
        "fill password in password field",
        "type hello in the search box",
        "input test@example.com in email field",
        "enter value into the input",
    ]),
    (("see", "visible", "verify"), [
        "see the welcome message",
        "verify the success message is displayed",
        "confirm the error appears",
        "should see login button",
        "expect the form to be visible",
    ]),
    (("wait",), [
        "wait for network idle",
        "wait for page to load",
        "wait 3 seconds",
        "wait for the spinner to disappear",
        "wait until the modal closes",
    ]),
    (("select",), [
        "select option 1 from dropdown",
        "choose value from the list",
        "pick an item from menu",
        "select country from country dropdown",
    ]),
    (("check",), [
        "check the checkbox",
        "tick the agreement box",
        "check remember me",
        "uncheck the newsletter option",
    ]),
    (("upload",), [
        "upload file.pdf",
        "attach document.docx",
        "upload image to the form",
    ]),
    (("hover",), [
        "hover over the menu",
        "mouse over the dropdown",
        "hover on the button",
    ]),
    (("scroll",), [
        "scroll down",
        "scroll to the bottom",
        "scroll to element",
    ]),
    (("press",), [
        "press enter",
        "press tab",
        "press escape key",
        "hit the enter key",
    ]),
    (("table", "grid"), [
        "see 5 rows in the table",
        "verify table has data",
        "check grid contains value",
    ]),
    (("text", "contain"), [
        "see text welcome back",
        "page contains login form",
        "element has text submit",
    ]),
]

_TARGET_PATTERNS = [
    re.compile(r"(?:the|a)\s+[\"']?(\w+(?:\s+\w+)?)[\"']?\s+(?:button|field|input|link|element)", re.IGNORECASE),
    re.compile(r"(?:on|click|tap|press)\s+(?:the\s+)?[\"']?(\w+(?:\s+\w+)?)[\"']?", re.IGNORECASE),
    re.compile(r"(?:in|into)\s+(?:the\s+)?[\"']?(\w+(?:\s+\w+)?)[\"']?\s+(?:field|input)", re.IGNORECASE),
]


@dataclass
class FuzzyMatch:
    """A fuzzy-tier resolution and the evidence behind it."""
    action: Action
    pattern_name: str
    similarity: float
    matched_example: str
    normalized_text: str


def examples_for_pattern(pattern: CorePattern) -> List[str]:
    name = pattern.name.lower()
    examples: List[str] = []
    for fragments, phrasings in EXAMPLE_CORPUS:
        if any(fragment in name for fragment in fragments):
            examples.extend(phrasings)
    return examples


def extract_target(text: str) -> Optional[str]:
    """Best guess at the element a step refers to."""
    for pattern in _TARGET_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            return match.group(1)
    return None


def create_generic_action(action_type: ActionType, text: str) -> Optional[Action]:
    """Heuristic action for a fuzzy hit: first quoted string is the target, second the value."""
    quoted = re.findall(r"[\"']([^\"']+)[\"']", text)
    target = quoted[0] if quoted else (extract_target(text) or "element")
    value = quoted[1] if len(quoted) > 1 else (quoted[0] if quoted else "")
    locator = LocatorSpec(LocatorStrategy.TEXT, target)

    if action_type in (ActionType.CLICK, ActionType.DBLCLICK, ActionType.RIGHT_CLICK,
                       ActionType.HOVER, ActionType.FOCUS, ActionType.CLEAR,
                       ActionType.CHECK, ActionType.UNCHECK,
                       ActionType.WAIT_FOR_VISIBLE, ActionType.WAIT_FOR_HIDDEN,
                       ActionType.EXPECT_VISIBLE, ActionType.EXPECT_NOT_VISIBLE,
                       ActionType.EXPECT_HIDDEN):
        return Action(action_type, locator=locator)

    if action_type is ActionType.FILL:
        return Action(ActionType.FILL, locator=locator, value=ValueSpec(ValueType.LITERAL, value))

    if action_type is ActionType.GOTO:
        url_match = re.search(r"(?:to|/)\s*([/\w.-]+)", text, re.IGNORECASE)
        return Action(ActionType.GOTO, url=url_match.group(1) if url_match else "/")

    if action_type is ActionType.WAIT_FOR_TIMEOUT:
        time_match = re.search(r"(\d+)\s*(?:second|sec|ms|millisecond)", text, re.IGNORECASE)
        if time_match:
            amount = int(time_match.group(1))
            return Action(ActionType.WAIT_FOR_TIMEOUT, ms=amount if "ms" in text.lower() else amount * 1000)
        return Action(ActionType.WAIT_FOR_TIMEOUT, ms=1000)

    if action_type is ActionType.WAIT_FOR_NETWORK_IDLE:
        return Action(ActionType.WAIT_FOR_NETWORK_IDLE)

    if action_type is ActionType.EXPECT_TEXT:
        return Action(ActionType.EXPECT_TEXT, locator=locator, text=value)

    if action_type is ActionType.SELECT:
        return Action(ActionType.SELECT, locator=locator, option=value)

    if action_type is ActionType.PRESS:
        key_match = re.search(r"(?:press|hit|key)\s+(\w+)", text, re.IGNORECASE)
        return Action(ActionType.PRESS, key=key_match.group(1) if key_match else "Enter")

    return None


class FuzzyMatcher:
    """Matches step text against the example corpus of every core pattern."""

    def __init__(self, min_similarity: float = 0.85, max_candidates: int = 10,
                 scorer: Optional[SimilarityScorer] = None,
                 normalizer: Optional[TextNormalizer] = None):
        self.min_similarity = min_similarity
        self.max_candidates = max_candidates
        self.scorer = scorer or SimilarityScorer()
        self.normalizer = normalizer or TextNormalizer()
        self._corpus: Optional[List[Tuple[CorePattern, List[Tuple[str, str]]]]] = None

    @property
    def corpus(self) -> List[Tuple[CorePattern, List[Tuple[str, str]]]]:
        """Patterns with (example, canonical example) pairs, built on first use."""
        if self._corpus is None:
            self._corpus = [
                (pattern, [(ex, self.normalizer.canonical_form(ex)) for ex in examples_for_pattern(pattern)])
                for pattern in ALL_PATTERNS
            ]
        return self._corpus

    def match(self, text: str) -> Optional[FuzzyMatch]:
        """
        Find the best fuzzy resolution for ``text``.

        Args:
            text: Step text (hints already removed)

        Returns:
            FuzzyMatch, or None when nothing clears the threshold or no
            action can be built for the best candidate
        """
        trimmed = text.strip()
        normalized = self.normalizer.canonical_form(trimmed)

        candidates: List[Tuple[CorePattern, str, float]] = []
        done = False
        for pattern, examples in self.corpus:
            for example, canonical_example in examples:
                similarity = self.scorer.calculate_similarity(normalized, canonical_example)
                if similarity >= self.min_similarity:
                    candidates.append((pattern, example, similarity))
                    if similarity >= EARLY_STOP_SIMILARITY:
                        done = True
                        break
            if done:
                break

        if not candidates:
            logger.debug(f"No fuzzy match above {self.min_similarity:.2f} for '{trimmed}'")
            return None

        # Stable sort keeps pattern priority order among equal scores.
        candidates.sort(key=lambda c: c[2], reverse=True)
        pattern, example, similarity = candidates[0]

        if similarity >= EARLY_STOP_SIMILARITY:
            action = pattern.apply(trimmed)
            if action is not None:
                return FuzzyMatch(action, pattern.name, similarity, example, normalized)

        action = create_generic_action(pattern.action_type, trimmed)
        if action is None:
            return None

        logger.info(f"🔍 FUZZY: '{trimmed}' ~ '{example}' ({similarity:.2f}) via {pattern.name}")
        return FuzzyMatch(action, f"{pattern.name}:fuzzy", similarity, example, normalized)

    def stats(self) -> Dict[str, object]:
        by_type: Dict[str, int] = {}
        total = 0
        for pattern, examples in self.corpus:
            by_type[pattern.action_type.value] = by_type.get(pattern.action_type.value, 0) + len(examples)
            total += len(examples)
        return {
            "patternsWithExamples": len(self.corpus),
            "totalExamples": total,
            "examplesByType": by_type,
        }

    def clear_cache(self) -> None:
        self._corpus = None
