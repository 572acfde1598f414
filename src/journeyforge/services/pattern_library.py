"""
Core step patterns.

Each ``CorePattern`` pairs a phrase-shape regex with an extractor that builds
an ``Action`` from the match. Patterns are tried in ``ALL_PATTERNS`` order and
the first one whose extractor returns an action wins, so specific shapes
(structured markdown, negative assertions, "click on", "go back") are listed
before the generic ones they would otherwise fall into.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..core.models import (
    Action,
    ActionType,
    LocatorSpec,
    LocatorStrategy,
    ToastType,
    ValueSpec,
    ValueType,
)

logger = logging.getLogger(__name__)

PATTERN_VERSION = "1.1.0"

Extractor = Callable[[re.Match], Optional[Action]]


@dataclass
class CorePattern:
    """A deterministic phrase shape and how to turn it into an action."""
    name: str
    regex: str
    action_type: ActionType
    extract: Extractor
    compiled: re.Pattern = field(init=False, repr=False)

    def __post_init__(self):
        self.compiled = re.compile(self.regex, re.IGNORECASE)

    @property
    def category(self) -> str:
        return self.name.split("-")[0] or "other"

    def apply(self, text: str) -> Optional[Action]:
        match = self.compiled.match(text)
        if not match:
            return None
        return self.extract(match)


def create_locator(strategy: str, value: str, name: Optional[str] = None) -> LocatorSpec:
    """Locator with an optional accessible name."""
    options = {"name": name} if name else None
    return LocatorSpec(LocatorStrategy(strategy), value, options)


def create_value_from_text(text: str) -> ValueSpec:
    """Classify a value by its syntax.

    ``{{email}}`` is an actor reference, ``$user.email`` a test-data
    reference, ``${runId}`` the run id, any other ``${...}`` a generated
    template, everything else a literal.
    """
    if re.match(r"^\{\{.+\}\}$", text):
        return ValueSpec(ValueType.ACTOR, text[2:-2].strip())
    if re.match(r"^\$\{runId\}$", text):
        return ValueSpec(ValueType.RUN_ID, text)
    if re.match(r"^\$[^{].*", text):
        return ValueSpec(ValueType.TEST_DATA, text[1:])
    if re.search(r"\$\{.+\}", text):
        return ValueSpec(ValueType.GENERATED, text)
    return ValueSpec(ValueType.LITERAL, text)


def parse_selector_to_locator(selector: str) -> LocatorSpec:
    """Turn a natural-language element description into a locator.

    "Login button" -> role button named Login, "Help link" -> role link,
    "Email field" -> label Email, anything else -> text.
    """
    clean = re.sub(r"^the\s+", "", selector, flags=re.IGNORECASE).strip()

    if re.search(r"button$", clean, re.IGNORECASE):
        return create_locator("role", "button", re.sub(r"\s*button$", "", clean, flags=re.IGNORECASE).strip())
    if re.search(r"link$", clean, re.IGNORECASE):
        return create_locator("role", "link", re.sub(r"\s*link$", "", clean, flags=re.IGNORECASE).strip())
    if re.search(r"(?:input|field)$", clean, re.IGNORECASE):
        return create_locator("label", re.sub(r"\s*(?:input|field)$", "", clean, flags=re.IGNORECASE).strip())
    return create_locator("text", clean)


def _unquote(text: str) -> str:
    return re.sub(r"[\"']", "", text)


def _goto(url: str) -> Action:
    return Action(ActionType.GOTO, url=url, wait_for_load=True)


def _on(action_type: ActionType, strategy: str, unquote: bool = False) -> Extractor:
    """Extractor for actions whose only payload is a locator built from group 1."""
    def extract(m: re.Match) -> Action:
        value = m.group(1)
        if unquote:
            value = _unquote(value)
        return Action(action_type, locator=create_locator(strategy, value))
    return extract


def _role(action_type: ActionType, role: str) -> Extractor:
    """Extractor for a role locator whose accessible name is group 1."""
    return lambda m: Action(action_type, locator=create_locator("role", role, m.group(1)))


def _fixed(action: Action) -> Extractor:
    return lambda m: action


def _fill(label_group: int, value_group: int, strategy: str = "label", unquote: bool = False) -> Extractor:
    def extract(m: re.Match) -> Action:
        label, value = m.group(label_group), m.group(value_group)
        if unquote:
            label, value = _unquote(label), _unquote(value)
        return Action(ActionType.FILL, locator=create_locator(strategy, label),
                      value=create_value_from_text(value))
    return extract


def _fill_from_actor(m: re.Match) -> Action:
    field_name = _unquote(m.group(1))
    return Action(ActionType.FILL, locator=create_locator("label", field_name),
                  value=ValueSpec(ValueType.ACTOR, re.sub(r"\s+", "_", field_name.lower())))


def _toast(toast_type: Optional[str], message_group: Optional[int] = 1) -> Extractor:
    def extract(m: re.Match) -> Action:
        kind = toast_type or (m.group(1) or "info").lower()
        message = m.group(message_group) if message_group else None
        return Action(ActionType.EXPECT_TOAST, toast_type=ToastType(kind), message=message)
    return extract


def _structured(action_type: ActionType, button: bool = False) -> Extractor:
    def extract(m: re.Match) -> Action:
        target = m.group(1) + (" button" if button else "")
        return Action(action_type, locator=parse_selector_to_locator(target))
    return extract


def _structured_fill(m: re.Match) -> Action:
    return Action(ActionType.FILL, locator=parse_selector_to_locator(m.group(1)),
                  value=create_value_from_text(m.group(2)))


def _structured_text(m: re.Match) -> Action:
    return Action(ActionType.EXPECT_TEXT, locator=parse_selector_to_locator(m.group(1)),
                  text=m.group(2))


STRUCTURED_PATTERNS = [
    CorePattern("structured-action-click",
                r"^\*\*Action\*\*:\s*click\s+(?:the\s+)?['\"]?(.+?)['\"]?\s*(?:button|link)?$",
                ActionType.CLICK, _structured(ActionType.CLICK, button=True)),
    CorePattern("structured-action-fill",
                r"^\*\*Action\*\*:\s*fill\s+(?:in\s+)?['\"]?(.+?)['\"]?\s+with\s+['\"]?(.+?)['\"]?$",
                ActionType.FILL, _structured_fill),
    CorePattern("structured-action-navigate",
                r"^\*\*Action\*\*:\s*navigate\s+to\s+['\"]?(.+?)['\"]?$",
                ActionType.GOTO, lambda m: _goto(m.group(1))),
    CorePattern("structured-wait-for-visible",
                r"^\*\*Wait for\*\*:\s*(.+?)\s+(?:to\s+)?(?:be\s+)?(?:visible|appear|load)",
                ActionType.EXPECT_VISIBLE, _structured(ActionType.EXPECT_VISIBLE)),
    CorePattern("structured-assert-visible",
                r"^\*\*Assert\*\*:\s*(.+?)\s+(?:is\s+)?visible$",
                ActionType.EXPECT_VISIBLE, _structured(ActionType.EXPECT_VISIBLE)),
    CorePattern("structured-assert-text",
                r"^\*\*Assert\*\*:\s*(.+?)\s+(?:contains|has text)\s+['\"]?(.+?)['\"]?$",
                ActionType.EXPECT_TEXT, _structured_text),
]

AUTH_PATTERNS = [
    CorePattern("user-login",
                r"^(?:user\s+)?(?:logs?\s*in|login\s+is\s+performed|authenticates?)$",
                ActionType.CALL_MODULE, _fixed(Action(ActionType.CALL_MODULE, module="auth", method="login"))),
    CorePattern("user-logout",
                r"^(?:user\s+)?(?:logs?\s*out|logout\s+is\s+performed|signs?\s*out)$",
                ActionType.CALL_MODULE, _fixed(Action(ActionType.CALL_MODULE, module="auth", method="logout"))),
    CorePattern("login-as-role",
                r"^(?:user\s+)?logs?\s*in\s+as\s+(?:an?\s+)?(.+?)(?:\s+user)?$",
                ActionType.CALL_MODULE,
                lambda m: Action(ActionType.CALL_MODULE, module="auth", method="loginAs",
                                 args=(m.group(1).lower(),))),
]

TOAST_PATTERNS = [
    CorePattern("success-toast-message",
                r"^(?:a\s+)?success\s+toast\s+(?:with\s+)?[\"']([^\"']+)[\"']\s*(?:message\s+)?(?:appears?|is\s+shown|displays?)$",
                ActionType.EXPECT_TOAST, _toast("success")),
    CorePattern("success-toast-appears-with",
                r"^(?:a\s+)?success\s+toast\s+(?:appears?|is\s+shown|displays?)\s+(?:with\s+)?(?:(?:message|text)\s+)?[\"']?(.+?)[\"']?$",
                ActionType.EXPECT_TOAST, _toast("success")),
    CorePattern("error-toast-message",
                r"^(?:an?\s+)?error\s+toast\s+(?:with\s+)?[\"']([^\"']+)[\"']\s*(?:message\s+)?(?:appears?|is\s+shown|displays?)$",
                ActionType.EXPECT_TOAST, _toast("error")),
    CorePattern("error-toast-appears-with",
                r"^(?:an?\s+)?error\s+toast\s+(?:appears?|is\s+shown|displays?)\s+(?:with\s+)?(?:(?:message|text)\s+)?[\"']?(.+?)[\"']?$",
                ActionType.EXPECT_TOAST, _toast("error")),
    CorePattern("toast-appears",
                r"^(?:a\s+)?(?:(success|error|info|warning)\s+)?toast\s+(?:notification\s+)?(?:appears?|is\s+shown|displays?)$",
                ActionType.EXPECT_TOAST, _toast(None, message_group=None)),
    CorePattern("toast-with-text",
                r"^(?:a\s+)?(?:toast|notification)\s+(?:with\s+)?(?:(?:text|message)\s+)?[\"']?(.+?)[\"']?\s+(?:appears?|is\s+shown|displays?)$",
                ActionType.EXPECT_TOAST, _toast("info")),
    CorePattern("status-message-visible",
                r"^(?:a\s+)?status\s+(?:message\s+)?[\"']([^\"']+)[\"']\s+(?:is\s+)?(?:visible|shown|displayed)$",
                ActionType.EXPECT_VISIBLE, _role(ActionType.EXPECT_VISIBLE, "status")),
    CorePattern("verify-status-message",
                r"^(?:verify|check)\s+(?:that\s+)?(?:the\s+)?status\s+(?:message\s+)?(?:shows?|displays?|contains?)\s+[\"']([^\"']+)[\"']$",
                ActionType.EXPECT_VISIBLE, _role(ActionType.EXPECT_VISIBLE, "status")),
]

MODAL_ALERT_PATTERNS = [
    CorePattern("dismiss-modal", r"^(?:dismiss|close)\s+(?:the\s+)?(?:modal|dialog)(?:\s+dialog)?$",
                ActionType.DISMISS_MODAL, _fixed(Action(ActionType.DISMISS_MODAL))),
    CorePattern("accept-alert", r"^(?:accept|confirm|ok)\s+(?:the\s+)?alert$",
                ActionType.ACCEPT_ALERT, _fixed(Action(ActionType.ACCEPT_ALERT))),
    CorePattern("dismiss-alert", r"^(?:dismiss|cancel|close)\s+(?:the\s+)?alert$",
                ActionType.DISMISS_ALERT, _fixed(Action(ActionType.DISMISS_ALERT))),
]

EXTENDED_NAVIGATION_PATTERNS = [
    CorePattern("refresh-page", r"^(?:user\s+)?(?:refresh(?:es)?|reloads?)\s+(?:the\s+)?page$",
                ActionType.RELOAD, _fixed(Action(ActionType.RELOAD))),
    CorePattern("go-back", r"^(?:user\s+)?(?:go(?:es)?|navigates?)\s+back$",
                ActionType.GO_BACK, _fixed(Action(ActionType.GO_BACK))),
    CorePattern("go-forward", r"^(?:user\s+)?(?:go(?:es)?|navigates?)\s+forward$",
                ActionType.GO_FORWARD, _fixed(Action(ActionType.GO_FORWARD))),
]

NAVIGATION_PATTERNS = [
    CorePattern("navigate-to-url",
                r"^(?:user\s+)?(?:navigates?|go(?:es)?|opens?)\s+(?:to\s+)?(?:the\s+)?[\"']?([^\"'\s]+)[\"']?$",
                ActionType.GOTO, lambda m: _goto(m.group(1))),
    CorePattern("navigate-to-page",
                r"^(?:user\s+)?(?:navigates?|go(?:es)?|opens?)\s+(?:to\s+)?(?:the\s+)?(.+?)\s+page$",
                ActionType.GOTO, lambda m: _goto("/" + re.sub(r"\s+", "-", m.group(1).lower()))),
    CorePattern("wait-for-url-change",
                r"^(?:user\s+)?waits?\s+(?:for\s+)?(?:the\s+)?url\s+(?:to\s+)?(?:change\s+to|contain|include)\s+[\"']?([^\"']+)[\"']?$",
                ActionType.WAIT_FOR_URL, lambda m: Action(ActionType.WAIT_FOR_URL, pattern=m.group(1))),
]

EXTENDED_CLICK_PATTERNS = [
    CorePattern("click-on-element",
                r"^(?:user\s+)?(?:clicks?|selects?)\s+on\s+(?:the\s+)?(.+?)(?:\s+button|\s+link)?$",
                ActionType.CLICK, _on(ActionType.CLICK, "text", unquote=True)),
    CorePattern("press-enter-key", r"^(?:user\s+)?(?:press(?:es)?|hits?)\s+(?:the\s+)?(?:enter|return)(?:\s+key)?$",
                ActionType.PRESS, _fixed(Action(ActionType.PRESS, key="Enter"))),
    CorePattern("press-tab-key", r"^(?:user\s+)?(?:press(?:es)?|hits?)\s+(?:the\s+)?tab(?:\s+key)?$",
                ActionType.PRESS, _fixed(Action(ActionType.PRESS, key="Tab"))),
    CorePattern("press-escape-key", r"^(?:user\s+)?(?:press(?:es)?|hits?)\s+(?:the\s+)?(?:escape|esc)(?:\s+key)?$",
                ActionType.PRESS, _fixed(Action(ActionType.PRESS, key="Escape"))),
    CorePattern("double-click",
                r"^(?:user\s+)?double[-\s]?clicks?\s+(?:on\s+)?(?:the\s+)?[\"']?(.+?)[\"']?$",
                ActionType.DBLCLICK, _on(ActionType.DBLCLICK, "text", unquote=True)),
    CorePattern("right-click",
                r"^(?:user\s+)?right[-\s]?clicks?\s+(?:on\s+)?(?:the\s+)?[\"']?(.+?)[\"']?$",
                ActionType.RIGHT_CLICK, _on(ActionType.RIGHT_CLICK, "text", unquote=True)),
    CorePattern("submit-form", r"^(?:user\s+)?submits?\s+(?:the\s+)?form$",
                ActionType.CLICK,
                _fixed(Action(ActionType.CLICK, locator=create_locator("role", "button", "Submit")))),
]

CLICK_PATTERNS = [
    CorePattern("click-button-quoted",
                r"^(?:user\s+)?(?:clicks?|presses?|taps?|selects?)\s+(?:on\s+)?(?:the\s+)?[\"']([^\"']+)[\"']\s+button$",
                ActionType.CLICK, _role(ActionType.CLICK, "button")),
    CorePattern("click-link-quoted",
                r"^(?:user\s+)?(?:clicks?|presses?|taps?|selects?)\s+(?:on\s+)?(?:the\s+)?[\"']([^\"']+)[\"']\s+link$",
                ActionType.CLICK, _role(ActionType.CLICK, "link")),
    CorePattern("click-menuitem-quoted",
                r"^(?:user\s+)?(?:clicks?|selects?)\s+(?:on\s+)?(?:the\s+)?[\"']([^\"']+)[\"']\s+menu\s*item$",
                ActionType.CLICK, _role(ActionType.CLICK, "menuitem")),
    CorePattern("click-tab-quoted",
                r"^(?:user\s+)?(?:clicks?|selects?)\s+(?:on\s+)?(?:the\s+)?[\"']([^\"']+)[\"']\s+tab$",
                ActionType.CLICK, _role(ActionType.CLICK, "tab")),
    CorePattern("click-element-quoted",
                r"^(?:user\s+)?(?:clicks?|presses?|taps?|selects?)\s+(?:on\s+)?(?:the\s+)?[\"']([^\"']+)[\"']$",
                ActionType.CLICK, _on(ActionType.CLICK, "text")),
    CorePattern("click-element-generic",
                r"^(?:user\s+)?(?:clicks?|presses?|taps?|selects?)\s+(?:on\s+)?(?:the\s+)?(.+?)\s+(?:button|link|icon|menu|tab)$",
                ActionType.CLICK, _on(ActionType.CLICK, "text")),
]

EXTENDED_FILL_PATTERNS = [
    CorePattern("fill-field-with-value",
                r"^(?:user\s+)?(?:fills?|enters?|types?|inputs?)(?:\s+in)?\s+(?:the\s+)?[\"']?(.+?)[\"']?\s+(?:field|input)\s+with\s+[\"']?(.+?)[\"']?$",
                ActionType.FILL, _fill(1, 2, unquote=True)),
    CorePattern("type-into-field",
                r"^(?:user\s+)?types?\s+['\"](.+?)['\"]\s+into\s+(?:the\s+)?[\"']?(.+?)[\"']?\s*(?:field|input)?$",
                ActionType.FILL, _fill(2, 1)),
    CorePattern("fill-in-field-no-value",
                r"^(?:user\s+)?fills?\s+in\s+(?:the\s+)?[\"']?(.+?)[\"']?\s*(?:field|input)?$",
                ActionType.FILL, _fill_from_actor),
    CorePattern("clear-field",
                r"^(?:user\s+)?clears?\s+(?:the\s+)?[\"']?(.+?)[\"']?\s*(?:field|input)?$",
                ActionType.CLEAR, _on(ActionType.CLEAR, "label", unquote=True)),
    CorePattern("set-value",
                r"^(?:user\s+)?sets?\s+(?:the\s+)?(?:value\s+)?(?:of\s+)?[\"']?(.+?)[\"']?\s+to\s+['\"](.+?)['\"]$",
                ActionType.FILL, _fill(1, 2)),
]

FILL_PATTERNS = [
    CorePattern("fill-field-quoted-value",
                r"^(?:user\s+)?(?:enters?|types?|fills?\s+in?|inputs?)\s+[\"']([^\"']+)[\"']\s+(?:in|into)\s+(?:the\s+)?[\"']([^\"']+)[\"']\s*(?:field|input)?$",
                ActionType.FILL, _fill(2, 1)),
    CorePattern("fill-field-actor-value",
                r"^(?:user\s+)?(?:enters?|types?|fills?\s+in?|inputs?)\s+(\{\{[^}]+\}\})\s+(?:in|into)\s+(?:the\s+)?[\"']([^\"']+)[\"']\s*(?:field|input)?$",
                ActionType.FILL, _fill(2, 1)),
    CorePattern("fill-placeholder-field",
                r"^(?:user\s+)?(?:enters?|types?|fills?)\s+[\"']([^\"']+)[\"']\s+(?:in|into)\s+(?:the\s+)?(?:field|input)\s+with\s+placeholder\s+[\"']([^\"']+)[\"']$",
                ActionType.FILL, _fill(2, 1, strategy="placeholder")),
    CorePattern("fill-field-generic",
                r"^(?:user\s+)?(?:enters?|types?|fills?\s+in?|inputs?)\s+(.+?)\s+(?:in|into)\s+(?:the\s+)?(.+?)\s*(?:field|input)?$",
                ActionType.FILL, _fill(2, 1, unquote=True)),
]

EXTENDED_SELECT_PATTERNS = [
    CorePattern("select-from-named-dropdown",
                r"^(?:user\s+)?(?:selects?|chooses?)\s+[\"'](.+?)[\"']\s+from\s+(?:the\s+)?(.+?)\s*(?:dropdown|select|selector|menu|list)$",
                ActionType.SELECT,
                lambda m: Action(ActionType.SELECT, locator=create_locator("label", _unquote(m.group(2)).strip()),
                                 option=m.group(1))),
    CorePattern("select-from-dropdown",
                r"^(?:user\s+)?(?:selects?|chooses?)\s+['\"](.+?)['\"]\s+from\s+(?:the\s+)?dropdown$",
                ActionType.SELECT,
                lambda m: Action(ActionType.SELECT, locator=create_locator("role", "combobox"),
                                 option=m.group(1))),
    CorePattern("select-option-named",
                r"^(?:user\s+)?(?:selects?|chooses?)\s+(?:the\s+)?(?:option\s+)?(?:named\s+)?[\"'](.+?)[\"'](?:\s+option)?$",
                ActionType.SELECT,
                lambda m: Action(ActionType.SELECT, locator=create_locator("role", "combobox"),
                                 option=m.group(1))),
]

SELECT_PATTERNS = [
    CorePattern("select-option",
                r"^(?:user\s+)?(?:selects?|chooses?)\s+[\"']([^\"']+)[\"']\s+(?:from|in)\s+(?:the\s+)?[\"']([^\"']+)[\"']\s*(?:dropdown|select|menu)?$",
                ActionType.SELECT,
                lambda m: Action(ActionType.SELECT, locator=create_locator("label", m.group(2)),
                                 option=m.group(1))),
]

CHECK_PATTERNS = [
    CorePattern("check-checkbox",
                r"^(?:user\s+)?(?:checks?|enables?|ticks?)\s+(?:the\s+)?[\"']([^\"']+)[\"']\s*(?:checkbox|option)?$",
                ActionType.CHECK, _on(ActionType.CHECK, "label")),
    CorePattern("check-checkbox-unquoted",
                r"^(?:user\s+)?(?:checks?|enables?|ticks?)\s+(?:the\s+)?(\w+(?:\s+\w+)*)\s+checkbox$",
                ActionType.CHECK, _on(ActionType.CHECK, "label")),
    CorePattern("uncheck-checkbox",
                r"^(?:user\s+)?(?:unchecks?|disables?|unticks?)\s+(?:the\s+)?[\"']([^\"']+)[\"']\s*(?:checkbox|option)?$",
                ActionType.UNCHECK, _on(ActionType.UNCHECK, "label")),
    CorePattern("uncheck-checkbox-unquoted",
                r"^(?:user\s+)?(?:unchecks?|disables?|unticks?)\s+(?:the\s+)?(\w+(?:\s+\w+)*)\s+checkbox$",
                ActionType.UNCHECK, _on(ActionType.UNCHECK, "label")),
]

# Ordered by specificity: negative before positive, URL/title before "contains".
EXTENDED_ASSERTION_PATTERNS = [
    CorePattern("verify-not-visible",
                r"^(?:verify|confirm|check)\s+(?:that\s+)?(?:the\s+)?[\"']?(.+?)[\"']?\s+is\s+not\s+visible$",
                ActionType.EXPECT_HIDDEN, _on(ActionType.EXPECT_HIDDEN, "text")),
    CorePattern("element-should-not-be-visible",
                r"^(?:the\s+)?[\"']?(.+?)[\"']?\s+(?:should\s+)?(?:not\s+be|is\s+not)\s+(?:visible|displayed|shown)$",
                ActionType.EXPECT_HIDDEN, _on(ActionType.EXPECT_HIDDEN, "text")),
    CorePattern("verify-url-contains",
                r"^(?:verify|confirm|check)\s+(?:that\s+)?(?:the\s+)?url\s+contains?\s+[\"']([^\"']+)[\"']$",
                ActionType.EXPECT_URL, lambda m: Action(ActionType.EXPECT_URL, pattern=m.group(1))),
    CorePattern("verify-title-is",
                r"^(?:verify|confirm|check)\s+(?:that\s+)?(?:the\s+)?(?:page\s+)?title\s+(?:is|equals?)\s+[\"']([^\"']+)[\"']$",
                ActionType.EXPECT_TITLE, lambda m: Action(ActionType.EXPECT_TITLE, title=m.group(1))),
    CorePattern("verify-field-value",
                r"^(?:verify|confirm|check)\s+(?:that\s+)?(?:the\s+)?[\"']?(\w+)[\"']?\s+(?:field\s+)?has\s+value\s+[\"']([^\"']+)[\"']$",
                ActionType.EXPECT_VALUE,
                lambda m: Action(ActionType.EXPECT_VALUE, locator=create_locator("label", m.group(1)),
                                 value=ValueSpec(ValueType.LITERAL, m.group(2)))),
    CorePattern("verify-element-enabled",
                r"^(?:verify|confirm|check)\s+(?:that\s+)?(?:the\s+)?[\"']?(.+?)[\"']?\s+(?:button\s+)?is\s+enabled$",
                ActionType.EXPECT_ENABLED, _on(ActionType.EXPECT_ENABLED, "label")),
    CorePattern("verify-element-disabled",
                r"^(?:verify|confirm|check)\s+(?:that\s+)?(?:the\s+)?[\"']?(.+?)[\"']?\s+(?:input\s+)?is\s+disabled$",
                ActionType.EXPECT_DISABLED, _on(ActionType.EXPECT_DISABLED, "label")),
    CorePattern("verify-checkbox-checked",
                r"^(?:verify|confirm|check)\s+(?:that\s+)?(?:the\s+)?[\"']?(.+?)[\"']?\s+(?:checkbox\s+)?is\s+checked$",
                ActionType.EXPECT_CHECKED, _on(ActionType.EXPECT_CHECKED, "label")),
    CorePattern("verify-count",
                r"^(?:verify|confirm|check)\s+(?:that\s+)?(\d+)\s+(?:items?|elements?|rows?)\s+(?:are\s+)?(?:shown|displayed|exist|visible)$",
                ActionType.EXPECT_COUNT,
                lambda m: Action(ActionType.EXPECT_COUNT, locator=create_locator("text", "item"),
                                 count=int(m.group(1)))),
    CorePattern("verify-element-showing",
                r"^(?:verify|confirm|ensure)\s+(?:that\s+)?(?:the\s+)?[\"']?(.+?)[\"']?\s+(?:is\s+)?(?:showing|displayed|visible)$",
                ActionType.EXPECT_VISIBLE, _on(ActionType.EXPECT_VISIBLE, "text")),
    CorePattern("page-should-show",
                r"^(?:the\s+)?page\s+should\s+(?:show|display|contain)\s+['\"](.+?)['\"]$",
                ActionType.EXPECT_TEXT,
                lambda m: Action(ActionType.EXPECT_TEXT, locator=create_locator("role", "main"),
                                 text=m.group(1))),
    CorePattern("make-sure-assertion",
                r"^make\s+sure\s+(?:that\s+)?(?:the\s+)?(.+?)\s+(?:is\s+)?(?:visible|displayed|shown)$",
                ActionType.EXPECT_VISIBLE, _on(ActionType.EXPECT_VISIBLE, "text")),
    CorePattern("confirm-that-assertion",
                r"^(?:verify|confirm)\s+(?:that\s+)?(?:the\s+)?[\"']?(.+?)[\"']?\s+(?:appears?|is\s+shown|displays?)$",
                ActionType.EXPECT_VISIBLE, _on(ActionType.EXPECT_VISIBLE, "text")),
    CorePattern("check-element-exists",
                r"^check\s+(?:that\s+)?(?:the\s+)?[\"']?(.+?)[\"']?\s+(?:exists?|is\s+present)$",
                ActionType.EXPECT_VISIBLE, _on(ActionType.EXPECT_VISIBLE, "text")),
    CorePattern("element-contains-text",
                r"^(?:the\s+)?[\"']?(.+?)[\"']?\s+(?:should\s+)?contains?\s+['\"](.+?)['\"]$",
                ActionType.EXPECT_TEXT,
                lambda m: Action(ActionType.EXPECT_TEXT, locator=create_locator("text", m.group(1)),
                                 text=m.group(2))),
]

VISIBILITY_PATTERNS = [
    CorePattern("should-see-text",
                r"^(?:user\s+)?(?:should\s+)?(?:sees?|views?)\s+(?:the\s+)?[\"']([^\"']+)[\"']$",
                ActionType.EXPECT_VISIBLE, _on(ActionType.EXPECT_VISIBLE, "text")),
    CorePattern("is-visible",
                r"^[\"']?([^\"']+)[\"']?\s+(?:is\s+)?(?:visible|displayed|shown)$",
                ActionType.EXPECT_VISIBLE, _on(ActionType.EXPECT_VISIBLE, "text")),
    CorePattern("should-see-element",
                r"^(?:user\s+)?(?:should\s+)?(?:sees?|views?)\s+(?:the\s+)?(.+?)\s+(?:heading|button|link|form|page|element)$",
                ActionType.EXPECT_VISIBLE, _on(ActionType.EXPECT_VISIBLE, "text")),
    CorePattern("page-displayed",
                r"^(?:the\s+)?(.+?)\s+(?:page|screen|view)\s+(?:is\s+)?(?:displayed|shown|visible)$",
                ActionType.EXPECT_VISIBLE, _on(ActionType.EXPECT_VISIBLE, "text")),
]

URL_PATTERNS = [
    CorePattern("url-contains",
                r"^(?:the\s+)?url\s+(?:should\s+)?(?:contains?|includes?)\s+[\"']?([^\"'\s]+)[\"']?$",
                ActionType.EXPECT_URL, lambda m: Action(ActionType.EXPECT_URL, pattern=m.group(1))),
    CorePattern("url-is",
                r"^(?:the\s+)?url\s+(?:should\s+)?(?:is|equals?|be)\s+[\"']?([^\"'\s]+)[\"']?$",
                ActionType.EXPECT_URL, lambda m: Action(ActionType.EXPECT_URL, pattern=m.group(1))),
    CorePattern("redirected-to",
                r"^(?:user\s+)?(?:is\s+)?redirected\s+to\s+[\"']?([^\"'\s]+)[\"']?$",
                ActionType.EXPECT_URL, lambda m: Action(ActionType.EXPECT_URL, pattern=m.group(1))),
]

EXTENDED_WAIT_PATTERNS = [
    CorePattern("wait-for-element-hidden",
                r"^(?:user\s+)?waits?\s+(?:for\s+)?(?:the\s+)?[\"']?(.+?)[\"']?\s+to\s+(?:disappear|be\s+hidden)$",
                ActionType.WAIT_FOR_HIDDEN, _on(ActionType.WAIT_FOR_HIDDEN, "text")),
    CorePattern("wait-for-element-appear",
                r"^(?:user\s+)?waits?\s+(?:for\s+)?(?:the\s+)?[\"']?(.+?)[\"']?\s+to\s+(?:appear|show|be\s+visible)$",
                ActionType.WAIT_FOR_VISIBLE, _on(ActionType.WAIT_FOR_VISIBLE, "text")),
    CorePattern("wait-until-loaded",
                r"^(?:user\s+)?waits?\s+until\s+(?:the\s+)?(?:page|content|data)\s+(?:is\s+)?loaded$",
                ActionType.WAIT_FOR_LOADING_COMPLETE, _fixed(Action(ActionType.WAIT_FOR_LOADING_COMPLETE))),
    CorePattern("wait-seconds",
                r"^(?:user\s+)?waits?\s+(?:for\s+)?(\d+)\s+seconds?$",
                ActionType.WAIT_FOR_TIMEOUT,
                lambda m: Action(ActionType.WAIT_FOR_TIMEOUT, ms=int(m.group(1)) * 1000)),
    CorePattern("wait-for-network",
                r"^(?:user\s+)?waits?\s+(?:for\s+)?(?:the\s+)?network\s+(?:to\s+be\s+)?idle$",
                ActionType.WAIT_FOR_NETWORK_IDLE, _fixed(Action(ActionType.WAIT_FOR_NETWORK_IDLE))),
]

WAIT_PATTERNS = [
    CorePattern("wait-for-navigation",
                r"^(?:user\s+)?(?:waits?\s+)?(?:for\s+)?navigation\s+to\s+[\"']?([^\"'\s]+)[\"']?$",
                ActionType.WAIT_FOR_URL, lambda m: Action(ActionType.WAIT_FOR_URL, pattern=m.group(1))),
    CorePattern("wait-for-page",
                r"^(?:user\s+)?(?:waits?\s+)?(?:for\s+)?(?:the\s+)?(.+?)\s+(?:page|screen)\s+to\s+load$",
                ActionType.WAIT_FOR_LOADING_COMPLETE, _fixed(Action(ActionType.WAIT_FOR_LOADING_COMPLETE))),
]

HOVER_PATTERNS = [
    CorePattern("hover-over-element",
                r"^(?:user\s+)?hovers?\s+(?:over|on)\s+(?:the\s+)?[\"']?(.+?)[\"']?$",
                ActionType.HOVER, _on(ActionType.HOVER, "text", unquote=True)),
    CorePattern("mouse-over",
                r"^(?:user\s+)?mouse\s*over\s+(?:the\s+)?[\"']?(.+?)[\"']?$",
                ActionType.HOVER, _on(ActionType.HOVER, "text", unquote=True)),
]

FOCUS_PATTERNS = [
    CorePattern("focus-on-element",
                r"^(?:user\s+)?focus(?:es)?\s+(?:on\s+)?(?:the\s+)?[\"']?(.+?)[\"']?$",
                ActionType.FOCUS, _on(ActionType.FOCUS, "label", unquote=True)),
]

UPLOAD_PATTERNS = [
    CorePattern("upload-file",
                r"^(?:user\s+)?uploads?\s+[\"']([^\"']+)[\"']\s+(?:to|into|in)\s+(?:the\s+)?[\"']?(.+?)[\"']?\s*(?:field|input)?$",
                ActionType.UPLOAD,
                lambda m: Action(ActionType.UPLOAD, locator=create_locator("label", m.group(2)),
                                 files=tuple(f.strip() for f in m.group(1).split(",")))),
]

ALL_PATTERNS: List[CorePattern] = [
    *STRUCTURED_PATTERNS,
    *AUTH_PATTERNS,
    *TOAST_PATTERNS,
    *MODAL_ALERT_PATTERNS,
    *EXTENDED_NAVIGATION_PATTERNS,
    *NAVIGATION_PATTERNS,
    *EXTENDED_CLICK_PATTERNS,
    *CLICK_PATTERNS,
    *UPLOAD_PATTERNS,
    *EXTENDED_FILL_PATTERNS,
    *FILL_PATTERNS,
    *EXTENDED_SELECT_PATTERNS,
    *SELECT_PATTERNS,
    *CHECK_PATTERNS,
    *EXTENDED_ASSERTION_PATTERNS,
    *VISIBILITY_PATTERNS,
    *URL_PATTERNS,
    *EXTENDED_WAIT_PATTERNS,
    *WAIT_PATTERNS,
    *HOVER_PATTERNS,
    *FOCUS_PATTERNS,
]

_PATTERNS_BY_NAME: Dict[str, CorePattern] = {p.name: p for p in ALL_PATTERNS}


def match_core_pattern(text: str) -> Optional[Tuple[CorePattern, Action]]:
    """First pattern whose extractor yields an action, with that action."""
    trimmed = text.strip()
    for pattern in ALL_PATTERNS:
        action = pattern.apply(trimmed)
        if action is not None:
            return pattern, action
    return None


def get_pattern_matches(text: str) -> List[Tuple[str, Action]]:
    """Every pattern that would produce an action for ``text`` (debugging)."""
    trimmed = text.strip()
    matches = []
    for pattern in ALL_PATTERNS:
        action = pattern.apply(trimmed)
        if action is not None:
            matches.append((pattern.name, action))
    return matches


def find_matching_patterns(text: str) -> List[str]:
    trimmed = text.strip()
    return [p.name for p in ALL_PATTERNS if p.compiled.match(trimmed)]


def get_pattern(name: str) -> Optional[CorePattern]:
    return _PATTERNS_BY_NAME.get(name)


def get_all_pattern_names() -> List[str]:
    return [p.name for p in ALL_PATTERNS]


def get_pattern_count_by_category() -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for pattern in ALL_PATTERNS:
        counts[pattern.category] = counts.get(pattern.category, 0) + 1
    return counts
