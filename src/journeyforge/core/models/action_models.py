"""Data models for resolved journey steps.

An ``Action`` is a closed tagged variant: ``ActionType`` is the tag and
``ACTION_FIELDS`` lists the payload each kind requires. Every consumer that
dispatches on ``ActionType`` (resolver, renderer, store) keeps its own table
keyed by the enum and checks it against ``ActionType`` at import time.
"""

import json
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class LocatorStrategy(Enum):
    """Element location strategies in preference order."""
    ROLE = "role"
    LABEL = "label"
    PLACEHOLDER = "placeholder"
    TEXT = "text"
    TESTID = "testid"
    CSS = "css"


class ValueType(Enum):
    """Where the value typed into a field comes from."""
    LITERAL = "literal"
    ACTOR = "actor"
    RUN_ID = "runId"
    GENERATED = "generated"
    TEST_DATA = "testData"


class ActionType(Enum):
    """Every kind of action a step can resolve to."""
    # Navigation
    GOTO = "goto"
    GO_BACK = "goBack"
    GO_FORWARD = "goForward"
    RELOAD = "reload"
    WAIT_FOR_URL = "waitForURL"

    # Interaction
    CLICK = "click"
    DBLCLICK = "dblclick"
    RIGHT_CLICK = "rightClick"
    FILL = "fill"
    CLEAR = "clear"
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    PRESS = "press"
    HOVER = "hover"
    FOCUS = "focus"
    UPLOAD = "upload"

    # Assertions
    EXPECT_VISIBLE = "expectVisible"
    EXPECT_HIDDEN = "expectHidden"
    EXPECT_NOT_VISIBLE = "expectNotVisible"
    EXPECT_TEXT = "expectText"
    EXPECT_CONTAINS_TEXT = "expectContainsText"
    EXPECT_VALUE = "expectValue"
    EXPECT_URL = "expectURL"
    EXPECT_TITLE = "expectTitle"
    EXPECT_CHECKED = "expectChecked"
    EXPECT_ENABLED = "expectEnabled"
    EXPECT_DISABLED = "expectDisabled"
    EXPECT_COUNT = "expectCount"

    # Waits
    WAIT_FOR_VISIBLE = "waitForVisible"
    WAIT_FOR_HIDDEN = "waitForHidden"
    WAIT_FOR_TIMEOUT = "waitForTimeout"
    WAIT_FOR_NETWORK_IDLE = "waitForNetworkIdle"
    WAIT_FOR_LOADING_COMPLETE = "waitForLoadingComplete"

    # Application signals
    EXPECT_TOAST = "expectToast"
    DISMISS_MODAL = "dismissModal"
    ACCEPT_ALERT = "acceptAlert"
    DISMISS_ALERT = "dismissAlert"

    # Reusable module call (auth.login and friends)
    CALL_MODULE = "callModule"

    # Sentinel for unresolved steps
    BLOCKED = "blocked"


class ToastType(Enum):
    """Kinds of transient notification."""
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


ACTION_FIELDS: Dict[ActionType, Tuple[str, ...]] = {
    ActionType.GOTO: ("url",),
    ActionType.GO_BACK: (),
    ActionType.GO_FORWARD: (),
    ActionType.RELOAD: (),
    ActionType.WAIT_FOR_URL: ("pattern",),
    ActionType.CLICK: ("locator",),
    ActionType.DBLCLICK: ("locator",),
    ActionType.RIGHT_CLICK: ("locator",),
    ActionType.FILL: ("locator", "value"),
    ActionType.CLEAR: ("locator",),
    ActionType.SELECT: ("locator", "option"),
    ActionType.CHECK: ("locator",),
    ActionType.UNCHECK: ("locator",),
    ActionType.PRESS: ("key",),
    ActionType.HOVER: ("locator",),
    ActionType.FOCUS: ("locator",),
    ActionType.UPLOAD: ("locator", "files"),
    ActionType.EXPECT_VISIBLE: ("locator",),
    ActionType.EXPECT_HIDDEN: ("locator",),
    ActionType.EXPECT_NOT_VISIBLE: ("locator",),
    ActionType.EXPECT_TEXT: ("locator", "text"),
    ActionType.EXPECT_CONTAINS_TEXT: ("locator", "text"),
    ActionType.EXPECT_VALUE: ("locator", "value"),
    ActionType.EXPECT_URL: ("pattern",),
    ActionType.EXPECT_TITLE: ("title",),
    ActionType.EXPECT_CHECKED: ("locator",),
    ActionType.EXPECT_ENABLED: ("locator",),
    ActionType.EXPECT_DISABLED: ("locator",),
    ActionType.EXPECT_COUNT: ("locator", "count"),
    ActionType.WAIT_FOR_VISIBLE: ("locator",),
    ActionType.WAIT_FOR_HIDDEN: ("locator",),
    ActionType.WAIT_FOR_TIMEOUT: ("ms",),
    ActionType.WAIT_FOR_NETWORK_IDLE: (),
    ActionType.WAIT_FOR_LOADING_COMPLETE: (),
    ActionType.EXPECT_TOAST: ("toast_type",),
    ActionType.DISMISS_MODAL: (),
    ActionType.ACCEPT_ALERT: (),
    ActionType.DISMISS_ALERT: (),
    ActionType.CALL_MODULE: ("module", "method"),
    ActionType.BLOCKED: ("reason", "source_text"),
}


def assert_exhaustive(table: Dict[ActionType, Any], owner: str) -> None:
    """Raise if a dispatch table keyed by ActionType misses a kind."""
    missing = [t.value for t in ActionType if t not in table]
    if missing:
        raise TypeError(f"{owner} has no handler for action types: {', '.join(missing)}")


assert_exhaustive(ACTION_FIELDS, "ACTION_FIELDS")


class LocatorSpec:
    """How to find an element: strategy, value and strategy options.

    Two specs are equal when their canonical serializations are equal, so
    option ordering never produces duplicates.
    """

    __slots__ = ("strategy", "value", "options")

    def __init__(self, strategy: LocatorStrategy, value: str,
                 options: Optional[Dict[str, Any]] = None):
        self.strategy = LocatorStrategy(strategy)
        self.value = value
        self.options = {k: v for k, v in (options or {}).items() if v is not None}

    def canonical(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"strategy": self.strategy.value, "value": self.value}
        if self.options:
            data["options"] = dict(self.options)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocatorSpec":
        return cls(LocatorStrategy(data["strategy"]), data["value"], data.get("options"))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LocatorSpec):
            return NotImplemented
        return self.canonical() == other.canonical()

    def __hash__(self) -> int:
        return hash(self.canonical())

    def __repr__(self) -> str:
        return f"LocatorSpec({self.canonical()})"


@dataclass(frozen=True)
class ValueSpec:
    """A value to enter, tagged with its origin."""
    type: ValueType
    value: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValueSpec":
        return cls(type=ValueType(data["type"]), value=data["value"])


# Python attribute name -> JSON key, for fields whose names differ.
_JSON_KEYS = {
    "wait_for_load": "waitForLoad",
    "toast_type": "toastType",
    "source_text": "sourceText",
}


@dataclass(frozen=True)
class Action:
    """A structured, executable representation of one resolved step."""
    type: ActionType
    locator: Optional[LocatorSpec] = None
    value: Optional[ValueSpec] = None
    url: Optional[str] = None
    wait_for_load: Optional[bool] = None
    pattern: Optional[str] = None
    option: Optional[str] = None
    key: Optional[str] = None
    text: Optional[str] = None
    title: Optional[str] = None
    count: Optional[int] = None
    ms: Optional[int] = None
    toast_type: Optional[ToastType] = None
    message: Optional[str] = None
    module: Optional[str] = None
    method: Optional[str] = None
    args: Optional[Tuple[Any, ...]] = None
    files: Optional[Tuple[str, ...]] = None
    timeout: Optional[int] = None
    signal: Optional[str] = None
    reason: Optional[str] = None
    source_text: Optional[str] = None
    suggestion: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.type, ActionType):
            object.__setattr__(self, "type", ActionType(self.type))
        if self.args is not None and not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))
        if self.files is not None and not isinstance(self.files, tuple):
            object.__setattr__(self, "files", tuple(self.files))
        missing = [name for name in ACTION_FIELDS[self.type] if getattr(self, name) is None]
        if missing:
            raise ValueError(f"Action '{self.type.value}' requires fields: {', '.join(missing)}")

    @classmethod
    def blocked(cls, reason: str, source_text: str, suggestion: Optional[str] = None) -> "Action":
        """Build the sentinel for a step no tier could resolve."""
        return cls(type=ActionType.BLOCKED, reason=reason, source_text=source_text,
                   suggestion=suggestion)

    @property
    def is_blocked(self) -> bool:
        return self.type is ActionType.BLOCKED

    @property
    def is_assertion(self) -> bool:
        return self.type.value.startswith("expect")

    def to_dict(self) -> Dict[str, Any]:
        """Convert action to a JSON-ready dictionary (camelCase keys)."""
        data: Dict[str, Any] = {"type": self.type.value}
        for f in fields(self):
            if f.name == "type":
                continue
            current = getattr(self, f.name)
            if current is None:
                continue
            if isinstance(current, (LocatorSpec, ValueSpec)):
                current = current.to_dict()
            elif isinstance(current, Enum):
                current = current.value
            elif isinstance(current, tuple):
                current = list(current)
            data[_JSON_KEYS.get(f.name, f.name)] = current
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Action":
        """Create an action from its dictionary form."""
        reverse = {v: k for k, v in _JSON_KEYS.items()}
        kwargs: Dict[str, Any] = {}
        for key, raw in data.items():
            if key == "type":
                continue
            name = reverse.get(key, key)
            if name == "locator":
                raw = LocatorSpec.from_dict(raw)
            elif name == "value" and isinstance(raw, dict):
                raw = ValueSpec.from_dict(raw)
            elif name == "toast_type":
                raw = ToastType(raw)
            kwargs[name] = raw
        return cls(type=ActionType(data["type"]), **kwargs)


@dataclass(frozen=True)
class StepHints:
    """Explicit inline overrides attached to a step, e.g. ``(testid=login-btn)``."""
    role: Optional[str] = None
    testid: Optional[str] = None
    label: Optional[str] = None
    text: Optional[str] = None
    exact: Optional[bool] = None
    level: Optional[int] = None
    signal: Optional[str] = None
    module: Optional[str] = None
    wait: Optional[str] = None
    timeout: Optional[int] = None

    @property
    def has_locator_hints(self) -> bool:
        return any(v is not None for v in (self.role, self.testid, self.label, self.text))

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass(frozen=True)
class Step:
    """One journey step: its raw sentence and optional inline hints."""
    text: str
    hints: StepHints = field(default_factory=StepHints)


class ResolutionSource(Enum):
    """Which tier produced a resolved action."""
    CORE = "core"
    LEARNED = "learned"
    FUZZY = "fuzzy"
    HINTS = "hints"
    BLOCKED = "blocked"


@dataclass
class ResolvedStep:
    """An action plus its provenance."""
    step: Step
    action: Action
    source: ResolutionSource
    pattern_name: Optional[str] = None
    pattern_id: Optional[str] = None
    confidence: float = 1.0
    similarity: Optional[float] = None
    matched_example: Optional[str] = None
    normalized_text: Optional[str] = None
    hint_warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stepText": self.step.text,
            "action": self.action.to_dict(),
            "source": self.source.value,
            "patternName": self.pattern_name,
            "patternId": self.pattern_id,
            "confidence": self.confidence,
            "similarity": self.similarity,
            "matchedExample": self.matched_example,
            "normalizedText": self.normalized_text,
            "hintWarnings": list(self.hint_warnings),
        }
