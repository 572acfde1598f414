"""
Renders resolved journey steps as a pytest-playwright test module.

Every ``ActionType`` has exactly one renderer in ``RENDERERS``; the table is
checked for completeness at import time. A ``blocked`` step renders as a
``pytest.fail`` call preceded by comments carrying the reason, so an
unresolved step can never pass silently.
"""

import re
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..core.models import (
    Action,
    ActionType,
    LocatorSpec,
    LocatorStrategy,
    ResolutionSource,
    ResolvedStep,
    ValueSpec,
    ValueType,
    assert_exhaustive,
)

logger = logging.getLogger(__name__)

# (code, awaitable) pairs; awaitable lines get ``await`` in async mode.
Statement = Tuple[str, bool]


def quote(text: str) -> str:
    """Double-quoted Python string literal."""
    escaped = (text.replace("\\", "\\\\").replace('"', '\\"')
               .replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t"))
    return f'"{escaped}"'


def _literal(value: Any) -> str:
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, bool) or value is None:
        return repr(value)
    if isinstance(value, (int, float)):
        return repr(value)
    return quote(str(value))


def _comment(text: str) -> str:
    return " ".join(str(text).split())


def _regex(pattern: str) -> str:
    return f"re.compile({quote(re.escape(pattern))})"


def _call(name: str, /, *args: str, **kwargs: Any) -> str:
    parts = list(args)
    parts.extend(f"{key}={value}" for key, value in kwargs.items() if value is not None)
    return f"{name}({', '.join(parts)})"


# ═══════════════════════════════════════════════════════════════════════
# Locators and values
# ═══════════════════════════════════════════════════════════════════════

def render_locator(locator: LocatorSpec, receiver: str = "page") -> str:
    """
    Playwright locator expression for a LocatorSpec.

    Examples:
        role    -> page.get_by_role("button", name="Submit", exact=True)
        testid  -> page.get_by_test_id("save")
        css     -> page.locator("#main .card")
    """
    options = locator.options
    exact = "True" if options.get("exact") else None
    strategy = locator.strategy

    if strategy is LocatorStrategy.ROLE:
        name = options.get("name")
        level = options.get("level")
        return _call(f"{receiver}.get_by_role", quote(locator.value),
                     name=quote(name) if name else None,
                     exact=exact if name else None,
                     level=int(level) if level is not None else None)
    if strategy is LocatorStrategy.LABEL:
        return _call(f"{receiver}.get_by_label", quote(locator.value), exact=exact)
    if strategy is LocatorStrategy.PLACEHOLDER:
        return _call(f"{receiver}.get_by_placeholder", quote(locator.value), exact=exact)
    if strategy is LocatorStrategy.TEXT:
        return _call(f"{receiver}.get_by_text", quote(locator.value), exact=exact)
    if strategy is LocatorStrategy.TESTID:
        return _call(f"{receiver}.get_by_test_id", quote(locator.value))
    return _call(f"{receiver}.locator", quote(locator.value))


_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def _generated(template: str) -> str:
    parts = []
    position = 0
    for match in _PLACEHOLDER.finditer(template):
        literal = template[position:match.start()]
        parts.append(literal.replace("{", "{{").replace("}", "}}"))
        name = match.group(1).strip()
        parts.append("{run_id}" if name == "runId" else f"{{test_data[{name!r}]}}")
        position = match.end()
    parts.append(template[position:].replace("{", "{{").replace("}", "}}"))
    return "f" + quote("".join(parts))


def value_fixtures(value: Any) -> Set[str]:
    """pytest fixtures the rendered expression for ``value`` reads."""
    if not isinstance(value, ValueSpec):
        return set()
    if value.type is ValueType.ACTOR:
        return {"actor"}
    if value.type is ValueType.TEST_DATA:
        return {"test_data"}
    if value.type is ValueType.RUN_ID:
        return {"run_id"}
    if value.type is ValueType.GENERATED:
        names = {m.group(1).strip() for m in _PLACEHOLDER.finditer(value.value)}
        return {"run_id" if name == "runId" else "test_data" for name in names}
    return set()


def render_value(value: Any) -> str:
    """Python expression for a ValueSpec (or a raw string, rendered literally)."""
    if not isinstance(value, ValueSpec):
        return quote(str(value))
    if value.type is ValueType.ACTOR:
        return f"actor[{quote(value.value)}]"
    if value.type is ValueType.TEST_DATA:
        return f"test_data[{quote(value.value)}]"
    if value.type is ValueType.RUN_ID:
        return "run_id"
    if value.type is ValueType.GENERATED:
        return _generated(value.value)
    return quote(value.value)


# ═══════════════════════════════════════════════════════════════════════
# Per-action renderers
# ═══════════════════════════════════════════════════════════════════════

def _on(action: Action, method: str, *args: str, **kwargs: Any) -> List[Statement]:
    return [(_call(f"{render_locator(action.locator)}.{method}", *args,
                   timeout=action.timeout, **kwargs), True)]


def _expect(action: Action, assertion: str, *args: str) -> List[Statement]:
    return [(_call(f"expect({render_locator(action.locator)}).{assertion}", *args,
                   timeout=action.timeout), True)]


def _render_goto(action: Action) -> List[Statement]:
    lines = [(_call("page.goto", quote(action.url), timeout=action.timeout), True)]
    if action.wait_for_load:
        lines.append(('page.wait_for_load_state("load")', True))
    return lines


def _render_press(action: Action) -> List[Statement]:
    if action.locator is not None:
        return _on(action, "press", quote(action.key))
    return [(_call("page.keyboard.press", quote(action.key)), True)]


def _render_expect_toast(action: Action) -> List[Statement]:
    target = _call("page.get_by_text", quote(action.message)) if action.message \
        else 'page.get_by_role("alert")'
    return [(f"# {action.toast_type.value} toast", False),
            (_call(f"expect({target}).to_be_visible", timeout=action.timeout), True)]


def _render_loading_complete(action: Action) -> List[Statement]:
    if action.locator is not None:
        return _expect(action, "to_be_hidden")
    return [('page.wait_for_load_state("networkidle")', True)]


def _render_call_module(action: Action) -> List[Statement]:
    args = ["page"] + [_literal(a) for a in (action.args or ())]
    return [(_call(f"{action.module}.{action.method}", *args), True)]


def _render_blocked(action: Action) -> List[Statement]:
    lines = [(f"# BLOCKED: {_comment(action.reason)}", False),
             (f"# Source: {_comment(action.source_text)}", False)]
    if action.suggestion:
        lines.append((f"# Suggestion: {_comment(action.suggestion)}", False))
    lines.append((f"pytest.fail({quote('BLOCKED: ' + action.reason)})", False))
    return lines


RENDERERS: Dict[ActionType, Callable[[Action], List[Statement]]] = {
    # Navigation
    ActionType.GOTO: _render_goto,
    ActionType.GO_BACK: lambda a: [("page.go_back()", True)],
    ActionType.GO_FORWARD: lambda a: [("page.go_forward()", True)],
    ActionType.RELOAD: lambda a: [("page.reload()", True)],
    ActionType.WAIT_FOR_URL: lambda a: [(_call("page.wait_for_url", _regex(a.pattern),
                                               timeout=a.timeout), True)],

    # Interaction
    ActionType.CLICK: lambda a: _on(a, "click"),
    ActionType.DBLCLICK: lambda a: _on(a, "dblclick"),
    ActionType.RIGHT_CLICK: lambda a: _on(a, "click", button='"right"'),
    ActionType.FILL: lambda a: _on(a, "fill", render_value(a.value)),
    ActionType.CLEAR: lambda a: _on(a, "clear"),
    ActionType.SELECT: lambda a: _on(a, "select_option", quote(a.option)),
    ActionType.CHECK: lambda a: _on(a, "check"),
    ActionType.UNCHECK: lambda a: _on(a, "uncheck"),
    ActionType.PRESS: _render_press,
    ActionType.HOVER: lambda a: _on(a, "hover"),
    ActionType.FOCUS: lambda a: _on(a, "focus"),
    ActionType.UPLOAD: lambda a: _on(a, "set_input_files",
                                     "[" + ", ".join(quote(f) for f in a.files) + "]"),

    # Assertions
    ActionType.EXPECT_VISIBLE: lambda a: _expect(a, "to_be_visible"),
    ActionType.EXPECT_HIDDEN: lambda a: _expect(a, "to_be_hidden"),
    ActionType.EXPECT_NOT_VISIBLE: lambda a: _expect(a, "not_to_be_visible"),
    ActionType.EXPECT_TEXT: lambda a: _expect(a, "to_have_text", quote(a.text)),
    ActionType.EXPECT_CONTAINS_TEXT: lambda a: _expect(a, "to_contain_text", quote(a.text)),
    ActionType.EXPECT_VALUE: lambda a: _expect(a, "to_have_value", render_value(a.value)),
    ActionType.EXPECT_URL: lambda a: [(_call("expect(page).to_have_url", _regex(a.pattern),
                                             timeout=a.timeout), True)],
    ActionType.EXPECT_TITLE: lambda a: [(_call("expect(page).to_have_title", quote(a.title),
                                               timeout=a.timeout), True)],
    ActionType.EXPECT_CHECKED: lambda a: _expect(a, "to_be_checked"),
    ActionType.EXPECT_ENABLED: lambda a: _expect(a, "to_be_enabled"),
    ActionType.EXPECT_DISABLED: lambda a: _expect(a, "to_be_disabled"),
    ActionType.EXPECT_COUNT: lambda a: _expect(a, "to_have_count", str(a.count)),

    # Waits
    ActionType.WAIT_FOR_VISIBLE: lambda a: _on(a, "wait_for", state='"visible"'),
    ActionType.WAIT_FOR_HIDDEN: lambda a: _on(a, "wait_for", state='"hidden"'),
    ActionType.WAIT_FOR_TIMEOUT: lambda a: [(f"page.wait_for_timeout({int(a.ms)})", True)],
    ActionType.WAIT_FOR_NETWORK_IDLE: lambda a: [('page.wait_for_load_state("networkidle")', True)],
    ActionType.WAIT_FOR_LOADING_COMPLETE: _render_loading_complete,

    # Application signals
    ActionType.EXPECT_TOAST: _render_expect_toast,
    ActionType.DISMISS_MODAL: lambda a: [(
        'page.get_by_role("dialog").get_by_role("button", '
        'name=re.compile("close|cancel|dismiss", re.IGNORECASE)).click()', True)],
    ActionType.ACCEPT_ALERT: lambda a: [('page.once("dialog", lambda dialog: dialog.accept())', False)],
    ActionType.DISMISS_ALERT: lambda a: [('page.once("dialog", lambda dialog: dialog.dismiss())', False)],

    # Modules
    ActionType.CALL_MODULE: _render_call_module,

    ActionType.BLOCKED: _render_blocked,
}

assert_exhaustive(RENDERERS, "RENDERERS")


# ═══════════════════════════════════════════════════════════════════════
# Test modules
# ═══════════════════════════════════════════════════════════════════════

def journey_test_name(journey_id: str) -> str:
    """``test_<journey id as snake case>``."""
    slug = re.sub(r"[^0-9a-zA-Z]+", "_", journey_id).strip("_").lower()
    return f"test_{slug or 'journey'}"


class CodeRenderer:
    """Turns resolved steps into pytest-playwright source."""

    def __init__(self, async_mode: bool = False, modules_package: str = "modules"):
        """
        Args:
            async_mode: Render ``async def`` tests against ``playwright.async_api``
            modules_package: Package that ``callModule`` helpers are imported from
        """
        self.async_mode = async_mode
        self.modules_package = modules_package

    def render_action(self, action: Action) -> List[str]:
        """Source lines (unindented) for one action."""
        lines = []
        for code, awaitable in RENDERERS[action.type](action):
            lines.append(f"await {code}" if awaitable and self.async_mode else code)
        if action.signal:
            signal = f'expect(page.get_by_test_id({quote(action.signal)})).to_be_visible()'
            lines.append(f"await {signal}" if self.async_mode else signal)
        return lines

    def render_step(self, resolved: ResolvedStep, index: int) -> List[str]:
        lines = [f"# Step {index}: {_comment(resolved.step.text)}"]
        if resolved.source is ResolutionSource.LEARNED:
            lines.append(f"# resolved from learned pattern {resolved.pattern_id} "
                         f"(confidence {resolved.confidence:.2f})")
        elif resolved.source is ResolutionSource.FUZZY:
            lines.append(f"# resolved by fuzzy match to {resolved.pattern_name} "
                         f"(similarity {resolved.confidence:.2f})")
        elif resolved.source is ResolutionSource.HINTS:
            lines.append("# resolved from locator hints")
        lines.extend(self.render_action(resolved.action))
        return lines

    def render_test(self, journey_id: str, steps: Iterable[ResolvedStep],
                    title: Optional[str] = None) -> str:
        """
        Complete test module for one journey.

        Args:
            journey_id: Journey identifier, used for the test function name
            steps: Resolved steps in journey order
            title: Human-readable journey title for the module docstring

        Returns:
            Python source of the test module
        """
        steps = list(steps)
        body: List[str] = []
        for index, resolved in enumerate(steps, 1):
            if index > 1:
                body.append("")
            body.extend(self.render_step(resolved, index))
        if not body:
            body.append("pass")

        code = "\n".join(body)
        executable = "\n".join(line for line in body if not line.lstrip().startswith("#"))
        blocked = sum(1 for s in steps if s.action.is_blocked)
        if blocked:
            logger.warning(f"🚫 {journey_id}: rendering {blocked} blocked step(s) as failures")

        api = "async_api" if self.async_mode else "sync_api"
        imports = []
        if re.search(r"\bre\.", executable):
            imports.append("import re")
        imports.append("")
        imports.append("import pytest")
        imports.append(f"from playwright.{api} import Page, expect")
        modules = sorted({s.action.module for s in steps if s.action.type is ActionType.CALL_MODULE})
        if modules:
            imports.append("")
            imports.append(f"from {self.modules_package} import {', '.join(modules)}")
        while imports and imports[0] == "":
            imports.pop(0)

        params = ["page: Page"]
        used = set().union(*(value_fixtures(s.action.value) for s in steps))
        params.extend(fixture for fixture in ("run_id", "actor", "test_data") if fixture in used)

        signature = f"def {journey_test_name(journey_id)}({', '.join(params)}):"
        header = []
        if self.async_mode:
            header.append("@pytest.mark.asyncio")
            signature = f"async {signature}"
        header.append(signature)

        summary = _comment(title or journey_id).replace('"', "'")
        docstring = f'"""{summary} (generated from journey {journey_id})."""'
        indented = ["    " + line if line else "" for line in code.split("\n")]
        return "\n".join([docstring, ""] + imports + ["", ""] + header + indented) + "\n"
