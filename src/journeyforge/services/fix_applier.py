"""
Fix transforms for pytest-playwright test source.

Each transform takes the full test module source and returns a ``FixResult``;
``applied`` is False when the transform found nothing to change. Transforms
are plain text edits: syntax is validated when the result is written back by
``SourceFileUpdater``.
"""

import ast
import os
import re
import shutil
import tempfile
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..core.config import settings
from ..core.exceptions import FixApplicationError
from ..core.models import FORBIDDEN_FIXES, AriaInfo, FixResult, FixType

logger = logging.getLogger(__name__)


@dataclass
class FixContext:
    """What the healing loop knows about the failure a fix targets."""
    line_number: Optional[int] = None
    error_message: str = ""
    aria_info: Optional[AriaInfo] = None
    max_timeout_increase: int = 30000


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _not_applied(code: str, description: str) -> FixResult:
    return FixResult(applied=False, code=code, description=description)


def _target_line(lines: List[str], line_number: Optional[int]) -> Optional[int]:
    """0-based index of the failing line, or None when unknown."""
    if line_number is None or not 1 <= line_number <= len(lines):
        return None
    return line_number - 1


# ═══════════════════════════════════════════════════════════════════════
# Selector refinement
# ═══════════════════════════════════════════════════════════════════════

CSS_LOCATOR_PATTERNS = [
    # page.locator(".class") / page.locator("#id")
    re.compile(r"""page\.locator\(\s*(["'])(?P<selector>[.#][^"']+)\1\s*\)"""),
    # page.locator("[attribute]")
    re.compile(r"""page\.locator\(\s*(["'])(?P<selector>\[[^\]]+\])\1\s*\)"""),
    # page.locator("tag.class")
    re.compile(r"""page\.locator\(\s*(["'])(?P<selector>[a-z]+[.#][^"']+)\1\s*\)"""),
]

# Class/id tokens that suggest an ARIA role, checked in order.
UI_TOKEN_TO_ROLE: List[Tuple[str, str]] = [
    ("button", "button"),
    ("btn", "button"),
    ("submit", "button"),
    ("input", "textbox"),
    ("textbox", "textbox"),
    ("checkbox", "checkbox"),
    ("radio", "radio"),
    ("select", "combobox"),
    ("dropdown", "combobox"),
    ("link", "link"),
    ("heading", "heading"),
    ("h1", "heading"),
    ("h2", "heading"),
    ("h3", "heading"),
    ("dialog", "dialog"),
    ("modal", "dialog"),
    ("alert", "alert"),
    ("tab", "tab"),
    ("menu", "menu"),
    ("menuitem", "menuitem"),
    ("table", "table"),
    ("row", "row"),
    ("cell", "cell"),
    ("grid", "grid"),
    ("list", "list"),
    ("listitem", "listitem"),
    ("img", "img"),
    ("image", "img"),
    ("nav", "navigation"),
    ("navigation", "navigation"),
    ("search", "search"),
    ("main", "main"),
    ("banner", "banner"),
    ("footer", "contentinfo"),
]


def find_css_locators(code: str) -> List[Tuple[str, str]]:
    """Every ``(call expression, selector)`` pair of CSS ``page.locator`` calls, in order."""
    found = []
    for pattern in CSS_LOCATOR_PATTERNS:
        for match in pattern.finditer(code):
            found.append((match.start(), match.group(0), match.group("selector")))
    found.sort()
    return [(call, selector) for _, call, selector in found]


def contains_css_locator(code: str) -> bool:
    return bool(find_css_locators(code))


def infer_role_from_selector(selector: str) -> Optional[str]:
    tokens = set(re.split(r"[^a-z0-9]+", selector.lower()))
    for token, role in UI_TOKEN_TO_ROLE:
        if token in tokens:
            return role
    return None


def extract_name_from_selector(selector: str) -> Optional[str]:
    """Readable name from ``[aria-label=...]``-style attributes or the first class name."""
    attr = re.search(r"""\[(?:aria-label|title|alt|name)=["']([^"']+)["']\]""", selector)
    if attr:
        return attr.group(1)

    class_match = re.search(r"\.([a-zA-Z][-a-zA-Z0-9_]*)", selector)
    if class_match:
        words = [w for w in re.split(r"[-_]", class_match.group(1)) if w]
        if words and len(words[0]) > 2:
            return " ".join(words)
    return None


def role_locator(role: str, name: Optional[str] = None, exact: bool = False,
                 level: Optional[int] = None) -> str:
    args = [_quote(role)]
    if name:
        args.append(f"name={_quote(name)}")
        if exact:
            args.append("exact=True")
    if level is not None and role == "heading":
        args.append(f"level={level}")
    return f"page.get_by_role({', '.join(args)})"


def label_locator(label: str, exact: bool = False) -> str:
    return f"page.get_by_label({_quote(label)}{', exact=True' if exact else ''})"


def text_locator(text: str, exact: bool = False) -> str:
    return f"page.get_by_text({_quote(text)}{', exact=True' if exact else ''})"


def testid_locator(test_id: str) -> str:
    return f"page.get_by_test_id({_quote(test_id)})"


def _locator_from_aria(aria: AriaInfo) -> Tuple[Optional[str], float]:
    # Priority: test id > role+name > label > bare role
    if aria.testid:
        return testid_locator(aria.testid), 1.0
    if aria.role and aria.name:
        return role_locator(aria.role, aria.name, exact=True), 0.9
    if aria.label:
        return label_locator(aria.label, exact=True), 0.85
    if aria.role:
        return role_locator(aria.role), 0.6
    return None, 0.0


def _locator_from_css(selector: str) -> Tuple[Optional[str], float]:
    role = infer_role_from_selector(selector)
    name = extract_name_from_selector(selector)
    if role:
        return (role_locator(role, name), 0.6) if name else (role_locator(role), 0.4)
    if name:
        return text_locator(name), 0.3
    return None, 0.0


def apply_selector_fix(code: str, context: FixContext) -> FixResult:
    """
    Replace a CSS ``page.locator`` call with a semantic locator.

    The selector on the failing line is preferred; otherwise the first CSS
    locator in the module is refined. ARIA facts, when the runner captured
    them, win over inference from class and id names.
    """
    lines = code.splitlines()
    index = _target_line(lines, context.line_number)
    candidates = find_css_locators(lines[index]) if index is not None else []
    candidates = candidates or find_css_locators(code)
    if not candidates:
        return _not_applied(code, "No CSS selector found to refine")

    call, selector = candidates[0]
    if context.aria_info is not None:
        new_locator, confidence = _locator_from_aria(context.aria_info)
        if new_locator is None:
            return _not_applied(code, "Unable to generate locator from ARIA info")
        description = f"Replaced CSS selector '{selector}' with {new_locator.split('(')[0]}"
    else:
        new_locator, confidence = _locator_from_css(selector)
        if new_locator is None:
            return _not_applied(code, "Unable to infer semantic locator from CSS selector")
        description = f"Inferred {new_locator.split('(')[0]} from CSS selector '{selector}'"

    modified = code.replace(call, new_locator)
    return FixResult(applied=modified != code, code=modified, description=description,
                     confidence=confidence, new_locator=new_locator)


_EXACT_CANDIDATE = re.compile(r"\.get_by_(?P<kind>role|label|text)\((?P<args>[^()]*)\)")


def add_exact_to_locators(code: str, context: Optional[FixContext] = None) -> FixResult:
    """Add ``exact=True`` to named role, label and text locators lacking it."""
    changed = 0

    def add_exact(match):
        nonlocal changed
        args = match.group("args")
        if "exact=" in args or not args.strip():
            return match.group(0)
        if match.group("kind") == "role" and "name=" not in args:
            return match.group(0)
        changed += 1
        return f".get_by_{match.group('kind')}({args.rstrip()}, exact=True)"

    modified = _EXACT_CANDIDATE.sub(add_exact, code)
    if not changed:
        return _not_applied(code, "No locator found to add exact option")
    return FixResult(applied=True, code=modified, confidence=0.8,
                     description=f"Added exact=True to {changed} locator{'s' if changed != 1 else ''}")


# ═══════════════════════════════════════════════════════════════════════
# Async hygiene
# ═══════════════════════════════════════════════════════════════════════

AWAITABLE_METHODS = (
    "goto", "reload", "go_back", "go_forward", "click", "dblclick", "fill", "clear",
    "type", "press", "press_sequentially", "check", "uncheck", "select_option", "hover",
    "focus", "set_input_files", "wait_for", "wait_for_load_state", "wait_for_url",
    "wait_for_selector", "wait_for_timeout", "text_content", "inner_text", "input_value",
    "is_visible", "is_hidden", "is_checked", "is_enabled", "title", "screenshot",
)

_ARGS = r"\((?:[^()]|\([^()]*\))*\)"
_CHAIN = rf"[A-Za-z_]\w*(?:\.[A-Za-z_]\w*|{_ARGS})*"
_AWAITABLE_STATEMENT = re.compile(
    rf"^(?P<indent>\s*)(?P<target>[A-Za-z_]\w*\s*=\s*)?"
    rf"(?P<expr>{_CHAIN}\.(?:{'|'.join(AWAITABLE_METHODS)}){_ARGS}"
    rf"|expect{_ARGS}\.(?:not_)?to_\w+{_ARGS})(?P<rest>\s*(?:#.*)?)$"
)
_DEF = re.compile(r"^(?P<indent>\s*)(?P<async>async\s+)?def\s")


def fix_missing_await(code: str, context: Optional[FixContext] = None) -> FixResult:
    """Prefix un-awaited Playwright calls inside ``async def`` bodies with ``await``."""
    if "async def" not in code:
        return _not_applied(code, "Test is not async")

    lines = code.splitlines(keepends=True)
    scopes: List[Tuple[int, bool]] = []
    fixed = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        indent = len(line) - len(line.lstrip())
        while scopes and indent <= scopes[-1][0]:
            scopes.pop()

        definition = _DEF.match(line)
        if definition:
            scopes.append((indent, bool(definition.group("async"))))
            continue
        if not scopes or not scopes[-1][1]:
            continue

        match = _AWAITABLE_STATEMENT.match(line.rstrip("\r\n"))
        if match:
            ending = line[len(line.rstrip("\r\n")):]
            lines[i] = (f"{match.group('indent')}{match.group('target') or ''}"
                        f"await {match.group('expr')}{match.group('rest')}{ending}")
            fixed += 1

    if not fixed:
        return _not_applied(code, "No missing await found")
    return FixResult(applied=True, code="".join(lines), confidence=0.9,
                     description=f"Added await to {fixed} call{'s' if fixed != 1 else ''}")


# ═══════════════════════════════════════════════════════════════════════
# Navigation waits
# ═══════════════════════════════════════════════════════════════════════

_EXPECTED_URL_PATTERNS = [
    re.compile(r"Expected (?:pattern|string|URL):\s*['\"]?(?P<url>[^\s'\"]+)", re.IGNORECASE),
    re.compile(r"expected\s+url[^'\"]*['\"](?P<url>[^'\"]+)['\"]", re.IGNORECASE),
    re.compile(r"waiting for (?:navigation|URL) (?:to )?['\"](?P<url>[^'\"]+)['\"]", re.IGNORECASE),
]
_GOTO_URL = re.compile(r"\.goto\(\s*([\"'])(?P<url>[^\"']+)\1")
_NAVIGATION_TRIGGER = re.compile(r"\.(?:goto|click|press|dblclick)\(")
_EXISTING_WAIT = re.compile(r"to_have_url\(|wait_for_url\(|wait_for_load_state\(")


def extract_expected_url(error_message: str) -> Optional[str]:
    for pattern in _EXPECTED_URL_PATTERNS:
        match = pattern.search(error_message or "")
        if match:
            return match.group("url")
    return None


def apply_navigation_fix(code: str, context: FixContext) -> FixResult:
    """
    Insert a URL assertion (or a load-state wait) after the failing line.

    Without a usable line number, the last navigation trigger (goto, click,
    press) in the module is used. An existing wait on the next line blocks
    the fix.
    """
    lines = code.splitlines(keepends=True)
    index = _target_line(lines, context.line_number)
    if index is None:
        triggers = [i for i, line in enumerate(lines) if _NAVIGATION_TRIGGER.search(line)]
        if not triggers:
            return _not_applied(code, "No navigation step found to wait after")
        index = triggers[-1]

    following = lines[index + 1] if index + 1 < len(lines) else ""
    if _EXISTING_WAIT.search(lines[index]) or _EXISTING_WAIT.search(following):
        return _not_applied(code, "Navigation wait already present")

    url = extract_expected_url(context.error_message)
    if url is None:
        for previous in reversed(lines[:index + 1]):
            goto = _GOTO_URL.search(previous)
            if goto:
                url = goto.group("url")
                break

    line = lines[index]
    indent = line[:len(line) - len(line.lstrip())]
    awaited = "await " if line.lstrip().startswith("await ") else ""
    if url:
        statement = f"expect(page).to_have_url({_quote(url)})"
        description = f"Added URL assertion for '{url}' after line {index + 1}"
        confidence = 0.7
    else:
        statement = 'page.wait_for_load_state("networkidle")'
        description = f"Added wait for network idle after line {index + 1}"
        confidence = 0.5

    if not line.endswith("\n"):
        lines[index] = line + "\n"
    lines.insert(index + 1, f"{indent}{awaited}{statement}\n")
    modified = "".join(lines)
    if url:
        modified = ensure_expect_import(modified)
    return FixResult(applied=True, code=modified, description=description, confidence=confidence)


# ═══════════════════════════════════════════════════════════════════════
# Web-first assertions
# ═══════════════════════════════════════════════════════════════════════

_ASSERT = r"^(?P<indent>\s*)assert\s+(?P<negated>not\s+)?(?P<awaited>await\s+)?(?P<target>.+?)"
_STRING = r"(?P<expected>\"[^\"]*\"|'[^']*')"

# (pattern, assertion, takes expected, negation allowed)
WEB_FIRST_CONVERSIONS = [
    (re.compile(_ASSERT + r"\.is_visible\(\)\s*$"), "to_be_visible", False),
    (re.compile(_ASSERT + r"\.is_hidden\(\)\s*$"), "to_be_hidden", False),
    (re.compile(_ASSERT + r"\.is_checked\(\)\s*$"), "to_be_checked", False),
    (re.compile(_ASSERT + r"\.is_enabled\(\)\s*$"), "to_be_enabled", False),
    (re.compile(_ASSERT + r"\.(?:text_content|inner_text)\(\)\s*==\s*" + _STRING + r"\s*$"),
     "to_have_text", True),
    (re.compile(_ASSERT + r"\.input_value\(\)\s*==\s*" + _STRING + r"\s*$"), "to_have_value", True),
]
_CONTAINS = re.compile(
    r"^(?P<indent>\s*)assert\s+" + _STRING
    + r"\s+in\s+(?P<awaited>await\s+)?(?P<target>.+?)\.(?:text_content|inner_text)\(\)\s*$")


def _convert_assert_line(line: str) -> Optional[str]:
    body = line.rstrip("\r\n")
    ending = line[len(body):]

    contains = _CONTAINS.match(body)
    if contains:
        awaited = "await " if contains.group("awaited") else ""
        return (f"{contains.group('indent')}{awaited}expect({contains.group('target')})"
                f".to_contain_text({contains.group('expected')}){ending}")

    for pattern, assertion, takes_expected in WEB_FIRST_CONVERSIONS:
        match = pattern.match(body)
        if not match:
            continue
        if match.group("negated") and takes_expected:
            return None
        method = f"not_{assertion}" if match.group("negated") else assertion
        argument = match.group("expected") if takes_expected else ""
        awaited = "await " if match.group("awaited") else ""
        return f"{match.group('indent')}{awaited}expect({match.group('target')}).{method}({argument}){ending}"
    return None


def ensure_expect_import(code: str) -> str:
    """Add ``from playwright.<api> import expect`` when the module lacks it."""
    if re.search(r"^\s*from\s+playwright\.\w+\s+import\s+[^\n]*\bexpect\b", code, re.MULTILINE):
        return code

    api = "async_api" if "async def" in code else "sync_api"
    lines = code.splitlines(keepends=True)
    insert_at = 0
    for i, line in enumerate(lines):
        if re.match(r"(?:import|from)\s+\w", line):
            insert_at = i + 1
    lines.insert(insert_at, f"from playwright.{api} import expect\n")
    return "".join(lines)


def convert_to_web_first_assertion(code: str, context: Optional[FixContext] = None) -> FixResult:
    """Rewrite one-shot ``assert`` checks as auto-retrying ``expect()`` assertions."""
    lines = code.splitlines(keepends=True)
    converted = 0
    for i, line in enumerate(lines):
        if "assert" not in line:
            continue
        replacement = _convert_assert_line(line)
        if replacement is not None:
            lines[i] = replacement
            converted += 1

    if not converted:
        return _not_applied(code, "No one-shot assertion found to convert")
    return FixResult(applied=True, code=ensure_expect_import("".join(lines)), confidence=0.85,
                     description=f"Converted {converted} assertion{'s' if converted != 1 else ''} "
                                 f"to web-first expect()")


# ═══════════════════════════════════════════════════════════════════════
# Timeouts
# ═══════════════════════════════════════════════════════════════════════

DEFAULT_ACTION_TIMEOUT = 30000
DEFAULT_EXPECT_TIMEOUT = 5000
_TIMEOUTABLE_CALL = re.compile(rf"\.(?:{'|'.join(AWAITABLE_METHODS)}|(?:not_)?to_\w+)\(")


def _closing_paren(text: str, open_index: int) -> Optional[int]:
    depth = 0
    quote = None
    for i in range(open_index, len(text)):
        char = text[i]
        if quote:
            if char == quote and text[i - 1] != "\\":
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
    return None


def apply_timeout_fix(code: str, context: FixContext) -> FixResult:
    """
    Raise the timeout of the last action or assertion call on the failing line.

    The new value is 1.5x the current one (from ``timeout=``, the error text,
    or Playwright's default), with the increase capped at
    ``context.max_timeout_increase`` milliseconds.
    """
    lines = code.splitlines(keepends=True)
    index = _target_line(lines, context.line_number)
    if index is None:
        return _not_applied(code, "No failing line to adjust timeout on")

    line = lines[index]
    calls = list(_TIMEOUTABLE_CALL.finditer(line))
    if not calls:
        return _not_applied(code, f"No action or assertion call on line {index + 1}")

    call = calls[-1]
    open_index = call.end() - 1
    close_index = _closing_paren(line, open_index)
    if close_index is None:
        return _not_applied(code, "Call spans multiple lines")

    args = line[open_index + 1:close_index]
    existing = re.search(r"\btimeout\s*=\s*(\d+)", args)
    from_error = re.search(r"Timeout (\d+)ms", context.error_message or "")
    if existing:
        current = int(existing.group(1))
    elif from_error:
        current = int(from_error.group(1))
    else:
        is_expect = call.group(0).lstrip(".").startswith(("to_", "not_to_"))
        current = DEFAULT_EXPECT_TIMEOUT if is_expect else DEFAULT_ACTION_TIMEOUT

    new_timeout = current + min(current // 2, context.max_timeout_increase)
    if new_timeout <= current:
        return _not_applied(code, "Timeout increase limit reached")

    if existing:
        new_args = args[:existing.start(1)] + str(new_timeout) + args[existing.end(1):]
    elif args.strip():
        new_args = f"{args.rstrip()}, timeout={new_timeout}"
    else:
        new_args = f"timeout={new_timeout}"

    lines[index] = line[:open_index + 1] + new_args + line[close_index:]
    return FixResult(applied=True, code="".join(lines), confidence=0.4,
                     description=f"Increased timeout from {current}ms to {new_timeout}ms "
                                 f"on line {index + 1}")


# ═══════════════════════════════════════════════════════════════════════
# Dispatch
# ═══════════════════════════════════════════════════════════════════════

FIX_TRANSFORMS: Dict[FixType, Callable[[str, FixContext], FixResult]] = {
    FixType.SELECTOR_REFINE: apply_selector_fix,
    FixType.ADD_EXACT: add_exact_to_locators,
    FixType.MISSING_AWAIT: fix_missing_await,
    FixType.NAVIGATION_WAIT: apply_navigation_fix,
    FixType.WEB_FIRST_ASSERTION: convert_to_web_first_assertion,
    FixType.TIMEOUT_INCREASE: apply_timeout_fix,
}


def apply_fix(code: str, fix_type: FixType, context: Optional[FixContext] = None) -> FixResult:
    """
    Apply one fix type to test source.

    Args:
        code: Full test module source
        fix_type: Fix to apply
        context: Failure details (line, error text, ARIA info)

    Returns:
        FixResult; deny-listed fix types are never applied
    """
    if fix_type in FORBIDDEN_FIXES:
        logger.warning(f"🚫 Refusing forbidden fix type: {fix_type.value}")
        return _not_applied(code, f"Fix type '{fix_type.value}' is forbidden")

    transform = FIX_TRANSFORMS.get(fix_type)
    if transform is None:
        return _not_applied(code, f"Unknown fix type: {fix_type.value}")
    return transform(code, context or FixContext())


# ═══════════════════════════════════════════════════════════════════════
# Writing fixes back
# ═══════════════════════════════════════════════════════════════════════

def validate_python_syntax(code: str, filename: str = "<test>") -> Tuple[bool, Optional[str]]:
    """Check that ``code`` parses as Python.

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        ast.parse(code, filename=filename)
        return True, None
    except SyntaxError as e:
        return False, f"Syntax validation failed: line {e.lineno}: {e.msg}"


class SourceFileUpdater:
    """Safely writes healed source back to test files."""

    def __init__(self, backup_dir: Optional[str] = None):
        """
        Args:
            backup_dir: Directory for backups; defaults to HEALING_BACKUP_DIR
                or a temp directory
        """
        backup_dir = backup_dir or settings.HEALING_BACKUP_DIR
        self.backup_dir = Path(backup_dir) if backup_dir else Path(tempfile.gettempdir()) / "journeyforge_backups"
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    def backup_test_file(self, file_path: str) -> str:
        """Create a timestamped backup of the test file.

        Returns:
            Path to the backup file

        Raises:
            FileNotFoundError: If the source file doesn't exist
            FixApplicationError: If backup creation fails
        """
        source_path = Path(file_path)
        if not source_path.exists():
            raise FileNotFoundError(f"Test file not found: {file_path}")

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        backup_path = self.backup_dir / f"{source_path.stem}_{timestamp}{source_path.suffix}"
        try:
            shutil.copy2(source_path, backup_path)
        except OSError as e:
            logger.error(f"❌ Failed to create backup: {e}")
            raise FixApplicationError(f"Failed to create backup of {file_path}: {e}") from e
        logger.info(f"💾 Created backup: {backup_path}")
        return str(backup_path)

    def write_source(self, file_path: str, code: str, create_backup: bool = True) -> Optional[str]:
        """
        Validate and atomically write ``code`` to ``file_path``.

        Args:
            file_path: Test file to overwrite
            code: New module source
            create_backup: Whether to back up the current file first

        Returns:
            Backup path, or None when no backup was made

        Raises:
            FixApplicationError: If the code does not parse or the write fails
        """
        is_valid, error_msg = validate_python_syntax(code, file_path)
        if not is_valid:
            raise FixApplicationError(f"Updated file has syntax errors: {error_msg}")

        backup_path = self.backup_test_file(file_path) if create_backup else None
        temp_file = f"{file_path}.tmp"
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                f.write(code)
            os.replace(temp_file, file_path)
        except OSError as e:
            if os.path.exists(temp_file):
                os.remove(temp_file)
            raise FixApplicationError(f"Failed to write {file_path}: {e}") from e
        return backup_path

    def restore_from_backup(self, file_path: str, backup_path: str) -> bool:
        if not Path(backup_path).exists():
            logger.error(f"❌ Backup file not found: {backup_path}")
            return False
        try:
            shutil.copy2(backup_path, file_path)
        except OSError as e:
            logger.error(f"❌ Failed to restore from backup: {e}")
            return False
        logger.info(f"♻️ Restored {file_path} from backup {backup_path}")
        return True

    def get_backup_info(self, file_path: str) -> List[Dict[str, object]]:
        """Backups of ``file_path``, newest first."""
        source = Path(file_path)
        backups = []
        for backup_file in self.backup_dir.glob(f"{source.stem}_*{source.suffix}"):
            stat = backup_file.stat()
            backups.append({
                "path": str(backup_file),
                "created": datetime.fromtimestamp(stat.st_mtime).isoformat(),
                "size": stat.st_size,
            })
        return sorted(backups, key=lambda b: b["path"], reverse=True)

    def cleanup_old_backups(self, retention_days: int = 7) -> int:
        """Delete backups older than ``retention_days``; returns the count removed."""
        cutoff = datetime.now().timestamp() - retention_days * 24 * 3600
        deleted = 0
        for backup_file in self.backup_dir.glob("*.py"):
            if backup_file.stat().st_mtime < cutoff:
                backup_file.unlink()
                deleted += 1
        if deleted:
            logger.info(f"🧹 Deleted {deleted} old backup(s) from {self.backup_dir}")
        return deleted
