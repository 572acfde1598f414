"""Unit tests for the core pattern library and inline step hints."""

import pytest

from journeyforge.core.models import (
    Action,
    ActionType,
    LocatorSpec,
    LocatorStrategy,
    StepHints,
    ToastType,
    ValueType,
)
from journeyforge.services.pattern_library import (
    ALL_PATTERNS,
    create_value_from_text,
    find_matching_patterns,
    get_all_pattern_names,
    get_pattern,
    get_pattern_count_by_category,
    match_core_pattern,
    parse_selector_to_locator,
)
from journeyforge.services.step_hints import (
    action_from_hints,
    apply_hints,
    build_locator_from_hints,
    contains_hints,
    extract_hints,
    parse_module_hint,
    remove_hints,
)


class TestCorePatterns:
    """Test cases for deterministic phrase patterns."""

    def test_click_quoted_button(self):
        """Test a quoted button click resolves to a named role locator."""
        pattern, action = match_core_pattern("User clicks the 'Submit' button")
        assert pattern.name == "click-button-quoted"
        assert action.type is ActionType.CLICK
        assert action.locator == LocatorSpec(LocatorStrategy.ROLE, "button", {"name": "Submit"})

    def test_should_see_text(self):
        """Test a visibility assertion on quoted text."""
        pattern, action = match_core_pattern("User should see 'Welcome back'")
        assert action.type is ActionType.EXPECT_VISIBLE
        assert action.locator == LocatorSpec(LocatorStrategy.TEXT, "Welcome back")

    def test_navigate_to_url(self):
        """Test navigation waits for load."""
        _, action = match_core_pattern("User navigates to /login")
        assert action.type is ActionType.GOTO
        assert action.url == "/login"
        assert action.wait_for_load is True

    def test_go_back_is_not_navigation(self):
        """Test specific shapes win over generic navigation."""
        pattern, action = match_core_pattern("User goes back")
        assert pattern.name == "go-back"
        assert action.type is ActionType.GO_BACK

    def test_login_as_role(self):
        """Test auth module call with the role as argument."""
        _, action = match_core_pattern("User logs in as an Admin")
        assert action.type is ActionType.CALL_MODULE
        assert (action.module, action.method) == ("auth", "loginAs")
        assert action.args == ("admin",)

    def test_fill_quoted_value(self):
        """Test a literal value typed into a labelled field."""
        _, action = match_core_pattern("User enters 'test@example.com' in 'Email' field")
        assert action.type is ActionType.FILL
        assert action.locator == LocatorSpec(LocatorStrategy.LABEL, "Email")
        assert action.value.type is ValueType.LITERAL
        assert action.value.value == "test@example.com"

    def test_fill_actor_value(self):
        """Test actor references in fill steps."""
        _, action = match_core_pattern("User enters {{email}} in 'Email' field")
        assert action.value.type is ValueType.ACTOR
        assert action.value.value == "email"

    def test_select_from_named_dropdown_unquotes_label(self):
        """Test the dropdown label is taken without quotes."""
        _, action = match_core_pattern("User selects 'Canada' from the 'Country' dropdown")
        assert action.type is ActionType.SELECT
        assert action.option == "Canada"
        assert action.locator.value == "Country"

    def test_wait_seconds(self):
        """Test waits are expressed in milliseconds."""
        _, action = match_core_pattern("Wait 3 seconds")
        assert action.type is ActionType.WAIT_FOR_TIMEOUT
        assert action.ms == 3000

    def test_success_toast(self):
        """Test toast expectations carry type and message."""
        _, action = match_core_pattern("A success toast with 'Saved' appears")
        assert action.type is ActionType.EXPECT_TOAST
        assert action.toast_type is ToastType.SUCCESS
        assert action.message == "Saved"

    def test_press_enter(self):
        """Test fixed key presses."""
        _, action = match_core_pattern("Press Enter")
        assert action == Action(ActionType.PRESS, key="Enter")

    def test_upload_files(self):
        """Test comma-separated files in an upload step."""
        _, action = match_core_pattern("User uploads 'a.pdf, b.pdf' to the 'Attachments' field")
        assert action.type is ActionType.UPLOAD
        assert action.files == ("a.pdf", "b.pdf")
        assert action.locator.value == "Attachments"

    def test_unrecognized_step(self):
        """Test that free-form text matches nothing."""
        assert match_core_pattern("User does the thing") is None

    def test_surrounding_whitespace_ignored(self):
        """Test steps are trimmed before matching."""
        assert match_core_pattern("   User navigates to /home  ") is not None


class TestPatternHelpers:
    """Test cases for value classification and pattern lookup."""

    @pytest.mark.parametrize("text,value_type,value", [
        ("{{email}}", ValueType.ACTOR, "email"),
        ("${runId}", ValueType.RUN_ID, "${runId}"),
        ("$user.email", ValueType.TEST_DATA, "user.email"),
        ("order-${runId}-${suffix}", ValueType.GENERATED, "order-${runId}-${suffix}"),
        ("plain text", ValueType.LITERAL, "plain text"),
    ])
    def test_create_value_from_text(self, text, value_type, value):
        """Test value syntax classification."""
        spec = create_value_from_text(text)
        assert spec.type is value_type
        assert spec.value == value

    def test_parse_selector_to_locator(self):
        """Test element descriptions become locators."""
        assert parse_selector_to_locator("the Login button") == \
            LocatorSpec(LocatorStrategy.ROLE, "button", {"name": "Login"})
        assert parse_selector_to_locator("Help link").value == "link"
        assert parse_selector_to_locator("Email field") == LocatorSpec(LocatorStrategy.LABEL, "Email")
        assert parse_selector_to_locator("Welcome").strategy is LocatorStrategy.TEXT

    def test_pattern_names_unique(self):
        """Test every pattern can be looked up by name."""
        names = get_all_pattern_names()
        assert len(names) == len(set(names)) == len(ALL_PATTERNS)
        assert get_pattern("go-back") is not None
        assert get_pattern("no-such-pattern") is None

    def test_category_counts(self):
        """Test counts by category sum to the pattern total."""
        counts = get_pattern_count_by_category()
        assert sum(counts.values()) == len(ALL_PATTERNS)
        assert counts["click"] >= 6

    def test_find_matching_patterns_lists_all(self):
        """Test that overlapping shapes are all reported."""
        names = find_matching_patterns("User clicks the 'Submit' button")
        assert "click-button-quoted" in names
        assert "click-element-generic" in names


class TestStepHints:
    """Test cases for inline locator hints."""

    def test_extract_testid_hint(self):
        """Test hints are split off the step text."""
        clean, hints, warnings = extract_hints("Click the save icon (testid=save-btn)")
        assert clean == "Click the save icon"
        assert hints.testid == "save-btn"
        assert warnings == []

    def test_extract_multiple_hints(self):
        """Test typed hint values."""
        _, hints, _ = extract_hints('Click it (role=button, label="Save changes", exact=true, timeout=5000)')
        assert hints.role == "button"
        assert hints.label == "Save changes"
        assert hints.exact is True
        assert hints.timeout == 5000

    def test_invalid_role_kept_with_warning(self):
        """Test unknown ARIA roles are honored but reported."""
        _, hints, warnings = extract_hints("Click it (role=bogus)")
        assert hints.role == "bogus"
        assert "Invalid ARIA role: bogus" in warnings

    def test_unknown_and_invalid_hints(self):
        """Test unknown keys and malformed values are dropped."""
        _, hints, warnings = extract_hints("Click it (color=red, level=9)")
        assert hints.is_empty
        assert "Unknown hint type: color" in warnings
        assert "Invalid value for hint level: 9" in warnings

    def test_no_hints(self):
        """Test text without hints is returned unchanged."""
        text = "User clicks (the) button"
        assert not contains_hints(text)
        assert extract_hints(text) == (text, StepHints(), [])

    def test_remove_hints(self):
        """Test whitespace is collapsed after removal."""
        assert remove_hints("Click  (testid=a)  now") == "Click now"

    def test_parse_module_hint(self):
        """Test module.method splitting."""
        assert parse_module_hint("auth.login") == ("auth", "login")
        assert parse_module_hint("auth") is None

    def test_locator_priority(self):
        """Test testid wins over role, role over label."""
        assert build_locator_from_hints(StepHints(testid="t", role="button")).strategy is LocatorStrategy.TESTID
        role = build_locator_from_hints(StepHints(role="heading", label="Title", level=2))
        assert role == LocatorSpec(LocatorStrategy.ROLE, "heading", {"name": "Title", "level": 2})
        assert build_locator_from_hints(StepHints(text="Hi", exact=True)) == \
            LocatorSpec(LocatorStrategy.TEXT, "Hi", {"exact": True})
        assert build_locator_from_hints(StepHints(timeout=10)) is None

    def test_apply_hints_overrides_locator(self):
        """Test hints replace the inferred locator."""
        action = Action(ActionType.CLICK, locator=LocatorSpec(LocatorStrategy.TEXT, "Save"))
        hinted = apply_hints(action, StepHints(testid="save", timeout=2000))
        assert hinted.locator == LocatorSpec(LocatorStrategy.TESTID, "save")
        assert hinted.timeout == 2000

    def test_apply_hints_skips_locatorless_actions(self):
        """Test locator hints do not attach to navigation."""
        action = Action(ActionType.GOTO, url="/home")
        hinted = apply_hints(action, StepHints(testid="x", wait="networkidle"))
        assert hinted.locator is None
        assert hinted.wait_for_load is True

    def test_apply_module_hint(self):
        """Test the module hint only rewrites module calls."""
        action = Action(ActionType.CALL_MODULE, module="auth", method="login")
        hinted = apply_hints(action, StepHints(module="sso.signIn"))
        assert (hinted.module, hinted.method) == ("sso", "signIn")

    def test_apply_hints_leaves_blocked(self):
        """Test blocked actions are never rewritten."""
        blocked = Action.blocked("no match", "User does the thing")
        assert apply_hints(blocked, StepHints(testid="x")) is blocked

    def test_action_from_hints(self):
        """Test verb keywords choose the action for hint-only steps."""
        fill = action_from_hints("Type 'hello' here", StepHints(label="Comment"))
        assert fill.type is ActionType.FILL
        assert fill.value.value == "hello"
        assert action_from_hints("Make sure it is visible", StepHints(testid="x")).type is ActionType.EXPECT_VISIBLE
        assert action_from_hints("Do it", StepHints(testid="x")).type is ActionType.CLICK
        assert action_from_hints("Do it", StepHints()) is None
