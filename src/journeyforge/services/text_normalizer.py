"""
Step text normalization.

Equivalent phrasings ("User clicked the Submit btn", "click submit button")
are reduced to a common form so that exact and fuzzy lookups compare like
with like. Only a fixed verb table is used for stemming; a general stemmer
merges too many unrelated words.
"""

import re
from dataclasses import dataclass, replace
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class NormalizeOptions:
    """Which pipeline stages run."""
    stem_verbs: bool = True
    expand_abbreviations: bool = True
    remove_stop_words: bool = False
    remove_actor_prefixes: bool = True
    lowercase: bool = True
    preserve_quoted: bool = True


DEFAULT_OPTIONS = NormalizeOptions()
CANONICAL_OPTIONS = replace(DEFAULT_OPTIONS, remove_stop_words=True)


class TextNormalizer:
    """Canonicalizes step text through a fixed pipeline.

    Pipeline: protect quoted substrings, lowercase, expand abbreviations
    (longest first, until stable), stem known verbs, optionally drop stop
    words, strip actor prefixes (until stable), collapse whitespace, restore
    quoted substrings. The pipeline is repeated until the output stops
    changing so ``normalize`` is idempotent.
    """

    VERB_STEMS: Dict[str, str] = {
        "clicking": "click", "clicked": "click", "clicks": "click",
        "filling": "fill", "filled": "fill", "fills": "fill",
        "entering": "fill", "entered": "fill", "enters": "fill",
        "typing": "fill", "typed": "fill", "types": "fill",
        "selecting": "select", "selected": "select", "selects": "select",
        "choosing": "select", "chose": "select", "chosen": "select", "chooses": "select",
        "checking": "check", "checked": "check", "checks": "check",
        "unchecking": "uncheck", "unchecked": "uncheck", "unchecks": "uncheck",
        "navigating": "navigate", "navigated": "navigate", "navigates": "navigate",
        "going": "navigate", "went": "navigate", "goes": "navigate",
        "visiting": "navigate", "visited": "navigate", "visits": "navigate",
        "opening": "navigate", "opened": "navigate", "opens": "navigate",
        "seeing": "see", "saw": "see", "seen": "see", "sees": "see",
        "verifying": "verify", "verified": "verify", "verifies": "verify",
        "confirming": "verify", "confirmed": "verify", "confirms": "verify",
        "ensuring": "verify", "ensured": "verify", "ensures": "verify",
        "waiting": "wait", "waited": "wait", "waits": "wait",
        "submitting": "submit", "submitted": "submit", "submits": "submit",
        "pressing": "press", "pressed": "press", "presses": "press",
        "hovering": "hover", "hovered": "hover", "hovers": "hover",
        "scrolling": "scroll", "scrolled": "scroll", "scrolls": "scroll",
        "focusing": "focus", "focused": "focus", "focuses": "focus",
        "dragging": "drag", "dragged": "drag", "drags": "drag",
        "dropping": "drop", "dropped": "drop", "drops": "drop",
        "clearing": "clear", "cleared": "clear", "clears": "clear",
        "uploading": "upload", "uploaded": "upload", "uploads": "upload",
        "downloading": "download", "downloaded": "download", "downloads": "download",
        "asserting": "assert", "asserted": "assert", "asserts": "assert",
        "expecting": "expect", "expected": "expect", "expects": "expect",
        "showing": "show", "showed": "show", "shown": "show", "shows": "show",
        "displaying": "display", "displayed": "display", "displays": "display",
        "hiding": "hide", "hid": "hide", "hidden": "hide", "hides": "hide",
        "enabling": "enable", "enabled": "enable", "enables": "enable",
        "disabling": "disable", "disabled": "disable", "disables": "disable",
    }

    ABBREVIATION_EXPANSIONS: Dict[str, str] = {
        # Abbreviations
        "btn": "button", "msg": "message", "err": "error", "pwd": "password",
        "usr": "user", "nav": "navigation", "pg": "page", "txt": "text",
        "num": "number", "val": "value", "img": "image", "pic": "picture",
        "lbl": "label", "chk": "checkbox", "chkbox": "checkbox", "cb": "checkbox",
        "rb": "radio", "dd": "dropdown", "sel": "select", "dlg": "dialog",
        "mdl": "modal", "lnk": "link", "tbl": "table", "col": "column",
        "hdr": "header", "ftr": "footer", "sec": "section",
        # UI element synonyms
        "textbox": "field", "text field": "field", "text input": "field",
        "input field": "field", "inputbox": "field",
        "combobox": "dropdown", "combo box": "dropdown", "selectbox": "dropdown",
        "select box": "dropdown", "picker": "dropdown", "listbox": "dropdown",
        "list box": "dropdown",
        # Action synonyms
        "sign in": "login", "log in": "login", "signin": "login",
        "sign out": "logout", "log out": "logout", "signout": "logout",
        # Element names
        "submit button": "submit", "cancel button": "cancel", "ok button": "ok",
        "close button": "close", "save button": "save", "delete button": "delete",
        "edit button": "edit", "add button": "add", "remove button": "remove",
        "search button": "search", "search box": "search field",
        "search bar": "search field",
    }

    STOP_WORDS = frozenset([
        "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare",
        "ought", "used", "to", "of", "in", "for", "on", "with", "at", "by",
        "from", "up", "about", "into", "through", "during", "before", "after",
        "above", "below", "between", "under", "again", "further", "then",
        "once", "here", "there", "when", "where", "why", "how", "all", "each",
        "few", "more", "most", "other", "some", "such", "no", "nor", "not",
        "only", "own", "same", "so", "than", "too", "very", "just", "and",
    ])

    ACTOR_PREFIXES = [
        re.compile(r"^user\s+", re.IGNORECASE),
        re.compile(r"^the user\s+", re.IGNORECASE),
        re.compile(r"^i\s+", re.IGNORECASE),
        re.compile(r"^we\s+", re.IGNORECASE),
        re.compile(r"^they\s+", re.IGNORECASE),
        re.compile(r"^customer\s+", re.IGNORECASE),
        re.compile(r"^visitor\s+", re.IGNORECASE),
        re.compile(r"^admin\s+", re.IGNORECASE),
        re.compile(r"^administrator\s+", re.IGNORECASE),
    ]

    QUOTED_PATTERN = re.compile(r"(['\"])([^'\"]*)\1")
    # NUL-delimited so the placeholder survives lowercasing and never collides with step text.
    PLACEHOLDER_PATTERN = re.compile(r"\x00(\d+)\x00")
    MAX_PASSES = 10

    def __init__(self):
        # Longest key first so "submit button" wins over "btn"-style fragments.
        self._expansions: List[Tuple[re.Pattern, str]] = [
            (re.compile(r"\b" + re.escape(abbr) + r"\b", re.IGNORECASE), expansion)
            for abbr, expansion in sorted(self.ABBREVIATION_EXPANSIONS.items(),
                                          key=lambda kv: len(kv[0]), reverse=True)
        ]

    def normalize(self, text: str, options: NormalizeOptions = DEFAULT_OPTIONS) -> str:
        """Normalize step text.

        Args:
            text: Raw step text
            options: Pipeline switches

        Returns:
            Normalized text; quoted literals are returned verbatim.
        """
        result = text
        for _ in range(self.MAX_PASSES):
            next_result = self._single_pass(result, options)
            if next_result == result:
                break
            result = next_result
        return result

    def canonical_form(self, text: str) -> str:
        """Most aggressive normalization (stop words removed)."""
        return self.normalize(text, CANONICAL_OPTIONS)

    def light_normalization(self, text: str) -> str:
        """Default normalization, stop words kept."""
        return self.normalize(text, DEFAULT_OPTIONS)

    def are_steps_equivalent(self, first: str, second: str) -> bool:
        return self.canonical_form(first) == self.canonical_form(second)

    def all_normalizations(self, text: str) -> List[str]:
        """Distinct normalizations of a step, least to most aggressive."""
        lowered = text.lower().strip()
        variants = [
            lowered,
            self.light_normalization(text),
            self.canonical_form(text),
            self.remove_actor_prefixes(lowered),
        ]
        return list(dict.fromkeys(variants))

    def stem_word(self, word: str) -> str:
        lower = word.lower()
        return self.VERB_STEMS.get(lower, lower)

    def expand_abbreviations(self, text: str) -> str:
        # An expansion can complete a longer key ("save btn" -> "save button" -> "save").
        result = text.lower()
        while True:
            expanded = result
            for pattern, expansion in self._expansions:
                expanded = pattern.sub(expansion, expanded)
            if expanded == result:
                return result
            result = expanded

    def remove_actor_prefixes(self, text: str) -> str:
        result = text.strip()
        while True:
            stripped = result
            for pattern in self.ACTOR_PREFIXES:
                stripped = pattern.sub("", stripped)
            stripped = stripped.strip()
            if stripped == result:
                return result
            result = stripped

    def remove_stop_words(self, text: str) -> str:
        return " ".join(w for w in text.split() if w.lower() not in self.STOP_WORDS)

    def _single_pass(self, text: str, options: NormalizeOptions) -> str:
        # NUL is reserved for quote placeholders.
        result = text.replace("\x00", "").strip()

        quotes: List[str] = []
        if options.preserve_quoted:
            result, quotes = self._protect_quotes(result)

        if options.lowercase:
            result = result.lower()

        if options.expand_abbreviations:
            result = self.expand_abbreviations(result)

        if options.stem_verbs:
            result = " ".join(
                word if re.search(r"[^a-z]", word) else self.stem_word(word)
                for word in result.split()
            )

        if options.remove_stop_words:
            result = self.remove_stop_words(result)

        # Last, so prefixes exposed by expansion ("usr") or stop words ("the admin") go too.
        if options.remove_actor_prefixes:
            result = self.remove_actor_prefixes(result)

        result = re.sub(r"\s+", " ", result).strip()

        if options.preserve_quoted:
            result = self._restore_quotes(result, quotes)

        return result

    def _protect_quotes(self, text: str) -> Tuple[str, List[str]]:
        quotes: List[str] = []

        def _stash(match: re.Match) -> str:
            quotes.append(match.group(0))
            return f"\x00{len(quotes) - 1}\x00"

        return self.QUOTED_PATTERN.sub(_stash, text), quotes

    def _restore_quotes(self, text: str, quotes: List[str]) -> str:
        def _restore(match: re.Match) -> str:
            index = int(match.group(1))
            return quotes[index] if index < len(quotes) else match.group(0)

        return self.PLACEHOLDER_PATTERN.sub(_restore, text)


_default_normalizer = TextNormalizer()


def normalize(text: str, options: NormalizeOptions = DEFAULT_OPTIONS) -> str:
    """Normalize step text with the shared normalizer."""
    return _default_normalizer.normalize(text, options)


def canonical_form(text: str) -> str:
    return _default_normalizer.canonical_form(text)


def are_steps_equivalent(first: str, second: str) -> bool:
    return _default_normalizer.are_steps_equivalent(first, second)
