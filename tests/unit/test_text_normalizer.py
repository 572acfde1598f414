"""Unit tests for step text normalization and similarity scoring."""

import itertools

import pytest

from journeyforge.services.similarity_scorer import SimilarityScorer, calculate_similarity, levenshtein_distance
from journeyforge.services.text_normalizer import (
    TextNormalizer,
    are_steps_equivalent,
    canonical_form,
    normalize,
)


class TestTextNormalizer:
    """Test cases for TextNormalizer."""

    @pytest.fixture
    def normalizer(self):
        return TextNormalizer()

    def test_normalize_full_pipeline(self, normalizer):
        """Test actor prefix, abbreviation expansion and verb stemming together."""
        assert normalizer.normalize("User clicked the Submit btn") == "click the submit"

    def test_canonical_form_drops_stop_words(self, normalizer):
        """Test that the canonical form removes stop words."""
        assert normalizer.canonical_form("User clicked the Submit btn") == "click submit"

    def test_quoted_text_is_preserved(self, normalizer):
        """Test that quoted literals survive lowercasing and expansion."""
        result = normalizer.normalize("User enters 'Btn Value' in the Pwd field")
        assert "'Btn Value'" in result
        assert result.startswith("fill 'Btn Value' in the password field")

    def test_normalize_is_idempotent(self, normalizer):
        """Test that normalizing twice gives the same result."""
        once = normalizer.normalize("The user went to the Settings pg and clicked Save btn")
        assert normalizer.normalize(once) == once

    def test_normalize_idempotent_on_generated_steps(self, normalizer):
        """Test normalize and canonical_form are fixpoints across stacked prefixes and abbreviations."""
        prefixes = ["", "user ", "the user ", "I ", "usr ", "user " * 7, "the admin the admin "]
        verbs = ["clicks", "enters", "goes to", "sees"]
        targets = ['the "Save" button', "btn", "the login pg", "'Email' field",
                   "save button button button button button button"]

        for prefix, verb, target in itertools.product(prefixes, verbs, targets):
            text = f"{prefix}{verb} {target}"
            once = normalizer.normalize(text)
            assert normalizer.normalize(once) == once, text
            canonical = normalizer.canonical_form(text)
            assert normalizer.canonical_form(canonical) == canonical, text

    def test_stacked_actor_prefixes_removed_in_one_call(self, normalizer):
        """Test repeated and abbreviated actor prefixes all go."""
        assert normalizer.remove_actor_prefixes("User the user I click save") == "click save"
        assert normalizer.normalize("usr clicks save") == "click save"
        assert normalizer.canonical_form("the admin the admin clicks save") == "click save"

    def test_expansion_chains_resolve(self, normalizer):
        """Test an expansion that completes a longer key is expanded again."""
        assert normalizer.expand_abbreviations("save btn") == "save"
        assert normalizer.expand_abbreviations("save button button button") == "save"

    def test_nul_in_step_text(self, normalizer):
        """Test placeholder-like text in the step never breaks quote restoration."""
        assert normalizer.normalize("User clicks \x000\x00") == "click 0"
        assert normalizer.normalize("User clicks \x007\x00 and 'Save'") == "click 7 and 'Save'"
        assert normalizer._restore_quotes("\x003\x00", []) == "\x003\x00"

    def test_actor_prefixes_removed(self, normalizer):
        """Test removal of leading actor words."""
        assert normalizer.remove_actor_prefixes("I click save") == "click save"
        assert normalizer.remove_actor_prefixes("Customer opens cart") == "opens cart"

    def test_stem_word_only_uses_verb_table(self, normalizer):
        """Test that unknown words are only lowercased."""
        assert normalizer.stem_word("Navigating") == "navigate"
        assert normalizer.stem_word("Buttons") == "buttons"

    def test_sign_in_synonym(self, normalizer):
        """Test multi-word action synonyms."""
        assert normalizer.light_normalization("User signs in") == "signs in"
        assert normalizer.light_normalization("Sign in") == "login"

    def test_all_normalizations_distinct(self, normalizer):
        """Test that variants are de-duplicated and ordered."""
        variants = normalizer.all_normalizations("User clicks the Save btn")
        assert variants[0] == "user clicks the save btn"
        assert len(variants) == len(set(variants))

    def test_module_level_helpers(self):
        """Test the shared-normalizer convenience functions."""
        assert normalize("User clicks Save") == "click save"
        assert canonical_form("click the save") == "click save"
        assert are_steps_equivalent("User clicked the Save btn", "click save")


class TestSimilarityScorer:
    """Test cases for SimilarityScorer."""

    @pytest.fixture
    def scorer(self):
        return SimilarityScorer()

    def test_identical_strings(self, scorer):
        """Test that identical strings score 1.0, ignoring case."""
        assert scorer.calculate_similarity("Click Save", "click save") == 1.0

    def test_empty_strings(self, scorer):
        """Test empty-string edge cases."""
        assert scorer.calculate_similarity("", "") == 1.0
        assert scorer.calculate_similarity("abc", "") == 0.0

    def test_levenshtein_distance(self, scorer):
        """Test the edit distance, cached on the unordered pair."""
        assert scorer.levenshtein_distance("kitten", "sitting") == 3
        assert scorer.levenshtein_distance("sitting", "kitten") == 3
        assert levenshtein_distance("flaw", "lawn") == 2

    def test_similarity_ratio(self, scorer):
        """Test similarity as 1 - distance / longest length."""
        assert scorer.calculate_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_find_best_match(self, scorer):
        """Test best candidate selection with a threshold."""
        best = scorer.find_best_match("click save", ["click cancel", "click sav", "open menu"])
        assert best[0] == "click sav"
        assert scorer.find_best_match("click save", ["open menu"], threshold=0.9) is None

    def test_rank_candidates_sorted(self, scorer):
        """Test candidates are ranked by descending similarity."""
        ranked = scorer.rank_candidates("save", ["saves", "delete", "save"])
        scores = [score for _, score in ranked]
        assert ranked[0][0] == "save"
        assert scores == sorted(scores, reverse=True)

    def test_module_level_similarity(self):
        """Test the shared scorer helper."""
        assert calculate_similarity("abc", "abd") == pytest.approx(2 / 3)
