"""
Tests for normalizer.py and edit_distance.py.
"""

import pytest
from lingotutor.tutor.normalizer import fold_german, normalize, normalize_for_compare, tokenize
from lingotutor.tutor.edit_distance import levenshtein, typo_budget


# ─── Normalize ───────────────────────────────────────────────────────────────

class TestNormalize:
    def test_lowercase_and_punctuation(self):
        assert normalize("  What's   your NAME? ") == "whats your name"

    def test_smart_apostrophe(self):
        assert normalize("I’m fine") == "im fine"

    def test_brackets_removed(self):
        assert normalize("My name is [Anna]") == "my name is anna"

    def test_inner_punctuation_leaves_single_space(self):
        assert normalize("a ( b") == "a b"

    def test_empty(self):
        assert normalize("") == ""
        assert normalize(None) == ""

    def test_only_punctuation(self):
        assert normalize("?!...") == ""

    @pytest.mark.parametrize("text", [
        "Hello, World!", "  Ich   heiße  Anna. ", "What’s (your) name?", "a ( b", "",
    ])
    def test_idempotent(self, text):
        once = normalize(text)
        assert normalize(once) == once


class TestTokenize:
    def test_split(self):
        assert tokenize("Der  Tisch!") == ["der", "tisch"]

    def test_empty(self):
        assert tokenize("   ") == []


class TestGermanFolding:
    def test_fold(self):
        assert fold_german("müde straße tür öl") == "muede strasse tuer oel"

    def test_compare_folds_for_german_only(self):
        assert normalize_for_compare("Müde", "de") == "muede"
        assert normalize_for_compare("Müde", "en") == "müde"

    def test_language_case_insensitive(self):
        assert normalize_for_compare("ß", " DE ") == "ss"


# ─── Edit Distance ───────────────────────────────────────────────────────────

class TestLevenshtein:
    def test_identical(self):
        assert levenshtein("hello", "hello") == 0

    def test_empty(self):
        assert levenshtein("", "abc") == 3
        assert levenshtein("abc", "") == 3

    def test_single_edits(self):
        assert levenshtein("helo", "hello") == 1
        assert levenshtein("hallo", "hello") == 1
        assert levenshtein("helloo", "hello") == 1

    def test_classic(self):
        assert levenshtein("kitten", "sitting") == 3

    @pytest.mark.parametrize("a,b", [("flaw", "lawn"), ("tisch", "tish"), ("", "x"), ("abc", "cba")])
    def test_symmetric(self, a, b):
        assert levenshtein(a, b) == levenshtein(b, a)


class TestTypoBudget:
    def test_short(self):
        assert typo_budget("hello") == 1
        assert typo_budget("abcdef") == 1

    def test_long(self):
        assert typo_budget("abcdefg") == 2
        assert typo_budget("good morning") == 2

    def test_empty(self):
        assert typo_budget("") == 1
