"""
Tests for character n-gram tokenization.
"""

import pytest

from lshmatch.core.tokenizer import iter_ngrams, make_ngrams
from lshmatch.errors import ConfigurationError


class TestMakeNGrams:
    """Test n-gram set extraction."""

    def test_bigrams_of_simple_word(self):
        """Test that every adjacent pair is produced once."""
        assert make_ngrams("CAMPER", 2) == {"CA", "AM", "MP", "PE", "ER"}

    def test_duplicates_collapse(self):
        """Test that repeated n-grams are deduplicated."""
        assert make_ngrams("AAAAAABAAAAAAA", 2) == {"AA", "AB", "BA"}

    def test_default_length_is_two(self):
        """Test the default n-gram length."""
        assert make_ngrams("ABC") == {"AB", "BC"}

    def test_too_short_gives_empty_set(self):
        """Test strings shorter than n produce no n-grams."""
        assert make_ngrams("Z", 2) == frozenset()
        assert make_ngrams("", 1) == frozenset()
        assert make_ngrams("AB", 3) == frozenset()

    def test_exact_length_gives_single_ngram(self):
        """Test a string of exactly n code points is its own n-gram."""
        assert make_ngrams("FUBAR", 5) == {"FUBAR"}

    def test_steps_by_code_point(self):
        """Test multi-byte UTF-8 characters are never split."""
        assert make_ngrams("héllo", 2) == {"hé", "él", "ll", "lo"}
        assert make_ngrams("日本語", 2) == {"日本", "本語"}
        assert make_ngrams("😀😀x", 2) == {"😀😀", "😀x"}

    def test_every_ngram_has_length_n(self):
        """Test all n-grams have exactly n code points."""
        for n in (1, 2, 3, 4):
            assert all(len(g) == n for g in make_ngrams("Zürich Straße 12", n))

    def test_deterministic(self):
        """Test repeated calls agree."""
        assert make_ngrams("MARGARET THATCHER", 3) == make_ngrams("MARGARET THATCHER", 3)

    def test_invalid_length_rejected(self):
        """Test n < 1 is a configuration error."""
        with pytest.raises(ConfigurationError):
            make_ngrams("CAMPER", 0)


class TestIterNGrams:
    """Test ordered n-gram iteration."""

    def test_keeps_order_and_duplicates(self):
        """Test the raw window sequence."""
        assert list(iter_ngrams("ABAB", 2)) == ["AB", "BA", "AB"]
