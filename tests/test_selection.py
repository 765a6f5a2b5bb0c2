import random
from collections import Counter

import pytest

from coach.selection import SelectionExhausted, SelectionPool, sample_distinct, select

pytestmark = pytest.mark.unit


class TestSelect:
    def test_all_excluded_is_exhausted(self):
        """Should report exhaustion instead of returning an excluded item."""
        pool = SelectionPool.excluding(["a", "b", "c"], {"a", "b", "c"})

        with pytest.raises(SelectionExhausted):
            select(pool, random.Random(0))

    def test_empty_pool_is_exhausted(self):
        """Should fail straight away for an empty pool."""
        with pytest.raises(SelectionExhausted, match="empty"):
            select(SelectionPool([]))

    def test_never_returns_excluded_item(self):
        """Should never return the excluded item over many trials."""
        items = list(range(10))
        pool = SelectionPool.excluding(items, {7})
        rng = random.Random(42)

        picks = Counter(select(pool, rng) for _ in range(1000))

        assert 7 not in picks
        assert set(picks) == set(items) - {7}

    def test_attempt_budget(self):
        """Should draw exactly max_attempts times before giving up."""
        draws = []

        def excluded(item):
            draws.append(item)
            return True

        pool = SelectionPool(["a", "b"], is_excluded=excluded, max_attempts=4)
        with pytest.raises(SelectionExhausted):
            select(pool, random.Random(1))

        assert len(draws) == 4

    def test_key_based_exclusion(self):
        """Should apply the exclusion list to the key of each item."""
        pages = [("1", "Home"), ("2", "Phrasal verbs")]
        pool = SelectionPool.excluding(pages, {"Home"}, key=lambda p: p[1], max_attempts=50)

        assert select(pool, random.Random(3)) == ("2", "Phrasal verbs")


class TestSampleDistinct:
    def test_no_duplicates_by_key(self):
        """Should take each key at most once."""
        items = ["Set up", "set up", "carry out", "roll out"]
        chosen = sample_distinct(SelectionPool(items), 4, random.Random(5), key=str.lower)

        assert len(chosen) == 3
        assert len({c.lower() for c in chosen}) == 3

    def test_skips_excluded(self):
        """Should leave excluded items out."""
        pool = SelectionPool.excluding(["a", "b", "c", "d"], {"a", "b"})
        chosen = sample_distinct(pool, 5, random.Random(5))

        assert sorted(chosen) == ["c", "d"]

    def test_caps_at_k(self):
        """Should return exactly k items when the pool is large enough."""
        chosen = sample_distinct(SelectionPool(list(range(20))), 5, random.Random(9))

        assert len(chosen) == 5
        assert len(set(chosen)) == 5
