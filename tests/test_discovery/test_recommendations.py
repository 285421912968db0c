"""Tests for local recommendation ranking and combining."""

import itertools

import pytest

from conftest import make_read, make_to_read
from leafnote.db.schemas import Recommendation, RecommendationSource
from leafnote.discovery.recommendations import (
    EMPTY_FALLBACK,
    PADDING_PLACEHOLDERS,
    combine,
    recommend,
    top_categories,
    top_rated,
)
from leafnote.discovery.titles import normalize_title


def _titles(recs):
    return [r.title for r in recs]


class TestRecommendRules:
    """Tests for each ranking rule."""

    def test_priority_order(self):
        """Test to-read items come before highly rated read items."""
        read = [make_read("Foundation", rating=5)]
        to_read = [make_to_read("Dune")]

        titles = _titles(recommend(read, to_read, 8))

        assert titles.index("Dune") < titles.index("Foundation")

    def test_to_read_newest_first_capped_at_three(self):
        """Test up to three to-read items by dateAdded descending."""
        to_read = [make_to_read(f"Book {i}", days_ago=i) for i in range(5)]

        recs = recommend([], to_read, 8)

        queued = [r for r in recs if r.source == RecommendationSource.FROM_TO_READ]
        assert _titles(queued) == ["Book 0", "Book 1", "Book 2"]

    def test_rating_floor(self):
        """Test a rating of 3 never qualifies as rated highly."""
        read = [make_read("Meh", rating=3), make_read("Great", rating=4)]

        recs = recommend(read, [], 8)

        top = [r for r in recs if r.source == RecommendationSource.FROM_TOP_RATED]
        assert _titles(top) == ["Great"]
        assert "Meh" not in _titles(recs)

    def test_top_rated_order(self):
        """Test rated items sort by rating then recency."""
        read = [
            make_read("Old Five", rating=5, days_ago=10),
            make_read("Four", rating=4, days_ago=0),
            make_read("New Five", rating=5, days_ago=1),
            make_read("Another Four", rating=4, days_ago=5),
        ]

        recs = recommend(read, [], 8)

        top = [r for r in recs if r.source == RecommendationSource.FROM_TOP_RATED]
        assert _titles(top) == ["New Five", "Old Five", "Four"]

    def test_already_queued_exclusion(self):
        """Test a title on both lists is recommended once, from the to-read rule."""
        read = [make_read("Dune", rating=5)]
        to_read = [make_to_read("dune")]

        recs = recommend(read, to_read, 8)

        matches = [r for r in recs if normalize_title(r.title) == "dune"]
        assert len(matches) == 1
        assert matches[0].source == RecommendationSource.FROM_TO_READ

    def test_genre_promotes_queued_book(self):
        """Test a queued book in a favourite category is promoted."""
        read = [make_read("Dune", rating=5, categories=["Science Fiction"])]
        to_read = [make_to_read(f"Queued {i}", days_ago=i) for i in range(3)]
        to_read.append(make_to_read("Hyperion", days_ago=9, categories=["science fiction"]))

        recs = recommend(read, to_read, 8)

        genre = [r for r in recs if r.source == RecommendationSource.FROM_SIMILAR_GENRE]
        assert _titles(genre) == ["Hyperion"]
        assert "Science Fiction" in genre[0].reason

    def test_genre_placeholder(self):
        """Test an 'Explore more' placeholder when nothing queued matches."""
        read = [
            make_read("Dune", rating=5, categories=["Science Fiction", "Classics"]),
            make_read("Emma", rating=4, categories=["Classics"]),
        ]

        recs = recommend(read, [], 8)

        genre = [r for r in recs if r.source == RecommendationSource.FROM_SIMILAR_GENRE]
        assert _titles(genre) == ["Explore more Classics", "Explore more Science Fiction"]
        assert genre[0].reason == "You seem to enjoy this genre"

    def test_empty_lists_fallback(self):
        """Test empty input gives the motivational fallback then padding."""
        recs = recommend([], [], 8)

        assert recs[0].title == EMPTY_FALLBACK.title
        assert recs[0].source == RecommendationSource.FALLBACK
        assert _titles(recs[1:]) == [p.title for p in PADDING_PLACEHOLDERS]

    def test_padding_added_after_real_items(self):
        """Test padding follows real suggestions and the motivational line does not."""
        recs = recommend([], [make_to_read("Dune")], 8)

        assert _titles(recs) == ["Dune"] + [p.title for p in PADDING_PLACEHOLDERS]

    def test_max_zero(self):
        """Test a non-positive cap returns nothing."""
        assert recommend([make_read("Dune", rating=5)], [], 0) == []
        assert recommend([], [], -3) == []

    def test_deterministic(self):
        """Test the same input always produces the same output."""
        read = [make_read("A", rating=5), make_read("B", rating=5)]
        to_read = [make_to_read("C"), make_to_read("D")]

        assert recommend(read, to_read, 8) == recommend(read, to_read, 8)


class TestRecommendProperties:
    """Cap and uniqueness over a grid of inputs."""

    READ = [
        make_read("Dune", rating=5, categories=["SF"]),
        make_read("Emma", rating=4, categories=["Classics"]),
        make_read("Ulysses", rating=3),
        make_read("Dune!", rating=4, categories=["SF"]),
        make_read("Middlemarch", rating=5, categories=["Classics"]),
    ]
    TO_READ = [
        make_to_read("Hyperion", categories=["SF"]),
        make_to_read("EMMA"),
        make_to_read("Persuasion", days_ago=2, categories=["Classics"]),
        make_to_read("Explore more SF"),
    ]

    @pytest.mark.parametrize("max_results", [0, 1, 2, 3, 5, 8, 20])
    @pytest.mark.parametrize("n_read,n_to_read", list(itertools.product(range(0, 6, 2), range(0, 5, 2))))
    def test_cap_and_uniqueness(self, max_results, n_read, n_to_read):
        """Test output never exceeds the cap and titles never repeat."""
        recs = recommend(self.READ[:n_read], self.TO_READ[:n_to_read], max_results)

        assert len(recs) <= max_results
        keys = [normalize_title(r.title) for r in recs]
        assert len(keys) == len(set(keys))


class TestHelpers:
    """Tests for ranking helpers."""

    def test_top_rated(self):
        """Test filtering and ordering of rated items."""
        read = [make_read("A", rating=4), make_read("B", rating=2), make_read("C", rating=5)]
        assert _titles(top_rated(read)) == ["C", "A"]

    def test_top_categories_ties_keep_first_seen(self):
        """Test category ties are broken by first-encountered order."""
        read = [
            make_read("A", categories=["Horror", "SF"]),
            make_read("B", categories=["SF", "Poetry"]),
            make_read("C", categories=["Poetry"]),
        ]
        assert top_categories(read) == ["SF", "Poetry"]

    def test_top_categories_missing(self):
        """Test items without categories contribute nothing."""
        assert top_categories([make_read("A")]) == []


class TestCombine:
    """Tests for combine."""

    def _rec(self, title, external_id=None, source=RecommendationSource.FROM_EXTERNAL):
        return Recommendation(title=title, reason="r", source=source, external_id=external_id)

    def test_external_before_local(self):
        """Test external suggestions come first."""
        result = combine([self._rec("A")], [self._rec("B", source=RecommendationSource.FROM_TO_READ)], 5)
        assert _titles(result) == ["A", "B"]

    def test_dedup_by_title(self):
        """Test a local title repeating an external one is dropped."""
        result = combine([self._rec("Dune", "x1")], [self._rec("dune.", source=RecommendationSource.FROM_TO_READ)], 5)
        assert _titles(result) == ["Dune"]

    def test_dedup_by_external_id(self):
        """Test entries sharing an external id are dropped."""
        result = combine([self._rec("Dune", "x1"), self._rec("Dune (Deluxe)", "x1")], [], 5)
        assert _titles(result) == ["Dune"]

    def test_cap(self):
        """Test the combined list respects the cap."""
        external = [self._rec(f"E{i}", f"id{i}") for i in range(4)]
        local = [self._rec(f"L{i}", source=RecommendationSource.FROM_TO_READ) for i in range(4)]
        assert _titles(combine(external, local, 5)) == ["E0", "E1", "E2", "E3", "L0"]
