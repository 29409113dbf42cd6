import pytest

from anihub.utils.similarity import Candidate, best_item, best_match, edit_distance, similarity


class TestEditDistance:

    def test_identical_strings(self):
        assert edit_distance("naruto", "naruto") == 0

    def test_insertions(self):
        assert edit_distance("naruto shippuden", "naruto") == 10

    def test_single_deletion(self):
        assert edit_distance("one piece", "onepiece") == 1

    def test_substitutions(self):
        assert edit_distance("kitten", "sitting") == 3

    def test_against_empty(self):
        assert edit_distance("bleach", "") == 6
        assert edit_distance("", "") == 0

    def test_argument_order_does_not_matter(self):
        assert edit_distance("flaw", "lawn") == edit_distance("lawn", "flaw") == 2


class TestSimilarity:

    @pytest.mark.parametrize("value", ["", "a", "Naruto", "Attack on Titan", "進撃の巨人"])
    def test_self_similarity_is_one(self, value):
        assert similarity(value, value) == 1.0

    def test_against_empty_string(self):
        assert similarity("bleach", "") == 0.0
        assert similarity("", "bleach") == 0.0

    def test_both_empty(self):
        assert similarity("", "") == 1.0

    def test_case_insensitive(self):
        assert similarity("Naruto", "naruto") == 1.0
        assert similarity("ONE PIECE", "one piece") == 1.0

    @pytest.mark.parametrize("a, b", [
        ("Naruto", "Naruto Shippuden"),
        ("one piece", "onepiece"),
        ("attack on titan", "death note"),
        ("Bleach", "Black Clover"),
    ])
    def test_symmetry(self, a, b):
        assert similarity(a, b) == similarity(b, a)

    @pytest.mark.parametrize("a, b", [
        ("x", "completely different title"),
        ("Naruto", "Boruto"),
        ("", "z"),
        ("abc", "abc"),
    ])
    def test_range(self, a, b):
        assert 0.0 <= similarity(a, b) <= 1.0

    def test_prefix_title(self):
        assert similarity("Naruto", "Naruto Shippuden") == pytest.approx(0.375)

    def test_missing_space(self):
        assert similarity("one piece", "onepiece") == pytest.approx(8 / 9)

    def test_unrelated_titles_score_low(self):
        score = similarity("attack on titan", "death note")
        assert score == pytest.approx(4 / 15)
        assert score < 0.3


class TestBestMatch:

    def test_exact_title_wins(self):
        result = best_match("naruto", ["Naruto", "Naruto Shippuden", "Naruto Movie"])
        assert result == Candidate(label="Naruto", score=1.0)

    def test_first_seen_wins_ties(self):
        result = best_match("abx", ["abc", "abd"])
        assert result.label == "abc"

    def test_rejected_below_threshold(self):
        assert best_match("attack on titan", ["death note"]) is None

    def test_accepted_at_threshold(self):
        assert best_match("ab", ["ax"], threshold=0.5) == Candidate(label="ax", score=0.5)

    def test_custom_threshold(self):
        assert best_match("Naruto", ["Naruto Shippuden"], threshold=0.5) is None
        assert best_match("Naruto", ["Naruto Shippuden"], threshold=0.3).label == "Naruto Shippuden"

    def test_zero_score_is_never_a_match(self):
        assert best_match("abc", ["xyz"], threshold=0.0) is None

    def test_zero_threshold_accepts_any_overlap(self):
        assert best_match("abc", ["xyz", "abz"], threshold=0.0).label == "abz"

    def test_no_candidates(self):
        assert best_match("naruto", []) is None

    def test_best_item_returns_source_item(self):
        catalog = [
            {"title": "Bleach", "link": "/anime/1"},
            {"title": "One Piece", "link": "/anime/2"},
        ]
        item, candidate = best_item("onepiece", catalog, key=lambda entry: entry["title"])
        assert item["link"] == "/anime/2"
        assert candidate.label == "One Piece"

    def test_candidate_is_immutable(self):
        candidate = Candidate(label="Naruto", score=1.0)
        with pytest.raises(AttributeError):
            candidate.score = 0.5
