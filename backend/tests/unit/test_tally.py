"""Unit tests for the vote tally engine"""
import itertools
from dataclasses import dataclass
from typing import Any, Union

import pytest

from voxen.services.tally import (
    MultipleChoice,
    NoContribution,
    SingleChoice,
    VotingType,
    Weighted,
    compute_results,
    empty_results,
    parse_ballot,
)


@dataclass
class Vote:
    votes: Any
    vote_power: Union[int, float] = 1


class TestEmptyResults:
    """Tests for zero-seeded results"""

    @pytest.mark.parametrize("n", [2, 3, 7])
    def test_one_zero_entry_per_option(self, n):
        results = empty_results(n)
        assert list(results.keys()) == [str(i) for i in range(n)]
        assert all(v == 0 for v in results.values())

    def test_no_votes_yields_seeded_results(self):
        assert compute_results("weighted", 4, []) == {"0": 0, "1": 0, "2": 0, "3": 0}


class TestParseBallot:
    """Tests for decoding stored vote payloads"""

    def test_single_choice(self):
        assert parse_ballot("single", {"option": 2}) == SingleChoice(2)

    def test_single_choice_string_index(self):
        assert parse_ballot("single", {"option": "1"}) == SingleChoice(1)

    def test_single_choice_missing_option(self):
        assert isinstance(parse_ballot("single", {"choice": 1}), NoContribution)

    def test_single_choice_rejects_bool(self):
        assert isinstance(parse_ballot("single", {"option": True}), NoContribution)

    def test_multiple_choice_dedupes(self):
        assert parse_ballot("multiple", [0, 2, 2]) == MultipleChoice((0, 2))

    def test_multiple_choice_requires_list(self):
        assert isinstance(parse_ballot("multiple", {"option": 0}), NoContribution)

    def test_weighted(self):
        ballot = parse_ballot("weighted", {"1": 0.75, "0": 0.25})
        assert ballot == Weighted(((0, 0.25), (1, 0.75)))

    def test_weighted_drops_negative_and_non_numeric(self):
        ballot = parse_ballot("weighted", {"0": -1, "1": "half", "2": 0.5})
        assert ballot == Weighted(((2, 0.5),))

    def test_json_text_payload(self):
        assert parse_ballot(VotingType.SINGLE, '{"option": 0}') == SingleChoice(0)

    def test_unparseable_text_payload(self):
        assert isinstance(parse_ballot("single", "{not json"), NoContribution)

    def test_unknown_voting_type(self):
        assert isinstance(parse_ballot("ranked", {"option": 0}), NoContribution)


class TestComputeResults:
    """Tests for per-type accumulation"""

    def test_single_choice_scenario(self):
        votes = [
            Vote({"option": 0}, 1),
            Vote({"option": 0}, 2),
            Vote({"option": 2}, 1),
        ]
        assert compute_results("single", 3, votes) == {"0": 3, "1": 0, "2": 1}

    def test_weighted_scenario(self):
        votes = [Vote({"0": 0.5, "1": 0.5}, 10)]
        assert compute_results("weighted", 2, votes) == {"0": 5, "1": 5}

    def test_multiple_choice_scenario(self):
        votes = [Vote([0, 1], 1)]
        assert compute_results("multiple", 3, votes) == {"0": 1, "1": 1, "2": 0}

    def test_multiple_choice_counts_full_power_per_option(self):
        votes = [Vote([0, 1, 2], 4)]
        assert compute_results("multiple", 3, votes) == {"0": 4, "1": 4, "2": 4}

    def test_integral_totals_are_ints(self):
        results = compute_results("single", 2, [Vote({"option": 1}, 2.0)])
        assert results["1"] == 2
        assert isinstance(results["1"], int)

    def test_out_of_range_option_is_ignored(self):
        votes = [Vote({"option": 5}, 1), Vote({"option": 1}, 1)]
        assert compute_results("single", 2, votes) == {"0": 0, "1": 1}

    def test_malformed_votes_contribute_nothing(self):
        votes = [
            Vote("garbage", 3),
            Vote({"option": 0}, 1),
            Vote(None, 5),
            Vote(["not", "an", "option"], 2),
        ]
        assert compute_results("single", 2, votes) == {"0": 1, "1": 0}

    def test_wrong_shape_for_voting_type_contributes_nothing(self):
        votes = [Vote([0, 1], 1), Vote({"option": 1}, 1)]
        assert compute_results("weighted", 2, votes) == {"0": 0, "1": 0}

    def test_invalid_vote_power_is_skipped(self):
        votes = [Vote({"option": 0}, None), Vote({"option": 0}, -2), Vote({"option": 0}, 1)]
        assert compute_results("single", 1, votes) == {"0": 1}

    def test_order_independent(self):
        votes = [
            Vote({"0": 0.1, "1": 0.9}, 3),
            Vote({"0": 0.7, "2": 0.3}, 1.1),
            Vote({"1": 1 / 3, "2": 2 / 3}, 7),
            Vote({"0": 0.2, "1": 0.2, "2": 0.6}, 0.3),
        ]
        expected = compute_results("weighted", 3, votes)
        for perm in itertools.permutations(votes):
            assert compute_results("weighted", 3, list(perm)) == expected

    def test_repeatable(self):
        votes = [Vote({"option": 0}, 1), Vote({"option": 1}, 2)]
        assert compute_results("single", 2, votes) == compute_results("single", 2, votes)
