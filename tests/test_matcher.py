"""Tests for the two-tier matcher and its candidate pool."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from statement_recon.config import MatchingTier, ReconConfig
from statement_recon.matching import CandidatePool, Matcher
from statement_recon.matching.strategies import (
    DateWindowStrategy,
    ExactDateStrategy,
    entry_sort_key,
)
from statement_recon.models import Direction, MatchedEntry, NoMatch

INBOUND = Direction.INBOUND
OUTBOUND = Direction.OUTBOUND


@dataclass(frozen=True)
class Txn:
    posted_on: date
    amount: Decimal


def txn(amount, posted_on) -> Txn:
    return Txn(posted_on=posted_on, amount=Decimal(amount))


@pytest.fixture
def matcher() -> Matcher:
    return Matcher(ReconConfig())


class TestExactTier:
    def test_credit_matches_inbound_entry_settled_same_day(self, matcher, entry):
        candidate = entry("10", INBOUND, "1500.00", date(2024, 3, 5), date(2024, 3, 10))

        result = matcher.match(txn("1500.00", date(2024, 3, 10)), [candidate])

        assert isinstance(result, MatchedEntry)
        assert result.entry == candidate
        assert result.tier == "exact_date"
        assert result.date_distance == 0

    def test_due_date_also_counts_as_exact(self, matcher, entry):
        candidate = entry("10", OUTBOUND, "80.00", date(2024, 3, 10), date(2024, 3, 8))

        result = matcher.match(txn("-80.00", date(2024, 3, 10)), [candidate])

        assert result.is_match
        assert result.tier == "exact_date"

    def test_exact_beats_closer_window_candidate_with_lower_id(self, matcher, entry):
        window = entry("1", INBOUND, "100.00", date(2024, 3, 9))
        exact = entry("2", INBOUND, "100.00", date(2024, 3, 10))

        result = matcher.match(txn("100.00", date(2024, 3, 10)), [window, exact])

        assert result.entry.id == "2"

    def test_exact_ties_go_to_smallest_identifier(self, matcher, entry):
        candidates = [
            entry("30", INBOUND, "100.00", date(2024, 3, 10)),
            entry("4", INBOUND, "100.00", date(2024, 3, 10)),
            entry("12", INBOUND, "100.00", date(2024, 3, 10)),
        ]

        result = matcher.match(txn("100.00", date(2024, 3, 10)), candidates)

        assert result.entry.id == "4"


class TestWindowTier:
    def test_debit_matches_outbound_entry_two_days_off(self, matcher, entry):
        candidate = entry("7", OUTBOUND, "250.00", date(2024, 3, 10))

        result = matcher.match(txn("-250.00", date(2024, 3, 12)), [candidate])

        assert result.is_match
        assert result.tier == "date_window"
        assert result.date_distance == 2

    def test_settlement_date_takes_precedence_over_due_date(self, matcher, entry):
        # Due date is within the window, settlement date is not
        candidate = entry("7", OUTBOUND, "250.00", date(2024, 3, 11), date(2024, 3, 20))

        result = matcher.match(txn("-250.00", date(2024, 3, 12)), [candidate])

        assert isinstance(result, NoMatch)

    @pytest.mark.parametrize("offset, matches", [(3, True), (-3, True), (4, False), (-4, False)])
    def test_window_is_three_days_each_side(self, matcher, entry, offset, matches):
        posted = date(2024, 3, 15)
        candidate = entry("1", INBOUND, "10.00", date(2024, 3, 15 + offset))

        result = matcher.match(txn("10.00", posted), [candidate])

        assert result.is_match is matches

    def test_closest_date_wins_then_smallest_identifier(self, matcher, entry):
        candidates = [
            entry("1", INBOUND, "10.00", date(2024, 3, 13)),
            entry("9", INBOUND, "10.00", date(2024, 3, 16)),
            entry("5", INBOUND, "10.00", date(2024, 3, 14)),
        ]

        result = matcher.match(txn("10.00", date(2024, 3, 15)), candidates)

        assert result.entry.id == "5"
        assert result.date_distance == 1

        candidates.append(entry("3", INBOUND, "10.00", date(2024, 3, 16)))
        result = matcher.match(txn("10.00", date(2024, 3, 15)), candidates)
        assert result.entry.id == "3"


class TestEligibility:
    def test_no_candidate_within_tolerance(self, matcher, entry):
        candidates = [entry("1", INBOUND, "999.00", date(2024, 3, 10))]

        result = matcher.match(txn("999.99", date(2024, 3, 10)), candidates)

        assert isinstance(result, NoMatch)
        assert not result.is_match

    @pytest.mark.parametrize(
        "entry_amount, matches",
        [("100.00", True), ("100.009", True), ("99.991", True), ("100.01", False), ("99.99", False)],
    )
    def test_amount_tolerance_is_exclusive(self, matcher, entry, entry_amount, matches):
        candidate = entry("1", INBOUND, entry_amount, date(2024, 3, 10))

        result = matcher.match(txn("100.00", date(2024, 3, 10)), [candidate])

        assert result.is_match is matches

    def test_direction_must_follow_sign(self, matcher, entry):
        candidate = entry("1", OUTBOUND, "100.00", date(2024, 3, 10))

        assert not matcher.match(txn("100.00", date(2024, 3, 10)), [candidate]).is_match
        assert matcher.match(txn("-100.00", date(2024, 3, 10)), [candidate]).is_match

    def test_zero_amount_never_matches(self, matcher, entry):
        candidate = entry("1", OUTBOUND, "0.00", date(2024, 3, 10))

        assert isinstance(matcher.match(txn("0.00", date(2024, 3, 10)), [candidate]), NoMatch)

    def test_empty_pool(self, matcher):
        assert isinstance(matcher.match(txn("1.00", date(2024, 3, 10)), []), NoMatch)


class TestDeterminism:
    def test_same_input_same_decision_regardless_of_order(self, matcher, entry):
        candidates = [
            entry(str(i), INBOUND, "50.00", date(2024, 3, 10 + (i % 3)))
            for i in range(1, 12)
        ]
        posted = txn("50.00", date(2024, 3, 11))

        decisions = {matcher.match(posted, candidates).entry.id for _ in range(20)}
        decisions.add(matcher.match(posted, list(reversed(candidates))).entry.id)

        assert decisions == {"1"}

    def test_pool_is_not_mutated_by_match(self, matcher, entry):
        pool = CandidatePool([entry("1", INBOUND, "10.00", date(2024, 3, 10))])

        matcher.match(txn("10.00", date(2024, 3, 10)), pool)

        assert "1" in pool
        assert len(pool) == 1


class TestCandidatePool:
    def test_removed_entries_are_not_offered(self, matcher, entry):
        pool = CandidatePool(
            [
                entry("1", INBOUND, "10.00", date(2024, 3, 10)),
                entry("2", INBOUND, "10.00", date(2024, 3, 10)),
            ]
        )
        posted = txn("10.00", date(2024, 3, 10))

        first = matcher.match(posted, pool)
        pool.remove(first.entry.id)
        second = matcher.match(posted, pool)
        pool.remove(second.entry.id)

        assert (first.entry.id, second.entry.id) == ("1", "2")
        assert not matcher.match(posted, pool).is_match

    def test_discard_all_ignores_unknown_ids(self, entry):
        pool = CandidatePool([entry("1", INBOUND, "10.00", date(2024, 3, 10))])

        pool.discard_all(["1", "missing"])

        assert len(pool) == 0

    def test_candidates_ordered_by_identifier(self, entry):
        pool = CandidatePool(
            [entry(i, OUTBOUND, "1.00", date(2024, 3, 1)) for i in ("10", "2", "b", "a")]
        )

        assert [e.id for e in pool.candidates_for(OUTBOUND)] == ["2", "10", "a", "b"]
        assert pool.candidates_for(INBOUND) == []


class TestConfiguration:
    def test_disabled_window_tier_only_matches_exact(self, entry):
        config = ReconConfig()
        config.matching.tiers = [
            MatchingTier(name="exact_date"),
            MatchingTier(name="date_window", enabled=False),
        ]
        matcher = Matcher(config)
        candidate = entry("7", OUTBOUND, "250.00", date(2024, 3, 10))

        assert [s.name for s in matcher.strategies] == ["exact_date"]
        assert not matcher.match(txn("-250.00", date(2024, 3, 12)), [candidate]).is_match

    def test_unknown_tier_is_skipped(self):
        config = ReconConfig()
        config.matching.tiers = [MatchingTier(name="fuzzy"), MatchingTier(name="exact_date")]

        assert [s.name for s in Matcher(config).strategies] == ["exact_date"]

    def test_no_tiers_configured_uses_both(self):
        strategies = Matcher(ReconConfig()).strategies

        assert isinstance(strategies[0], ExactDateStrategy)
        assert isinstance(strategies[1], DateWindowStrategy)
        assert strategies[1].window_days == 3


def test_entry_sort_key_orders_numbers_numerically():
    assert sorted(["100", "20", "3", "x1"], key=entry_sort_key) == ["3", "20", "100", "x1"]
