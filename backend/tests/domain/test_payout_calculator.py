"""
Tests for club payout calculation.

Covers the worked May 2024 example, tier selection across clubs, skipping
of unknown clubs and the per-club partitions.
"""

from datetime import date
from decimal import Decimal

import pytest

from fitpass.domain.payout_calculator import (
    calculate_all_club_payouts,
    calculate_club_payout,
    summarize_payouts,
)
from fitpass.domain.payout_model import PayoutRates
from fitpass.domain.payout_validator import validate_payout_calculation
from fitpass.domain.usage_aggregator import UsageRecord

PERIOD = date(2024, 5, 1)
RATES = PayoutRates()


@pytest.fixture
def may_usage():
    """Club C: A unlimited x4 (1 gym), B unlimited x2 (3 gyms), D credits x5."""
    return [
        UsageRecord("user-a", "club-c", PERIOD, "unlimited", visit_count=4, unique_visit=True),
        UsageRecord("user-b", "club-c", PERIOD, "unlimited", visit_count=2, unique_visit=True),
        UsageRecord("user-b", "club-x", PERIOD, "unlimited", visit_count=1, unique_visit=True),
        UsageRecord("user-b", "club-y", PERIOD, "unlimited", visit_count=1, unique_visit=True),
        UsageRecord("user-d", "club-c", PERIOD, "credits", visit_count=5, unique_visit=True),
    ]


class TestCalculateClubPayout:
    def test_worked_example(self, may_usage):
        club_usage = [r for r in may_usage if r.club_id == "club-c"]

        calc = calculate_club_payout("club-c", "Club C", PERIOD, club_usage, may_usage, rates=RATES)

        assert calc.unlimited_amount == Decimal("2900")
        assert calc.unlimited_visits == 6
        assert calc.credits_amount == Decimal("450")
        assert calc.credits_visits == 5
        assert calc.total_amount == Decimal("3350")
        assert calc.total_visits == 11
        assert calc.unique_users == 3

        by_user = {u.user_id: u for u in calc.unlimited_users}
        assert by_user["user-a"].unique_gyms_count == 1
        assert by_user["user-a"].payout_per_visit == Decimal("550")
        assert by_user["user-a"].total_payout == Decimal("2200")
        assert by_user["user-b"].unique_gyms_count == 3
        assert by_user["user-b"].total_payout == Decimal("700")
        assert calc.credits_users[0].total_payout == Decimal("450")

    def test_precomputed_index_matches_scan(self, may_usage):
        club_usage = [r for r in may_usage if r.club_id == "club-c"]
        scanned = calculate_club_payout("club-c", "C", PERIOD, club_usage, may_usage, rates=RATES)
        indexed = calculate_club_payout(
            "club-c",
            "C",
            PERIOD,
            club_usage,
            may_usage,
            rates=RATES,
            unique_gyms_index={"user-a": 1, "user-b": 3, "user-d": 1},
        )
        assert scanned.total_amount == indexed.total_amount
        assert scanned.unlimited_users == indexed.unlimited_users

    def test_unlimited_only_club_has_empty_credits_side(self):
        usage = [UsageRecord("u1", "club-1", PERIOD, "unlimited", visit_count=3, unique_visit=True)]
        calc = calculate_club_payout("club-1", "One", PERIOD, usage, usage, rates=RATES)

        assert calc.credits_amount == Decimal("0")
        assert calc.credits_visits == 0
        assert calc.credits_users == []
        assert calc.total_amount == Decimal("1650")

    def test_credits_only_club_has_empty_unlimited_side(self):
        usage = [UsageRecord("u1", "club-1", PERIOD, "credits", visit_count=2, unique_visit=True)]
        calc = calculate_club_payout("club-1", "One", PERIOD, usage, usage, rates=RATES)

        assert calc.unlimited_amount == Decimal("0")
        assert calc.unlimited_users == []
        assert calc.total_amount == Decimal("180")

    def test_member_in_both_partitions_counted_once(self):
        usage = [
            UsageRecord("u1", "club-1", PERIOD, "unlimited", visit_count=1, unique_visit=True),
            UsageRecord("u1", "club-1", PERIOD, "credits", visit_count=1, unique_visit=True),
        ]
        calc = calculate_club_payout("club-1", "One", PERIOD, usage, usage, rates=RATES)

        assert len(calc.unlimited_users) == 1
        assert len(calc.credits_users) == 1
        assert calc.unique_users == 1
        assert calc.total_visits == 2

    def test_unlimited_row_without_unique_flag_pays_nothing(self):
        usage = [UsageRecord("u1", "club-1", PERIOD, "unlimited", visit_count=3, unique_visit=False)]
        calc = calculate_club_payout("club-1", "One", PERIOD, usage, usage, rates=RATES)

        assert calc.unlimited_users[0].unique_gyms_count == 0
        assert calc.unlimited_amount == Decimal("0")
        assert calc.unlimited_visits == 3

    def test_unknown_plan_type_is_ignored(self):
        usage = [UsageRecord("u1", "club-1", PERIOD, "corporate", visit_count=3, unique_visit=True)]
        calc = calculate_club_payout("club-1", "One", PERIOD, usage, usage, rates=RATES)

        assert calc.total_visits == 0
        assert calc.total_amount == Decimal("0")

    def test_zero_visit_rows_do_not_count_as_users(self):
        usage = [
            UsageRecord("u1", "club-1", PERIOD, "credits", visit_count=0, unique_visit=True),
            UsageRecord("u2", "club-1", PERIOD, "unlimited", visit_count=0, unique_visit=True),
        ]
        calc = calculate_club_payout("club-1", "One", PERIOD, usage, usage, rates=RATES)

        assert calc.total_visits == 0
        assert calc.unique_users == 0
        assert validate_payout_calculation(calc).valid
        assert summarize_payouts([calc]).unique_users == 0


class TestCalculateAllClubPayouts:
    def test_skips_clubs_missing_from_lookup(self, may_usage):
        calcs = calculate_all_club_payouts(PERIOD, {"club-c": {"name": "Club C"}}, may_usage, rates=RATES)

        assert [c.club_id for c in calcs] == ["club-c"]
        assert calcs[0].club_name == "Club C"
        # Tier still counts gyms the lookup does not include
        assert calcs[0].total_amount == Decimal("3350")

    def test_accepts_club_objects(self, may_usage):
        class _Club:
            def __init__(self, name):
                self.name = name

        clubs = {"club-c": _Club("C"), "club-x": _Club("X"), "club-y": _Club("Y")}
        calcs = calculate_all_club_payouts(PERIOD, clubs, may_usage, rates=RATES)

        assert {c.club_id: c.club_name for c in calcs} == {"club-c": "C", "club-x": "X", "club-y": "Y"}
        by_club = {c.club_id: c for c in calcs}
        assert by_club["club-x"].total_amount == Decimal("350")

    def test_club_without_usage_produces_no_row(self, may_usage):
        clubs = {"club-c": {"name": "C"}, "club-empty": {"name": "Empty"}}
        calcs = calculate_all_club_payouts(PERIOD, clubs, may_usage, rates=RATES)

        assert "club-empty" not in {c.club_id for c in calcs}

    def test_other_periods_are_ignored(self):
        usage = [
            UsageRecord("u1", "club-1", PERIOD, "unlimited", visit_count=1, unique_visit=True),
            UsageRecord("u1", "club-2", date(2024, 4, 1), "unlimited", visit_count=1, unique_visit=True),
        ]
        calcs = calculate_all_club_payouts(PERIOD, {"club-1": {"name": "1"}, "club-2": {"name": "2"}}, usage, rates=RATES)

        assert [c.club_id for c in calcs] == ["club-1"]
        assert calcs[0].unlimited_users[0].payout_per_visit == Decimal("550")

    def test_summarize_counts_distinct_members(self, may_usage):
        clubs = {"club-c": {"name": "C"}, "club-x": {"name": "X"}, "club-y": {"name": "Y"}}
        totals = summarize_payouts(calculate_all_club_payouts(PERIOD, clubs, may_usage, rates=RATES))

        assert totals.total_clubs == 3
        assert totals.total_amount == Decimal("4050")
        assert totals.credits_amount == Decimal("450")
        assert totals.total_visits == 13
        assert totals.unique_users == 3
