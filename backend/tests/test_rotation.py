from datetime import date, timedelta

import pytest

from carerota.services.rotation import (
    day_name,
    day_of_week,
    is_day_included,
    is_valid_identifier,
    parse_applies_to_days,
    resolve_week,
)

from helpers import MONDAY, STAFF_ID


class TestResolveWeek:

    def test_single_week_cycle_is_always_week_one(self):
        for offset in range(0, 120):
            assert resolve_week(MONDAY, 1, 1, MONDAY + timedelta(days=offset)) == 1

    def test_three_week_cycle_wraps(self):
        assert resolve_week(MONDAY, 1, 3, MONDAY) == 1
        assert resolve_week(MONDAY, 1, 3, MONDAY + timedelta(days=7)) == 2
        assert resolve_week(MONDAY, 1, 3, MONDAY + timedelta(days=14)) == 3
        assert resolve_week(MONDAY, 1, 3, MONDAY + timedelta(days=21)) == 1

    def test_partial_weeks_round_down(self):
        assert resolve_week(MONDAY, 1, 2, MONDAY + timedelta(days=6)) == 1
        assert resolve_week(MONDAY, 1, 2, MONDAY + timedelta(days=13)) == 2

    def test_rotation_start_week_offsets_phase(self):
        assert resolve_week(MONDAY, 2, 2, MONDAY) == 2
        assert resolve_week(MONDAY, 2, 2, MONDAY + timedelta(days=7)) == 1
        assert resolve_week(MONDAY, 3, 4, MONDAY + timedelta(days=14)) == 1

    def test_mid_week_assignment_start(self):
        wednesday = date(2024, 1, 3)
        # 週次從指派開始日起算，不是從星期一
        assert resolve_week(wednesday, 1, 2, date(2024, 1, 9)) == 1
        assert resolve_week(wednesday, 1, 2, date(2024, 1, 10)) == 2


class TestDayHelpers:

    def test_monday_is_one_and_sunday_is_seven(self):
        assert day_of_week(MONDAY) == 1
        assert day_of_week(date(2024, 1, 7)) == 7
        assert day_name(MONDAY) == "Monday"
        assert day_name(7) == "Sunday"

    def test_empty_applies_to_list_includes_every_day(self):
        assert is_day_included("Saturday", [])

    def test_applies_to_match_ignores_case(self):
        assert is_day_included("Monday", ["monday", "TUESDAY"])
        assert not is_day_included("Friday", ["monday", "TUESDAY"])

    @pytest.mark.parametrize("raw, expected", [
        ('["Monday", "Friday"]', ["Monday", "Friday"]),
        (["Tuesday"], ["Tuesday"]),
        ("not json", []),
        ('{"Monday": true}', []),
        (None, []),
    ])
    def test_parse_applies_to_days(self, raw, expected):
        assert parse_applies_to_days(raw) == expected


class TestIdentifierCheck:

    def test_accepts_guid(self):
        assert is_valid_identifier(STAFF_ID)
        assert is_valid_identifier(STAFF_ID.upper())

    @pytest.mark.parametrize("value", [None, "", "abc", "1234", STAFF_ID[:-1], STAFF_ID.replace("-", "")])
    def test_rejects_malformed_values(self, value):
        assert not is_valid_identifier(value)
