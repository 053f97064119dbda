"""
Tests for schedule parsing and conflict detection
"""

import pytest

from autoreg.services.schedule_conflicts import (
    TimeSlot,
    class_to_schedule,
    do_schedules_conflict,
    do_time_slots_conflict,
    find_schedule_conflicts,
    format_conflict_message,
    format_day,
    format_periods,
    get_conflicting_periods,
    group_timetable_by_day,
    parse_schedule_string,
)

pytestmark = pytest.mark.unit


class TestParseScheduleString:

    def test_full_day_prefix(self):
        assert parse_schedule_string("Thứ 2 (1-3)") == [TimeSlot(day=2, start_period=1, end_period=3)]

    def test_multiple_fragments_short_prefix(self):
        slots = parse_schedule_string("T2 (1-3), T4 (6-8)")
        assert [(s.day, s.start_period, s.end_period) for s in slots] == [(2, 1, 3), (4, 6, 8)]

    def test_bare_day_digit(self):
        assert parse_schedule_string("2 (1-3)") == [TimeSlot(day=2, start_period=1, end_period=3)]

    def test_missing_periods_default_to_first_period(self):
        assert parse_schedule_string("Thứ 5") == [TimeSlot(day=5, start_period=1, end_period=1)]

    def test_semicolon_separator_and_room(self):
        slots = parse_schedule_string("Thứ 3 (7-9) phòng: A.101; Thứ 6 (1-2)")
        assert slots[0] == TimeSlot(day=3, start_period=7, end_period=9, room="A.101")
        assert slots[1].room is None

    @pytest.mark.parametrize("text", [None, "", "   ", "Chưa xếp lịch"])
    def test_unparseable_or_empty_yields_no_slots(self, text):
        assert parse_schedule_string(text) == []

    def test_unparseable_fragments_are_skipped(self):
        slots = parse_schedule_string("Online, Thứ 7 (1-4)")
        assert slots == [TimeSlot(day=7, start_period=1, end_period=4)]


class TestSlotConflicts:

    def test_overlap_on_same_day(self):
        a = TimeSlot(2, 1, 3)
        b = TimeSlot(2, 3, 5)
        assert do_time_slots_conflict(a, b)
        assert get_conflicting_periods(a, b) == [3]

    def test_different_days_never_conflict(self):
        a = TimeSlot(2, 1, 3)
        b = TimeSlot(3, 1, 3)
        assert not do_time_slots_conflict(a, b)
        assert get_conflicting_periods(a, b) == []

    def test_adjacent_periods_do_not_conflict(self):
        assert not do_time_slots_conflict(TimeSlot(2, 1, 3), TimeSlot(2, 4, 6))

    def test_contained_range(self):
        assert get_conflicting_periods(TimeSlot(4, 1, 6), TimeSlot(4, 2, 3)) == [2, 3]

    def test_conflict_is_symmetric(self):
        a, b = TimeSlot(6, 2, 5), TimeSlot(6, 4, 9)
        assert do_time_slots_conflict(a, b) == do_time_slots_conflict(b, a)
        assert get_conflicting_periods(a, b) == get_conflicting_periods(b, a) == [4, 5]


class TestScheduleConflicts:

    def test_one_group_per_overlapping_pair(self):
        candidate = class_to_schedule("LHP01", "Toán", "Thứ 2 (1-3), Thứ 2 (4-6)")
        existing = class_to_schedule("LHP02", "Lý", "Thứ 2 (2-5)")

        conflict = do_schedules_conflict(candidate, existing)

        assert conflict is not None
        assert [g.to_dict() for g in conflict.conflicting_slots] == [
            {"day": 2, "periods": [2, 3]},
            {"day": 2, "periods": [4, 5]},
        ]

    def test_no_conflict_returns_none(self):
        candidate = class_to_schedule("LHP01", "Toán", "Thứ 2 (1-3)")
        existing = class_to_schedule("LHP02", "Lý", "Thứ 3 (1-3)")
        assert do_schedules_conflict(candidate, existing) is None

    def test_unparseable_schedule_is_conflict_free(self):
        candidate = class_to_schedule("LHP01", "Toán", "Chưa xếp lịch")
        existing = class_to_schedule("LHP02", "Lý", "Thứ 2 (1-12)")
        assert find_schedule_conflicts(candidate, [existing]) == []

    def test_find_conflicts_keeps_input_order(self):
        candidate = class_to_schedule("NEW", "Hóa", "T2 (1-3), T5 (7-9)")
        existing = [
            class_to_schedule("A", "Sinh", "T5 (8-10)"),
            class_to_schedule("B", "Sử", "T3 (1-3)"),
            class_to_schedule("C", "Địa", "T2 (3-4)"),
        ]

        conflicts = find_schedule_conflicts(candidate, existing)

        assert [c.class2.class_code for c in conflicts] == ["A", "C"]
        assert all(c.class1.class_code == "NEW" for c in conflicts)


class TestFormatting:

    def test_format_day(self):
        assert format_day(2) == "Thứ 2"
        assert format_day(8) == "CN"

    def test_format_periods(self):
        assert format_periods(3, 3) == "tiết 3"
        assert format_periods(1, 3) == "tiết 1-3"

    def test_conflict_message(self):
        candidate = class_to_schedule("LHP01", "Toán", "Thứ 2 (1-3)")
        existing = class_to_schedule("LHP02", "Vật lý", "Thứ 2 (2-4)")

        message = format_conflict_message(do_schedules_conflict(candidate, existing))

        assert message == 'Trùng lịch với "Vật lý" (LHP02): Thứ 2 (tiết 2, 3)'


class TestGroupTimetable:

    def test_groups_by_day_and_sorts_by_start_time(self):
        rows = [
            {"thu": 4, "tuGio": "13:00"},
            {"thu": 2, "tuGio": "09:30"},
            {"thu": 2, "tuGio": "07:00"},
            {"tuGio": "07:00"},
        ]

        grouped = group_timetable_by_day(rows)

        assert list(grouped) == [4, 2]
        assert [row["tuGio"] for row in grouped[2]] == ["07:00", "09:30"]

    def test_missing_start_time_sorts_first(self):
        grouped = group_timetable_by_day([{"thu": 3, "tuGio": "07:00"}, {"thu": 3}])
        assert grouped[3][0] == {"thu": 3}

    def test_empty(self):
        assert group_timetable_by_day([]) == {}
