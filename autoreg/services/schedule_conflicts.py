"""
Schedule parsing and conflict detection for course sections

Section schedules come from the portal as free text such as ``"Thứ 2 (1-3)"``,
``"T2 (1-3), T4 (6-8)"`` or ``"2 (1-3)"``. Days use the local academic
convention: Monday is 2 and Sunday is 8. Periods are inclusive.

Everything here is pure. Text that does not look like a day/period fragment is
skipped, so a section with unparseable schedule text has no time slots and
never conflicts with anything.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

FRAGMENT_SEPARATOR = re.compile(r"[,;]")
DAY_PATTERN = re.compile(r"(?:Thứ\s*)?(?:T)?(\d)(?:\s*\((\d+)-(\d+)\))?", re.IGNORECASE)
ROOM_PATTERN = re.compile(r"phòng[:\s]*([A-Za-z0-9.-]+)", re.IGNORECASE)

DAY_LABELS = {2: "Thứ 2", 3: "Thứ 3", 4: "Thứ 4", 5: "Thứ 5", 6: "Thứ 6", 7: "Thứ 7", 8: "CN"}


@dataclass(frozen=True)
class TimeSlot:
    day: int
    start_period: int
    end_period: int
    room: Optional[str] = None


@dataclass(frozen=True)
class ParsedSchedule:
    class_code: str
    course_name: str
    time_slots: Tuple[TimeSlot, ...] = ()
    raw: Optional[str] = None


@dataclass(frozen=True)
class ConflictGroup:
    day: int
    periods: Tuple[int, ...]

    def to_dict(self) -> Dict:
        return {"day": self.day, "periods": list(self.periods)}


@dataclass(frozen=True)
class ScheduleConflict:
    class1: ParsedSchedule
    class2: ParsedSchedule
    conflicting_slots: Tuple[ConflictGroup, ...] = field(default_factory=tuple)


def parse_schedule_string(schedule_str: Optional[str]) -> List[TimeSlot]:
    """
    Parse a portal schedule string into time slots.

    Each comma/semicolon separated fragment yields at most one slot. A missing
    period range defaults to period 1; a room given as ``phòng: X`` is attached
    to the slot of the same fragment.
    """
    if not schedule_str:
        return []

    slots = []
    for part in FRAGMENT_SEPARATOR.split(schedule_str):
        fragment = part.strip()
        if not fragment:
            continue

        day_match = DAY_PATTERN.search(fragment)
        if not day_match:
            continue

        day = int(day_match.group(1))
        start_period = int(day_match.group(2)) if day_match.group(2) else 1
        end_period = int(day_match.group(3)) if day_match.group(3) else start_period

        room_match = ROOM_PATTERN.search(fragment)
        slots.append(TimeSlot(
            day=day,
            start_period=start_period,
            end_period=end_period,
            room=room_match.group(1) if room_match else None
        ))

    return slots


def do_time_slots_conflict(slot1: TimeSlot, slot2: TimeSlot) -> bool:
    if slot1.day != slot2.day:
        return False
    return not (slot1.end_period < slot2.start_period or slot2.end_period < slot1.start_period)


def get_conflicting_periods(slot1: TimeSlot, slot2: TimeSlot) -> List[int]:
    if slot1.day != slot2.day:
        return []
    start = max(slot1.start_period, slot2.start_period)
    end = min(slot1.end_period, slot2.end_period)
    return list(range(start, end + 1))


def do_schedules_conflict(schedule1: ParsedSchedule, schedule2: ParsedSchedule) -> Optional[ScheduleConflict]:
    """
    Compare every slot pair of two schedules.

    Returns None when nothing overlaps. Otherwise one conflict group is emitted
    per overlapping slot pair; groups sharing a day are not merged.
    """
    groups = []
    for slot1 in schedule1.time_slots:
        for slot2 in schedule2.time_slots:
            if not do_time_slots_conflict(slot1, slot2):
                continue
            periods = get_conflicting_periods(slot1, slot2)
            if periods:
                groups.append(ConflictGroup(day=slot1.day, periods=tuple(periods)))

    if not groups:
        return None

    return ScheduleConflict(class1=schedule1, class2=schedule2, conflicting_slots=tuple(groups))


def find_schedule_conflicts(
    new_class: ParsedSchedule,
    existing_classes: Sequence[ParsedSchedule]
) -> List[ScheduleConflict]:
    """One conflict per clashing existing schedule, in input order"""
    conflicts = []
    for existing in existing_classes:
        conflict = do_schedules_conflict(new_class, existing)
        if conflict:
            conflicts.append(conflict)
    return conflicts


def class_to_schedule(class_code: str, course_name: str, schedule_str: Optional[str]) -> ParsedSchedule:
    return ParsedSchedule(
        class_code=class_code,
        course_name=course_name,
        time_slots=tuple(parse_schedule_string(schedule_str)),
        raw=schedule_str
    )


def format_day(day: int) -> str:
    return DAY_LABELS.get(day, f"Thứ {day}")


def format_periods(start: int, end: int) -> str:
    if start == end:
        return f"tiết {start}"
    return f"tiết {start}-{end}"


def format_conflict_message(conflict: ScheduleConflict) -> str:
    """Human readable warning, e.g. ``Trùng lịch với "Toán" (LHP01): Thứ 2 (tiết 1, 2)``"""
    slots = ", ".join(
        f"{format_day(group.day)} (tiết {', '.join(str(p) for p in group.periods)})"
        for group in conflict.conflicting_slots
    )
    return f'Trùng lịch với "{conflict.class2.course_name}" ({conflict.class2.class_code}): {slots}'


def group_timetable_by_day(items: Sequence[Dict]) -> Dict[int, List[Dict]]:
    """
    Group weekly timetable rows from the portal by their ``thu`` (day) field,
    each day ordered by start time ``tuGio``. Rows without a day are left out.
    """
    grouped: Dict[int, List[Dict]] = {}
    for item in items:
        day = item.get("thu")
        if day is None:
            continue
        grouped.setdefault(day, []).append(item)
    for rows in grouped.values():
        rows.sort(key=lambda row: row.get("tuGio") or "")
    return grouped
