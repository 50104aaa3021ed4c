# src/study_companion/timetable/timetable_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..core.timeutil import time_to_minutes


class DayOfWeek(StrEnum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def from_datetime(cls, dt: datetime) -> DayOfWeek:
        return _WEEK[dt.weekday()]

    @classmethod
    def parse(cls, raw: str) -> DayOfWeek:
        """Accept 'Monday', 'monday' or 'Mon'."""
        s = (raw or "").strip().lower()
        for day in _WEEK:
            if s == day.value.lower() or s == day.value[:3].lower():
                return day
        raise ValueError(f"unknown day of week: {raw!r}")


_WEEK: tuple[DayOfWeek, ...] = tuple(DayOfWeek)


class LectureType(StrEnum):
    LECTURE = "Lecture"
    LAB = "Lab"
    TUTORIAL = "Tutorial"
    SEMINAR = "Seminar"
    PRACTICAL = "Practical"
    OTHER = "Other"

    @classmethod
    def parse(cls, raw: object) -> LectureType:
        if raw is None or raw == "":
            return cls.LECTURE
        if not isinstance(raw, str):
            raise ValueError(f"lecture type must be a string, got {type(raw).__name__}")
        s = raw.strip().lower()
        for t in cls:
            if s == t.value.lower():
                return t
        if s == "theory":
            return cls.LECTURE
        raise ValueError(f"unknown lecture type: {raw!r}")


def _opt_text(data: dict[str, Any], key: str) -> str | None:
    val = data.get(key)
    if val is None:
        return None
    if not isinstance(val, str):
        raise ValueError(f"{key} must be a string")
    return val.strip() or None


@dataclass(slots=True, frozen=True)
class LectureSlot:
    day_of_week: DayOfWeek
    start_time: str  # HH:MM local
    end_time: str  # HH:MM local
    subject_name: str

    subject_code: str | None = None
    faculty: str | None = None
    location: str | None = None
    type: LectureType = LectureType.LECTURE
    batch: str | None = None

    def __post_init__(self) -> None:
        if not self.subject_name or not self.subject_name.strip():
            raise ValueError("subject_name is required")
        if time_to_minutes(self.end_time) <= time_to_minutes(self.start_time):
            raise ValueError(
                f"end_time {self.end_time} must be after start_time {self.start_time}"
            )

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LectureSlot:
        """
        Decode a slot from JSON/DB data. Fails closed: anything missing or
        malformed raises ValueError (MalformedTimeError for bad times).
        """
        if not isinstance(data, dict):
            raise ValueError("slot must be an object")

        day_raw = data.get("day_of_week", data.get("dayOfWeek"))
        name = data.get("subject_name", data.get("subjectName"))
        start = data.get("start_time", data.get("startTime"))
        end = data.get("end_time", data.get("endTime"))
        if not isinstance(day_raw, str) or not isinstance(name, str):
            raise ValueError("day_of_week and subject_name are required strings")
        if not isinstance(start, str) or not isinstance(end, str):
            raise ValueError("start_time and end_time are required strings")

        return cls(
            day_of_week=DayOfWeek.parse(day_raw),
            start_time=start.strip(),
            end_time=end.strip(),
            subject_name=name.strip(),
            subject_code=_opt_text(data, "subject_code") or _opt_text(data, "subjectCode"),
            faculty=_opt_text(data, "faculty"),
            location=_opt_text(data, "location"),
            type=LectureType.parse(data.get("type")),
            batch=_opt_text(data, "batch"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "day_of_week": self.day_of_week.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "subject_name": self.subject_name,
            "subject_code": self.subject_code,
            "faculty": self.faculty,
            "location": self.location,
            "type": self.type.value,
            "batch": self.batch,
        }


@dataclass(slots=True)
class TimetableRecord:
    """A locked timetable: the selection it was built for plus its slots."""

    locked_at: str
    class_name: str
    division: str
    batch: str | None = None
    slots: list[LectureSlot] = field(default_factory=list)
