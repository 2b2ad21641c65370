"""Availability profile - the owner's weekly schedule and booking rules."""

from dataclasses import dataclass, field, replace
from enum import Enum

from .errors import ValidationError
from .timegrid import parse_hhmm, to_minutes

DEFAULT_DAYS = frozenset({1, 2, 3, 4, 5})
DEFAULT_START = "09:00"
DEFAULT_END = "17:00"
DEFAULT_SLOT_DURATION = 30
DEFAULT_BUFFER = 15
DEFAULT_MAX_PER_DAY = 5
DEFAULT_MIN_PER_DAY = 1
DEFAULT_MIN_DURATION = 15
DEFAULT_MAX_DURATION = 120


class AvailabilityStatus(Enum):
    """Owner-declared availability."""

    AVAILABLE = "available"
    LIMITED = "limited"  # capacity drops to min_per_day
    AWAY = "away"  # whole calendar closed

    @classmethod
    def parse(cls, value: "str | AvailabilityStatus | None") -> "AvailabilityStatus | None":
        """Lenient parse; unknown values yield None."""
        if isinstance(value, cls):
            return value
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class BreakTime:
    """A daily break window, HH:MM strings."""

    start: str
    end: str

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    def intersects(self, start_minute: int, end_minute: int) -> bool:
        """Break overlaps the half-open range [start_minute, end_minute)."""
        return start_minute < self.end_minutes and self.start_minutes < end_minute


@dataclass(frozen=True)
class DurationRange:
    """Bounds for custom-duration bookings, in minutes."""

    min: int = DEFAULT_MIN_DURATION
    max: int = DEFAULT_MAX_DURATION


@dataclass(frozen=True)
class AvailabilityProfile:
    """
    A user's recurring weekly availability.

    Replaced wholesale by its owner; read by anyone trying to book them.
    Weekdays use 0=Sunday..6=Saturday.
    """

    days: frozenset[int] = DEFAULT_DAYS
    start: str = DEFAULT_START
    end: str = DEFAULT_END
    slot_duration: int = DEFAULT_SLOT_DURATION
    buffer: int = DEFAULT_BUFFER
    max_per_day: int = DEFAULT_MAX_PER_DAY
    min_per_day: int = DEFAULT_MIN_PER_DAY
    break_times: tuple[BreakTime, ...] = ()
    min_lead_time: float = 0
    cancel_notice: float = 0
    appointment_duration: DurationRange = field(default_factory=DurationRange)
    availability_status: AvailabilityStatus = AvailabilityStatus.AVAILABLE

    @classmethod
    def default(cls) -> "AvailabilityProfile":
        """Profile used when the owner never saved one."""
        return cls()

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    @property
    def is_away(self) -> bool:
        return self.availability_status == AvailabilityStatus.AWAY

    def with_status(self, status: AvailabilityStatus) -> "AvailabilityProfile":
        return replace(self, availability_status=status)

    def effective_max_per_day(self) -> int:
        """Daily booking cap for the current status."""
        match self.availability_status:
            case AvailabilityStatus.AWAY:
                return 0
            case AvailabilityStatus.LIMITED:
                return self.min_per_day
            case _:
                return self.max_per_day

    def validate(self) -> "AvailabilityProfile":
        """Raise ValidationError if the profile is inconsistent; return self otherwise."""
        if not self.days:
            raise ValidationError("Select at least one available day")
        if any(d not in range(7) for d in self.days):
            raise ValidationError("Days must be between 0 (Sunday) and 6 (Saturday)")

        if parse_hhmm(self.start) is None or parse_hhmm(self.end) is None:
            raise ValidationError("Start and end must be HH:MM times")
        if self.start_minutes >= self.end_minutes:
            raise ValidationError("End time must be after start time")

        if self.slot_duration <= 0:
            raise ValidationError("Slot duration must be a positive number of minutes")
        if self.buffer < 0:
            raise ValidationError("Buffer cannot be negative")
        if self.max_per_day < 0 or self.min_per_day < 0:
            raise ValidationError("Daily limits cannot be negative")
        if self.min_per_day > self.max_per_day:
            raise ValidationError("Minimum per day cannot exceed maximum per day")
        if self.min_lead_time < 0:
            raise ValidationError("Minimum lead time cannot be negative")
        if self.cancel_notice < 0:
            raise ValidationError("Cancel notice cannot be negative")

        duration = self.appointment_duration
        if duration.min <= 0:
            raise ValidationError("Minimum appointment duration must be positive")
        if duration.min > duration.max:
            raise ValidationError("Minimum appointment duration cannot exceed the maximum")

        previous_end = None
        for brk in sorted(self.break_times, key=lambda b: to_minutes(b.start) or 0):
            if parse_hhmm(brk.start) is None or parse_hhmm(brk.end) is None:
                raise ValidationError("Please fill in break time details")
            if brk.end_minutes <= brk.start_minutes:
                raise ValidationError("Break end time must be after its start time")
            if brk.start_minutes < self.start_minutes or brk.end_minutes > self.end_minutes:
                raise ValidationError(
                    f"Break {brk.start}-{brk.end} must fall within {self.start}-{self.end}"
                )
            if previous_end is not None and brk.start_minutes < previous_end:
                raise ValidationError("Break times cannot overlap")
            previous_end = brk.end_minutes

        return self

    def validate_duration(self, minutes: int) -> None:
        """Raise ValidationError if a booking length is outside the allowed range."""
        bounds = self.appointment_duration
        if minutes < bounds.min:
            raise ValidationError(f"Appointment duration must be at least {bounds.min} minutes")
        if minutes > bounds.max:
            raise ValidationError(f"Appointment duration cannot exceed {bounds.max} minutes")

    def lead_time_message(self) -> str:
        return _notice_message(self.min_lead_time, "Bookings available anytime", "Bookings require", "notice")

    def cancel_notice_message(self) -> str:
        return _notice_message(self.cancel_notice, "Cancel anytime", "Cancel with", "notice")

    @classmethod
    def from_api(cls, data: dict | None, status: str | None = None) -> "AvailabilityProfile":
        """
        Build a profile from the camelCase wire shape.

        Missing, falsy or unparseable fields fall back to defaults (a zero
        buffer or minPerDay is kept); malformed breaks and unknown fields are
        ignored.
        `status` overrides `availabilityStatus` inside `data` when given.
        """
        data = data or {}
        duration = data.get("appointmentDuration") or {}
        raw_status = status or data.get("availabilityStatus")

        breaks = []
        for item in data.get("breakTimes") or []:
            if isinstance(item, dict) and parse_hhmm(item.get("start")) is not None and parse_hhmm(item.get("end")) is not None:
                breaks.append(BreakTime(start=item["start"], end=item["end"]))

        return cls(
            days=frozenset(int(d) for d in data.get("days") or DEFAULT_DAYS),
            start=data.get("start") if parse_hhmm(data.get("start")) is not None else DEFAULT_START,
            end=data.get("end") if parse_hhmm(data.get("end")) is not None else DEFAULT_END,
            slot_duration=int(data.get("slotDuration") or DEFAULT_SLOT_DURATION),
            buffer=int(data.get("buffer") if data.get("buffer") is not None else DEFAULT_BUFFER),
            max_per_day=int(data.get("maxPerDay") or DEFAULT_MAX_PER_DAY),
            min_per_day=int(data.get("minPerDay") if data.get("minPerDay") is not None else DEFAULT_MIN_PER_DAY),
            break_times=tuple(breaks),
            min_lead_time=data.get("minLeadTime") or 0,
            cancel_notice=data.get("cancelNotice") or 0,
            appointment_duration=DurationRange(
                min=int(duration.get("min") or DEFAULT_MIN_DURATION),
                max=int(duration.get("max") or DEFAULT_MAX_DURATION),
            ),
            availability_status=AvailabilityStatus.parse(raw_status) or AvailabilityStatus.AVAILABLE,
        )

    def to_api(self) -> dict:
        """Wire payload for the settings operation (whole profile plus status)."""
        return {
            "days": sorted(self.days),
            "start": self.start,
            "end": self.end,
            "slotDuration": self.slot_duration,
            "buffer": self.buffer,
            "maxPerDay": self.max_per_day,
            "minPerDay": self.min_per_day,
            "breakTimes": [{"start": b.start, "end": b.end} for b in self.break_times],
            "minLeadTime": self.min_lead_time,
            "cancelNotice": self.cancel_notice,
            "appointmentDuration": {
                "min": self.appointment_duration.min,
                "max": self.appointment_duration.max,
            },
            "availabilityStatus": self.availability_status.value,
        }


def _plural(n: float, unit: str) -> str:
    n = int(n) if float(n).is_integer() else n
    return f"{n} {unit}{'s' if n != 1 else ''}"


def _notice_message(hours: float, anytime: str, prefix: str, suffix: str) -> str:
    """'Bookings require 1 day and 2 hours notice' style summaries."""
    if not hours:
        return anytime
    if hours < 24:
        return f"{prefix} {_plural(hours, 'hour')} {suffix}"

    days = int(hours // 24)
    remaining = hours % 24
    message = f"{prefix} {_plural(days, 'day')}"
    if remaining:
        message += f" and {_plural(remaining, 'hour')}"
    return f"{message} {suffix}"
