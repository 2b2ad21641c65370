"""Appointment domain model - pure data, no I/O."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

DEFAULT_TITLE = "Appointment"
MEETING_TYPES = ("Video Call", "Phone Call", "In Person")


class AppointmentStatus(Enum):
    """Lifecycle states of an appointment."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    RESCHEDULED = "rescheduled"  # confirmed, with a new slot

    @classmethod
    def parse(cls, value: "str | AppointmentStatus | None") -> "AppointmentStatus":
        if isinstance(value, cls):
            return value
        normalized = (value or "pending").strip().lower()
        # Older servers report confirmed bookings as "scheduled"/"accepted"
        if normalized in ("scheduled", "accepted"):
            return cls.CONFIRMED
        try:
            return cls(normalized)
        except ValueError:
            return cls.PENDING


ACTIVE_STATUSES = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED, AppointmentStatus.RESCHEDULED}
)
TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.DECLINED, AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED}
)


@dataclass(frozen=True)
class Rating:
    """Post-completion feedback from one participant."""

    user_id: str
    rating: int
    feedback: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Rating":
        return cls(
            user_id=_ref_id(data.get("userId")),
            rating=int(data.get("rating") or 0),
            feedback=data.get("feedback") or "",
        )


@dataclass
class Appointment:
    """A booking between a creator and a participant."""

    id: str
    creator_id: str
    participant_id: str
    start_time: datetime
    end_time: datetime
    title: str = DEFAULT_TITLE
    description: str = ""
    meeting_type: str = "Video Call"
    status: AppointmentStatus = AppointmentStatus.PENDING
    declined_reason: str = ""
    ratings: list[Rating] = field(default_factory=list)
    location: str = ""
    reminder: int = 15

    @property
    def date(self) -> date:
        return self.start_time.date()

    @property
    def duration(self) -> int:
        """Length in minutes."""
        return int((self.end_time - self.start_time).total_seconds() / 60)

    @property
    def is_active(self) -> bool:
        """Still occupies its slot (pending, confirmed or rescheduled)."""
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def pair(self) -> frozenset[str]:
        return frozenset({self.creator_id, self.participant_id})

    def involves(self, user_id: str | None) -> bool:
        return user_id is not None and str(user_id) in (self.creator_id, self.participant_id)

    def other_party(self, user_id: str) -> str:
        return self.participant_id if str(user_id) == self.creator_id else self.creator_id

    def rating_by(self, user_id: str) -> Rating | None:
        return next((r for r in self.ratings if r.user_id == str(user_id)), None)

    def format(self) -> str:
        """One-line summary for listings."""
        when = f"{self.start_time.strftime('%Y-%m-%d %H:%M')}-{self.end_time.strftime('%H:%M')}"
        return f"[{self.status.value}] {when} {self.title} ({self.meeting_type})"

    @classmethod
    def from_api(cls, data: dict) -> "Appointment":
        """Parse the server's appointment document; unknown fields are ignored."""
        start = _parse_instant(data["startTime"])
        if data.get("endTime"):
            end = _parse_instant(data["endTime"])
        else:
            end = start + timedelta(minutes=int(data.get("duration") or 30))

        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            creator_id=_ref_id(data.get("userId") or data.get("creatorId")),
            participant_id=_ref_id(data.get("friendId") or data.get("participantId")),
            start_time=start,
            end_time=end,
            title=data.get("title") or DEFAULT_TITLE,
            description=data.get("description") or data.get("message") or "",
            meeting_type=data.get("meetingType") or "Video Call",
            status=AppointmentStatus.parse(data.get("status")),
            declined_reason=data.get("declinedReason") or "",
            ratings=[Rating.from_api(r) for r in data.get("ratings") or []],
            location=data.get("location") or "",
            reminder=int(data.get("reminder") if data.get("reminder") is not None else 15),
        )

    def to_api(self) -> dict:
        """Booking payload for create/update calls."""
        payload = {
            "userId": self.creator_id,
            "friendId": self.participant_id,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "duration": self.duration,
            "title": self.title,
            "description": self.description,
            "meetingType": self.meeting_type,
            "status": self.status.value,
            "location": self.location,
            "reminder": self.reminder,
        }
        if self.status == AppointmentStatus.DECLINED:
            payload["declinedReason"] = self.declined_reason
        return payload


def _ref_id(value) -> str:
    """User reference as an id string; servers may send populated documents."""
    if isinstance(value, dict):
        value = value.get("_id") or value.get("id")
    return str(value) if value is not None else ""


def _parse_instant(value: str | datetime) -> datetime:
    """ISO instant -> naive local datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def sort_by_start(appointments: list[Appointment]) -> list[Appointment]:
    return sorted(appointments, key=lambda a: a.start_time)
