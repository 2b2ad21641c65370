"""Tests for appointment lifecycle transitions."""

from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from rendezvous.core import lifecycle
from rendezvous.core.appointments import AppointmentStatus as S
from rendezvous.core.conflicts import RejectReason
from rendezvous.core.errors import (
    AdmissionError,
    CancelNoticeError,
    NotAParticipantError,
    TransitionError,
    ValidationError,
)
from rendezvous.core.profile import AvailabilityStatus, BreakTime


def at(hour, minute=0):
    return datetime(2025, 1, 15, hour, minute)


class TestCreate:
    def test_creates_pending(self, profile, now):
        appt = lifecycle.create_appointment("alice", "bob", at(10), 30, profile, [], now, title="  Sync  ")
        assert appt.status == S.PENDING
        assert appt.creator_id == "alice"
        assert appt.participant_id == "bob"
        assert appt.end_time == at(10, 30)
        assert appt.title == "Sync"
        assert appt.id

    def test_blank_title_gets_default(self, profile, now):
        appt = lifecycle.create_appointment("alice", "bob", at(10), 30, profile, [], now, title=" ")
        assert appt.title == "Appointment"

    def test_rejects_self_booking(self, profile, now):
        with pytest.raises(ValidationError, match="yourself"):
            lifecycle.create_appointment("alice", "alice", at(10), 30, profile, [], now)

    def test_rejects_bad_duration(self, profile, now):
        with pytest.raises(ValidationError, match="at least 15"):
            lifecycle.create_appointment("alice", "bob", at(10), 5, profile, [], now)

    def test_rejects_unknown_meeting_type(self, profile, now):
        with pytest.raises(ValidationError, match="Meeting type"):
            lifecycle.create_appointment("alice", "bob", at(10), 30, profile, [], now, meeting_type="Carrier Pigeon")

    @pytest.mark.parametrize(
        "start",
        [
            datetime(2025, 1, 19, 3, 0),  # Sunday
            at(12, 15),  # inside the break
            at(22, 0),  # after hours
        ],
    )
    def test_start_must_be_a_slot(self, profile, now, start):
        with_break = replace(profile, break_times=(BreakTime("12:00", "13:00"),))
        with pytest.raises(AdmissionError) as exc:
            lifecycle.create_appointment("carol", "bob", start, 30, with_break, [], now)
        assert exc.value.reason == RejectReason.OUTSIDE_HOURS

    def test_off_grid_start_rejected(self, profile, now):
        with pytest.raises(AdmissionError, match="not one of the available slots"):
            lifecycle.create_appointment("carol", "bob", at(9, 44), 30, profile, [], now)

    def test_admission_reason_wins_over_grid(self, profile, now):
        away = profile.with_status(AvailabilityStatus.AWAY)
        with pytest.raises(AdmissionError) as exc:
            lifecycle.create_appointment("carol", "bob", at(10), 30, away, [], now)
        assert exc.value.reason == RejectReason.AWAY

    def test_runs_admission(self, profile, now, make_appointment):
        with pytest.raises(AdmissionError) as exc:
            lifecycle.create_appointment("carol", "bob", at(10, 5), 30, profile, [make_appointment(10)], now)
        assert exc.value.reason == RejectReason.BUFFER


class TestAcceptDecline:
    def test_participant_accepts(self, make_appointment):
        appt = make_appointment(10, status=S.PENDING)
        accepted = lifecycle.accept(appt, "bob")
        assert accepted.status == S.CONFIRMED
        assert appt.status == S.PENDING

    def test_creator_cannot_accept(self, make_appointment):
        with pytest.raises(NotAParticipantError):
            lifecycle.accept(make_appointment(10, status=S.PENDING), "alice")

    def test_outsider_cannot_accept(self, make_appointment):
        with pytest.raises(NotAParticipantError):
            lifecycle.accept(make_appointment(10, status=S.PENDING), "mallory")

    def test_cannot_accept_confirmed(self, make_appointment):
        with pytest.raises(TransitionError, match="confirmed"):
            lifecycle.accept(make_appointment(10), "bob")

    def test_decline_needs_reason(self, make_appointment):
        appt = make_appointment(10, status=S.PENDING)
        with pytest.raises(ValidationError):
            lifecycle.decline(appt, "bob", "   ")
        declined = lifecycle.decline(appt, "bob", " Busy ")
        assert declined.status == S.DECLINED
        assert declined.declined_reason == "Busy"


class TestReschedule:
    def test_moves_and_keeps_length(self, profile, now, make_appointment):
        appt = make_appointment(10, duration=45, id="x")
        moved = lifecycle.reschedule(appt, "alice", at(14), profile, [appt], now)
        assert moved.status == S.RESCHEDULED
        assert moved.id == "x"
        assert moved.start_time == at(14)
        assert moved.end_time == at(14, 45)

    def test_nearby_slot_ignores_itself(self, profile, now, make_appointment):
        appt = make_appointment(10, id="x")
        moved = lifecycle.reschedule(appt, "bob", at(10, 30), replace(profile, buffer=60), [appt], now)
        assert moved.start_time == at(10, 30)

    @pytest.mark.parametrize(
        "new_start",
        [
            datetime(2025, 1, 19, 10, 0),  # Sunday
            at(17, 30),
            at(12, 30),
            at(14, 10),
        ],
    )
    def test_new_start_must_be_a_slot(self, profile, now, make_appointment, new_start):
        appt = make_appointment(10)
        with_break = replace(profile, break_times=(BreakTime("12:00", "13:00"),))
        with pytest.raises(AdmissionError) as exc:
            lifecycle.reschedule(appt, "alice", new_start, with_break, [appt], now)
        assert exc.value.reason == RejectReason.OUTSIDE_HOURS

    def test_new_slot_must_be_admissible(self, profile, now, make_appointment):
        appt = make_appointment(10)
        other = make_appointment(14, creator="dave", participant="bob")
        with pytest.raises(AdmissionError):
            lifecycle.reschedule(appt, "alice", at(14), profile, [appt, other], now)

    def test_pending_cannot_be_rescheduled(self, profile, now, make_appointment):
        with pytest.raises(TransitionError):
            lifecycle.reschedule(make_appointment(10, status=S.PENDING), "alice", at(14), profile, [], now)


class TestCancel:
    def test_insufficient_notice(self, make_appointment):
        appt = make_appointment(10)
        with pytest.raises(CancelNoticeError):
            lifecycle.cancel(appt, "alice", at(9), cancel_notice_hours=4)

    def test_no_notice_required(self, make_appointment):
        appt = make_appointment(10)
        assert lifecycle.cancel(appt, "alice", at(9), cancel_notice_hours=0).status == S.CANCELLED

    def test_enough_notice(self, make_appointment):
        appt = make_appointment(14)
        assert lifecycle.cancel(appt, "bob", at(9), cancel_notice_hours=4).status == S.CANCELLED

    def test_pending_can_be_cancelled(self, make_appointment):
        assert lifecycle.cancel(make_appointment(10, status=S.PENDING), "alice", at(9)).status == S.CANCELLED

    def test_terminal_cannot_be_cancelled(self, make_appointment):
        with pytest.raises(TransitionError):
            lifecycle.cancel(make_appointment(10, status=S.COMPLETED), "alice", at(9))


class TestCompleteAndRate:
    def test_complete_after_start(self, make_appointment):
        assert lifecycle.complete(make_appointment(10), at(10, 45)).status == S.COMPLETED

    def test_complete_before_start(self, make_appointment):
        with pytest.raises(TransitionError, match="not started"):
            lifecycle.complete(make_appointment(10), at(9))

    def test_pending_cannot_complete(self, make_appointment):
        with pytest.raises(TransitionError):
            lifecycle.complete(make_appointment(10, status=S.PENDING), at(11))

    def test_rate_once_per_party(self, make_appointment):
        appt = make_appointment(10, status=S.COMPLETED)
        rated = lifecycle.rate(appt, "alice", 5, "Great")
        assert rated.status == S.COMPLETED
        assert rated.rating_by("alice").rating == 5
        assert appt.ratings == []
        with pytest.raises(ValidationError, match="already rated"):
            lifecycle.rate(rated, "alice", 4)
        assert len(lifecycle.rate(rated, "bob", 4).ratings) == 2

    @pytest.mark.parametrize("stars", [0, 6])
    def test_rate_range(self, make_appointment, stars):
        with pytest.raises(ValidationError):
            lifecycle.rate(make_appointment(10, status=S.COMPLETED), "alice", stars)

    def test_rate_requires_completed(self, make_appointment):
        with pytest.raises(TransitionError):
            lifecycle.rate(make_appointment(10), "alice", 5)


class TestTable:
    @pytest.mark.parametrize(
        "status,action,allowed",
        [
            (S.PENDING, "accept", True),
            (S.CONFIRMED, "accept", False),
            (S.RESCHEDULED, "reschedule", True),
            (S.RESCHEDULED, "complete", True),
            (S.DECLINED, "cancel", False),
            (S.CANCELLED, "complete", False),
            (S.COMPLETED, "rate", True),
        ],
    )
    def test_can_transition(self, status, action, allowed):
        assert lifecycle.can_transition(status, action) is allowed


class TestApplyRemote:
    def test_external_completion(self, make_appointment):
        appt = make_appointment(10, id="x")
        merged = lifecycle.apply_remote(appt, {"status": "completed"})
        assert merged.status == S.COMPLETED
        assert merged.id == "x"
        assert merged.start_time == appt.start_time
        assert merged.end_time - merged.start_time == timedelta(minutes=30)

    def test_keeps_ratings(self, make_appointment):
        rated = lifecycle.rate(make_appointment(10, status=S.COMPLETED), "alice", 5)
        merged = lifecycle.apply_remote(rated, {"title": "Renamed"})
        assert merged.title == "Renamed"
        assert merged.rating_by("alice").rating == 5
