"""Tests for reminder selection and the completion sweep."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

from apscheduler.schedulers.background import BackgroundScheduler

from rendezvous.config import Config
from rendezvous.core.appointments import AppointmentStatus as S
from rendezvous.core.reminders import (
    ReminderLedger,
    due_for_completion,
    due_for_reminder,
    due_for_start,
)
from rendezvous.scheduler import AppointmentSweeper, build_scheduler


def at(hour, minute=0):
    return datetime(2025, 1, 15, hour, minute)


class TestSelection:
    def test_due_for_reminder(self, make_appointment):
        soon = make_appointment(10, 4)
        later = make_appointment(10, 30)
        cancelled = make_appointment(10, 2, status=S.CANCELLED)
        assert due_for_reminder([soon, later, cancelled], at(10)) == [soon]

    def test_due_for_start(self, make_appointment):
        now_starting = make_appointment(10)
        in_three = make_appointment(10, 3)
        assert due_for_start([now_starting, in_three], at(10)) == [now_starting]

    def test_due_for_completion(self, make_appointment):
        finished = make_appointment(9)
        running = make_appointment(9, 45)
        pending = make_appointment(9, status=S.PENDING)
        rescheduled = make_appointment(8, status=S.RESCHEDULED)
        assert due_for_completion([finished, running, pending, rescheduled], at(10)) == [finished, rescheduled]


class TestLedger:
    def test_marks_once(self, make_appointment):
        ledger = ReminderLedger()
        appt = make_appointment(10)
        assert ledger.mark(appt, "reminder")
        assert not ledger.mark(appt, "reminder")
        assert ledger.mark(appt, "started")
        assert ledger.was_sent(appt, "reminder")
        assert len(ledger) == 2

    def test_prune_after_an_hour(self, make_appointment):
        ledger = ReminderLedger()
        appt = make_appointment(10)
        ledger.mark(appt, "reminder")
        ledger.prune(at(10, 59))
        assert len(ledger) == 1
        ledger.prune(at(11, 1))
        assert len(ledger) == 0


class TestSweeper:
    def make_sweeper(self, appointments, notify=None):
        service = MagicMock()
        service.appointments.return_value = appointments
        service.repo.update_appointment.side_effect = lambda appt_id, fields: (appt_id, fields)
        return AppointmentSweeper(service, notify=notify), service

    def test_completes_finished(self, make_appointment):
        finished = make_appointment(9, id="done")
        sweeper, service = self.make_sweeper([finished])
        completed = sweeper.run(at(10))
        service.repo.update_appointment.assert_called_once_with("done", {"status": "completed"})
        assert completed == [("done", {"status": "completed"})]

    def test_reminds_once(self, make_appointment):
        notify = MagicMock()
        upcoming = make_appointment(10, 3)
        sweeper, _ = self.make_sweeper([upcoming], notify)
        sweeper.run(at(10))
        sweeper.run(at(10, 1))
        notify.assert_called_once_with("reminder", upcoming)

    def test_started_notice(self, make_appointment):
        notify = MagicMock()
        starting = make_appointment(10)
        sweeper, _ = self.make_sweeper([starting], notify)
        sweeper.run(at(10))
        kinds = [c.args[0] for c in notify.call_args_list]
        assert kinds == ["reminder", "started"]

    def test_failed_update_is_logged(self, make_appointment, caplog):
        sweeper, service = self.make_sweeper([make_appointment(9, id="x")])
        service.repo.update_appointment.side_effect = RuntimeError("server down")
        assert sweeper.run(at(10)) == []
        assert "Failed to complete x" in caplog.text

    def test_uses_service_clock(self, make_appointment):
        sweeper, service = self.make_sweeper([make_appointment(9, id="x")])
        service.clock.return_value = at(10)
        sweeper.run()
        service.repo.update_appointment.assert_called_once()


class TestBuildScheduler:
    def test_registers_sweep_job(self):
        sweeper = AppointmentSweeper(MagicMock())
        scheduler = build_scheduler(sweeper, Config(sweep_interval_seconds=45, timezone="UTC"))
        assert isinstance(scheduler, BackgroundScheduler)
        job = scheduler.get_job("appointment_sweep")
        assert job is not None
        assert job.trigger.interval == timedelta(seconds=45)
        assert not scheduler.running
