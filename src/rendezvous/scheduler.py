"""Periodic reminder and auto-completion sweep."""

import logging
from datetime import datetime
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import Config, load_config
from .core import lifecycle
from .core.appointments import Appointment
from .core.reminders import ReminderLedger, due_for_completion, due_for_reminder, due_for_start
from .workflows import BookingService

logger = logging.getLogger(__name__)

Notify = Callable[[str, Appointment], None]


class AppointmentSweeper:
    """
    Marks finished appointments completed and raises reminders.

    Each reminder ("reminder" / "started") fires once per appointment.
    """

    def __init__(self, service: BookingService, notify: Notify | None = None, reminder_minutes: int = 5):
        self.service = service
        self.notify = notify
        self.reminder_minutes = reminder_minutes
        self.ledger = ReminderLedger()

    def run(self, now: datetime | None = None) -> list[Appointment]:
        """One sweep; returns the appointments marked completed."""
        now = now or self.service.clock()
        appointments = self.service.appointments()

        for appt in due_for_reminder(appointments, now, self.reminder_minutes):
            if self.ledger.mark(appt, "reminder"):
                logger.info(f"Sending reminder for appointment: {appt.title}")
                self._notify("reminder", appt)

        for appt in due_for_start(appointments, now):
            if self.ledger.mark(appt, "started"):
                logger.info(f"Appointment started: {appt.title}")
                self._notify("started", appt)

        completed = []
        for appt in due_for_completion(appointments, now):
            done = lifecycle.complete(appt, now)
            try:
                completed.append(self.service.repo.update_appointment(appt.id, {"status": done.status.value}))
            except Exception as e:
                logger.error(f"Failed to complete {appt.id}: {e}")

        self.ledger.prune(now)
        return completed

    def _notify(self, kind: str, appt: Appointment) -> None:
        if self.notify:
            self.notify(kind, appt)


def build_scheduler(sweeper: AppointmentSweeper, config: Config | None = None) -> BackgroundScheduler:
    """Set up the periodic sweep (not started)."""
    if config is None:
        config = load_config()

    scheduler = BackgroundScheduler(timezone=config.timezone or "UTC")
    scheduler.add_job(
        sweeper.run,
        IntervalTrigger(seconds=config.sweep_interval_seconds),
        id="appointment_sweep",
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Scheduled appointment sweep every {config.sweep_interval_seconds}s")
    return scheduler
