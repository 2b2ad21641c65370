"""Rendezvous CLI - availability and booking."""

import json
import sys
from dataclasses import replace
from datetime import date, datetime

import click

from .adapters.booking_api import AuthenticationError, BookingApiAdapter
from .config import load_config
from .core.appointments import MEETING_TYPES, Appointment
from .core.errors import BookingError
from .core.profile import AvailabilityProfile, AvailabilityStatus, BreakTime, DurationRange
from .core.timegrid import combine_date_and_time, format_hhmm, format_time12, parse_ymd
from .workflows import BookingService


def _fail(e: Exception):
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


def _service() -> BookingService:
    repo = BookingApiAdapter()
    if not repo.user_id:
        raise AuthenticationError("Not logged in. Run 'rendezvous login' first.")
    return BookingService(repo, repo.user_id)


def _parse_date(value: str | None) -> date:
    if not value:
        return date.today()
    parsed = parse_ymd(value)
    if parsed is None:
        raise click.BadParameter(f"Invalid date: {value}. Use YYYY-MM-DD.")
    return parsed


def _parse_start(day: str, at: str) -> datetime:
    start = combine_date_and_time(_parse_date(day), at)
    if start is None:
        raise click.BadParameter(f"Invalid time: {at}. Use HH:MM.")
    return start


def _describe(appt: Appointment) -> str:
    when = f"{appt.start_time:%Y-%m-%d} {format_time12(format_hhmm(appt.start_time))}"
    return f"{appt.id}  [{appt.status.value}] {when} ({appt.duration} min) {appt.title}"


@click.group()
@click.version_option()
def main():
    """Rendezvous - availability and booking CLI."""
    pass


@main.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
def login(email: str, password: str):
    """Log in and store the session token."""
    try:
        tokens = BookingApiAdapter().login(email, password)
    except BookingError as e:
        _fail(e)
    click.echo(f"Logged in as {tokens.user_id or email}.")


# ---- profile ----


@main.group()
def profile():
    """Show or replace an availability profile."""
    pass


def _print_profile(p: AvailabilityProfile):
    days = "Sun Mon Tue Wed Thu Fri Sat".split()
    click.echo(f"Status:    {p.availability_status.value}")
    click.echo(f"Days:      {', '.join(days[d] for d in sorted(p.days))}")
    click.echo(f"Hours:     {format_time12(p.start)} - {format_time12(p.end)}")
    click.echo(f"Slots:     {p.slot_duration} min, {p.buffer} min buffer")
    click.echo(f"Per day:   {p.min_per_day}-{p.max_per_day} (now {p.effective_max_per_day()})")
    for brk in p.break_times:
        click.echo(f"Break:     {format_time12(brk.start)} - {format_time12(brk.end)}")
    click.echo(f"Duration:  {p.appointment_duration.min}-{p.appointment_duration.max} min")
    click.echo(f"Lead time: {p.lead_time_message()}")
    click.echo(f"Cancel:    {p.cancel_notice_message()}")


@profile.command("show")
@click.argument("user_id", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def profile_show(user_id: str | None, as_json: bool):
    """Show USER_ID's profile (default: your own)."""
    try:
        p = _service().profile(user_id)
    except BookingError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(p.to_api(), indent=2))
    else:
        _print_profile(p)


def _parse_break(value: str) -> BreakTime:
    start, sep, end = value.partition("-")
    if not sep:
        raise click.BadParameter(f"Invalid break: {value}. Use HH:MM-HH:MM.")
    return BreakTime(start=start.strip(), end=end.strip())


@profile.command("set")
@click.option("--days", help="Comma-separated weekdays, 0=Sunday..6=Saturday")
@click.option("--start", help="Day start, HH:MM")
@click.option("--end", help="Day end, HH:MM")
@click.option("--slot", type=int, help="Slot length in minutes")
@click.option("--buffer", type=int, help="Minutes between bookings")
@click.option("--max-per-day", type=int)
@click.option("--min-per-day", type=int, help="Daily cap while status is limited")
@click.option("--break", "breaks", multiple=True, help="Break window HH:MM-HH:MM (repeatable)")
@click.option("--clear-breaks", is_flag=True, help="Remove all breaks")
@click.option("--lead", type=float, help="Minimum lead time in hours")
@click.option("--notice", type=float, help="Cancel notice in hours")
@click.option("--min-duration", type=int)
@click.option("--max-duration", type=int)
@click.option("--status", type=click.Choice([s.value for s in AvailabilityStatus]))
def profile_set(days, start, end, slot, buffer, max_per_day, min_per_day, breaks, clear_breaks,
                lead, notice, min_duration, max_duration, status):
    """Replace your profile; unspecified settings keep their current values."""
    try:
        service = _service()
        current = service.profile()

        changes = {}
        if days is not None:
            try:
                changes["days"] = frozenset(int(d) for d in days.split(",") if d.strip())
            except ValueError:
                raise click.BadParameter(f"Invalid days: {days}")
        if start:
            changes["start"] = start
        if end:
            changes["end"] = end
        if slot is not None:
            changes["slot_duration"] = slot
        if buffer is not None:
            changes["buffer"] = buffer
        if max_per_day is not None:
            changes["max_per_day"] = max_per_day
        if min_per_day is not None:
            changes["min_per_day"] = min_per_day
        if breaks or clear_breaks:
            changes["break_times"] = tuple(_parse_break(b) for b in breaks)
        if lead is not None:
            changes["min_lead_time"] = lead
        if notice is not None:
            changes["cancel_notice"] = notice
        if min_duration is not None or max_duration is not None:
            changes["appointment_duration"] = DurationRange(
                min=min_duration if min_duration is not None else current.appointment_duration.min,
                max=max_duration if max_duration is not None else current.appointment_duration.max,
            )
        if status:
            changes["availability_status"] = AvailabilityStatus(status)

        saved = service.save_profile(replace(current, **changes))
    except BookingError as e:
        _fail(e)

    click.echo("Profile saved.")
    _print_profile(saved)


# ---- booking ----


@main.command()
@click.argument("owner_id")
@click.option("--date", "-d", "target_date", default=None, help="Date (YYYY-MM-DD), defaults to today")
@click.option("--all", "show_all", is_flag=True, help="Include rejected slots with the reason")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def slots(owner_id: str, target_date: str | None, show_all: bool, as_json: bool):
    """List bookable slots on OWNER_ID's calendar."""
    day = _parse_date(target_date)
    try:
        results = _service().day_slots(owner_id, day)
    except BookingError as e:
        _fail(e)

    if not show_all:
        results = [(slot, admission) for slot, admission in results if admission]

    if as_json:
        click.echo(
            json.dumps(
                [
                    {
                        "start": slot.isoformat(),
                        "admitted": admission.admitted,
                        "reason": admission.reason.value if admission.reason else None,
                        "message": admission.message or None,
                    }
                    for slot, admission in results
                ],
                indent=2,
            )
        )
        return

    if not results:
        click.echo(f"No available slots on {day.isoformat()}.")
        return

    click.echo(f"Slots on {day.isoformat()}:")
    for slot, admission in results:
        label = format_time12(format_hhmm(slot))
        if admission:
            click.echo(f"  {label}")
        else:
            click.echo(f"  {label}  (unavailable: {admission.message})")


@main.command()
@click.argument("owner_id")
@click.option("--date", "-d", "target_date", required=True, help="Date (YYYY-MM-DD)")
@click.option("--time", "-t", "at", required=True, help="Start time (HH:MM)")
@click.option("--duration", type=int, default=None, help="Length in minutes (default: slot length)")
@click.option("--title", default="")
@click.option("--description", default="")
@click.option("--meeting-type", type=click.Choice(MEETING_TYPES), default="Video Call")
def book(owner_id, target_date, at, duration, title, description, meeting_type):
    """Request an appointment with OWNER_ID."""
    start = _parse_start(target_date, at)
    try:
        appt = _service().book(
            owner_id,
            start,
            duration,
            title=title,
            description=description,
            meeting_type=meeting_type,
        )
    except BookingError as e:
        _fail(e)
    click.echo(f"Requested: {_describe(appt)}")


@main.command("list")
@click.option("--status", type=click.Choice(["pending", "confirmed", "declined", "cancelled", "completed", "rescheduled"]))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_appointments(status: str | None, as_json: bool):
    """List your appointments."""
    try:
        items = _service().appointments(status)
    except BookingError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps([{"id": a.id, **a.to_api()} for a in items], indent=2))
        return

    if not items:
        click.echo("No appointments.")
        return
    for appt in items:
        click.echo(_describe(appt))


@main.command()
@click.argument("appointment_id")
def accept(appointment_id: str):
    """Accept a pending request."""
    try:
        appt = _service().accept(appointment_id)
    except BookingError as e:
        _fail(e)
    click.echo(f"Accepted: {_describe(appt)}")


@main.command()
@click.argument("appointment_id")
@click.option("--reason", "-r", required=True, help="Why you are declining")
def decline(appointment_id: str, reason: str):
    """Decline a pending request."""
    try:
        appt = _service().decline(appointment_id, reason)
    except BookingError as e:
        _fail(e)
    click.echo(f"Declined: {_describe(appt)}")


@main.command()
@click.argument("appointment_id")
def cancel(appointment_id: str):
    """Cancel an appointment."""
    try:
        appt = _service().cancel(appointment_id)
    except BookingError as e:
        _fail(e)
    click.echo(f"Cancelled: {_describe(appt)}")


@main.command()
@click.argument("appointment_id")
@click.option("--date", "-d", "target_date", required=True, help="New date (YYYY-MM-DD)")
@click.option("--time", "-t", "at", required=True, help="New start time (HH:MM)")
def reschedule(appointment_id: str, target_date: str, at: str):
    """Move a confirmed appointment to a new slot."""
    start = _parse_start(target_date, at)
    try:
        appt = _service().reschedule(appointment_id, start)
    except BookingError as e:
        _fail(e)
    click.echo(f"Rescheduled: {_describe(appt)}")


@main.command()
@click.argument("appointment_id")
def complete(appointment_id: str):
    """Mark an appointment completed."""
    try:
        appt = _service().complete(appointment_id)
    except BookingError as e:
        _fail(e)
    click.echo(f"Completed: {_describe(appt)}")


@main.command()
@click.argument("appointment_id")
@click.option("--stars", type=click.IntRange(1, 5), required=True)
@click.option("--feedback", default="")
def rate(appointment_id: str, stars: int, feedback: str):
    """Rate a completed appointment (1-5)."""
    try:
        _service().rate(appointment_id, stars, feedback)
    except BookingError as e:
        _fail(e)
    click.echo(f"Rated {appointment_id}: {'*' * stars}")


@main.command()
@click.argument("appointment_id")
@click.confirmation_option(prompt="Delete this appointment permanently?")
def delete(appointment_id: str):
    """Delete an appointment permanently."""
    try:
        _service().delete(appointment_id)
    except BookingError as e:
        _fail(e)
    click.echo(f"Deleted {appointment_id}.")


# ---- push ----


@main.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def watch(debug: bool):
    """Stay connected: presence changes, reminders and the completion sweep."""
    import logging

    from .adapters.socketio_transport import SocketIOTransport
    from .core.presence import PresenceEvent
    from .scheduler import AppointmentSweeper, build_scheduler
    from .sync import PresenceSync
    from .workflows import AppointmentFeed

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )

    config = load_config()
    try:
        service = _service()
    except BookingError as e:
        _fail(e)

    transport = SocketIOTransport(config=config)
    sync = PresenceSync()

    def on_presence(event: PresenceEvent):
        if event.is_sync:
            online = sorted(sync.registry.online_users())
            click.echo(f"Online: {', '.join(online) if online else 'nobody'}")
        elif event.online is not None:
            click.echo(f"{event.user_id} is {'online' if event.online else 'offline'}")
        elif event.status is not None:
            latest = sync.latest_profile(event.user_id)
            capacity = f" ({latest.effective_max_per_day()} bookings/day)" if latest else ""
            click.echo(f"{event.user_id} is now {event.status.value}{capacity}")

    feed = AppointmentFeed(
        service.user_id,
        on_reminder=lambda a: click.echo(f"Reminder: {_describe(a)}"),
        on_started=lambda a: click.echo(f"Starting now: {_describe(a)}"),
        on_change=lambda event, a: click.echo(f"{event}: {a if isinstance(a, str) else _describe(a)}"),
    )
    sync.attach(transport)
    feed.attach(transport)
    try:
        feed.track(service.appointments())
    except BookingError as e:
        _fail(e)
    subscription = sync.registry.subscribe(on_presence)

    sweeper = AppointmentSweeper(
        service,
        notify=lambda kind, a: click.echo(f"{kind.capitalize()}: {_describe(a)}"),
        reminder_minutes=config.reminder_minutes,
    )
    scheduler = build_scheduler(sweeper, config)

    try:
        transport.connect()
        scheduler.start()
        click.echo("Watching for updates. Press Ctrl+C to stop")
        transport.wait()
    except BookingError as e:
        _fail(e)
    except KeyboardInterrupt:
        click.echo("\nStopped.")
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)
        subscription.dispose()
        sync.detach()
        transport.disconnect()
