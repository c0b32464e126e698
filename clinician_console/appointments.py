"""Appointment list, dashboard aggregates and cancellation."""
import asyncio
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

from clinician_console.cache import APPOINTMENTS_KEY, ServerStateCache
from clinician_console.credentials import NoCredentialError
from clinician_console.http_client import ApiError, BackendClient
from clinician_console.logging_config import get_logger
from clinician_console.models import Appointment
from clinician_console.notices import Notifier

logger = get_logger(__name__)

CANCEL_DIALOG_TITLE = "Cancel Appointment"
CANCEL_DIALOG_DESCRIPTION = (
    "Are you sure you want to cancel this appointment? The patient will be "
    "automatically notified. This action cannot be undone."
)
CANCEL_DIALOG_CONFIRM = "Yes, Cancel Appointment"
CANCEL_DIALOG_DISMISS = "Keep Appointment"


@dataclass(frozen=True)
class AppointmentStats:
    today: int
    this_week: int


@dataclass(frozen=True)
class CancelPrompt:
    """Content of the confirmation dialog for the one pending cancellation."""
    appointment_id: str
    title: str = CANCEL_DIALOG_TITLE
    description: str = CANCEL_DIALOG_DESCRIPTION
    confirm_text: str = CANCEL_DIALOG_CONFIRM
    cancel_text: str = CANCEL_DIALOG_DISMISS


def local_date(moment: datetime, now: datetime) -> date:
    """Calendar date of moment in the same time frame as now."""
    if moment.tzinfo is not None:
        if now.tzinfo is not None:
            moment = moment.astimezone(now.tzinfo)
        else:
            moment = moment.astimezone().replace(tzinfo=None)
    return moment.date()


def week_bounds(today: date) -> Tuple[date, date]:
    """Sunday starting the week of today, and the Saturday ending it."""
    days_since_sunday = (today.weekday() + 1) % 7
    start = today - timedelta(days=days_since_sunday)
    return start, start + timedelta(days=6)


def count_today(appointments: Sequence[Appointment], now: datetime) -> int:
    today = now.date()
    return sum(1 for apt in appointments if local_date(apt.date_time, now) == today)


def count_this_week(appointments: Sequence[Appointment], now: datetime) -> int:
    start, end = week_bounds(now.date())
    return sum(1 for apt in appointments if start <= local_date(apt.date_time, now) <= end)


def compute_stats(appointments: Sequence[Appointment], now: datetime) -> AppointmentStats:
    return AppointmentStats(
        today=count_today(appointments, now),
        this_week=count_this_week(appointments, now),
    )


def format_appointment_time(moment: datetime) -> str:
    """Format as e.g. "October 16, 2026 at 3:05 PM"."""
    period = "AM" if moment.hour < 12 else "PM"
    hour_12 = moment.hour if moment.hour <= 12 else moment.hour - 12
    hour_12 = 12 if hour_12 == 0 else hour_12
    return f"{moment.strftime('%B')} {moment.day}, {moment.year} at {hour_12}:{moment.minute:02d} {period}"


class AppointmentManager:
    """
    Appointment list backed by the "appointments" cache key.

    Cancellation is two-phase: request_cancel() opens the confirmation for
    one target, confirm_cancel() deletes it. The list only changes through
    the re-fetch that follows a successful delete.
    """

    def __init__(
        self,
        client: BackendClient,
        cache: ServerStateCache,
        notifier: Notifier,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self.clock = clock
        self.pending_cancel: Optional[CancelPrompt] = None
        self.is_cancelling = False

    @property
    def appointments(self) -> List[Appointment]:
        return self.cache.peek(APPOINTMENTS_KEY) or []

    @property
    def is_loading(self) -> bool:
        return self.cache.is_fetching(APPOINTMENTS_KEY) and self.cache.peek(APPOINTMENTS_KEY) is None

    async def list(self, enabled: bool) -> List[Appointment]:
        """
        Load the appointment list (backend order).

        Args:
            enabled: Only fetch while the session is authenticated
        """
        data = await self.cache.read(APPOINTMENTS_KEY, self.client.list_appointments, enabled=enabled)
        return data or []

    def observe(self) -> Callable[[], None]:
        return self.cache.observe(APPOINTMENTS_KEY, self.client.list_appointments)

    def stats(self) -> AppointmentStats:
        return compute_stats(self.appointments, self.clock())

    def request_cancel(self, appointment_id: str) -> CancelPrompt:
        """Open the confirmation for appointment_id, replacing any previous target."""
        self.pending_cancel = CancelPrompt(appointment_id=appointment_id)
        return self.pending_cancel

    def dismiss_cancel(self) -> None:
        self.pending_cancel = None

    async def confirm_cancel(self) -> bool:
        """
        Cancel the pending target.

        Returns:
            True if the backend confirmed the cancellation
        """
        prompt = self.pending_cancel
        self.pending_cancel = None
        if prompt is None:
            return False

        self.is_cancelling = True
        try:
            await self.client.cancel_appointment(prompt.appointment_id)
        except (ApiError, NoCredentialError) as e:
            logger.warning("appointment_cancel_failed", appointment_id=prompt.appointment_id, error=str(e))
            self.notifier.error("Error", f"Failed to cancel appointment: {e}")
            return False
        finally:
            self.is_cancelling = False

        logger.info("appointment_cancelled", appointment_id=prompt.appointment_id)
        refresh = self.cache.invalidate(APPOINTMENTS_KEY)
        self.notifier.notify("Success", "Appointment cancelled successfully")
        if refresh is not None:
            await asyncio.wait([refresh])
        return True
