"""Dashboard view controller: session gate, appointments and cancellation."""
from dataclasses import dataclass
from typing import Callable, List, Optional

from clinician_console.appointments import AppointmentStats, CancelPrompt
from clinician_console.console import ConsoleContext
from clinician_console.credentials import NoCredentialError
from clinician_console.http_client import ApiError, NetworkFailure, ServerError
from clinician_console.logging_config import get_logger
from clinician_console.models import Appointment, DoctorProfile
from clinician_console.navigation import LANDING
from clinician_console.onboarding import GateDecision, is_profile_complete

logger = get_logger(__name__)


@dataclass(frozen=True)
class DashboardSnapshot:
    """Everything the dashboard renders, derived from current state."""
    decision: GateDecision
    doctor: Optional[DoctorProfile]
    appointments: List[Appointment]
    appointments_loading: bool
    stats: AppointmentStats
    show_onboarding_alert: bool
    pending_cancel: Optional[CancelPrompt]
    is_cancelling: bool


class DashboardView:
    """Lives while the dashboard is open; close() detaches it."""

    def __init__(self, context: ConsoleContext):
        self.context = context
        self.decision = GateDecision.LOADING
        self.closed = False
        self._subscriptions: List[Callable[[], None]] = []
        self._unobserve_appointments: Optional[Callable[[], None]] = None
        self._logged_out_notice_sent = False
        self._backend_notice_sent = False

    async def load(self) -> GateDecision:
        """Resolve the session, apply the gate and load appointments if allowed."""
        if not self._subscriptions:
            self._subscriptions.append(self.context.session.observe())

        await self.context.session.resolve()
        if self.closed:
            return self.decision

        decision = self.evaluate()
        if decision is GateDecision.GRANTED:
            await self.load_appointments()
        return self.decision

    def evaluate(self) -> GateDecision:
        """Re-run the gate against the current session state."""
        state = self.context.session.state
        self._report_backend_error(state.error)

        decision = self.context.gate.evaluate(state)
        if decision is GateDecision.UNAUTHENTICATED:
            if not self._logged_out_notice_sent:
                self._logged_out_notice_sent = True
                self.context.notifier.error("Unauthorized", "You are logged out. Logging in again...")
                self.context.navigator.go(LANDING, delay=self.context.unauthorized_redirect_delay)
            self._stop_observing_appointments()
        elif decision is not GateDecision.LOADING:
            self._logged_out_notice_sent = False

        if decision is GateDecision.GRANTED and self._unobserve_appointments is None:
            self._unobserve_appointments = self.context.appointments.observe()

        self.decision = decision
        return decision

    async def load_appointments(self) -> List[Appointment]:
        manager = self.context.appointments
        try:
            return await manager.list(enabled=self.context.session.state.is_authenticated)
        except (ApiError, NoCredentialError) as e:
            logger.warning("appointments_load_failed", error=str(e))
            if not self.closed:
                self.context.notifier.error("Error", f"Failed to load appointments: {e}")
                self.evaluate()
            return manager.appointments

    def request_cancel(self, appointment_id: str) -> CancelPrompt:
        return self.context.appointments.request_cancel(appointment_id)

    def dismiss_cancel(self) -> None:
        self.context.appointments.dismiss_cancel()

    async def confirm_cancel(self) -> bool:
        cancelled = await self.context.appointments.confirm_cancel()
        if not self.closed:
            self.evaluate()
        return cancelled

    def logout(self) -> None:
        self.close()
        self.context.logout()

    def snapshot(self) -> DashboardSnapshot:
        state = self.context.session.state
        manager = self.context.appointments
        return DashboardSnapshot(
            decision=self.decision,
            doctor=state.profile,
            appointments=manager.appointments,
            appointments_loading=manager.is_loading,
            stats=manager.stats(),
            show_onboarding_alert=not is_profile_complete(state.profile),
            pending_cancel=manager.pending_cancel,
            is_cancelling=manager.is_cancelling,
        )

    def close(self) -> None:
        self.closed = True
        self._stop_observing_appointments()
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions.clear()

    def _stop_observing_appointments(self) -> None:
        if self._unobserve_appointments is not None:
            self._unobserve_appointments()
            self._unobserve_appointments = None

    def _report_backend_error(self, error: Optional[BaseException]) -> None:
        """Surface a failed session resolution once per failure."""
        if not isinstance(error, (NetworkFailure, ServerError)):
            self._backend_notice_sent = False
            return
        if self._backend_notice_sent:
            return
        self._backend_notice_sent = True
        if isinstance(error, NetworkFailure):
            self.context.notifier.error(
                "Backend Not Connected",
                f"Could not reach the scheduling backend at {self.context.client.base_url}."
            )
        else:
            self.context.notifier.error("Error", f"Failed to load your profile: {error}")
