"""Onboarding gate: who may reach the main console.

The decision itself is a pure function of the session state. OnboardingGate
adds the one-shot effects (notices and navigation) on top of it, each tied to
a state transition rather than to how often the gate is evaluated.
"""
from enum import Enum
from typing import Iterable, Optional

from clinician_console.logging_config import get_logger
from clinician_console.models import DayAvailability, DoctorProfile
from clinician_console.navigation import DASHBOARD, SETTINGS, Navigator
from clinician_console.notices import Notifier
from clinician_console.session import SessionState

logger = get_logger(__name__)


class GateDecision(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    SETUP_REQUIRED = "setup_required"
    GRANTED = "granted"


def has_available_day(days: Iterable) -> bool:
    """True if any entry is available (DayAvailability or backend wire entries)."""
    for day in days:
        available = day.available if isinstance(day, DayAvailability) else day.is_available
        if available:
            return True
    return False


def is_profile_complete(profile: Optional[DoctorProfile]) -> bool:
    """Complete = specialization set and at least one available day."""
    if profile is None:
        return False
    return bool(profile.specialization) and has_available_day(profile.working_hours)


def decide(is_loading: bool, is_authenticated: bool, profile: Optional[DoctorProfile]) -> GateDecision:
    if is_loading:
        return GateDecision.LOADING
    if not is_authenticated:
        return GateDecision.UNAUTHENTICATED
    if not is_profile_complete(profile):
        return GateDecision.SETUP_REQUIRED
    return GateDecision.GRANTED


class OnboardingGate:
    """One owner per console; shared by the dashboard and settings views."""

    def __init__(self, notifier: Notifier, navigator: Navigator, completion_delay: float = 1.2):
        """
        Args:
            notifier: Where notices go
            navigator: Where navigation requests go
            completion_delay: Seconds before leaving settings once setup completes
        """
        self.notifier = notifier
        self.navigator = navigator
        self.completion_delay = completion_delay
        self._setup_redirect_sent = False
        self._was_complete: Optional[bool] = None

    def evaluate(self, state: SessionState) -> GateDecision:
        """
        Decide access and fire the setup redirect once per entry into
        SETUP_REQUIRED.
        """
        decision = decide(state.is_loading, state.is_authenticated, state.profile)

        if decision is GateDecision.SETUP_REQUIRED:
            if not self._setup_redirect_sent:
                self._setup_redirect_sent = True
                logger.info("onboarding_setup_required")
                self.notifier.notify(
                    "Profile Incomplete",
                    "Please complete your profile before accessing the dashboard."
                )
                self.navigator.go(SETTINGS)
        elif decision is not GateDecision.LOADING:
            self._setup_redirect_sent = False

        return decision

    def prime(self, profile: Optional[DoctorProfile]) -> None:
        """Seed the completion baseline from the profile the settings page loaded."""
        self._was_complete = is_profile_complete(profile)

    def check_completion(self, specialization: str, days: Iterable[DayAvailability]) -> bool:
        """
        Fire the "setup complete" notice and dashboard navigation on the
        incomplete -> complete edge only.

        Returns:
            True if the effect fired
        """
        complete = bool(specialization) and has_available_day(days)
        just_completed = complete and not self._was_complete
        self._was_complete = complete

        if just_completed:
            logger.info("onboarding_completed")
            self.notifier.notify(
                "Profile Setup Complete",
                "🎉 You can now access your dashboard and start accepting appointments!"
            )
            self.navigator.go(DASHBOARD, delay=self.completion_delay)
        return just_completed
