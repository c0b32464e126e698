"""Settings view controller: specialization, weekly schedule, calendar link."""
import asyncio
from typing import Callable, List, Optional

from clinician_console.cache import PROFILE_KEY
from clinician_console.console import ConsoleContext
from clinician_console.credentials import NoCredentialError
from clinician_console.http_client import ApiError, UnauthorizedError
from clinician_console.logging_config import get_logger
from clinician_console.models import DoctorProfile
from clinician_console.navigation import LANDING
from clinician_console.schedule import ScheduleEditor
from clinician_console.session import SessionState

logger = get_logger(__name__)


class SettingsView:
    """
    Profile setup page.

    Mutations run validate -> submit -> invalidate "profile" -> completion
    check, in that order. A failed submit keeps local edits for a retry.
    """

    def __init__(self, context: ConsoleContext):
        self.context = context
        self.editor = ScheduleEditor()
        self.specialization = ""
        self.is_saving_schedule = False
        self.is_saving_specialization = False
        self.closed = False
        self._loaded = False
        self._merged_hours: Optional[List[dict]] = None
        self._subscriptions: List[Callable[[], None]] = [
            context.cache.subscribe(PROFILE_KEY, self._on_profile_changed),
            context.session.observe(),
        ]

    async def load(self) -> SessionState:
        state = await self.context.session.resolve()
        if self.closed:
            return state

        if not state.is_authenticated:
            if not state.is_loading:
                self.context.navigator.go(LANDING)
            return state

        if not self._loaded:
            self._loaded = True
            self.specialization = state.profile.specialization or ""
            self.context.gate.prime(state.profile)
        self._sync_schedule(state.profile)
        return state

    async def save_specialization(self, value: Optional[str] = None) -> bool:
        """
        Submit the specialization (empty is allowed and means "incomplete").

        Args:
            value: New value; defaults to the current field value
        """
        if value is not None:
            self.specialization = value

        self.is_saving_specialization = True
        try:
            await self.context.client.update_specialization(self.specialization)
        except (ApiError, NoCredentialError) as e:
            self._fail(f"Failed to update specialization: {e}", e)
            return False
        finally:
            self.is_saving_specialization = False

        await self._after_profile_mutation("Specialization updated!")
        return True

    async def save_schedule(self) -> bool:
        """Validate, then bulk-replace the weekly schedule."""
        ok, message = self.editor.validate()
        if not ok:
            self.context.notifier.notify("Validation Error", message)
            return False

        self.is_saving_schedule = True
        try:
            await self.context.client.replace_working_hours(list(self.editor.days))
        except (ApiError, NoCredentialError) as e:
            self._fail(f"Failed to save schedule: {e}", e)
            return False
        finally:
            self.is_saving_schedule = False

        await self._after_profile_mutation("Weekly schedule saved!")
        return True

    def connect_calendar(self) -> str:
        """Leave the console for the backend's calendar connect flow."""
        url = self.context.client.calendar_connect_url()
        self.context.navigator.open_external(url)
        return url

    def close(self) -> None:
        self.closed = True
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions.clear()

    async def _after_profile_mutation(self, success_message: str) -> None:
        if self._is_detached():
            logger.info("settings_save_completed_after_close")
            return
        refresh = self.context.cache.invalidate(PROFILE_KEY)
        self.context.notifier.notify("Success", success_message)
        self.context.gate.check_completion(self.specialization, self.editor.days)
        if refresh is not None:
            await asyncio.wait([refresh])

    def _fail(self, description: str, error: Exception) -> None:
        logger.warning("settings_save_failed", error=str(error))
        if self.closed:
            return
        # A 401/403 clears the credential itself, so only other failures check it.
        ends_session = isinstance(error, (UnauthorizedError, NoCredentialError))
        if not ends_session and self._is_detached():
            return
        self.context.notifier.error("Error", description)
        if ends_session:
            self.context.end_session()

    def _is_detached(self) -> bool:
        # A late response for a closed view or an ended session has no effects.
        return self.closed or self.context.credentials.get() is None

    def _on_profile_changed(self, key: str) -> None:
        if self.closed or not self._loaded:
            return
        profile = self.context.session.state.profile
        if profile is not None:
            self._sync_schedule(profile)

    def _sync_schedule(self, profile: DoctorProfile) -> None:
        # Only re-merge when the backend's hours actually changed, so unsaved
        # edits survive an unrelated profile refresh.
        hours = [entry.model_dump() for entry in profile.working_hours]
        if hours == self._merged_hours:
            return
        self.editor.merge(profile.working_hours)
        self._merged_hours = hours
