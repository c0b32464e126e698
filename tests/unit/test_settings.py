"""Tests for the settings view."""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from clinician_console import SettingsView
from clinician_console.cache import PROFILE_KEY
from clinician_console.http_client import ServerError
from clinician_console.navigation import DASHBOARD, LANDING
from tests.utils.backend import BASE_URL, TOKEN, doctor_payload

WORKING_HOURS_PATH = "/api/v1/doctors/me/working-hours"
PROFILE_PATH = "/api/v1/doctors/me"

MONDAY_ONLY = [{"day": "MONDAY", "isAvailable": True, "startTime": "09:00:00", "endTime": "17:00:00"}]


def descriptions(context):
    return [notice.description for notice in context.notifier.history]


def titles(context):
    return [notice.title for notice in context.notifier.history]


def held_call(release, error=None):
    """Async stand-in for a client call that completes once release is set."""
    async def call(*args, **kwargs):
        await release.wait()
        if error is not None:
            raise error
        return None
    return AsyncMock(side_effect=call)


@pytest.fixture
def new_doctor(backend):
    """Signed-in doctor who has not set any working hours yet."""
    backend.respond("GET", "/doctors/me", body=doctor_payload(working_hours=[]))


class TestLoad:

    @pytest.mark.asyncio
    async def test_signed_out_goes_to_landing(self, context, backend):
        """Should send a signed-out visitor to landing without calling the backend."""
        view = SettingsView(context)

        state = await view.load()

        assert not state.is_authenticated
        assert context.navigator.location == LANDING
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_populates_fields_from_profile(self, signed_in, backend):
        """Should fill specialization and schedule from the profile."""
        backend.respond("GET", "/doctors/me", body=doctor_payload())
        view = SettingsView(signed_in)

        await view.load()

        assert view.specialization == "Cardiology"
        assert view.editor.get("monday").available
        assert not view.editor.get("tuesday").available


class TestSaveSchedule:

    @pytest.mark.asyncio
    async def test_invalid_schedule_makes_no_call(self, signed_in, backend, new_doctor):
        """Should report the first invalid day and skip the request."""
        view = SettingsView(signed_in)
        await view.load()
        view.editor.set_available("tuesday", True)
        view.editor.set_start("tuesday", "10:00")
        view.editor.set_end("tuesday", "09:00")

        assert not await view.save_schedule()

        notice = signed_in.notifier.history[-1]
        assert (notice.title, notice.description) == ("Validation Error", "Tuesday: end must be after start")
        assert backend.count("PUT", WORKING_HOURS_PATH) == 0

    @pytest.mark.asyncio
    async def test_save_completes_setup(self, signed_in, backend, new_doctor):
        """Should save all seven days, refetch the profile once and finish setup."""
        view = SettingsView(signed_in)
        await view.load()
        view.editor.apply_standard_hours("monday")
        backend.respond("PUT", WORKING_HOURS_PATH, status=200)
        backend.respond("GET", "/doctors/me", body=doctor_payload(working_hours=MONDAY_ONLY))

        assert await view.save_schedule()

        put = [call for call in backend.calls if call.method == "PUT"][0]
        assert put.json == view.editor.to_wire()
        assert len(put.json) == 7
        assert backend.count("GET", "/doctors/me") == 2
        assert descriptions(signed_in)[-2:] == [
            "Weekly schedule saved!",
            "🎉 You can now access your dashboard and start accepting appointments!",
        ]
        assert signed_in.navigator.location == DASHBOARD
        assert signed_in.session.state.profile.working_hours[0].is_available

    @pytest.mark.asyncio
    async def test_saving_an_already_complete_profile_stays(self, signed_in, backend):
        """Should not announce completion for a profile that was already complete."""
        backend.respond("GET", "/doctors/me", body=doctor_payload())
        backend.respond("PUT", WORKING_HOURS_PATH, status=200)
        view = SettingsView(signed_in)
        await view.load()

        assert await view.save_schedule()

        assert "Profile Setup Complete" not in titles(signed_in)
        assert signed_in.navigator.location != DASHBOARD

    @pytest.mark.asyncio
    async def test_failure_keeps_local_edits(self, signed_in, backend, new_doctor):
        """Should report the error and keep unsaved edits for a retry."""
        view = SettingsView(signed_in)
        await view.load()
        view.editor.apply_standard_hours("wednesday")
        backend.respond("PUT", WORKING_HOURS_PATH, status=500)

        assert not await view.save_schedule()

        assert descriptions(signed_in)[-1] == "Failed to save schedule: 500: Internal Server Error"
        assert view.editor.get("wednesday").available
        assert backend.count("GET", "/doctors/me") == 1
        assert signed_in.credentials.get() == TOKEN
        assert not view.is_saving_schedule

    @pytest.mark.asyncio
    async def test_rejected_token_ends_session(self, signed_in, backend, new_doctor):
        """Should end the session when the backend rejects the token."""
        view = SettingsView(signed_in)
        await view.load()
        view.editor.apply_standard_hours("monday")
        backend.respond("PUT", WORKING_HOURS_PATH, status=401)

        assert not await view.save_schedule()

        assert signed_in.credentials.get() is None
        assert signed_in.cache.entry(PROFILE_KEY) is None
        assert signed_in.navigator.location == LANDING

    @pytest.mark.asyncio
    async def test_late_success_after_logout_has_no_effects(self, signed_in, backend, new_doctor):
        """Should stay silent when the save completes after close and logout."""
        view = SettingsView(signed_in)
        await view.load()
        view.editor.apply_standard_hours("monday")
        release = asyncio.Event()

        with patch.object(signed_in.client, "replace_working_hours", new=held_call(release)):
            save = asyncio.ensure_future(view.save_schedule())
            await asyncio.sleep(0)
            view.close()
            signed_in.logout()
            release.set()
            await save

        assert titles(signed_in) == []
        assert signed_in.navigator.location == LANDING
        assert DASHBOARD not in signed_in.navigator.history
        assert backend.count("GET", "/doctors/me") == 1

    @pytest.mark.asyncio
    async def test_late_failure_after_close_has_no_effects(self, signed_in, backend, new_doctor):
        """Should not report an error for a view that is already closed."""
        view = SettingsView(signed_in)
        await view.load()
        release = asyncio.Event()
        failure = ServerError("500: Internal Server Error", 500)

        with patch.object(signed_in.client, "replace_working_hours", new=held_call(release, failure)):
            save = asyncio.ensure_future(view.save_schedule())
            await asyncio.sleep(0)
            view.close()
            release.set()

            assert not await save

        assert titles(signed_in) == []
        assert signed_in.credentials.get() == TOKEN


class TestSaveSpecialization:

    @pytest.mark.asyncio
    async def test_submits_value_and_refreshes_profile(self, signed_in, backend):
        """Should send the new value and refetch the profile once."""
        backend.respond("GET", "/doctors/me", body=doctor_payload())
        backend.respond("PUT", PROFILE_PATH, status=200, body={"id": 7})
        view = SettingsView(signed_in)
        await view.load()

        assert await view.save_specialization("Neurology")

        put = [call for call in backend.calls if call.method == "PUT"][0]
        assert put.json == {"specialization": "Neurology"}
        assert descriptions(signed_in)[-1] == "Specialization updated!"
        assert backend.count("GET", "/doctors/me") == 2

    @pytest.mark.asyncio
    async def test_empty_value_is_allowed(self, signed_in, backend):
        """Should submit an empty specialization as is."""
        backend.respond("GET", "/doctors/me", body=doctor_payload())
        backend.respond("PUT", PROFILE_PATH, status=200)
        view = SettingsView(signed_in)
        await view.load()

        assert await view.save_specialization("")

        put = [call for call in backend.calls if call.method == "PUT"][0]
        assert put.json == {"specialization": ""}

    @pytest.mark.asyncio
    async def test_completing_specialization_fires_setup_complete(self, signed_in, backend):
        """Should finish setup when the missing specialization is saved."""
        backend.respond("GET", "/doctors/me", body=doctor_payload(specialization=None))
        backend.respond("PUT", PROFILE_PATH, status=200)
        view = SettingsView(signed_in)
        await view.load()
        backend.respond("GET", "/doctors/me", body=doctor_payload())

        assert await view.save_specialization("Cardiology")

        assert titles(signed_in)[-1] == "Profile Setup Complete"
        assert signed_in.navigator.location == DASHBOARD

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, signed_in, backend):
        """Should report the error and keep the typed value."""
        backend.respond("GET", "/doctors/me", body=doctor_payload())
        backend.respond("PUT", PROFILE_PATH, status=400)
        view = SettingsView(signed_in)
        await view.load()

        assert not await view.save_specialization("Neurology")

        assert descriptions(signed_in)[-1] == "Failed to update specialization: 400: Bad Request"
        assert view.specialization == "Neurology"

    @pytest.mark.asyncio
    async def test_late_success_after_logout_has_no_effects(self, signed_in, backend):
        """Should not announce completion or navigate once the session has ended."""
        backend.respond("GET", "/doctors/me", body=doctor_payload(specialization=None))
        view = SettingsView(signed_in)
        await view.load()
        release = asyncio.Event()

        with patch.object(signed_in.client, "update_specialization", new=held_call(release)):
            save = asyncio.ensure_future(view.save_specialization("Cardiology"))
            await asyncio.sleep(0)
            view.close()
            signed_in.logout()
            release.set()
            await save

        assert titles(signed_in) == []
        assert signed_in.navigator.location == LANDING
        assert DASHBOARD not in signed_in.navigator.history


class TestProfileRefresh:

    @pytest.mark.asyncio
    async def test_unsaved_edits_survive_unrelated_refresh(self, signed_in, backend):
        """Should keep local edits when the refetched hours did not change."""
        backend.respond("GET", "/doctors/me", body=doctor_payload())
        view = SettingsView(signed_in)
        await view.load()
        view.editor.apply_standard_hours("friday")

        refresh = signed_in.cache.invalidate(PROFILE_KEY)
        await refresh

        assert view.editor.get("friday").available
        assert backend.count("GET", "/doctors/me") == 2

    @pytest.mark.asyncio
    async def test_changed_backend_hours_are_merged(self, signed_in, backend):
        """Should re-merge when the backend reports different hours."""
        backend.respond("GET", "/doctors/me", body=doctor_payload())
        view = SettingsView(signed_in)
        await view.load()
        backend.respond("GET", "/doctors/me", body=doctor_payload(working_hours=[
            {"day": "thursday", "isAvailable": True, "startTime": "08:00", "endTime": "12:00"},
        ]))

        await signed_in.cache.invalidate(PROFILE_KEY)

        assert view.editor.get("thursday").start == "08:00"
        assert not view.editor.get("monday").available

    @pytest.mark.asyncio
    async def test_closed_view_ignores_refresh(self, signed_in, backend):
        """Should stop keeping the profile fresh once closed."""
        backend.respond("GET", "/doctors/me", body=doctor_payload())
        view = SettingsView(signed_in)
        await view.load()
        view.close()

        assert signed_in.cache.invalidate(PROFILE_KEY) is None


def test_connect_calendar_leaves_console(context):
    """Should navigate away to the backend's calendar connect URL."""
    view = SettingsView(context)

    url = view.connect_calendar()

    assert url == f"{BASE_URL}/api/v1/doctors/me/google-calendar/connect"
    assert context.navigator.location == url
