"""HTTP client for the scheduling backend.

Purpose: One place that knows the backend's REST surface, attaches the bearer
credential and turns HTTP outcomes into the console's error types.

Pattern: pooled requests.Session driven from the event loop through
asyncio.to_thread. Failures are surfaced exactly once: the adapter is mounted
with Retry(total=0) and nothing above it retries.
"""
import asyncio
from typing import Any, Iterable, List, Optional

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from clinician_console import config
from clinician_console.credentials import CredentialStore
from clinician_console.logging_config import generate_request_id, get_logger
from clinician_console.models import Appointment, DayAvailability, DoctorProfile

logger = get_logger(__name__)

SESSION_PATH = "/doctors/me"
APPOINTMENTS_PATH = "/api/v1/doctors/appointments"
PROFILE_PATH = "/api/v1/doctors/me"
WORKING_HOURS_PATH = "/api/v1/doctors/me/working-hours"
CALENDAR_CONNECT_PATH = "/api/v1/doctors/me/google-calendar/connect"


class ApiError(Exception):
    """Base class for failed backend calls."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class UnauthorizedError(ApiError):
    """Raised on 401/403. The credential has already been cleared."""
    pass


class ServerError(ApiError):
    """Raised on any other non-2xx response."""
    pass


class NetworkFailure(ApiError):
    """Raised when the backend could not be reached at all."""
    pass


def create_http_session(pool_size: int = 10) -> requests.Session:
    """
    Create HTTP session with connection pooling and no retries.

    Args:
        pool_size: Connections kept per host (default: 10)

    Returns:
        Configured requests.Session
    """
    session = requests.Session()

    adapter = HTTPAdapter(
        max_retries=Retry(total=0, redirect=False),
        pool_connections=pool_size,
        pool_maxsize=pool_size,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    return session


class BackendClient:
    """Typed access to the backend endpoints used by the console."""

    def __init__(
        self,
        credentials: CredentialStore,
        base_url: str = config.BACKEND_URL,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = config.REQUEST_TIMEOUT
    ):
        """
        Initialize backend client.

        Args:
            credentials: Store providing the bearer token
            base_url: Backend root URL
            session: HTTP session (created if omitted)
            timeout: Per-request timeout in seconds, None to wait indefinitely
        """
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.session = session or create_http_session()
        self.timeout = timeout

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def send(self, method: str, path: str, json: Any = None) -> Any:
        """
        Make an authenticated call and decode the JSON body.

        Args:
            method: HTTP method
            path: Path below base_url
            json: Optional JSON body

        Returns:
            Decoded body, or None for an empty body

        Raises:
            NoCredentialError: If no token is stored
            UnauthorizedError: On 401/403 (credential cleared first)
            ServerError: On any other non-2xx status
            NetworkFailure: If the backend is unreachable
        """
        token = self.credentials.require()
        request_id = generate_request_id()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "X-Request-ID": request_id,
        }

        try:
            response = self.session.request(
                method,
                self.url_for(path),
                headers=headers,
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning("backend_unreachable", method=method, path=path, request_id=request_id, error=str(e))
            raise NetworkFailure(f"Backend server not available: {e}") from e

        logger.info("backend_call", method=method, path=path, status=response.status_code, request_id=request_id)

        if response.status_code in (401, 403):
            self.credentials.clear()
            raise UnauthorizedError(
                f"{response.status_code}: {response.reason}",
                status=response.status_code
            )
        if not 200 <= response.status_code < 300:
            raise ServerError(
                f"{response.status_code}: {response.reason}",
                status=response.status_code
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ServerError(
                f"{response.status_code}: invalid JSON in response",
                status=response.status_code
            ) from e

    async def request(self, method: str, path: str, json: Any = None) -> Any:
        """Run send() off the event loop."""
        return await asyncio.to_thread(self.send, method, path, json)

    async def get_current_doctor(self) -> DoctorProfile:
        data = await self.request("GET", SESSION_PATH)
        return _parse(DoctorProfile, data, SESSION_PATH)

    async def list_appointments(self) -> List[Appointment]:
        data = await self.request("GET", APPOINTMENTS_PATH)
        return [_parse(Appointment, item, APPOINTMENTS_PATH) for item in data or []]

    async def cancel_appointment(self, appointment_id: str) -> Any:
        return await self.request("DELETE", f"{APPOINTMENTS_PATH}/{appointment_id}")

    async def update_specialization(self, specialization: str) -> Any:
        return await self.request("PUT", PROFILE_PATH, {"specialization": specialization})

    async def replace_working_hours(self, days: Iterable[DayAvailability]) -> Any:
        """Bulk replace the weekly schedule (all-or-nothing on the backend)."""
        payload = [day.to_wire() for day in days]
        return await self.request("PUT", WORKING_HOURS_PATH, payload)

    def calendar_connect_url(self) -> str:
        """URL the browser navigates to in order to link a calendar."""
        return self.url_for(CALENDAR_CONNECT_PATH)


def _parse(model, data: Any, path: str):
    """Validate a response body, reporting malformed payloads as server errors."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error("backend_payload_invalid", path=path, error=str(e))
        raise ServerError(f"Unexpected response from {path}") from e
