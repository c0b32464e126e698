"""Session resolution: who is signed in, derived from the stored credential."""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from clinician_console.cache import PROFILE_KEY, ServerStateCache
from clinician_console.credentials import CredentialStore, NoCredentialError
from clinician_console.http_client import ApiError, BackendClient, UnauthorizedError
from clinician_console.logging_config import get_logger
from clinician_console.models import DoctorProfile

logger = get_logger(__name__)


class SessionStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the session as seen by views."""
    profile: Optional[DoctorProfile]
    is_loading: bool
    is_authenticated: bool
    error: Optional[BaseException]
    status: SessionStatus


def derive_session_state(
    token: Optional[str],
    profile: Optional[DoctorProfile],
    error: Optional[BaseException]
) -> SessionState:
    """
    Compute the session state from the credential and the cached profile.

    A profile without a credential is never authenticated, so a stale profile
    left in the cache after logout or a 401 cannot grant access.
    """
    has_token = bool(token)
    is_authenticated = profile is not None and has_token
    is_loading = has_token and profile is None and error is None

    if not has_token:
        status = SessionStatus.UNAUTHENTICATED
    elif is_authenticated:
        status = SessionStatus.AUTHENTICATED
    elif is_loading:
        status = SessionStatus.LOADING
    else:
        status = SessionStatus.ERROR

    return SessionState(
        profile=profile,
        is_loading=is_loading,
        is_authenticated=is_authenticated,
        error=error,
        status=status,
    )


class SessionResolver:
    """
    Resolves the signed-in doctor through the "profile" cache key.

    Resolution is attempted once per call and never retried; the caller
    decides whether to send the user back to sign in.
    """

    def __init__(self, credentials: CredentialStore, client: BackendClient, cache: ServerStateCache):
        self.credentials = credentials
        self.client = client
        self.cache = cache
        self.last_error: Optional[BaseException] = None
        self._profile_token: Optional[str] = None

    @property
    def state(self) -> SessionState:
        token = self.credentials.get()
        profile = None
        if token is not None and token == self._profile_token:
            entry = self.cache.entry(PROFILE_KEY)
            if entry is not None and entry.has_data:
                profile = entry.data
        return derive_session_state(token, profile, self.last_error)

    async def resolve(self) -> SessionState:
        """
        Fetch the current doctor unless a fresh profile is cached.

        Without a credential this returns Unauthenticated without a call.
        A 401/403 leaves the session Unauthenticated (the client clears the
        credential); any other failure leaves it in Error with the
        credential kept.
        """
        token = self.credentials.get()
        if not token:
            return self.state

        if token != self._profile_token:
            self.cache.remove(PROFILE_KEY)
            self.last_error = None

        try:
            await self.cache.read(PROFILE_KEY, self._fetch_profile)
        except UnauthorizedError as e:
            self.last_error = e
            logger.warning("session_rejected", status=e.status)
        except (ApiError, NoCredentialError) as e:
            self.last_error = e
            logger.warning("session_resolution_failed", error=str(e))
        else:
            self.last_error = None

        state = self.state
        logger.info("session_resolved", status=state.status.value)
        return state

    def observe(self) -> Callable[[], None]:
        """Keep the profile refreshed on invalidation while a view is open."""
        return self.cache.observe(PROFILE_KEY, self._fetch_profile)

    def reset(self) -> None:
        """Forget everything known about the previous session."""
        self._profile_token = None
        self.last_error = None
        self.cache.remove(PROFILE_KEY)

    async def _fetch_profile(self) -> DoctorProfile:
        self._profile_token = self.credentials.get()
        try:
            profile = await self.client.get_current_doctor()
        except (ApiError, NoCredentialError) as e:
            self.last_error = e
            raise
        self.last_error = None
        return profile
