"""The console context: one owning instance per running client.

Views receive the context instead of reaching for module-level globals, so
the credential store, cache, notifier and navigator are shared explicitly.
"""
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import parse_qs, urlsplit

import requests

from clinician_console import config
from clinician_console.appointments import AppointmentManager
from clinician_console.cache import ServerStateCache
from clinician_console.credentials import CredentialStore
from clinician_console.http_client import BackendClient
from clinician_console.logging_config import (
    bind_console_context,
    generate_console_id,
    get_logger,
    setup_structured_logging,
)
from clinician_console.navigation import DASHBOARD, LANDING, Navigator
from clinician_console.notices import Notifier
from clinician_console.onboarding import OnboardingGate
from clinician_console.session import SessionResolver

logger = get_logger(__name__)


class ConsoleContext:
    """Wires the console's components together."""

    def __init__(
        self,
        base_url: str = config.BACKEND_URL,
        storage_path: Optional[Union[str, Path]] = None,
        http_session: Optional[requests.Session] = None,
        timeout: Optional[float] = config.REQUEST_TIMEOUT,
        clock: Callable[[], datetime] = datetime.now,
        stale_after: Optional[float] = None,
        auth_redirect_delay: float = config.AUTH_REDIRECT_DELAY,
        unauthorized_redirect_delay: float = config.UNAUTHORIZED_REDIRECT_DELAY,
        setup_complete_delay: float = config.SETUP_COMPLETE_REDIRECT_DELAY
    ):
        """
        Initialize console context.

        Args:
            base_url: Backend root URL
            storage_path: JSON file holding the credential
            http_session: HTTP session to use (pooled session created if omitted)
            timeout: Per-request timeout, None to wait indefinitely
            clock: Source of "now" for the dashboard aggregates
            stale_after: Optional time-based staleness for cached resources
            auth_redirect_delay: Pause on the auth callback before the dashboard
            unauthorized_redirect_delay: Pause before leaving a dead session
            setup_complete_delay: Pause before leaving settings after setup
        """
        self.console_id = generate_console_id()
        self.credentials = CredentialStore(storage_path)
        self.client = BackendClient(self.credentials, base_url, http_session, timeout)
        self.cache = ServerStateCache(stale_after=stale_after)
        self.notifier = Notifier()
        self.navigator = Navigator()
        self.session = SessionResolver(self.credentials, self.client, self.cache)
        self.gate = OnboardingGate(self.notifier, self.navigator, setup_complete_delay)
        self.appointments = AppointmentManager(self.client, self.cache, self.notifier, clock)
        self.auth_redirect_delay = auth_redirect_delay
        self.unauthorized_redirect_delay = unauthorized_redirect_delay

    def handle_auth_callback(self, url: str) -> bool:
        """
        Accept the token delivered by the backend's sign-in redirect.

        Args:
            url: Callback URL, or just its query string

        Returns:
            True if a token was found and stored
        """
        query = urlsplit(url).query if "?" in url else url
        token = parse_qs(query).get("token", [None])[0]

        if not token:
            logger.warning("auth_callback_without_token")
            self.navigator.go(LANDING)
            return False

        self.credentials.set(token)
        self.session.reset()
        self.cache.clear()
        logger.info("auth_callback_accepted")
        self.navigator.go(DASHBOARD, delay=self.auth_redirect_delay)
        return True

    def logout(self) -> None:
        self.end_session()
        logger.info("logged_out")

    def end_session(self) -> None:
        """Drop the credential and all cached server state; cancel pending redirects."""
        self.credentials.clear()
        self.session.reset()
        self.cache.clear()
        self.appointments.dismiss_cancel()
        self.navigator.cancel_pending()
        self.navigator.go(LANDING)


def create_console(**overrides) -> ConsoleContext:
    """Configure logging from config.LOG_LEVEL and build a console context."""
    setup_structured_logging(config.LOG_LEVEL)
    context = ConsoleContext(**overrides)
    bind_console_context(context.console_id, context.client.base_url)
    logger.info("console_created")
    return context
