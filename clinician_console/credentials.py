"""Durable storage for the bearer credential.

The storage file is a small JSON object shared like browser local storage;
the store only ever reads and writes its own key.
"""
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from clinician_console import config
from clinician_console.logging_config import get_logger

logger = get_logger(__name__)


class NoCredentialError(Exception):
    """Raised when an authenticated call is attempted without a token."""
    pass


class CredentialStore:
    """Holds the single bearer token for the running console."""

    def __init__(
        self,
        storage_path: Optional[Union[str, Path]] = None,
        key: str = config.CREDENTIAL_KEY
    ):
        """
        Initialize credential store.

        Args:
            storage_path: JSON file backing the store.
                          Defaults to config.STORAGE_PATH.
            key: Storage key holding the token
        """
        self.storage_path = Path(storage_path or config.STORAGE_PATH)
        self.key = key

    def _load(self) -> Dict[str, Any]:
        if not self.storage_path.exists():
            return {}
        try:
            with open(self.storage_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("credential_storage_unreadable", path=str(self.storage_path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.storage_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

    def get(self) -> Optional[str]:
        """Return the stored token, or None when there is none."""
        token = self._load().get(self.key)
        return token or None

    def set(self, token: str) -> None:
        """Store token, replacing any previous value."""
        data = self._load()
        data[self.key] = token
        self._dump(data)
        logger.info("credential_stored")

    def clear(self) -> None:
        """Remove the token. Other storage keys are kept."""
        data = self._load()
        if self.key not in data:
            return
        del data[self.key]
        self._dump(data)
        logger.info("credential_cleared")

    def require(self) -> str:
        """
        Return the token for an authenticated call.

        Raises:
            NoCredentialError: If no token is stored
        """
        token = self.get()
        if not token:
            raise NoCredentialError("No authentication token")
        return token
