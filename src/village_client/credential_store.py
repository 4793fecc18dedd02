# src/village_client/credential_store.py
"""
Persisted session holder.

A session is the triple (access_token, refresh_token, user) and is always
written or cleared as one unit: no reader may observe a new access token next
to an old refresh token. The only writers are the login flow and the refresh
coordinator.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .errors import CredentialStoreError, InvalidSessionError
from .utils.resilient_io import safe_read_json, safe_remove, safe_write_json

lib_logger = logging.getLogger("village_client")

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"


@dataclass(frozen=True)
class Session:
    """One login's worth of credentials plus the cached user profile."""

    access_token: str
    refresh_token: str
    user: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "Session":
        """
        Build a session from a server payload such as the `data` object of a
        login or refresh response.

        Raises:
            InvalidSessionError: if either token is missing/empty or the user
                profile is not a JSON object
        """
        if not isinstance(payload, Mapping):
            raise InvalidSessionError("Session payload must be an object")

        access_token = payload.get(ACCESS_TOKEN_KEY)
        refresh_token = payload.get(REFRESH_TOKEN_KEY)
        user = payload.get(USER_KEY)

        missing = [
            key
            for key, value in ((ACCESS_TOKEN_KEY, access_token), (REFRESH_TOKEN_KEY, refresh_token))
            if not isinstance(value, str) or not value
        ]
        if missing:
            raise InvalidSessionError(f"Session payload missing required fields: {missing}")
        if not isinstance(user, Mapping):
            raise InvalidSessionError("Session payload has no user profile")

        return cls(access_token=access_token, refresh_token=refresh_token, user=dict(user))

    @classmethod
    def from_storage(cls, stored: Mapping[str, Any]) -> "Session":
        """Inverse of to_storage(): the user profile arrives JSON-encoded."""
        raw_user = stored.get(USER_KEY)
        try:
            user = json.loads(raw_user) if isinstance(raw_user, str) else raw_user
        except ValueError as e:
            raise InvalidSessionError(f"Stored user profile is not valid JSON: {e}")
        return cls.from_payload(
            {
                ACCESS_TOKEN_KEY: stored.get(ACCESS_TOKEN_KEY),
                REFRESH_TOKEN_KEY: stored.get(REFRESH_TOKEN_KEY),
                USER_KEY: user,
            }
        )

    def to_storage(self) -> Dict[str, str]:
        """The three persisted string keys."""
        return {
            ACCESS_TOKEN_KEY: self.access_token,
            REFRESH_TOKEN_KEY: self.refresh_token,
            USER_KEY: json.dumps(self.user),
        }

    def with_user(self, user: Mapping[str, Any]) -> "Session":
        return Session(self.access_token, self.refresh_token, dict(user))


class CredentialStore:
    """
    Base class for session persistence.

    Subclasses implement read/write_all/clear_all. Everything else is derived
    from a single read() so accessors never mix two different sessions.
    """

    def read(self) -> Optional[Session]:
        raise NotImplementedError

    def write_all(self, session: Session) -> None:
        raise NotImplementedError

    def clear_all(self) -> None:
        raise NotImplementedError

    @property
    def access_token(self) -> Optional[str]:
        session = self.read()
        return session.access_token if session else None

    @property
    def refresh_token(self) -> Optional[str]:
        session = self.read()
        return session.refresh_token if session else None

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        session = self.read()
        return dict(session.user) if session else None

    def replace_user(self, user: Mapping[str, Any]) -> Optional[Session]:
        """
        Swap the cached profile, keeping the tokens. Still a whole-session
        write. Returns the new session, or None when nobody is logged in.
        """
        session = self.read()
        if session is None:
            return None
        updated = session.with_user(user)
        self.write_all(updated)
        return updated


class MemoryCredentialStore(CredentialStore):
    """Keeps the session in process memory only."""

    def __init__(self, session: Optional[Session] = None):
        self._session = session

    def read(self) -> Optional[Session]:
        return self._session

    def write_all(self, session: Session) -> None:
        self._session = session

    def clear_all(self) -> None:
        self._session = None


class FileCredentialStore(CredentialStore):
    """
    Stores the session as one JSON document holding the three keys
    `access_token`, `refresh_token` and `user` (JSON-encoded profile).

    Writes go through a temp file + rename so the document is replaced
    wholesale; clearing removes the file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def read(self) -> Optional[Session]:
        stored = safe_read_json(self.path, lib_logger)
        if stored is None:
            return None
        try:
            return Session.from_storage(stored)
        except InvalidSessionError as e:
            lib_logger.warning(f"Ignoring corrupt session file '{self.path.name}': {e}")
            return None

    def write_all(self, session: Session) -> None:
        if not safe_write_json(
            self.path, session.to_storage(), lib_logger, secure_permissions=True
        ):
            raise CredentialStoreError(f"Failed to persist session to '{self.path}'")
        lib_logger.debug(f"Saved session to '{self.path.name}'")

    def clear_all(self) -> None:
        if not safe_remove(self.path, lib_logger):
            raise CredentialStoreError(f"Failed to clear session file '{self.path}'")
        lib_logger.debug(f"Cleared session file '{self.path.name}'")
