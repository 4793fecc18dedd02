import logging
from typing import Any, Dict, Optional

from .client import ApiClient
from .credential_store import Session
from .errors import ApiError, InvalidSessionError

lib_logger = logging.getLogger("village_client")


def _envelope_data(response: Any) -> Any:
    if isinstance(response, dict) and response.get("success") and response.get("data"):
        return response["data"]
    return None


def _envelope_message(response: Any, default: str) -> str:
    if isinstance(response, dict) and response.get("message"):
        return response["message"]
    return default


class AuthService:
    """
    Login plumbing on top of ApiClient: creates, refreshes the profile of,
    and destroys the stored session. The client itself only ever replaces or
    clears a session during token refresh.
    """

    def __init__(self, client: ApiClient):
        self.client = client

    @property
    def store(self):
        return self.client.store

    def _store_session(self, response: Any, action: str) -> Session:
        data = _envelope_data(response)
        if data is None:
            raise ApiError(_envelope_message(response, f"{action} failed"), 200, response)
        try:
            session = Session.from_payload(data)
        except InvalidSessionError as e:
            raise ApiError(f"{action} failed: {e}", 200, response)
        self.store.write_all(session)
        return session

    async def login(self, email: str, password: str) -> Session:
        """
        Exchange credentials for a session and persist it.

        Raises:
            ApiError: rejected credentials, or a response without a session
        """
        response = await self.client.post(
            "/auth/login", {"email": email, "password": password}
        )
        session = self._store_session(response, "Login")
        lib_logger.info(f"Logged in as {session.user.get('email', email)}")
        return session

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        phone_number: Optional[str] = None,
        role: str = "owner",
    ) -> Session:
        payload: Dict[str, Any] = {
            "name": name,
            "email": email,
            "password": password,
            "role": role,
        }
        if phone_number:
            payload["phone_number"] = phone_number
        response = await self.client.post("/auth/register", payload)
        return self._store_session(response, "Registration")

    async def logout(self) -> None:
        """Tell the server, then always drop the local session."""
        try:
            await self.client.post("/auth/logout")
        except ApiError as e:
            # Local logout proceeds regardless of the server's answer
            lib_logger.warning(f"Logout API call failed (status {e.status}): {e.message}")
        finally:
            self.store.clear_all()

    async def fetch_current_user(self) -> Dict[str, Any]:
        """Load the profile from `GET /auth/me` and cache it in the session."""
        response = await self.client.get("/auth/me")
        user = _envelope_data(response)
        if not isinstance(user, dict):
            raise ApiError(
                _envelope_message(response, "Failed to get user info"), 200, response
            )
        self.store.replace_user(user)
        return user

    def current_user(self) -> Optional[Dict[str, Any]]:
        return self.store.user

    def is_authenticated(self) -> bool:
        return bool(self.store.access_token)

    def access_token(self) -> Optional[str]:
        return self.store.access_token
