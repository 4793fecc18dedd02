"""In-process stand-in for the village management backend."""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

import httpx

BASE_URL = "https://api.village.test"

DEFAULT_USER = {"id": 1, "name": "Site Admin", "email": "admin@village.test", "role": "admin"}

PUBLIC_PATHS = ("/auth/login", "/auth/register")

UNAUTHORIZED_BODY = {"success": False, "message": "Invalid or expired token"}


@dataclass
class RecordedCall:
    method: str
    path: str
    authorization: Optional[str]
    body: Any = None
    query: Dict[str, str] = field(default_factory=dict)

    @property
    def bearer(self) -> Optional[str]:
        if self.authorization and self.authorization.startswith("Bearer "):
            return self.authorization[len("Bearer "):]
        return None


Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


class FakeBackend:
    """
    Minimal auth-aware API served through httpx.MockTransport.

    - Every route except /auth/refresh and PUBLIC_PATHS requires a bearer token
      from `valid_tokens`, otherwise answers 401.
    - /auth/refresh exchanges a refresh token registered with `allow_refresh`
      for a new session; unknown refresh tokens get 401.
    - `refresh_gate`, when set, holds the refresh response until the event is
      set, so tests can pile up concurrent waiters deterministically.
    """

    def __init__(self, valid_tokens: Tuple[str, ...] = ()):
        self.valid_tokens: Set[str] = set(valid_tokens)
        self.refresh_grants: Dict[str, Dict[str, Any]] = {}
        self.refresh_response: Optional[httpx.Response] = None
        self.refresh_gate: Optional[asyncio.Event] = None
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.calls: List[RecordedCall] = []

    # -- configuration -------------------------------------------------

    def allow_refresh(
        self,
        refresh_token: str,
        access_token: str,
        new_refresh_token: str,
        user: Optional[Dict[str, Any]] = None,
        activate: bool = True,
    ) -> None:
        """Make `refresh_token` exchangeable for (access_token, new_refresh_token)."""
        self.refresh_grants[refresh_token] = {
            "access_token": access_token,
            "refresh_token": new_refresh_token,
            "user": user if user is not None else dict(DEFAULT_USER),
            "_activate": activate,
        }

    def route(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method.upper(), path)] = handler

    def respond(self, method: str, path: str, status: int, body: Any = None) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json=body)

        self.route(method, path, handler)

    # -- inspection ----------------------------------------------------

    def calls_to(self, path: str, method: Optional[str] = None) -> List[RecordedCall]:
        return [
            call
            for call in self.calls
            if call.path == path and (method is None or call.method == method.upper())
        ]

    @property
    def refresh_calls(self) -> List[RecordedCall]:
        return self.calls_to("/auth/refresh", "POST")

    # -- transport -----------------------------------------------------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        call = RecordedCall(
            method=request.method,
            path=request.url.path,
            authorization=request.headers.get("Authorization"),
            body=body,
            query=dict(request.url.params),
        )
        self.calls.append(call)

        if call.path == "/auth/refresh":
            return await self._refresh(call)

        custom = self.routes.get((call.method, call.path))
        if call.path not in PUBLIC_PATHS and call.bearer not in self.valid_tokens:
            return httpx.Response(401, json=UNAUTHORIZED_BODY)
        if custom is not None:
            return await custom(request)
        return httpx.Response(200, json={"success": True, "data": {"path": call.path}})

    async def _refresh(self, call: RecordedCall) -> httpx.Response:
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()

        if self.refresh_response is not None:
            return self.refresh_response

        grant = self.refresh_grants.pop((call.body or {}).get("refresh_token"), None)
        if grant is None:
            return httpx.Response(401, json={"success": False, "message": "Invalid refresh token"})

        grant = dict(grant)
        if grant.pop("_activate"):
            self.valid_tokens.add(grant["access_token"])
        return httpx.Response(200, json={"success": True, "data": grant})


async def wait_for_waiters(coordinator, count: int, timeout: float = 2.0) -> None:
    """Yield to the loop until `count` callers are parked on the refresh."""

    async def _poll():
        while coordinator.waiter_count < count:
            await asyncio.sleep(0)

    await asyncio.wait_for(_poll(), timeout)
