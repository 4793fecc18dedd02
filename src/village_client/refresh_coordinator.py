# src/village_client/refresh_coordinator.py

"""
Single-flight token refresh.

Ensures only ONE `POST /auth/refresh` is in flight per client at any time.
Every request that hits an expired access token while a refresh is running
joins that refresh and receives its outcome, instead of spending the refresh
token a second time.

State machine: IDLE -> REFRESHING -> IDLE. The REFRESHING state *is* the
in-flight task: callers await it through asyncio.shield(), so a caller that
gets cancelled simply stops waiting while the refresh carries on for everyone
else.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from .credential_store import CredentialStore, Session
from .errors import AuthExpiredError, InvalidSessionError, mask_token
from .observers import ObserverRegistry

lib_logger = logging.getLogger("village_client")

REFRESH_ENDPOINT = "/auth/refresh"


class RefreshState(Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshCoordinator:
    """
    Coordinates token refresh for one client instance.

    On success the new session is written to the store as a whole, observers'
    on_token_refresh() is awaited, and every waiter receives the new Session.
    On any failure the store is cleared, on_token_expired() is invoked once,
    and every waiter receives the same AuthExpiredError.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        store: CredentialStore,
        base_url: str,
        observers: Optional[ObserverRegistry] = None,
        timeout: Optional[httpx.Timeout] = None,
    ):
        self._http = http_client
        self._store = store
        self._base_url = base_url.rstrip("/")
        self._observers = observers if observers is not None else ObserverRegistry()
        self._timeout = timeout

        # None means IDLE. _cycle identifies the refresh that owns _task; a task
        # that completes inside create_task() (eager task factory) has already
        # released its cycle and is never stored.
        self._task: Optional[asyncio.Task] = None
        self._cycle: Optional[object] = None
        self._waiters: int = 0
        self._refresh_start_time: Optional[float] = None

        # Statistics
        self._total_refreshes: int = 0
        self._successful_refreshes: int = 0
        self._failed_refreshes: int = 0

    @property
    def state(self) -> RefreshState:
        return RefreshState.IDLE if self._task is None else RefreshState.REFRESHING

    @property
    def is_refreshing(self) -> bool:
        return self._task is not None

    @property
    def waiter_count(self) -> int:
        """Number of callers currently awaiting the in-flight refresh."""
        return self._waiters

    async def refresh(self) -> Session:
        """
        Refresh the session, or join the refresh already in flight.

        Returns:
            The Session written by the refresh this caller observed

        Raises:
            AuthExpiredError: the refresh failed; the store has been cleared
        """
        task = self._task
        if task is None:
            task = self._start()
        else:
            lib_logger.info(
                f"Token refresh already in progress; queued as waiter #{self._waiters + 1}"
            )

        self._waiters += 1
        try:
            return await asyncio.shield(task)
        finally:
            self._waiters -= 1

    def _start(self) -> asyncio.Task:
        self._total_refreshes += 1
        self._refresh_start_time = time.time()
        cycle = object()
        self._cycle = cycle
        task = asyncio.get_running_loop().create_task(self._run(cycle))
        task.add_done_callback(self._on_done)
        if self._cycle is cycle:
            self._task = task
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        if self._task is task:
            self._task = None
            self._cycle = None
            self._refresh_start_time = None
        # Every waiter may have been cancelled; mark the outcome as retrieved.
        if not task.cancelled():
            task.exception()

    def _release(self, cycle: object) -> None:
        if self._cycle is cycle:
            self._cycle = None
            self._task = None
            self._refresh_start_time = None

    async def _run(self, cycle: object) -> Session:
        failure: Optional[AuthExpiredError] = None
        try:
            session = await self._exchange()
            self._store.write_all(session)
        except AuthExpiredError as e:
            failure = e
            self._clear_store()
        except Exception as e:
            # e.g. CredentialStoreError: the rotated refresh token could not be kept
            failure = AuthExpiredError(f"Token refresh failed: {e}")
            failure.__cause__ = e
            self._clear_store()
        finally:
            # Back to IDLE before observers run, with no suspension point since the
            # store was written or cleared: later arrivals start a fresh cycle and
            # an observer that calls the API cannot end up waiting on this task.
            self._release(cycle)

        if failure is not None:
            self._failed_refreshes += 1
            lib_logger.warning(f"Token refresh FAILED: {failure.reason}")
            await self._observers.notify_expired()
            raise failure

        self._successful_refreshes += 1
        lib_logger.info(
            f"Token refresh SUCCESS (new access token {mask_token(session.access_token)})"
        )
        await self._observers.notify_refresh()
        return session

    def _clear_store(self) -> None:
        try:
            self._store.clear_all()
        except OSError:
            lib_logger.exception("Failed to clear stored session after refresh failure")

    async def _exchange(self) -> Session:
        refresh_token = self._store.refresh_token
        if not refresh_token:
            raise AuthExpiredError("No refresh token available")

        lib_logger.info(f"Refreshing access token using refresh token {mask_token(refresh_token)}")
        kwargs: Dict[str, Any] = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout

        try:
            response = await self._http.post(
                f"{self._base_url}{REFRESH_ENDPOINT}",
                json={"refresh_token": refresh_token},
                headers={"Content-Type": "application/json"},
                **kwargs,
            )
        except httpx.RequestError as e:
            raise AuthExpiredError(f"Network error during token refresh: {e!r}", status=0)

        status = response.status_code
        if not response.is_success:
            raise AuthExpiredError(f"Token refresh rejected (HTTP {status})", status=status)

        try:
            payload = response.json()
        except ValueError:
            raise AuthExpiredError("Token refresh returned invalid JSON", status=status)

        if not isinstance(payload, dict) or payload.get("success") is not True:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise AuthExpiredError(message or "Token refresh failed", status=status)

        try:
            return Session.from_payload(payload.get("data"))
        except InvalidSessionError as e:
            raise AuthExpiredError(f"Token refresh returned an incomplete session: {e}", status=status)

    async def aclose(self) -> None:
        """Cancel an in-flight refresh. The stored session is left untouched."""
        task = self._task
        if task is None:
            return
        task.cancel()
        try:
            # wait() neither raises the task's outcome nor hides a cancellation
            # of the caller itself
            await asyncio.wait([task])
        finally:
            if self._task is task:
                self._task = None
                self._cycle = None

    def get_status(self) -> Dict[str, Any]:
        """Get current coordinator status for debugging/monitoring."""
        return {
            "state": self.state.value,
            "waiters": self._waiters,
            "refresh_duration": (time.time() - self._refresh_start_time)
            if self._refresh_start_time
            else None,
            "stats": {
                "total": self._total_refreshes,
                "successful": self._successful_refreshes,
                "failed": self._failed_refreshes,
            },
        }
