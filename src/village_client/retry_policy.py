import logging
from typing import Any, Awaitable, Callable, Optional

from .credential_store import CredentialStore
from .errors import ApiError, AuthExpiredError
from .refresh_coordinator import RefreshCoordinator
from .request import RequestDescriptor

lib_logger = logging.getLogger("village_client")

Replay = Callable[[RequestDescriptor, Optional[str]], Awaitable[Any]]


class RetryPolicy:
    """
    Drives the single refresh-then-retry cycle for a request that got a 401.

    The caller either gets the replay's result or the ORIGINAL 401. Neither a
    refresh failure nor a failed replay is surfaced directly; the real cause is
    kept as __cause__ for debugging. There is never a second refresh for the
    same request.

    A 401 for a token the store has already replaced (the refresh finished
    while the request was in flight) is replayed with the stored token without
    refreshing again.
    """

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        replay: Replay,
        store: Optional[CredentialStore] = None,
    ):
        self._coordinator = coordinator
        self._replay = replay
        self._store = store

    def _newer_token(self, sent_token: Optional[str]) -> Optional[str]:
        if self._store is None or self._coordinator.is_refreshing:
            return None
        current = self._store.access_token
        if current and current != sent_token:
            return current
        return None

    async def recover(
        self,
        descriptor: RequestDescriptor,
        original_error: ApiError,
        sent_token: Optional[str] = None,
    ) -> Any:
        token = self._newer_token(sent_token)
        if token is not None:
            lib_logger.debug(f"{descriptor} was sent with a superseded token; replaying")
        else:
            try:
                session = await self._coordinator.refresh()
            except AuthExpiredError as e:
                lib_logger.info(
                    f"Token refresh failed ({e.reason}); {descriptor} fails with its original 401"
                )
                raise original_error from e
            token = session.access_token
            lib_logger.debug(f"Replaying {descriptor} with refreshed access token")

        try:
            return await self._replay(descriptor, token)
        except ApiError as e:
            lib_logger.warning(
                f"Replay of {descriptor} after token refresh failed (status {e.status}); "
                f"surfacing original 401"
            )
            raise original_error from e
