import logging
from typing import Any, Iterable, Mapping, Optional

import httpx

from .config import ClientConfig
from .credential_store import CredentialStore, FileCredentialStore, MemoryCredentialStore
from .errors import ApiError
from .executor import RequestExecutor
from .observers import (
    CallbackObserver,
    ExpiredCallback,
    ObserverRegistry,
    RefreshCallback,
    SessionObserver,
)
from .refresh_coordinator import RefreshCoordinator
from .request import RequestDescriptor
from .retry_policy import RetryPolicy

lib_logger = logging.getLogger("village_client")
# Handlers belong to the application (see village_console.main)
lib_logger.addHandler(logging.NullHandler())

ME_ENDPOINT = "/auth/me"


class ApiClient:
    """
    The authenticated API client: the single egress point every domain
    service goes through.

    Attaches the stored bearer token to each request and transparently
    recovers from an expired access token with one shared refresh followed by
    one retry of each affected request.

    Create one instance at application start and pass it to whatever needs
    it; there is no module-level singleton.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        store: Optional[CredentialStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        observers: Iterable[SessionObserver] = (),
    ):
        """
        Args:
            config: Base URL, session file and timeouts. Defaults to
                ClientConfig.from_env().
            store: Session persistence. Defaults to a FileCredentialStore at
                config.session_file, or an in-memory store if none is set.
            http_client: Shared httpx.AsyncClient. When omitted the client
                creates its own and closes it in close().
            observers: Session observers notified of refresh outcomes.
        """
        self.config = config if config is not None else ClientConfig.from_env()

        if store is not None:
            self.store = store
        elif self.config.session_file is not None:
            self.store = FileCredentialStore(self.config.session_file)
        else:
            self.store = MemoryCredentialStore()

        self._owns_http_client = http_client is None
        self.http_client = (
            http_client
            if http_client is not None
            else httpx.AsyncClient(timeout=self.config.timeout)
        )

        self.observers = ObserverRegistry(list(observers))
        self.coordinator = RefreshCoordinator(
            self.http_client,
            self.store,
            self.config.base_url,
            observers=self.observers,
            timeout=self.config.timeout,
        )
        self.executor = RequestExecutor(
            self.http_client,
            self.store,
            self.config.base_url,
            timeout=self.config.timeout,
        )
        self.executor.retry_policy = RetryPolicy(
            self.coordinator, self.executor.attempt, self.store
        )

        lib_logger.debug(f"ApiClient initialised for {self.config.base_url}")

    @property
    def base_url(self) -> str:
        return self.config.base_url

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Cancel any in-flight refresh and close the owned HTTP client."""
        await self.coordinator.aclose()
        if self._owns_http_client:
            await self.http_client.aclose()

    # ------------------------------------------------------------------
    # Session observers
    # ------------------------------------------------------------------

    def set_token_refresh_handler(
        self,
        on_token_refresh: Optional[RefreshCallback] = None,
        on_token_expired: Optional[ExpiredCallback] = None,
    ) -> SessionObserver:
        """
        Register the application's session handler. A later call replaces the
        previous handler; observers added with add_observer() are unaffected.
        """
        handler = CallbackObserver(on_token_refresh, on_token_expired)
        self.observers.replace_primary(handler)
        return handler

    def add_observer(self, observer: SessionObserver) -> None:
        self.observers.add(observer)

    def remove_observer(self, observer: SessionObserver) -> None:
        self.observers.remove(observer)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """
        Send a request and return the parsed JSON envelope.

        Raises:
            ApiError: non-2xx response (after at most one refresh + retry)
            NetworkError: no response was received
        """
        descriptor = RequestDescriptor.build(
            method, endpoint, params=params, body=body, headers=headers
        )
        return await self.executor.execute(descriptor)

    async def get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, body: Any = None) -> Any:
        return await self.request("POST", endpoint, body=body)

    async def put(self, endpoint: str, body: Any = None) -> Any:
        return await self.request("PUT", endpoint, body=body)

    async def patch(self, endpoint: str, body: Any = None) -> Any:
        return await self.request("PATCH", endpoint, body=body)

    async def delete(self, endpoint: str) -> Any:
        return await self.request("DELETE", endpoint)

    async def validate_token(self) -> bool:
        """
        Check the stored access token against `GET /auth/me`.

        A 401 goes through the normal recovery path, so this performs at most
        one refresh and one retry. Returns False without a network call when
        no access token is stored.
        """
        if not self.store.access_token:
            return False
        try:
            await self.get(ME_ENDPOINT)
        except ApiError as e:
            lib_logger.debug(f"Token validation failed with status {e.status}")
            return False
        return True
