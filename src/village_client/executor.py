# src/village_client/executor.py

import logging
from typing import Any, Dict, Optional, TYPE_CHECKING

import httpx

from .credential_store import CredentialStore
from .errors import (
    ApiError,
    NetworkError,
    GENERIC_AUTH_MESSAGE,
    http_error_message,
)
from .request import RequestDescriptor

if TYPE_CHECKING:
    from .retry_policy import RetryPolicy

lib_logger = logging.getLogger("village_client")


def _body_message(data: Any) -> Optional[str]:
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, str) and message:
            return message
    return None


class RequestExecutor:
    """
    Sends requests with the stored bearer token and classifies the outcome.

    attempt() is a single HTTP exchange with no recovery. execute() adds the
    one interception this client makes: a 401 while a refresh token is stored
    is handed to the RetryPolicy. The executor never writes the store.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        store: CredentialStore,
        base_url: str,
        timeout: Optional[httpx.Timeout] = None,
        retry_policy: Optional["RetryPolicy"] = None,
    ):
        self._http = http_client
        self._store = store
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self.retry_policy = retry_policy

    def _build_headers(
        self, descriptor: RequestDescriptor, access_token: Optional[str]
    ) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(descriptor.header_dict())
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def attempt(
        self, descriptor: RequestDescriptor, access_token: Optional[str] = None
    ) -> Any:
        """
        Perform one HTTP exchange.

        Args:
            descriptor: The request to send
            access_token: Token to attach. Defaults to the stored access token.

        Returns:
            Parsed JSON body of a 2xx response (None for an empty body)

        Raises:
            NetworkError: no response was received (status 0)
            ApiError: non-2xx status, or a 2xx body that is not JSON
        """
        token = access_token if access_token is not None else self._store.access_token
        kwargs: Dict[str, Any] = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout

        try:
            response = await self._http.request(
                descriptor.method,
                descriptor.url_for(self._base_url),
                params=descriptor.params or None,
                json=descriptor.body,
                headers=self._build_headers(descriptor, token),
                **kwargs,
            )
        except httpx.RequestError as e:
            lib_logger.debug(f"Network error for {descriptor}: {e!r}")
            raise NetworkError(str(e) or type(e).__name__)

        return self._parse(descriptor, response)

    def _parse(self, descriptor: RequestDescriptor, response: httpx.Response) -> Any:
        status = response.status_code
        data = None
        invalid_json = False
        if response.content:
            try:
                data = response.json()
            except ValueError:
                invalid_json = True

        if response.is_success:
            if invalid_json:
                raise ApiError("Invalid JSON in response", status)
            return data

        lib_logger.debug(f"{descriptor} -> HTTP {status}")
        raise ApiError(_body_message(data) or http_error_message(status), status, data)

    async def execute(self, descriptor: RequestDescriptor) -> Any:
        """
        Send a request, recovering once from an expired access token.

        Only a 401 received while a refresh token is stored is intercepted;
        every other error propagates untouched.
        """
        sent_token = self._store.access_token
        try:
            return await self.attempt(descriptor, sent_token)
        except ApiError as e:
            if (
                e.status != 401
                or self.retry_policy is None
                or not self._store.refresh_token
            ):
                raise
            unauthorized = e

        original = ApiError(
            _body_message(unauthorized.data) or GENERIC_AUTH_MESSAGE,
            401,
            unauthorized.data,
        )
        lib_logger.debug(f"{descriptor} got 401 with a refresh token available")
        return await self.retry_policy.recover(descriptor, original, sent_token)
