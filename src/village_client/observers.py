# src/village_client/observers.py
"""
Session observers: the surrounding application's hooks into refresh outcomes.

on_token_refresh() runs after a refreshed session has been persisted, so the
app can reload its "current user" state. on_token_expired() runs after a
failed refresh has cleared the store, so the app can force a logout.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

lib_logger = logging.getLogger("village_client")

RefreshCallback = Callable[[], Awaitable[Any]]
ExpiredCallback = Callable[[], Union[None, Awaitable[Any]]]


class SessionObserver:
    """Base observer. Override either hook; both default to no-ops."""

    async def on_token_refresh(self) -> None:
        pass

    def on_token_expired(self) -> Union[None, Awaitable[None]]:
        pass


class CallbackObserver(SessionObserver):
    """Adapts a pair of plain callables (sync or async) to SessionObserver."""

    def __init__(
        self,
        on_token_refresh: Optional[RefreshCallback] = None,
        on_token_expired: Optional[ExpiredCallback] = None,
    ):
        self._on_refresh = on_token_refresh
        self._on_expired = on_token_expired

    async def on_token_refresh(self) -> None:
        if self._on_refresh is not None:
            result = self._on_refresh()
            if inspect.isawaitable(result):
                await result

    def on_token_expired(self) -> Union[None, Awaitable[None]]:
        if self._on_expired is not None:
            return self._on_expired()
        return None


class ObserverRegistry:
    """
    Ordered set of observers owned by one client.

    The "primary" slot backs set_token_refresh_handler(), where the last
    registration wins; add()/remove() manage any further observers.
    Exceptions raised by an observer are logged and never alter the refresh
    outcome seen by waiting requests.
    """

    def __init__(self, observers: Optional[List[SessionObserver]] = None):
        self._primary: Optional[SessionObserver] = None
        self._observers: List[SessionObserver] = list(observers or [])

    def __len__(self) -> int:
        return len(self._all())

    def _all(self) -> List[SessionObserver]:
        if self._primary is None:
            return list(self._observers)
        return [self._primary] + self._observers

    def add(self, observer: SessionObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove(self, observer: SessionObserver) -> None:
        if observer is self._primary:
            self._primary = None
        elif observer in self._observers:
            self._observers.remove(observer)

    def replace_primary(self, observer: Optional[SessionObserver]) -> None:
        self._primary = observer

    async def notify_refresh(self) -> None:
        for observer in self._all():
            try:
                await observer.on_token_refresh()
            except Exception:
                lib_logger.exception(
                    f"Session observer {type(observer).__name__}.on_token_refresh failed"
                )

    async def notify_expired(self) -> None:
        for observer in self._all():
            try:
                result = observer.on_token_expired()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                lib_logger.exception(
                    f"Session observer {type(observer).__name__}.on_token_expired failed"
                )
