from .auth_service import AuthService
from .client import ApiClient
from .config import ClientConfig, TimeoutConfig
from .credential_store import (
    CredentialStore,
    FileCredentialStore,
    MemoryCredentialStore,
    Session,
)
from .errors import (
    ApiError,
    AuthExpiredError,
    ConfigError,
    CredentialStoreError,
    ErrorDetails,
    InvalidSessionError,
    NetworkError,
    describe_error,
)
from .observers import CallbackObserver, SessionObserver
from .refresh_coordinator import RefreshCoordinator, RefreshState

__all__ = [
    "ApiClient",
    "AuthService",
    "ClientConfig",
    "TimeoutConfig",
    "CredentialStore",
    "FileCredentialStore",
    "MemoryCredentialStore",
    "Session",
    "ApiError",
    "AuthExpiredError",
    "ConfigError",
    "CredentialStoreError",
    "ErrorDetails",
    "InvalidSessionError",
    "NetworkError",
    "describe_error",
    "CallbackObserver",
    "SessionObserver",
    "RefreshCoordinator",
    "RefreshState",
]

