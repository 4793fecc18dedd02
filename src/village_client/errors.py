import re
from dataclasses import dataclass
from typing import Any, Optional

NETWORK_STATUS = 0
GENERIC_AUTH_MESSAGE = "Authentication failed"


def http_error_message(status: int) -> str:
    """Fallback message for a non-2xx response whose body carries none."""
    return f"HTTP error! status: {status}"


class ApiError(Exception):
    """
    Raised for any request that did not produce a usable 2xx response.

    Attributes:
        message: Server-provided message, or a generic fallback
        status: HTTP status code, 0 when no response was received at all
        data: Parsed response body (if any), passed through verbatim
    """

    def __init__(self, message: str, status: int, data: Any = None):
        self.message = message
        self.status = status
        self.data = data
        super().__init__(message)

    @property
    def is_network_error(self) -> bool:
        return self.status == NETWORK_STATUS

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


class NetworkError(ApiError):
    """No HTTP response was obtained (connection refused, DNS, timeout...)."""

    def __init__(self, message: str = "Network error"):
        super().__init__(message or "Network error", NETWORK_STATUS)


class AuthExpiredError(Exception):
    """
    Raised when exchanging the refresh token fails.

    Only RefreshCoordinator.refresh() callers and session observers see this.
    A request that triggered the refresh still fails with its original 401.

    Attributes:
        reason: Human-readable cause
        status: HTTP status of the refresh call, 0 for network failures,
            None when no call was made (e.g. no refresh token stored)
    """

    def __init__(self, reason: str, status: Optional[int] = None):
        self.reason = reason
        self.status = status
        super().__init__(reason)


class CredentialStoreError(OSError):
    """Raised when the session cannot be persisted."""

    pass


class InvalidSessionError(ValueError):
    """Raised when a payload does not describe a complete session."""

    pass


class ConfigError(Exception):
    """Raised when client configuration is invalid."""

    pass


def mask_token(token: Optional[str]) -> str:
    """
    Mask a credential for safe display in logs: shows the last 6 characters.
    """
    if not token:
        return "<none>"
    if len(token) > 6:
        return f"...{token[-6:]}"
    return "***"


# =============================================================================
# USER-FACING ERROR DESCRIPTIONS
# =============================================================================


@dataclass
class ErrorDetails:
    """A user-presentable description of a failed request."""

    title: str
    message: str
    kind: str  # network | validation | permission | server | business
    action: Optional[str] = None
    field: Optional[str] = None


_FIELD_PATTERNS = [
    r"(\w+)\s+is required",
    r"(\w+)\s+cannot be empty",
    r"please enter.*?(\w+)",
    r"(\w+)\s+must be",
]


def _extract_field(message: str) -> Optional[str]:
    for pattern in _FIELD_PATTERNS:
        match = re.search(pattern, message, re.IGNORECASE)
        if match:
            return match.group(1).lower()
    return None


def _message_of(error: Any, default: str) -> str:
    message = getattr(error, "message", None)
    if not message:
        data = getattr(error, "data", None)
        if isinstance(data, dict):
            message = data.get("message")
    return message or default


def _describe_validation(message: str) -> ErrorDetails:
    lower = message.lower()

    if "email" in lower:
        if "invalid" in lower or "format" in lower:
            return ErrorDetails(
                title="Invalid Email",
                message="Please enter a valid email address (e.g., user@example.com)",
                action="Check that your email contains @ and a valid domain.",
                field="email",
                kind="validation",
            )
        if "exists" in lower or "already" in lower:
            return ErrorDetails(
                title="Email Already Exists",
                message="This email address is already registered.",
                action="Try logging in instead, or use a different email address.",
                field="email",
                kind="validation",
            )

    if "password" in lower:
        return ErrorDetails(
            title="Password Requirements",
            message="Password must be at least 8 characters long and contain letters and numbers.",
            action="Create a stronger password with at least 8 characters, including both letters and numbers.",
            field="password",
            kind="validation",
        )

    if "phone" in lower:
        return ErrorDetails(
            title="Invalid Phone Number",
            message="Please enter a valid phone number.",
            action="Include country code and ensure the number format is correct (e.g., +1234567890).",
            field="phone_number",
            kind="validation",
        )

    if "date" in lower:
        if "after" in lower or "before" in lower:
            return ErrorDetails(
                title="Invalid Date Range",
                message=message,
                action="Check that your dates are in the correct order and within valid ranges.",
                kind="validation",
            )
        return ErrorDetails(
            title="Date Error",
            message=message,
            action="Please select a valid date.",
            kind="validation",
        )

    if "required" in lower or "cannot be empty" in lower:
        field = _extract_field(message)
        return ErrorDetails(
            title="Required Field Missing",
            message=message,
            action=f"Please fill in the {field or 'required'} field.",
            field=field,
            kind="validation",
        )

    if "must be greater than" in lower or "must be positive" in lower:
        return ErrorDetails(
            title="Invalid Number",
            message=message,
            action="Please enter a valid positive number.",
            kind="validation",
        )

    return ErrorDetails(
        title="Validation Error",
        message=message,
        action="Please check your input and try again.",
        kind="validation",
    )


def _enhance_conflict(message: str) -> str:
    lower = message.lower()
    if "already exists" in lower:
        if "email" in lower:
            return "This email address is already registered. Please use a different email or try logging in."
        if "name" in lower:
            return "This name is already taken. Please choose a different name."
        return "This item already exists. Please use different values."
    if "in use" in lower or "being used" in lower:
        return "This item cannot be deleted because it's currently being used. Remove all related items first."
    return message


_GENERIC_HINTS = [
    ("failed to create", " Please check all required fields and try again."),
    ("failed to update", " Your changes could not be saved. Please verify the data and try again."),
    ("failed to delete", " The item might be in use or you may not have permission to delete it."),
    ("failed to load", " Please refresh the page and try again."),
    ("failed to fetch", " Please refresh the page and try again."),
]


def _enhance_generic(message: str) -> str:
    lower = message.lower()
    for needle, hint in _GENERIC_HINTS:
        if needle in lower:
            return message + hint
    return message


def describe_error(error: Any) -> ErrorDetails:
    """
    Turn a failed request into a user-presentable description.

    Accepts an ApiError (or anything with `status`/`message`/`data`
    attributes); objects without a status are treated as network failures.

    Classification:
    - status 0 / missing: network
    - 401: session expired; 403: access denied
    - 404: not found
    - 400: validation, with field detection for email/password/phone/dates
    - 409: conflict
    - 5xx: server error
    - anything else: business error with the server's message
    """
    status = getattr(error, "status", None)

    if not status:
        return ErrorDetails(
            title="Connection Problem",
            message="Unable to connect to the server. Please check your internet connection.",
            action="Try again or check your network connection.",
            kind="network",
        )

    if status == 401:
        return ErrorDetails(
            title="Authentication Required",
            message="Your session has expired. Please log in again.",
            action="Log in again to continue.",
            kind="permission",
        )

    if status == 403:
        return ErrorDetails(
            title="Access Denied",
            message="You don't have permission to perform this action.",
            action="Contact your administrator if you believe this is an error.",
            kind="permission",
        )

    if status == 404:
        return ErrorDetails(
            title="Not Found",
            message="The requested item could not be found.",
            action="Please check if the item still exists.",
            kind="business",
        )

    if status == 400:
        return _describe_validation(_message_of(error, "Invalid data provided"))

    if status == 409:
        return ErrorDetails(
            title="Data Conflict",
            message=_enhance_conflict(_message_of(error, "Conflict detected")),
            action="Please check the data and try again with different values.",
            kind="validation",
        )

    if status >= 500:
        return ErrorDetails(
            title="Server Error",
            message="Something went wrong on the server.",
            action="Please try again in a few minutes. If the problem persists, contact support.",
            kind="server",
        )

    return ErrorDetails(
        title="Error",
        message=_enhance_generic(_message_of(error, "An unexpected error occurred")),
        action="Please try again. If the problem persists, contact support.",
        kind="business",
    )
