"""
cal2prompt error hierarchy.

Every condition a caller may want to tell apart has its own class so the
CLI can print a readable message and the MCP server can pick a specific
JSON-RPC error code instead of the generic internal error.

    Cal2PromptError
    ├── ConfigError
    ├── AuthorizationError
    │   ├── PortInUseError
    │   ├── ConsentDeniedError
    │   ├── TokenExchangeError
    │   └── AuthorizationTimeoutError
    ├── CalendarAPIError
    ├── AccountNotFoundError
    ├── NoCalendarIdError
    ├── InvalidDateRangeError
    ├── InvalidEventTimeError
    └── TransportError
"""

from typing import Any


class Cal2PromptError(Exception):
    """
    Base exception for all cal2prompt errors.

    Attributes:
        message: Human-readable error description
        context: Additional structured context for logging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


# Configuration


class ConfigError(Cal2PromptError):
    """Configuration file missing, unparsable, or failing validation. Fatal at startup."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message, context={"path": path} if path else None)
        self.path = path


# Authorization


class AuthorizationError(Cal2PromptError):
    """OAuth2 authorization or token acquisition failed."""


class PortInUseError(AuthorizationError):
    """
    The loopback redirect port is already bound.

    Usually means another cal2prompt instance (or another MCP host) is
    waiting for its own OAuth redirect on the same port.
    """

    def __init__(self, host: str, port: int):
        super().__init__(
            f"Port {port} is already in use on {host}. "
            "Another instance of cal2prompt may be waiting for authorization.",
            context={"host": host, "port": port},
        )
        self.host = host
        self.port = port


class ConsentDeniedError(AuthorizationError):
    """The user declined consent (redirect carried an ``error`` parameter)."""

    def __init__(self, reason: str):
        super().__init__(f"Authorization was denied: {reason}", context={"reason": reason})
        self.reason = reason


class TokenExchangeError(AuthorizationError):
    """The token endpoint rejected a code exchange or refresh."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message, context={"status": status} if status is not None else None)
        self.status = status


class AuthorizationTimeoutError(AuthorizationError):
    """No redirect arrived within the configured wait."""

    def __init__(self, timeout: float):
        super().__init__(
            f"No authorization redirect received within {timeout:g} seconds",
            context={"timeout": timeout},
        )
        self.timeout = timeout


# Calendar API


class CalendarAPIError(Cal2PromptError):
    """Non-2xx response from the Google Calendar REST API."""

    def __init__(self, message: str, status: int | None = None, calendar_id: str | None = None):
        context: dict[str, Any] = {}
        if status is not None:
            context["status"] = status
        if calendar_id is not None:
            context["calendar_id"] = calendar_id
        super().__init__(message, context=context)
        self.status = status
        self.calendar_id = calendar_id


# Domain


class AccountNotFoundError(Cal2PromptError):
    """No configured account carries the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Account '{name}' not found", context={"account": name})
        self.name = name


class NoCalendarIdError(Cal2PromptError):
    """Event insertion needs a calendar id but the account has none configured."""

    def __init__(self, account: str):
        super().__init__(
            f"No calendar_id configured for account '{account}'. "
            "Please add at least one entry to source.google.accounts[].calendar_ids in your config.",
            context={"account": account},
        )
        self.account = account


class InvalidDateRangeError(Cal2PromptError):
    """``since``/``until`` are malformed or out of order."""


class InvalidEventTimeError(Cal2PromptError):
    """Event start/end could not be parsed or are out of order."""


# Transport


class TransportError(Cal2PromptError):
    """Malformed message or I/O failure on the protocol stream."""
