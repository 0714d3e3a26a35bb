"""Exception hierarchy for roomstatus.

Parse-side errors (calendar content) and transport-side errors (fetching the
content) are kept in separate branches so callers can report them differently:
a transport failure is usually transient, a parse failure points at the feed.
"""

from typing import Optional


class RoomStatusError(Exception):
    """Base exception for all roomstatus errors."""


class ConfigError(RoomStatusError):
    """Configuration file or value is invalid."""


class CalendarParseError(RoomStatusError):
    """Calendar feed content could not be turned into events.

    Only raised by the parser in strict mode; the default parser drops bad
    records instead of raising.
    """


class CalendarDateDecodeError(CalendarParseError, ValueError):
    """A calendar date/time token could not be decoded into an instant."""

    def __init__(self, token: str, message: Optional[str] = None):
        super().__init__(message or f"Unable to decode calendar date token: {token!r}")
        self.token = token


class CalendarFetchError(RoomStatusError):
    """Base exception for feed retrieval errors."""


class CalendarNetworkError(CalendarFetchError):
    """Connection-level failure while fetching a feed."""


class CalendarTimeoutError(CalendarFetchError):
    """Feed request timed out."""


class CalendarHTTPError(CalendarFetchError):
    """Feed server answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GraphAPIError(RoomStatusError):
    """Microsoft Graph request failed.

    Should result in HTTP 502 Bad Gateway unless the status says otherwise.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class GraphAccessError(GraphAPIError):
    """The room calendar is not readable with the granted permissions."""


class DeviceAuthError(RoomStatusError):
    """Device-code authentication failed.

    Raised when:
    - the identity endpoint rejects the device-code or refresh request
    - the user declines or the code expires while waiting for the token
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code


class DeviceAuthConfigError(DeviceAuthError):
    """Client id (or tenant) is not configured."""


class NotAuthenticatedError(DeviceAuthError):
    """No stored token is available for a Graph operation.

    Should result in HTTP 401 Unauthorized response.
    """
