"""Error taxonomy shared by the token manager, playback client, API and web client."""


class PlaybackError(Exception):
    """Base class: carries the HTTP status and a stable code for API responses."""

    status_code = 500
    code = "playback_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])


class SessionExpired(PlaybackError):
    """Spotify session expired. Please log in again."""

    status_code = 401
    code = "session_expired"


class UpstreamUnavailable(PlaybackError):
    """Spotify is temporarily unavailable. Try again."""

    status_code = 503
    code = "upstream_unavailable"


class DeviceUnavailable(PlaybackError):
    """No active device found. Start the player and try again."""

    status_code = 404
    code = "device_unavailable"


class InvalidRequest(PlaybackError):
    """Invalid request."""

    status_code = 400
    code = "invalid_request"


class InsufficientEntitlement(PlaybackError):
    """Spotify Premium is required for playback control."""

    status_code = 403
    code = "insufficient_entitlement"


class AlreadyListened(PlaybackError):
    """Share already marked as listened."""

    status_code = 409
    code = "already_listened"


_BY_CODE = {
    cls.code: cls
    for cls in (
        SessionExpired,
        UpstreamUnavailable,
        DeviceUnavailable,
        InvalidRequest,
        InsufficientEntitlement,
        AlreadyListened,
    )
}

_BY_STATUS = {cls.status_code: cls for cls in _BY_CODE.values()}


def error_from_response(status_code: int, code: str | None, message: str) -> PlaybackError:
    """Rebuild a PlaybackError from an API error body (used by the web client)."""
    cls = _BY_CODE.get(code or "") or _BY_STATUS.get(status_code)
    if cls is None:
        cls = UpstreamUnavailable if status_code >= 500 else PlaybackError
    return cls(message)
