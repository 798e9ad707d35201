"""Exception hierarchy for the bridge layer."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all bridge errors."""

    pass


class ProtocolError(BridgeError):
    """Channel-level framing or encoding error."""

    pass


class ChannelClosedError(BridgeError):
    """The messaging channel went away while a request was pending."""

    pass


class NotConfiguredError(BridgeError, RuntimeError):
    """The connector was used before `configure()` was called."""

    pass


class DuplicateRequestError(BridgeError, ValueError):
    """A fire-and-forget request id is already in flight."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Request {request_id} is already in flight")
        self.request_id = request_id


class HostError(BridgeError):
    """Error reported by the host process for a request.

    The host's message text is kept verbatim in `message` and as the
    exception string.
    """

    def __init__(self, message: str, request_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.request_id = request_id
