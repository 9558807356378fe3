"""Exceptions shared by the gateway, cache service and search pipeline."""


class UpstreamError(Exception):
    """Non-2xx response (or transport failure) from the upstream marketplace API."""

    def __init__(self, status_code: int, message: str, details: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "details": self.details}


class UpstreamNotFoundError(UpstreamError):
    """Both upstream API versions answered 404."""

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(404, message, details)


class MethodNotSupportedError(UpstreamError):
    """The gateway is read-only; only GET is forwarded."""

    def __init__(self, method: str) -> None:
        super().__init__(405, "Method not allowed", f"{method} is not supported")


class UpstreamConnectionError(UpstreamError):
    """The upstream could not be reached (DNS, connect, read timeout...)."""

    def __init__(self, details: str) -> None:
        super().__init__(500, "Failed to fetch from upstream marketplace API", details)


class UpstreamUnavailableError(UpstreamError):
    """Retries were exhausted for a transient upstream failure."""

    def __init__(self, endpoint: str, details: str = "") -> None:
        super().__init__(503, f"Upstream marketplace API unavailable for {endpoint}", details)


class SearchError(Exception):
    """The search backend failed; the message is safe to show to users."""


class OperationCancelledError(Exception):
    """Raised at a suspension point when the operation's token was cancelled."""
