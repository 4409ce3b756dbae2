"""Exceptions raised by termsync."""


class TermsyncError(Exception):
    """Base exception for termsync errors."""

    pass


class CapabilityUnavailableError(TermsyncError):
    """The server does not provide terminals."""

    pass


class PollDisposedError(TermsyncError):
    """A poll was disposed before its tick completed."""

    pass


class NetworkError(TermsyncError):
    """The server could not be reached."""

    pass


class ResponseError(TermsyncError):
    """The server answered with a non-success status."""

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        self.message = message or f"Request failed with status {status_code}"
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status_code={self.status_code}, message={self.message!r})"


class ServiceUnavailableError(ResponseError):
    """The server is up but its backing service is down (e.g. 503, 424)."""

    pass
