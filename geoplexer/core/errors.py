# geoplexer/core/errors.py


class UpstreamError(Exception):
    """
    Raised by the API client when a backend call returns a non-2xx response.

    The message is meant to be shown as-is in the affected section.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
