from __future__ import annotations


class UpstreamStatusError(RuntimeError):
    """Raised when the generation endpoint answers with a non-2xx status."""

    def __init__(self, message: str, *, status_code: int, raw_snippet: str | None = None):
        super().__init__(message)
        self.status_code = int(status_code)
        self.raw_snippet = raw_snippet


class UpstreamTransportError(RuntimeError):
    """Raised when the generation endpoint cannot be reached or returns an undecodable body."""
