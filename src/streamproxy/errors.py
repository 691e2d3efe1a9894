from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    UNAUTHORIZED = "UNAUTHORIZED"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.UPSTREAM_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


class StreamProxyError(Exception):
    """Raised by the proxy core for all expected failure conditions.

    Caught by the request handlers and serialised into a JSON error body.
    Never catch this inside business logic. Let it propagate to the
    request boundary so the client receives the matching status code.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        upstream_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.upstream_status = upstream_status

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.code]

    def to_dict(self) -> dict:
        return {"error": self.message}
