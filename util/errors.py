# util/errors.py
from typing import Optional
from fastapi import HTTPException, status


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self, message: str, http_status: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        super().__init__(status_code=http_status, detail=message)

    @property
    def message(self) -> str:
        return str(self.detail)

    def __str__(self) -> str:
        return self.message


class ConfigurationError(AppError):
    """Required environment variable absent. Never retried."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class AuthenticationError(AppError):
    """Missing session or bad OAuth state/verifier; the user must restart the flow."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class NotFoundError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ExternalApiError(AppError):
    """Non-2xx from a third-party provider, carrying its message when it sent one."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        upstream_status: Optional[int] = None,
    ) -> None:
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)
        self.provider = provider
        self.upstream_status = upstream_status


class TransientPollError(ExternalApiError):
    """A single status check failed in a way worth retrying on the next tick."""


class JobFailedError(AppError):
    """The provider reported a terminal failure for the job."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)


class PollTimeoutError(AppError):
    """The polling budget ran out before the job reached a terminal state."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_504_GATEWAY_TIMEOUT)
