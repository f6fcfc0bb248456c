from enum import Enum
from typing import Optional


class EnergyGridError(Exception):
    """Base error for EnergyGrid requests."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetryableRequestError(EnergyGridError):
    """The same request may succeed after a delay."""


class PermanentRequestError(EnergyGridError):
    """Retrying the same request cannot succeed."""


class RateLimitExceeded(RetryableRequestError):
    pass


class EndpointUnreachable(RetryableRequestError):
    pass


class SignatureMismatch(PermanentRequestError):
    pass


class BatchTooLarge(PermanentRequestError):
    pass


class UnexpectedResponse(PermanentRequestError):
    pass


class FailureKind(str, Enum):
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    REJECTED = "REJECTED"


class RequestFailure(Exception):
    """Terminal outcome of one batch request."""

    def __init__(self, kind: FailureKind, cause: EnergyGridError, attempts: int):
        self.kind = kind
        self.cause = cause
        self.attempts = attempts

        if kind == FailureKind.RETRIES_EXHAUSTED:
            message = f"Failed after {attempts - 1} retries: {cause}"
        else:
            message = f"Request rejected: {cause}"
        super().__init__(message)
