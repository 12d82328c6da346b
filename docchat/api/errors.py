"""Mapping of typed core outcomes to HTTP errors."""

from fastapi import HTTPException, status

from docchat.models.outcomes import (
    NotFound,
    QuotaExceeded,
    Unauthenticated,
    UpstreamUnavailable,
)

Failure = Unauthenticated | NotFound | QuotaExceeded | UpstreamUnavailable


def is_failure(outcome: object) -> bool:
    """Check whether an outcome is one of the failure types."""
    return isinstance(outcome, (Unauthenticated, NotFound, QuotaExceeded, UpstreamUnavailable))


def to_http_exception(outcome: Failure) -> HTTPException:
    """Convert a failure outcome to the HTTPException a route should raise."""
    if isinstance(outcome, Unauthenticated):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=outcome.reason,
            headers={"WWW-Authenticate": "Bearer"},
        )

    if isinstance(outcome, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

    if isinstance(outcome, QuotaExceeded):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"reason": outcome.reason, "upgrade_available": outcome.upgrade_available},
        )

    return HTTPException(
        status_code=(
            status.HTTP_504_GATEWAY_TIMEOUT
            if outcome.timed_out
            else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        detail={"upstream": outcome.which.value, "timed_out": outcome.timed_out},
    )
