"""
HTTP errors shared by the v1 routes.
"""

from fastapi import HTTPException, status

RETRY_AFTER_SECONDS = 1
BUSY_MESSAGE = "The service is busy right now. Please try again shortly."


def service_busy(message: str = BUSY_MESSAGE) -> HTTPException:
    """503 for transient failures: exhausted join retries or an unavailable database."""
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"outcome": "server_busy", "message": message},
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )
