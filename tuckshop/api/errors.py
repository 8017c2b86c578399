from fastapi import HTTPException, status

from tuckshop.services.errors import (
    ConflictError,
    NotFoundError,
    ReferentialError,
    StockServiceError,
    StorageError,
    ValidationError,
)

# Request-schema failures already surface as 422, so domain validation shares it
ERROR_STATUS = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ReferentialError, status.HTTP_400_BAD_REQUEST),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: StockServiceError) -> HTTPException:
    """Translate a service error into the HTTPException a router raises."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Unexpected error",
    )
