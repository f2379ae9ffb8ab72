# messaging_service/api/errors.py
from fastapi import HTTPException, status


def to_http_exception(exc: Exception) -> HTTPException:
    """Translate an interactor failure into the matching HTTP error."""
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
