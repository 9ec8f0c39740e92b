from __future__ import annotations

from fastapi import HTTPException, status


class AuctionError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=type(self).status_code, detail=detail)


class ValidationRejected(AuctionError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(AuctionError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(AuctionError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(AuctionError):
    status_code = status.HTTP_404_NOT_FOUND


class LockContention(AuctionError):
    """Another bid holds the auction lock; the client may try again."""

    status_code = status.HTTP_409_CONFLICT


class SelectionConflict(AuctionError):
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(AuctionError):
    status_code = status.HTTP_409_CONFLICT
