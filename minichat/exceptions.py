from fastapi import status


class ChatError(Exception):
    """Domain failure reported back to the caller with a user-visible message."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ChatError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(ChatError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ChatError):
    status_code = status.HTTP_409_CONFLICT


class ValidationFailedError(ChatError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
