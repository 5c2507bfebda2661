"""
Error taxonomy for the QuestLog API boundary.
Every error renders as {"error": message} with its HTTP status.
"""
from fastapi import status


class QuestLogError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(QuestLogError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class ValidationError(QuestLogError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(QuestLogError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InternalError(QuestLogError):
    pass
