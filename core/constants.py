"""
Outcome codes and user roles shared by every service.
"""
from enum import Enum


class ResponseCode(Enum):
    """
    Closed set of outcomes. Each member carries an HTTP-like status code and
    a message that can be shown to the user as is.
    """
    SUCCESS = (200, 'OK')
    NO_CONTENT = (204, 'No Items Found')
    BAD_REQUEST = (400, 'Bad Request, Please Try Again')
    UNAUTHORIZED = (401, 'Invalid Credentials, Try Again')
    ACCESS_DENIED = (403, 'Access Denied, Try Again')
    NOT_FOUND = (404, 'Requested resource not found')
    SEATS_UNAVAILABLE = (409, 'Requested seats are not available')
    FAILURE = (422, 'Unprocessible Entity, Failed to Process')
    INTERNAL_SERVER_ERROR = (500, 'Internal Server Error, Try Again')
    DATABASE_CONNECTION_FAILURE = (
        503, 'Unable to Connect to DB, Please Check your db credentials'
    )

    def __init__(self, code, message):
        self.code = code
        self.message = message

    def __str__(self):
        return self.name

    @classmethod
    def get_by_status(cls, code):
        """Return the first member with the given status code, or None."""
        for member in cls:
            if member.code == code:
                return member
        return None


class UserRole(str, Enum):
    ADMIN = 'ADMIN'
    CUSTOMER = 'CUSTOMER'

    def __str__(self):
        return self.value


SESSION_EXPIRED_MESSAGE = 'Session Expired, Login Again to Continue'
