"""
Uniform failure type raised by every service.
"""
from .constants import ResponseCode


class TrainException(Exception):
    """
    Every service-layer failure is raised as a TrainException carrying an
    HTTP-like status, a stable error code and a user-facing message.
    """

    def __init__(self, error_message=None, status_code=400, error_code='BAD_REQUEST'):
        super().__init__(error_message)
        self.error_message = error_message
        self.status_code = status_code
        self.error_code = error_code

    def __str__(self):
        return self.error_message or ''

    @classmethod
    def of(cls, code, message=None):
        """Build an exception from a known ResponseCode."""
        if code is None:
            raise TypeError('ResponseCode is required')
        return cls(message or code.message, status_code=code.code, error_code=code.name)

    @classmethod
    def from_store_error(cls, error, code=ResponseCode.INTERNAL_SERVER_ERROR):
        """Wrap a driver error, keeping its message for diagnostics."""
        exc = cls.of(code, str(error) or code.message)
        exc.__cause__ = error
        return exc

    @property
    def response_code(self):
        for member in ResponseCode:
            if member.name == self.error_code:
                return member
        return None
