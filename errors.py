"""Error taxonomy shared by the domain helpers, repositories and routes."""


class PortalError(Exception):
    status_code = 500

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__ or 'Portal error')
        self.message = message or self.__class__.__doc__ or 'Portal error'

    def to_dict(self) -> dict:
        return {'error': self.message}


class ValidationError(PortalError):
    """Invalid input"""
    status_code = 400


class NotFoundError(PortalError):
    """Not found"""
    status_code = 404


class ForbiddenError(PortalError):
    """Access denied"""
    status_code = 403


class ConflictError(PortalError):
    """Conflict with current state"""
    status_code = 409


class ExternalServiceError(PortalError):
    """External service unavailable"""
    status_code = 502


class DuplicateSubmissionError(ConflictError):
    """Already submitted"""


class SubmissionNotFoundError(NotFoundError):
    """Submission not found"""


class ConcurrentModificationError(ConflictError):
    """Document was modified by another request"""
