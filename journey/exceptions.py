"""
Love Journey - Exceptions
=========================

Typed failures raised by the store and services.

Every error carries the HTTP status and error code the API layer answers
with, so views never need to map exceptions by hand.
"""


class JourneyError(Exception):
    """Base class for all Love Journey failures."""
    status_code = 500
    error_code = 'internal_error'

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        """Convert to the JSON error body."""
        return {
            'error': self.error_code,
            'message': self.message,
            'details': self.details,
        }


class NotFound(JourneyError):
    """Unknown id, partner code or relationship."""
    status_code = 404
    error_code = 'not_found'


class Conflict(JourneyError):
    """Uniqueness or one-shot transition violated."""
    status_code = 409
    error_code = 'conflict'


class Forbidden(JourneyError):
    """Caller tried to write a slot that belongs to the other partner."""
    status_code = 403
    error_code = 'forbidden'


class ValidationError(JourneyError):
    """Malformed request payload."""
    status_code = 400
    error_code = 'validation_error'

    def __init__(self, message='Invalid input', errors=None):
        super().__init__(message, details=errors)
        self.errors = errors or {}


class NotAuthenticated(JourneyError):
    status_code = 401
    error_code = 'not_authenticated'

    def __init__(self, message='Authentication required'):
        super().__init__(message)


class PartnerRequired(JourneyError):
    """The relationship has no linked partner yet."""
    status_code = 400
    error_code = 'partner_required'
