"""
Domain exceptions for the Shrish Travels operations portal.

Services raise these; the API blueprint turns them into the JSON error
envelope with the matching HTTP status.
"""

from typing import Dict, Optional


class PortalError(Exception):
    """Base class for all business-logic failures"""
    status_code = 500
    code = 'INTERNAL_ERROR'

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or {}

    def to_dict(self) -> Dict:
        body = {'success': False, 'error': self.message, 'code': self.code}
        if self.fields:
            body['fields'] = self.fields
        return body


class ValidationError(PortalError):
    """Field-level validation failure; ``fields`` maps field name to message"""
    status_code = 400
    code = 'VALIDATION_ERROR'


class PayloadError(PortalError):
    """Request body has the wrong shape (bad JSON, malformed signature image)"""
    status_code = 400
    code = 'INVALID_PAYLOAD'


class UnknownActionError(PortalError):
    status_code = 400
    code = 'UNKNOWN_ACTION'


class NotFoundError(PortalError):
    status_code = 404
    code = 'NOT_FOUND'


class ConflictError(PortalError):
    """Duplicate identifier or stale version token"""
    status_code = 409
    code = 'CONFLICT'


class TransitionError(PortalError):
    """Status change not allowed from the record's current status"""
    status_code = 409
    code = 'INVALID_TRANSITION'
