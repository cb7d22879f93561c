"""
Shared error taxonomy for the dispatch services.

Services return ``(success, error, data)`` tuples where ``error`` is a
``ServiceError``; pure helpers raise it. Blueprints turn it into the JSON
error envelope with ``to_response()``.
"""

from enum import Enum


class ErrorKind(Enum):
    VALIDATION = ('VALIDATION_ERROR', 400)
    SLOT_TAKEN = ('SLOT_TAKEN', 409)
    DRIVER_UNAVAILABLE = ('DRIVER_UNAVAILABLE', 409)
    AMBULANCE_UNAVAILABLE = ('AMBULANCE_UNAVAILABLE', 409)
    INVALID_RANGE = ('INVALID_RANGE', 400)
    NOT_FOUND = ('NOT_FOUND', 404)
    EXPIRED = ('EXPIRED', 400)
    MISMATCH = ('MISMATCH', 400)
    CONFLICT = ('CONFLICT', 409)
    UNAUTHORIZED = ('UNAUTHORIZED', 401)
    INTERNAL = ('INTERNAL_ERROR', 500)

    @property
    def code(self):
        return self.value[0]

    @property
    def http_status(self):
        return self.value[1]


class ServiceError(Exception):
    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def code(self):
        return self.kind.code

    @property
    def http_status(self):
        return self.kind.http_status

    def to_dict(self):
        return {'success': False, 'error': self.code, 'message': self.message}

    def to_response(self):
        """(body, status) pair ready to be returned from a Flask view"""
        return self.to_dict(), self.http_status

    def __repr__(self):
        return f'<ServiceError {self.code}: {self.message}>'


# Shorthand constructors used throughout the services
def validation_error(message):
    return ServiceError(ErrorKind.VALIDATION, message)

def not_found(entity):
    return ServiceError(ErrorKind.NOT_FOUND, f'{entity} not found')

def conflict(message):
    return ServiceError(ErrorKind.CONFLICT, message)
