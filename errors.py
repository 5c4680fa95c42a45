# errors.py - api error taxonomy and the json error handlers

from flask import jsonify
from werkzeug.exceptions import HTTPException

from models import db


class ApiError(Exception):
    status_code = 500
    code = 'INTERNAL'
    default_message = 'Internal server error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_response(self):
        return jsonify({'error': self.message, 'code': self.code}), self.status_code


class AuthRequired(ApiError):
    status_code = 401
    code = 'AUTH_REQUIRED'
    default_message = 'Authentication required'


class Forbidden(ApiError):
    status_code = 403
    code = 'FORBIDDEN'
    default_message = 'Forbidden'


class NotFound(ApiError):
    status_code = 404
    code = 'NOT_FOUND'
    default_message = 'Not found'


class ValidationFailed(ApiError):
    status_code = 400
    code = 'VALIDATION_FAILED'
    default_message = 'Invalid request'


class OutOfStock(ValidationFailed):
    code = 'OUT_OF_STOCK'
    default_message = 'Insufficient stock'


class Conflict(ApiError):
    status_code = 409
    code = 'CONFLICT'
    default_message = 'Resource already exists'


class Internal(ApiError):
    pass


# werkzeug statuses we map onto the taxonomy codes
HTTP_CODES = {
    400: 'VALIDATION_FAILED',
    401: 'AUTH_REQUIRED',
    403: 'FORBIDDEN',
    404: 'NOT_FOUND',
    405: 'VALIDATION_FAILED',
    409: 'CONFLICT',
    413: 'VALIDATION_FAILED',
}


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            app.logger.error('request failed: %s', error.message)
        return error.to_response()

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        code = HTTP_CODES.get(error.code, 'INTERNAL')
        message = error.description
        if error.code == 413:
            message = 'File size too large. Maximum size is 10MB.'
        return jsonify({'error': message, 'code': code}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        # nothing half-written survives a crashed request
        db.session.rollback()
        app.logger.exception('unhandled error: %s', error)
        return jsonify({'error': 'Internal server error', 'code': 'INTERNAL'}), 500
