from flask import current_app, jsonify
from flask_smorest import Blueprint as ApiBlueprint
from marshmallow import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException
import sentry_sdk

from chirp.constants import ERR_INTERNAL
from chirp.exceptions import ChirpError, ValidationError, NotFoundError, ConflictError, DuplicatePostError, \
    AuthorizationError, StoreUnavailableError

# Different blueprints to organize different api namespaces
user_bp = ApiBlueprint(
    "User",
    __name__,
    url_prefix="/api/v1",
    description="Registration, nicknames and per-user timelines",
)

post_bp = ApiBlueprint(
    "Post",
    __name__,
    url_prefix="/api/v1",
    description="Posts, replies, likes and reshares",
)

hashtag_bp = ApiBlueprint(
    "Hashtag",
    __name__,
    url_prefix="/api/v1",
    description="",
)

site_bp = ApiBlueprint(
    "Site",
    __name__,
    url_prefix="/api/v1",
    description="",
)

# most specific first
STATUS_FOR_ERROR = [
    (DuplicatePostError, 429, "Too Many Requests"),
    (ValidationError, 400, "Bad Request"),
    (NotFoundError, 404, "Not Found"),
    (ConflictError, 409, "Conflict"),
    (AuthorizationError, 403, "Forbidden"),
    (StoreUnavailableError, 503, "Service Unavailable"),
]


def shared_error_handler(e):
    """Shared error handler for all API blueprints"""
    if isinstance(e, ChirpError):
        for error_class, status, name in STATUS_FOR_ERROR:
            if isinstance(e, error_class):
                if status == 503:
                    current_app.logger.error(f"API store unavailable: {e.__cause__ or e}")
                    message = "The service is temporarily unavailable"
                else:
                    message = e.message
                response = {"code": status, "error": e.code, "message": message, "status": name}
                return jsonify(response), status
    elif isinstance(e, SchemaValidationError):
        current_app.logger.warning(f"API validation error: {e.messages}")
        response = {"code": 422, "error": "VALIDATION_FAILED", "message": "Validation failed", "errors": e.messages,
                    "status": "Unprocessable Entity"}
        return jsonify(response), 422
    elif isinstance(e, HTTPException):
        # includes request body and query validation done by flask-smorest
        response = {"code": e.code, "error": e.name.upper().replace(' ', '_'), "message": e.description,
                    "status": e.name}
        errors = getattr(e, 'data', {}).get('messages') if getattr(e, 'data', None) else None
        if errors:
            response["errors"] = errors
        return jsonify(response), e.code

    current_app.logger.exception("API exception")
    if current_app.config['SENTRY_DSN']:
        sentry_sdk.capture_exception(e)
    response = {"code": 500, "error": ERR_INTERNAL, "message": "Something went wrong", "status": "Internal Server Error"}
    return jsonify(response), 500


# Register the shared error handler for all blueprints
blueprints = [user_bp, post_bp, hashtag_bp, site_bp]
for blueprint in blueprints:
    blueprint.errorhandler(Exception)(shared_error_handler)

from chirp.api import routes
