"""Exceptions raised by the chirp core.

Every error carries a machine readable ``code`` (see chirp.constants) next to the human readable
message, so the API layer can map it to a status and clients can branch on it.
"""
from chirp.constants import ERR_VALIDATION, ERR_NOT_FOUND, ERR_NICKNAME_EXISTS, ERR_DUPLICATE_POST, \
    ERR_STORE_UNAVAILABLE, ERR_NOT_OWNER


class ChirpError(Exception):
    code = 'CHIRP_ERROR'

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def __str__(self):
        return self.message


class ValidationError(ChirpError):
    """Input was rejected before the store was touched"""
    code = ERR_VALIDATION


class NotFoundError(ChirpError):
    code = ERR_NOT_FOUND


class ConflictError(ChirpError):
    """The write would violate a uniqueness rule (nickname taken, engagement exists)"""
    code = ERR_NICKNAME_EXISTS


class DuplicatePostError(ConflictError):
    """Same author, same content, inside the duplicate window"""
    code = ERR_DUPLICATE_POST


class StoreUnavailableError(ChirpError):
    code = ERR_STORE_UNAVAILABLE


class AuthorizationError(ChirpError):
    code = ERR_NOT_OWNER
