"""
Error taxonomy shared by every gateway.

Each error carries a stable ``code``; the HTTP layer maps codes to status
codes in one place (see ``learnhub.main``), so nothing below the routers
knows about HTTP.
"""


class LMSError(Exception):
    code = "error"
    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(LMSError):
    code = "unauthenticated"
    default_message = "Invalid or expired token"


class EmailNotVerified(LMSError):
    code = "email_not_verified"
    default_message = "Email not verified. Please verify your email to proceed."


class Forbidden(LMSError):
    code = "forbidden"
    default_message = "Not authorized"


class NotFound(LMSError):
    code = "not_found"
    default_message = "Not found"


class Conflict(LMSError):
    code = "conflict"
    default_message = "Already exists"


class InvalidState(LMSError):
    code = "invalid_state"
    default_message = "Action not allowed in the current state"


class ValidationError(LMSError):
    code = "validation_error"
    default_message = "Invalid input"


class AssetUploadError(LMSError):
    code = "asset_upload_failed"
    default_message = "Upload failed"


STATUS_BY_CODE = {
    Unauthenticated.code: 401,
    EmailNotVerified.code: 403,
    Forbidden.code: 403,
    NotFound.code: 404,
    Conflict.code: 409,
    InvalidState.code: 400,
    ValidationError.code: 422,
    AssetUploadError.code: 502,
}
