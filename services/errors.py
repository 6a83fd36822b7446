# services/errors.py
"""Error taxonomy shared by the services, storage and routes.

Every error carries the HTTP status it maps to, so the app can render any of
them with one exception handler.
"""


class PromptPalError(Exception):
    status_code = 500
    default_message = "internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------
# Input / signature
# ---------------------------
class MalformedInput(PromptPalError):
    status_code = 400
    default_message = "malformed input"


class VerificationError(PromptPalError):
    status_code = 400
    default_message = "signature verification failed"


# ---------------------------
# Session tokens
# ---------------------------
class TokenError(PromptPalError):
    status_code = 401
    default_message = "invalid token"


class TokenExpired(TokenError):
    default_message = "token expired"


class TokenInvalidSignature(TokenError):
    default_message = "token signature is invalid"


class TokenMalformed(TokenError):
    default_message = "token is malformed"


# ---------------------------
# Lookups
# ---------------------------
class ProjectNotFound(PromptPalError):
    status_code = 404
    default_message = "project not found"


class PromptNotFound(PromptPalError):
    status_code = 404
    default_message = "prompt not found"


class UserNotFound(PromptPalError):
    status_code = 404
    default_message = "user not found"


class ProjectDisabled(PromptPalError):
    status_code = 403
    default_message = "project is disabled"


class PromptNotPublic(PromptPalError):
    status_code = 403
    default_message = "prompt is not available through the public api"


# ---------------------------
# Rendering
# ---------------------------
class MissingVariable(PromptPalError):
    status_code = 400

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"missing variable: {name}")


# ---------------------------
# Dispatch
# ---------------------------
class ProviderTimeout(PromptPalError):
    status_code = 504
    default_message = "llm provider timed out"


class ProviderError(PromptPalError):
    status_code = 502

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"llm provider error ({status}): {body}")


class Cancelled(PromptPalError):
    status_code = 499
    default_message = "request cancelled by client"


# ---------------------------
# Store
# ---------------------------
class StoreUnavailable(PromptPalError):
    status_code = 500
    default_message = "store unavailable"


class MetricRecordFailure(PromptPalError):
    status_code = 500
    default_message = "failed to record prompt call"
