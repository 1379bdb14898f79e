"""
Custom Exceptions for Audiopub.

Service-level errors carry the HTTP status they map to, so routers can let
them propagate and the application-wide handler in main.py renders them.
"""


class AudiopubError(Exception):
    """Base exception for all Audiopub errors."""

    status_code = 500

    def __init__(self, message: str = "Internal error"):
        self.message = message
        super().__init__(message)

    @property
    def error_code(self) -> str:
        """snake_case identifier used in JSON error bodies."""
        name = type(self).__name__
        if name.endswith("Error"):
            name = name[:-len("Error")]
        out = []
        for i, ch in enumerate(name):
            if ch.isupper() and i:
                out.append("_")
            out.append(ch.lower())
        return "".join(out)


# =============================================================================
# Lookup Exceptions
# =============================================================================

class NotFoundError(AudiopubError):
    """Raised when a requested record does not exist."""

    status_code = 404

    def __init__(self, resource: str, resource_id: str = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


# =============================================================================
# Permission Exceptions
# =============================================================================

class PermissionDeniedError(AudiopubError):
    """Raised when the caller may not perform an action."""

    status_code = 403

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class BannedUserError(PermissionDeniedError):
    """Raised for every authenticated request made by a banned account."""

    def __init__(self):
        super().__init__("You are banned.")


class UnverifiedUserError(PermissionDeniedError):
    """Raised when an action requires a verified email address."""

    def __init__(self):
        super().__init__("Please verify your email address first.")


class EditLimitReachedError(PermissionDeniedError):
    """Raised when a non-admin has used up their edits on an audio."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Edit limit reached ({limit} edits)")


# =============================================================================
# Validation Exceptions
# =============================================================================

class ValidationFailedError(AudiopubError):
    """Raised when submitted content breaks a content rule."""

    status_code = 400


# =============================================================================
# Authentication Exceptions
# =============================================================================

class AuthenticationError(AudiopubError):
    """Base exception for authentication errors."""

    status_code = 401


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid."""

    def __init__(self):
        super().__init__("Invalid email or password")


class InvalidTokenError(AuthenticationError):
    """Raised when a verification or reset token does not match."""

    def __init__(self, token_type: str = "token"):
        self.token_type = token_type
        super().__init__(f"Invalid {token_type}")


# =============================================================================
# Configuration Exceptions
# =============================================================================

class ConfigurationError(AudiopubError):
    """Raised when there's a configuration problem."""

    def __init__(self, setting: str, reason: str = None):
        self.setting = setting
        self.reason = reason
        msg = f"Configuration error for '{setting}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
