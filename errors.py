"""
Gateway exceptions.

Every exception carries a client-safe `message` and the HTTP status it maps
to. Detail meant for operators (provider responses, OS errors) is logged
where the exception is raised and never placed in `message`.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for errors rendered to clients as `{"error": message}`."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ConfigurationError(GatewayError):
    """Raised at startup when required settings are missing or invalid."""

    message = "Gateway is misconfigured"


class AuthError(GatewayError):
    """Base class for login and token failures."""

    status_code = 401
    message = "Authentication failed"


class StateMismatch(AuthError):
    """The callback `state` does not match the one issued for this session."""

    status_code = 400
    message = "Authentication failed (invalid state). Please try again."


class OAuthExchangeFailed(AuthError):
    """The provider refused, errored or timed out during the code exchange."""

    status_code = 400
    message = "OAuth exchange failed"


class IdentityUnresolved(AuthError):
    """No primary, verified email could be obtained from the provider."""

    status_code = 400
    message = "Failed to get email"


class DomainNotAllowed(AuthError):
    """The user's verified email is outside the allowed domain."""

    status_code = 403

    def __init__(self, domain: str, allowed_domain: str):
        self.domain = domain
        self.allowed_domain = allowed_domain
        super().__init__(f"Access restricted to @{allowed_domain} users")


class Unauthenticated(AuthError):
    """No `Authorization` header was sent."""

    message = "No token provided"


class InvalidToken(AuthError):
    """The bearer token is malformed, forged or expired.

    The message is identical for every cause.
    """

    message = "Invalid token"


class StorageError(GatewayError):
    """The artifact could not be read or written."""

    message = "Failed to store artifact"


class ArtifactNotFound(StorageError):
    status_code = 404
    message = "Artifact not found"


class PartialUploadFailure(StorageError):
    """An upload failed and the store could not be returned to its prior state.

    Requires manual reconciliation of the storage directory.
    """

    message = "Upload failed and storage needs operator attention"
