"""
Authorization flow error taxonomy.

Every failure inside the login flow is raised as a subclass of
``AuthFlowError``. Each class carries the HTTP status the client should see,
a generic public message (never the internal detail) and whether the failure
is security relevant, so the exception handler can route it to the security
log instead of the ordinary one.
"""

from fastapi import status


class AuthFlowError(Exception):
    """Base exception for authorization flow errors"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    title: str = "Authentication Error"
    public_message: str = "Authentication failed. Please try logging in again."
    security_event: bool = False


class EntropySourceError(AuthFlowError):
    """The secure random source could not produce a state value."""

    title = "Login Unavailable"
    public_message = "Unable to start login right now. Please try again later."


class InvalidStateError(AuthFlowError):
    """Callback state did not match the one issued to this session."""

    status_code = status.HTTP_400_BAD_REQUEST
    title = "Security Error"
    public_message = "Your login request has expired or is invalid. Please start again."
    security_event = True


class AuthorizationDeniedError(AuthFlowError):
    """The provider returned an error instead of an authorization code."""

    status_code = status.HTTP_400_BAD_REQUEST
    title = "Authentication Failed"
    public_message = "The identity provider did not authorize this login."


class TokenExchangeError(AuthFlowError):
    """Authorization code could not be exchanged for a token."""

    status_code = status.HTTP_502_BAD_GATEWAY
    title = "Authentication Error"
    public_message = "Unable to complete login with the identity provider."


class InvalidTokenError(AuthFlowError):
    """The provider returned a token that is malformed or expired."""

    status_code = status.HTTP_502_BAD_GATEWAY
    title = "Token Verification Failed"
    public_message = "The identity provider returned an unusable token."
    security_event = True


class ProfileFetchError(AuthFlowError):
    """The user-info resource could not be fetched or parsed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    title = "Profile Unavailable"
    public_message = "Unable to retrieve your profile from the identity provider."


class DeserializeError(AuthFlowError):
    """A credential cookie could not be decrypted or parsed."""

    status_code = status.HTTP_401_UNAUTHORIZED
    security_event = True


class LogoutURLError(AuthFlowError):
    """The provider logout URL could not be built."""

    title = "Logout Error"
    public_message = "You have been logged out locally, but the identity provider could not be reached."


class ProviderDiscoveryError(AuthFlowError):
    """OpenID Connect discovery failed at startup."""


__all__ = [
    "AuthFlowError",
    "EntropySourceError",
    "InvalidStateError",
    "AuthorizationDeniedError",
    "TokenExchangeError",
    "InvalidTokenError",
    "ProfileFetchError",
    "DeserializeError",
    "LogoutURLError",
    "ProviderDiscoveryError",
]
