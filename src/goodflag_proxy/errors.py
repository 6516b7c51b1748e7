"""Error types raised by the signing proxy and mapped to HTTP responses in main."""

from __future__ import annotations

from typing import Optional


class SigningProxyError(Exception):
    """Base exception for the signing proxy.

    ``status_code`` is the HTTP status used when the error reaches the
    request boundary. Errors with ``expose_message = False`` answer the
    client with ``public_message`` and keep the real text for logs.
    """

    status_code = 500
    public_message = "Internal server error"
    expose_message = True

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.public_message
        super().__init__(self.message)

    @property
    def client_message(self) -> str:
        return self.message if self.expose_message else self.public_message


class ConfigurationError(SigningProxyError):
    """Required settings are missing or invalid."""


class ValidationError(SigningProxyError):
    """Upload fields are missing or invalid."""

    status_code = 400
    public_message = "Invalid request"


class ProviderError(SigningProxyError):
    """Non-success response or transport failure from the signing provider."""

    status_code = 502
    public_message = "Failed to create Goodflag workflow"
    expose_message = False

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.body = body


class NotFoundError(SigningProxyError):
    status_code = 404
    public_message = "Signing job not found"


class ConflictError(SigningProxyError):
    status_code = 409
    public_message = "Signed document is not available yet"


class InternalError(SigningProxyError):
    expose_message = False
