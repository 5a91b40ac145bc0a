"""Error taxonomy for the companion gateway.

Every failure on the completion path is raised as a GatewayError subclass.
Each subclass knows its machine-readable kind and the HTTP status the app
should answer with, so the HTTP layer never branches on exception types.
Messages never include credentials.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for all completion-path errors."""

    kind = "InternalFailure"
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidRequest(GatewayError):
    """The inbound request is malformed or incomplete."""

    kind = "InvalidRequest"
    status_code = 400


class UnsupportedProvider(GatewayError):
    """The provider identifier is not in the registry."""

    kind = "UnsupportedProvider"
    status_code = 400

    def __init__(self, provider: str, details: Optional[str] = None) -> None:
        self.provider = provider
        super().__init__("Unsupported provider: {}".format(provider), details=details)


class MissingCredential(GatewayError):
    """No API key is available for the provider at any precedence level."""

    kind = "MissingCredential"
    status_code = 401

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(
            "API key not found for provider: {}".format(provider),
            details="Please configure API key in settings or provide it in the request",
        )


class UpstreamError(GatewayError):
    """The provider answered with a non-2xx status.

    The body is kept verbatim as diagnostic text and is never parsed.
    """

    kind = "UpstreamError"

    def __init__(self, provider: str, status_code: int, body: str) -> None:
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(
            "{} API error: {}".format(provider, status_code),
            details=body,
        )


class MalformedUpstreamResponse(GatewayError):
    """The provider answered 2xx but the body lacks the expected shape."""

    kind = "MalformedUpstreamResponse"
    status_code = 500

    def __init__(self, details: str = "No choices in response") -> None:
        super().__init__("Invalid API response format", details=details)


class InternalFailure(GatewayError):
    """Transport failures and anything unexpected inside the gateway."""

    kind = "InternalFailure"
    status_code = 500
