"""
Error taxonomy for the gateway.

Every error carries the HTTP status and the `{error: {type, code}}` tags
used when it reaches the API boundary.
"""

from typing import Optional


class LoroError(Exception):
    status_code: int = 500
    error_type: str = "internal_error"
    code: str = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def public_message(self) -> str:
        """Message safe to return to API callers."""
        return "Internal server error"


class UpstreamTimeout(LoroError):
    status_code = 408
    error_type = "timeout_error"
    code = "request_timeout"

    def __init__(self, timeout_secs: float):
        super().__init__(f"HTTP request timeout: {timeout_secs}s")
        self.timeout_secs = timeout_secs

    def public_message(self) -> str:
        return f"Request timeout after {self.timeout_secs}s"


class ApiError(LoroError):
    """Upstream answered with a non-2xx status."""

    status_code = 502
    error_type = "api_error"
    code = "upstream_error"

    def __init__(self, provider: str, status: int, message: str):
        super().__init__(f"API error from {provider}: {status} - {message}")
        self.provider = provider
        self.status = status
        self.upstream_message = message

    def public_message(self) -> str:
        return f"API error from {self.provider}: {self.upstream_message}"


class HttpClientError(LoroError):
    """Transport-level failure (connect, read, protocol)."""

    status_code = 502
    error_type = "api_error"
    code = "upstream_unreachable"

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(f"HTTP client error: {message}")
        self.provider = provider

    def public_message(self) -> str:
        return self.message


class ValidationFailed(LoroError):
    status_code = 400
    error_type = "invalid_request_error"
    code = "validation_failed"

    def public_message(self) -> str:
        return self.message


class JsonParseError(LoroError):
    def __init__(self, message: str):
        super().__init__(f"JSON parsing error: {message}")


class StreamProcessingError(LoroError):
    def __init__(self, message: str):
        super().__init__(f"Stream processing error: {message}")


class SmallModelFailed(LoroError):
    def __init__(self, message: str):
        super().__init__(f"Small model failed: {message}")


class LargeModelFailed(LoroError):
    def __init__(self, message: str):
        super().__init__(f"Large model failed: {message}")


class InternalError(LoroError):
    def __init__(self, message: str):
        super().__init__(f"Internal error: {message}")
