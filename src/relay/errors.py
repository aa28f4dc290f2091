"""Domain-specific exceptions for the call relay.

These exceptions are safe to import from API layers without opening any connection.
"""

from __future__ import annotations


class RelayError(Exception):
    status_code: int = 500
    default_detail: str = "Call relay error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class FrameDecodeError(RelayError, ValueError):
    status_code = 400
    default_detail = "Malformed media stream frame."


class ToolRegistrationError(RelayError):
    default_detail = "Invalid tool registration."


class ProviderNotConfiguredError(RelayError):
    status_code = 503
    default_detail = "Telephony provider credentials are not configured."


class CallNotFoundError(RelayError):
    status_code = 404
    default_detail = "Call not found."
