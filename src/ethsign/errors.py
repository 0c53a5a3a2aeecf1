"""Exception hierarchy for request validation and signing.

Validation errors are raised before a backend is ever contacted and are
never retried. Hardware errors are raised by backend adapters (typed at
the adapter boundary) and normalized once by the error classifier.
"""

from typing import Optional


class EthSignError(Exception):
    """Base class for all ethsign errors."""
    pass


class InvalidEncoding(EthSignError, ValueError):
    """Raised when a value cannot be encoded as (or decoded from) hex."""
    pass


class InvalidDerivationPath(EthSignError, ValueError):
    """Raised when a BIP32 derivation path string is malformed."""
    pass


class ValidationError(EthSignError, ValueError):
    """Raised when a transaction or message request is invalid."""
    pass


class MissingField(ValidationError):
    """A required request field is absent."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing required field: {name}")


class InvalidType(ValidationError):
    """A request field is present but has the wrong semantic type."""

    def __init__(self, name: str, reason: str = ""):
        self.name = name
        self.reason = reason
        message = f"Invalid value for field: {name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class AmbiguousOrMissingMessage(ValidationError):
    """Both or neither of `message` and `message_data` were given."""

    def __init__(self):
        super().__init__(
            "Exactly one of 'message' (text) or 'message_data' (bytes) is required"
        )


class HardwareError(EthSignError):
    """Base class for errors coming from a signing backend.

    Attributes:
        context: Outgoing payload (or other request data) for diagnosis
    """

    def __init__(self, message: str, context: Optional[dict] = None):
        super().__init__(message)
        self.context = context


class Cancelled(HardwareError):
    """The user cancelled the operation on the device."""

    def __init__(self, message: str = "The operation was cancelled by the user"):
        # Cancellation carries no context dump
        super().__init__(message, context=None)


class ConnectionFailed(HardwareError):
    """The backend (device transport) could not be reached."""
    pass


class DeviceRejected(HardwareError):
    """The device refused the request (wrong app, invalid data, locked)."""
    pass


class SigningError(HardwareError):
    """Generic signing failure, wrapping the original error with context."""
    pass
