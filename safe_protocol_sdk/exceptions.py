"""
Exceptions for the Safe protocol SDK.
"""
from typing import Optional


class SafeSDKError(Exception):
    """Base exception for all SDK errors."""
    pass


class ValidationError(SafeSDKError, ValueError):
    """Raised when input is malformed, before any chain access happens."""
    pass


class AuthorizationError(SafeSDKError):
    """Raised when a signing attempt comes from an address that is not an owner."""

    def __init__(self, message: str, signer: Optional[str] = None):
        self.signer = signer
        super().__init__(message)


class InsufficientSignaturesError(SafeSDKError):
    """Raised when an action does not reach the account threshold."""

    def __init__(self, missing: int, message: Optional[str] = None):
        self.missing = missing
        if message is None:
            if missing > 1:
                message = f"There are {missing} signatures missing"
            else:
                message = f"There is {missing} signature missing"
        super().__init__(message)


class UnsupportedVersionError(SafeSDKError):
    """Raised when an operation is not available for a protocol version."""

    def __init__(self, message: str, feature: Optional[str] = None, version: Optional[str] = None):
        self.feature = feature
        self.version = version
        super().__init__(message)


class GatewayError(SafeSDKError):
    """
    Raised when a Chain Gateway read or write fails.

    The original provider exception is kept as ``__cause__``; ``operation``
    names the call that failed so the caller can decide whether to retry.
    ``reverted`` is set when the node executed the call and it reverted.
    """

    def __init__(self, message: str, operation: Optional[str] = None, reverted: bool = False):
        self.operation = operation
        self.reverted = reverted
        super().__init__(message)
