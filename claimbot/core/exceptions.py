"""
Custom exception classes for the claim bot.
Provides structured error handling across all modules.
"""

from typing import Any, Optional, Dict


class ClaimBotException(Exception):
    """Base exception class for the claim bot."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ClaimBotException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class InvalidKeyError(ConfigurationError):
    """Raised when a private or public key string cannot be parsed."""

    def __init__(self, reason: str):
        super().__init__(
            f"Invalid EOSIO key: {reason}",
            {"reason": reason}
        )


class RpcError(ClaimBotException):
    """Raised when a WAX RPC node returns an error or an unusable payload."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "RPC_ERROR", details)


class ExternalServiceError(ClaimBotException):
    """Raised when an external (non-chain) service error occurs."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "EXTERNAL_SERVICE_ERROR", details)


class SerializationError(ClaimBotException):
    """Raised when a value cannot be encoded into the chain's binary format."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SERIALIZATION_ERROR", details)


class SigningError(ClaimBotException):
    """Raised when a transaction cannot be signed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SIGNING_ERROR", details)
