"""Bridge error taxonomy.

Each error carries the literal message the remote platform expects on the
wire; ``str(exc)`` is what ends up in the response body.
"""
from __future__ import annotations

from typing import Optional


class BridgeError(RuntimeError):
    """Base error for bridge failures."""


class AuthError(BridgeError):
    """Raised when an inbound call cannot be trusted.

    ``status_code`` is the HTTP status the bridge endpoint answers with.
    """

    status_code = 401


class NotInstalledError(AuthError):
    """The bridge is not marked installed in host settings."""

    def __init__(self, message: str = "ERROR: Bridge is not installed") -> None:
        super().__init__(message)


class TokenFieldPresentError(AuthError):
    """The reserved ``token`` field was supplied."""

    status_code = 200

    def __init__(self, message: str = "ERROR: Field token is not correct") -> None:
        super().__init__(message)


class SecretUndefinedError(AuthError):
    """No store key is defined for this deployment (or it is malformed)."""

    def __init__(self, message: str = "ERROR_TOKEN_NOT_DEFINED") -> None:
        super().__init__(message)


class SignatureMissingError(AuthError):
    status_code = 200

    def __init__(self, message: str = "ERROR: Signature is not correct") -> None:
        super().__init__(message)


class SignatureInvalidError(AuthError):
    def __init__(self, message: str = "ERROR: Signature is not correct") -> None:
        super().__init__(message)


class ConnectivityError(BridgeError):
    """Database unreachable after the retry budget; fatal for the request."""


class QueryError(BridgeError):
    """SQL execution failure for one statement."""

    def __init__(self, message: str, query: Optional[str] = None, failed_query_id: object = 0) -> None:
        super().__init__(message)
        self.query = query
        self.failed_query_id = failed_query_id

    def as_payload(self) -> dict:
        return {"error": str(self), "query": self.query, "failedQueryId": self.failed_query_id}


class CryptoError(BridgeError):
    """Envelope encode/decode failure."""


class CommerceEntityError(BridgeError):
    """Missing entity or platform API rejection."""

    def __init__(self, message: str, error_code: int | str = 0) -> None:
        super().__init__(message)
        self.error_code = error_code


class FileError(BridgeError):
    """Invalid extension, download failure, unsupported image, unwritable dir."""


__all__ = [
    "BridgeError",
    "AuthError",
    "NotInstalledError",
    "TokenFieldPresentError",
    "SecretUndefinedError",
    "SignatureMissingError",
    "SignatureInvalidError",
    "ConnectivityError",
    "QueryError",
    "CryptoError",
    "CommerceEntityError",
    "FileError",
]
