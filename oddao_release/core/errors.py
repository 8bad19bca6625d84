from __future__ import annotations

from typing import Optional


class ReleaseError(Exception):
    """Base class for every classified failure of the release tooling.

    `category` is what the CLI prints and what operators grep for; the
    message is meant for humans.
    """

    category = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.category}: {self.message}"


class InputValidationError(ReleaseError):
    category = "Validation"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class AuthorizationError(ReleaseError):
    category = "Authorization"


class PreconditionError(ReleaseError):
    category = "Precondition"


class NoAttestationsError(ReleaseError):
    category = "NoAttestations"


class InconsistentAttestationsError(ReleaseError):
    category = "Consistency"

    def __init__(self, message: str, *, key: Optional[str] = None):
        self.key = key
        super().__init__(message)


class InsufficientQuorumError(ReleaseError):
    category = "InsufficientQuorum"

    def __init__(self, unique: int, threshold: int):
        self.unique = unique
        self.threshold = threshold
        super().__init__(f"{unique} unique signer(s) of {threshold} required")


class LedgerRejectionError(ReleaseError):
    category = "LedgerRejection"

    def __init__(self, reason: str, *, tx_hash: Optional[str] = None):
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(reason)


class PostconditionFailedError(ReleaseError):
    category = "PostconditionFailed"
