"""
Application-level exceptions.

Every failure in the protocol surfaces as a SecAggError subclass carrying a
stable error code and a process exit code. There is no recoverable category:
a failed run is retried from scratch by re-invoking all participants.

Categories:
- transport / serialization: queue unreachable, malformed payload bytes
- cryptographic: wrong key, missing decryption capability, value out of range
- usage: bad bank identifier, bad configuration, missing client data
- coordination: phase barrier not reached in time, stale queues from an earlier run
"""

from __future__ import annotations

EXIT_FAILURE = 1
EXIT_USAGE = 2


class SecAggError(Exception):
    """Base class for all protocol errors."""

    code = "secagg_error"
    exit_code = EXIT_FAILURE

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, object]:
        """Structured form for logging."""
        out: dict[str, object] = {"code": self.code, "message": self.message}
        out.update(self.context)
        return out


# --- transport / serialization ----------------------------------------------


class QueueTransportError(SecAggError):
    """The shared queue could not be reached or rejected an operation."""

    code = "queue_transport"


class RecordSerializationError(SecAggError):
    """A queue payload could not be encoded or decoded."""

    code = "record_serialization"


# --- cryptographic ------------------------------------------------------------


class CryptoError(SecAggError):
    """Encryption, decryption or homomorphic evaluation failed."""

    code = "crypto"


class MissingDecryptionKeyError(CryptoError):
    """Decryption was requested from an evaluation-only key context."""

    code = "missing_decryption_key"


class KeyMismatchError(CryptoError):
    """A ciphertext was produced under a different session key."""

    code = "key_mismatch"


class PlaintextRangeError(CryptoError):
    """A plaintext does not fit the configured value width."""

    code = "plaintext_range"


class KeyMaterialError(CryptoError):
    """The session key file is missing or malformed."""

    code = "key_material"


# --- usage --------------------------------------------------------------------


class UsageError(SecAggError):
    """Invalid command-line input or configuration; raised before any queue access."""

    code = "usage"
    exit_code = EXIT_USAGE


class InvalidClientRecordError(SecAggError):
    """A client record has an id or score outside the supported range."""

    code = "invalid_client_record"


class ClientDataNotFoundError(SecAggError):
    """The bank's client CSV does not exist."""

    code = "client_data_not_found"


# --- coordination -------------------------------------------------------------


class BarrierTimeoutError(SecAggError):
    """Not enough participants reached a phase before the wait timed out."""

    code = "barrier_timeout"


class StaleSessionError(SecAggError):
    """Queues still hold state from an earlier run; reset them before starting."""

    code = "stale_session"
