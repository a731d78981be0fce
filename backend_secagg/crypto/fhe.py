"""
Additively homomorphic integer encryption over Paillier (python-paillier).

Key material is held in an explicit KeyContext scoped to one session: the
Paillier public key is the evaluation key (encrypt, add, trivial encrypt) and
the private key is the decryption capability. Nothing here keeps module-level
key state, so tests can pass small or mock keys.

Ciphertexts travel as {"c": <int as str>, "e": <exponent>, "k": <key id>};
the key id lets receivers reject ciphertexts from a different session key
instead of silently decrypting garbage.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any

from phe import paillier

from backend_secagg.core.exceptions import (
    CryptoError,
    KeyMismatchError,
    MissingDecryptionKeyError,
    PlaintextRangeError,
    RecordSerializationError,
)

DEFAULT_VALUE_BITS = 64
# Extra plaintext bits kept free above value_bits so sums of many values stay exact
AGGREGATE_HEADROOM_BITS = 32

Ciphertext = paillier.EncryptedNumber


def key_fingerprint(public_key: paillier.PaillierPublicKey) -> str:
    """Short stable identifier of a public key (hex of SHA-256 over n)."""
    return hashlib.sha256(str(public_key.n).encode("ascii")).hexdigest()[:16]


@dataclass(frozen=True)
class KeyContext:
    """
    Session key capability.

    public_key: evaluation key; enough to encrypt, add and trivially encrypt.
    private_key: decryption key; None for evaluation-only participants.
    """

    public_key: paillier.PaillierPublicKey
    private_key: paillier.PaillierPrivateKey | None = None

    @property
    def key_id(self) -> str:
        return key_fingerprint(self.public_key)

    @property
    def can_decrypt(self) -> bool:
        return self.private_key is not None

    def evaluation_only(self) -> "KeyContext":
        """Return a copy without the decryption capability."""
        return KeyContext(public_key=self.public_key)


class PaillierEngine:
    """Encrypted-integer arithmetic with exact results over [0, 2**value_bits)."""

    def __init__(self, value_bits: int = DEFAULT_VALUE_BITS) -> None:
        if value_bits < 1:
            raise ValueError("value_bits must be positive")
        self.value_bits = value_bits
        self.max_value = (1 << value_bits) - 1

    # -- keys -------------------------------------------------------------------

    def generate_keys(self, key_bits: int = 2048) -> KeyContext:
        """Generate a fresh key pair. Raises CryptoError if the modulus is too small."""
        public_key, private_key = paillier.generate_paillier_keypair(n_length=key_bits)
        keys = KeyContext(public_key=public_key, private_key=private_key)
        self.check_capacity(keys)
        return keys

    def check_capacity(self, keys: KeyContext) -> None:
        """Ensure the key's plaintext space holds value_bits plus aggregation headroom."""
        needed = 1 << (self.value_bits + AGGREGATE_HEADROOM_BITS)
        if keys.public_key.max_int < needed:
            raise CryptoError(
                "key modulus too small for configured value width",
                value_bits=self.value_bits,
                key_bits=keys.public_key.n.bit_length(),
            )

    # -- arithmetic -------------------------------------------------------------

    def _check_plaintext(self, value: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise PlaintextRangeError(f"plaintext must be an int, got {type(value).__name__}")
        if not 0 <= value <= self.max_value:
            raise PlaintextRangeError(
                f"plaintext outside [0, 2**{self.value_bits})",
                value_bits=self.value_bits,
            )
        return value

    def _check_key(self, keys: KeyContext, ciphertext: Ciphertext) -> None:
        if ciphertext.public_key != keys.public_key:
            raise KeyMismatchError("ciphertext was encrypted under a different key", key_id=keys.key_id)

    def encrypt(self, keys: KeyContext, value: int) -> Ciphertext:
        """Randomised encryption of value under the session key."""
        return keys.public_key.encrypt(self._check_plaintext(value))

    def trivial_encrypt(self, keys: KeyContext, value: int) -> Ciphertext:
        """Deterministic encryption (r = 1) of a public constant; needs no secret key."""
        return keys.public_key.encrypt(self._check_plaintext(value), r_value=1)

    def add(self, keys: KeyContext, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        """Homomorphic addition. Both operands must belong to the session key."""
        self._check_key(keys, a)
        self._check_key(keys, b)
        return a + b

    def decrypt(self, keys: KeyContext, ciphertext: Ciphertext) -> int:
        """Recover the plaintext integer. Requires the decryption capability."""
        if keys.private_key is None:
            raise MissingDecryptionKeyError("key context has no decryption key", key_id=keys.key_id)
        self._check_key(keys, ciphertext)
        try:
            return int(keys.private_key.decrypt(ciphertext))
        except (ValueError, OverflowError) as exc:
            raise CryptoError("decryption failed", key_id=keys.key_id, error=str(exc)) from exc

    # -- transport --------------------------------------------------------------

    def to_payload(self, keys: KeyContext, ciphertext: Ciphertext) -> dict[str, Any]:
        """JSON-safe form of a ciphertext. Trivial encryptions are re-randomised here."""
        self._check_key(keys, ciphertext)
        return {"c": str(ciphertext.ciphertext()), "e": int(ciphertext.exponent), "k": keys.key_id}

    def from_payload(self, keys: KeyContext, payload: Any) -> Ciphertext:
        """Rebuild a ciphertext from to_payload() output, rejecting foreign keys."""
        if not isinstance(payload, dict):
            raise RecordSerializationError("ciphertext payload must be an object")
        if payload.get("k") != keys.key_id:
            raise KeyMismatchError(
                "ciphertext was encrypted under a different key",
                key_id=keys.key_id,
                payload_key_id=payload.get("k"),
            )
        try:
            raw = int(payload["c"])
            exponent = int(payload.get("e", 0))
        except (KeyError, TypeError, ValueError) as exc:
            raise RecordSerializationError("malformed ciphertext payload") from exc
        if not 0 < raw < keys.public_key.nsquare:
            raise RecordSerializationError("ciphertext outside the key's range")
        return paillier.EncryptedNumber(keys.public_key, raw, exponent)
