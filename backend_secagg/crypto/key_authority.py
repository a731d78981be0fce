"""
Single trusted key authority.

One Paillier key pair is issued per session and handed to every participant
out of band as a JSON key file. Whoever holds the private half can decrypt
any ciphertext of the session, so the full key file is as sensitive as a
master secret: the aggregator needs it to group records by identity and
every revealing bank needs it to read its own aggregates. Publishers that
only encrypt can be given the public-only file.

Key file format:
    {"key_id": "...", "n": "<int>", "p": "<int>", "q": "<int>"}
p and q are omitted from public-only files.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from phe import paillier

from backend_secagg.core.exceptions import KeyMaterialError
from backend_secagg.crypto.fhe import KeyContext, PaillierEngine, key_fingerprint
from backend_secagg.secagg_logging import get_logger

logger = get_logger(__name__)

KEY_FILE_MODE = 0o600
MIN_KEY_BITS = 256


def key_to_dict(keys: KeyContext, include_private: bool = True) -> dict[str, Any]:
    out: dict[str, Any] = {"key_id": keys.key_id, "n": str(keys.public_key.n)}
    if include_private:
        if keys.private_key is None:
            raise KeyMaterialError("cannot export private half of an evaluation-only key")
        out["p"] = str(keys.private_key.p)
        out["q"] = str(keys.private_key.q)
    return out


def key_from_dict(data: Any) -> KeyContext:
    """Rebuild a KeyContext from key_to_dict() output; verifies n = p*q and key_id."""
    if not isinstance(data, dict) or "n" not in data:
        raise KeyMaterialError("key file must be an object with field 'n'")
    try:
        n = int(data["n"])
        public_key = paillier.PaillierPublicKey(n)
        private_key = None
        if "p" in data or "q" in data:
            p, q = int(data["p"]), int(data["q"])
            if p * q != n:
                raise KeyMaterialError("key file p*q does not match n")
            private_key = paillier.PaillierPrivateKey(public_key, p, q)
    except (KeyError, TypeError, ValueError) as exc:
        raise KeyMaterialError("malformed key file", error=str(exc)) from exc
    expected_id = data.get("key_id")
    if expected_id is not None and expected_id != key_fingerprint(public_key):
        raise KeyMaterialError("key file key_id does not match its modulus")
    return KeyContext(public_key=public_key, private_key=private_key)


def issue_session_key(engine: PaillierEngine, key_bits: int) -> KeyContext:
    """Generate the session key pair shared by all participants."""
    keys = engine.generate_keys(key_bits)
    logger.info("key_authority_key_issued", key_id=keys.key_id, key_bits=key_bits)
    return keys


def save_key(path: str | Path, keys: KeyContext, include_private: bool = True) -> Path:
    """Write the key file (mode 0600). Returns the path written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(key_to_dict(keys, include_private=include_private), indent=2)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, KEY_FILE_MODE)
    # open() only applies the mode on creation; tighten an existing file too
    os.fchmod(fd, KEY_FILE_MODE)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(payload)
    logger.info(
        "key_authority_key_saved",
        path=str(path),
        key_id=keys.key_id,
        include_private=include_private,
    )
    return path


def load_key(path: str | Path) -> KeyContext:
    """Load a key file written by save_key(). Raises KeyMaterialError when missing or invalid."""
    path = Path(path)
    if not path.is_file():
        raise KeyMaterialError(
            f"Key file not found: {path}. Run 'backend-secagg keygen' first.",
            path=str(path),
        )
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise KeyMaterialError("unreadable key file", path=str(path), error=str(exc)) from exc
    keys = key_from_dict(data)
    logger.debug("key_authority_key_loaded", path=str(path), key_id=keys.key_id, can_decrypt=keys.can_decrypt)
    return keys
