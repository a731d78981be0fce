"""
Cryptographic building blocks: identity salting, Paillier arithmetic, and the
session key authority.
"""

from backend_secagg.crypto.fhe import Ciphertext, KeyContext, PaillierEngine
from backend_secagg.crypto.key_authority import issue_session_key, load_key, save_key
from backend_secagg.crypto.salting import salted_id, salted_ids

__all__ = [
    "Ciphertext",
    "KeyContext",
    "PaillierEngine",
    "issue_session_key",
    "load_key",
    "salted_id",
    "salted_ids",
    "save_key",
]
