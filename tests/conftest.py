"""
Pytest fixtures for SecAgg tests.

Keys are small (512-bit) and generated once per session so protocol tests stay
fast; SECAGG_* variables are cleared so each test starts from defaults.
"""

from __future__ import annotations

import pytest

from backend_secagg.crypto.fhe import PaillierEngine
from backend_secagg.transport.queue import InMemoryQueue

TEST_KEY_BITS = 512


@pytest.fixture(autouse=True)
def clean_secagg_env(monkeypatch):
    """Remove SECAGG_* variables inherited from the shell."""
    import os

    for name in list(os.environ):
        if name.startswith("SECAGG_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="session")
def engine():
    return PaillierEngine(value_bits=64)


@pytest.fixture(scope="session")
def session_keys(engine):
    """Full session key (evaluation + decryption)."""
    return engine.generate_keys(TEST_KEY_BITS)


@pytest.fixture(scope="session")
def other_keys(engine):
    """An unrelated key pair, as if issued for a different session."""
    return engine.generate_keys(TEST_KEY_BITS)


@pytest.fixture
def queue():
    return InMemoryQueue()


class SpyEngine(PaillierEngine):
    """PaillierEngine that records every plaintext it decrypts."""

    def __init__(self, value_bits: int = 64) -> None:
        super().__init__(value_bits)
        self.decrypted: list[int] = []

    def decrypt(self, keys, ciphertext):
        value = super().decrypt(keys, ciphertext)
        self.decrypted.append(value)
        return value


@pytest.fixture
def spy_engine():
    return SpyEngine()
