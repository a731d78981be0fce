"""
Tests for the backend-secagg command line (cli.main).

Keys are 512-bit and the queue is memory:// so commands run without Redis.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from backend_secagg import cli
from backend_secagg.crypto.key_authority import load_key


@pytest.fixture
def secagg_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SECAGG_KEY_BITS", "512")
    monkeypatch.setenv("SECAGG_KEY_PATH", str(tmp_path / "keys" / "session_key.json"))
    monkeypatch.setenv("SECAGG_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("SECAGG_REDIS_URL", "memory://")
    monkeypatch.setenv("SECAGG_N_BANKS", "2")
    monkeypatch.setenv("SECAGG_BARRIER_POLL_SEC", "0.01")
    monkeypatch.setenv("SECAGG_BARRIER_TIMEOUT_SEC", "10")
    return tmp_path


def test_keygen_writes_full_and_public_files(secagg_env, capsys):
    public = secagg_env / "keys" / "public.json"
    assert cli.main(["keygen", "--public-only", str(public)]) == 0
    full = load_key(secagg_env / "keys" / "session_key.json")
    assert full.can_decrypt
    assert full.public_key.n.bit_length() >= 511
    with open(public, encoding="utf-8") as f:
        assert "p" not in json.load(f)
    out = capsys.readouterr().out
    assert full.key_id in out


@pytest.mark.parametrize("bits", ["-8", "0", "128"])
def test_keygen_rejects_small_key_size(secagg_env, capsys, bits):
    assert cli.main(["keygen", "--bits", bits]) == 2
    assert "at least 256 bits" in capsys.readouterr().err
    assert not (secagg_env / "keys" / "session_key.json").exists()


def test_keygen_refuses_public_copy_over_session_key(secagg_env, capsys):
    key_path = secagg_env / "keys" / "session_key.json"
    assert cli.main(["keygen"]) == 0
    key_id = load_key(key_path).key_id

    assert cli.main(["keygen", "--public-only", str(key_path)]) == 2
    assert "would overwrite the session key file" in capsys.readouterr().err
    full = load_key(key_path)
    assert full.can_decrypt
    assert full.key_id == key_id


def test_run_rejects_bad_bank_before_queue_access(secagg_env, capsys):
    with patch.object(cli, "get_queue") as get_queue:
        assert cli.main(["run", "7"]) == 2
    get_queue.assert_not_called()
    assert "bank_id must be between 0 and 1" in capsys.readouterr().err


def test_run_without_key_file_fails(secagg_env, capsys):
    with patch.object(cli, "get_queue") as get_queue:
        assert cli.main(["run", "0"]) == 1
    get_queue.assert_not_called()
    assert "keygen" in capsys.readouterr().err


def test_public_only_key_cannot_run(secagg_env, capsys):
    public = secagg_env / "public.json"
    assert cli.main(["keygen", "--public-only", str(public)]) == 0
    with patch.dict("os.environ", {"SECAGG_KEY_PATH": str(public)}):
        assert cli.main(["run", "0"]) == 1
    assert "public-only" in capsys.readouterr().err


def test_generate_data_then_simulate(secagg_env, capsys):
    assert cli.main(["generate-data", "--seed", "5"]) == 0
    assert (secagg_env / "data" / "bank_0.csv").is_file()
    assert (secagg_env / "data" / "bank_1.csv").is_file()
    assert "Overlap statistics" in capsys.readouterr().out

    assert cli.main(["simulate", "--ephemeral-key"]) == 0
    out = capsys.readouterr().out
    assert out.count("Aggregation complete") == 1
    assert "Bank 0 → selective reveal for its own clients" in out
    assert "Bank 1 → selective reveal for its own clients" in out
    assert "average = " in out


def test_simulate_without_data_fails(secagg_env, capsys):
    assert cli.main(["simulate", "--ephemeral-key"]) == 1
    assert "generate-data" in capsys.readouterr().err


def test_reset(secagg_env, capsys):
    assert cli.main(["reset"]) == 0
    assert "Cleared queues: records, aggregates, phase:published, phase:aggregated" in capsys.readouterr().out


def test_unknown_command_exits_with_usage():
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["frobnicate"])
    assert excinfo.value.code == 2
