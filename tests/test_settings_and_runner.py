"""
Tests for settings, keypair loading, node log source and the CLI runner.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from solders.keypair import Keypair

from nosana_autostake.agent_worker import runner
from nosana_autostake.agent_worker.keys import load_authority
from nosana_autostake.agent_worker.node_logs import docker_logs_command, process_output_chunks
from nosana_autostake.config.env import DEFAULT_STAKING_PROGRAM_ID, masked_rpc_url
from nosana_autostake.config.settings import AutostakeSettings, get_settings
from nosana_autostake.core.exceptions import ConfigError, StreamIOError


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SOLANA_RPC_URL", "https://rpc.example/?api-key=secret")
    monkeypatch.setenv("NOSANA_KEY_PATH", "/tmp/key.json")
    monkeypatch.setenv("RESOLVE_ATTEMPTS", "3")
    monkeypatch.delenv("NOSANA_STAKING_PROGRAM_ID", raising=False)
    settings = AutostakeSettings()
    assert settings.rpc_url == "https://rpc.example/?api-key=secret"
    assert settings.key_path == Path("/tmp/key.json")
    assert settings.resolve_attempts == 3
    assert settings.staking_program_id == DEFAULT_STAKING_PROGRAM_ID
    assert masked_rpc_url(settings.rpc_url) == "https://rpc.example/?api-key=***"


def test_get_settings_overrides_ignore_none(monkeypatch):
    monkeypatch.setenv("NOSANA_NODE_CONTAINER", "from-env")
    settings = get_settings(node_container=None, rpc_url="https://override.test")
    assert settings.node_container == "from-env"
    assert settings.rpc_url == "https://override.test"


def test_settings_validation():
    with pytest.raises(ConfigError):
        AutostakeSettings(rpc_url="ftp://nope")
    with pytest.raises(ConfigError):
        AutostakeSettings(rpc_url="https://ok.test", resolve_attempts=0)


@pytest.mark.parametrize(
    "field, value",
    [
        ("resolve_backoff_sec", -1.0),
        ("resolve_max_backoff_sec", 0.5),
        ("confirm_poll_interval_sec", 0.0),
        ("rpc_timeout_sec", -5.0),
        ("confirm_timeout_sec", 0.0),
        ("log_max_buffer_bytes", 10),
    ],
)
def test_settings_invalid_timing_rejected(field, value):
    """Out-of-range tunables raise ConfigError instead of being adjusted."""
    with pytest.raises(ConfigError):
        AutostakeSettings(rpc_url="https://ok.test", **{field: value})


def test_settings_bad_env_number(monkeypatch):
    monkeypatch.setenv("RESOLVE_BACKOFF_SEC", "soon")
    with pytest.raises(ConfigError):
        AutostakeSettings(rpc_url="https://ok.test")


def test_load_authority(tmp_path):
    kp = Keypair()
    path = tmp_path / "nosana_key.json"
    path.write_text(json.dumps(list(bytes(kp))), encoding="utf-8")
    assert load_authority(path).pubkey() == kp.pubkey()


def test_load_authority_missing_or_invalid(tmp_path):
    with pytest.raises(ConfigError):
        load_authority(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_authority(bad)
    garbage = tmp_path / "garbage.json"
    garbage.write_text("not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_authority(garbage)


def test_docker_logs_command():
    assert docker_logs_command("nosana-node") == ["docker", "logs", "-f", "nosana-node"]


def test_process_output_chunks_reads_until_exit():
    """Combined output of a short-lived process is yielded in chunks."""
    argv = [sys.executable, "-c", "import sys; print('Job finished abc'); print('oops', file=sys.stderr)"]

    async def collect():
        return b"".join([c async for c in process_output_chunks(argv, read_size=4)])

    out = asyncio.run(collect())
    assert b"Job finished abc" in out
    assert b"oops" in out


def test_process_output_chunks_nonzero_exit_is_stream_error():
    """A container that is gone makes docker exit nonzero; output is still yielded, then StreamIOError."""
    argv = [sys.executable, "-c", "import sys; print('Error: No such container: nosana-node'); sys.exit(1)"]
    received = []

    async def collect():
        async for chunk in process_output_chunks(argv):
            received.append(chunk)

    with pytest.raises(StreamIOError, match="exited with code 1"):
        asyncio.run(collect())
    assert b"No such container" in b"".join(received)


def test_process_output_chunks_missing_binary():
    async def collect():
        return [c async for c in process_output_chunks(["/nonexistent/docker-binary"])]

    with pytest.raises(StreamIOError):
        asyncio.run(collect())


def test_ask_consent():
    assert runner.ask_consent(lambda _q: "YES ")
    assert not runner.ask_consent(lambda _q: "no")

    def eof(_q):
        raise EOFError

    assert not runner.ask_consent(eof)


def test_main_declined_exits_zero(monkeypatch):
    monkeypatch.delenv("AUTOSTAKE_ACCEPT_RISK", raising=False)
    with patch.object(runner, "ask_consent", return_value=False), patch.object(runner, "run_agent") as run_agent:
        assert runner.main([]) == 0
    run_agent.assert_not_called()


def test_main_missing_key_file_fails(tmp_path):
    assert runner.main(["--yes", "--key-path", str(tmp_path / "none.json"), "--rpc-url", "https://rpc.test"]) == 1


def test_run_agent_over_given_chunks(tmp_path):
    """run_agent wires the pipeline; a stream with no jobs finishes without RPC traffic."""
    settings = AutostakeSettings(rpc_url="https://rpc.test", key_path=tmp_path / "k.json")

    async def chunks():
        yield "✔ QUEUED  at position 1/4\n".encode()

    events = []
    asyncio.run(runner.run_agent(settings, Keypair(), chunks=chunks(), audit_sink=events.append))
    assert events == []


def test_main_broken_stream_exits_one(tmp_path):
    """A log source that dies (e.g. docker exits nonzero) is a failure exit, not a clean stop."""
    key_file = tmp_path / "k.json"
    key_file.write_text(json.dumps(list(bytes(Keypair()))), encoding="utf-8")

    async def broken(settings, authority):
        raise StreamIOError("docker exited with code 1")

    with patch.object(runner, "run_agent", side_effect=broken):
        assert runner.main(["--yes", "--key-path", str(key_file), "--rpc-url", "https://rpc.test"]) == 1
