"""
Tests for the command-line runtime: argument parsing, exit codes, JSON output.

JarMonitor and LedgerClient are swapped for fakes so no node is contacted.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

import pytest

from backend_jarwatch.agent_worker import runtime
from backend_jarwatch.analysis_engine import detect_anomalies
from backend_jarwatch.config import env, settings as settings_module
from backend_jarwatch.config.settings import Settings
from backend_jarwatch.recovery import AutoRecoverResult, JarHealth

from conftest import JAR, make_transfer


class FakeClient:
    jar_address = JAR
    can_write = False


class FakeMonitor:
    health = JarHealth(address=JAR, is_healthy=True, issues=[], recommendations=[], last_checked=0.0)
    recover_result = AutoRecoverResult()

    def __init__(self, client):
        self.jar_address = client.jar_address
        self.closed = False
        self.recover_options = None

    async def scan_historical(self, from_block=0, to_block="latest"):
        return [make_transfer()]

    def detect_anomalies(self, transfers):
        return detect_anomalies(transfers)

    async def check_health(self, from_block=0):
        return self.health

    async def auto_recover(self, options):
        self.recover_options = options
        return self.recover_result

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_runtime():
    monitors = []

    def make_monitor(client):
        m = FakeMonitor(client)
        monitors.append(m)
        return m

    with patch.object(runtime.LedgerClient, "from_settings", return_value=FakeClient()), patch.object(
        runtime, "JarMonitor", side_effect=make_monitor
    ):
        yield monitors


def _run(argv):
    args = runtime.build_parser().parse_args(argv)
    return asyncio.run(runtime.run_command(args, Settings(rpc_url="https://rpc.example.test", jar_address=JAR)))


def test_parser_defaults_and_latest():
    args = runtime.build_parser().parse_args(["scan", "--from-block", "5"])
    assert (args.command, args.from_block, args.to_block, args.anomalies) == ("scan", 5, "latest", False)

    args = runtime.build_parser().parse_args(["--jar", JAR, "scan", "--to-block", "90"])
    assert args.jar == JAR
    assert args.to_block == 90


def test_parser_recover_flags():
    args = runtime.build_parser().parse_args(["recover", "--dry-run", "--max-gas-price", "1000", "--skip-pending"])
    assert args.dry_run is True
    assert args.max_gas_price == 1000
    assert (args.skip_monitoring, args.skip_unaccounted, args.skip_pending) == (False, False, True)


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        runtime.build_parser().parse_args([])


def test_main_without_jar_returns_1(monkeypatch):
    for name in ("JARWATCH_JAR_ADDRESS", "JARWATCH_RPC_URL", "JARWATCH_NETWORK"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(env, "load_jarwatch_env", lambda: None)
    monkeypatch.setattr(settings_module, "load_jarwatch_env", lambda: None)

    assert runtime.main(["health"]) == 1


def test_scan_prints_analysis_and_anomalies(fake_runtime, capsys):
    assert _run(["scan", "--anomalies"]) == 0

    out = capsys.readouterr().out
    payload = json.loads(out[out.index("{\n") :])
    assert payload["analysis"]["total_transfers"] == 1
    assert "anomalies" in payload
    assert fake_runtime[0].closed


def test_health_exit_code(fake_runtime, monkeypatch):
    assert _run(["health"]) == 0
    unhealthy = JarHealth(address=JAR, is_healthy=False, issues=["x"], recommendations=[], last_checked=0.0)
    monkeypatch.setattr(FakeMonitor, "health", unhealthy)
    assert _run(["health"]) == 2


def test_recover_maps_flags_and_exit_code(fake_runtime, monkeypatch):
    assert _run(["recover", "--dry-run", "--skip-monitoring", "--from-block", "7"]) == 0
    options = fake_runtime[0].recover_options
    assert options.dry_run is True
    assert options.enable_monitoring is False
    assert options.process_unaccounted is True
    assert options.from_block == 7

    monkeypatch.setattr(FakeMonitor, "recover_result", AutoRecoverResult(errors=["Gas price too high: 9"]))
    assert _run(["recover"]) == 1
