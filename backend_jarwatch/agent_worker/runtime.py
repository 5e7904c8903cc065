"""
Command-line runtime for the jar monitor.

Subcommands:
  scan      Scan a block range and print detected transfers.
  analyze   Full analysis (transfers, on-chain status, recovery actions, health).
  health    Health check.
  recover   Auto-recovery (use --dry-run to plan only).
  monitor   Run a monitoring session until SIGINT/SIGTERM.

Connection details come from the environment (.env supported): JARWATCH_RPC_URL,
JARWATCH_JAR_ADDRESS, optional JARWATCH_WS_URL and JARWATCH_PRIVATE_KEY.

Usage: python -m backend_jarwatch.agent_worker.runtime analyze --from-block 19000000
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import Any

from backend_jarwatch.agent_worker.monitor import JarMonitor
from backend_jarwatch.agent_worker.sessions import SessionOptions
from backend_jarwatch.analysis_engine.analyzer import summarize_transfers
from backend_jarwatch.config.env import mask_url
from backend_jarwatch.config.settings import Settings, get_settings
from backend_jarwatch.jarwatch_logging import get_logger
from backend_jarwatch.ledger.client import LedgerClient
from backend_jarwatch.recovery.models import AutoRecoverOptions, JarHealth
from backend_jarwatch.transfer_listener.models import DetectedTransfer
from backend_jarwatch.transfer_listener.scanner import LATEST

logger = get_logger(__name__)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _to_block(value: str) -> int | str:
    return value if value == LATEST else int(value)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="backend_jarwatch.agent_worker.runtime",
        description="Detect and recover ERC-20 transfers sent directly to a jar contract",
    )
    ap.add_argument("--jar", default=None, help="Jar address (default JARWATCH_JAR_ADDRESS)")
    sub = ap.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Scan a block range for transfers into the jar")
    scan.add_argument("--from-block", type=int, default=0)
    scan.add_argument("--to-block", type=_to_block, default=LATEST, help="Block number or 'latest'")
    scan.add_argument("--anomalies", action="store_true", help="Also print anomaly findings")

    analyze = sub.add_parser("analyze", help="Full analysis with recovery actions")
    analyze.add_argument("--from-block", type=int, default=0)

    health = sub.add_parser("health", help="Check jar health")
    health.add_argument("--from-block", type=int, default=0)

    recover = sub.add_parser("recover", help="Run auto-recovery")
    recover.add_argument("--from-block", type=int, default=0)
    recover.add_argument("--dry-run", action="store_true")
    recover.add_argument("--max-gas-price", type=int, default=None, help="Wei")
    recover.add_argument("--skip-monitoring", action="store_true", help="Skip configure actions")
    recover.add_argument("--skip-unaccounted", action="store_true", help="Skip emergency actions")
    recover.add_argument("--skip-pending", action="store_true", help="Skip process actions")

    monitor = sub.add_parser("monitor", help="Watch the jar until interrupted")
    monitor.add_argument("--auto-recover", action="store_true")
    return ap


async def _run_monitor(jar_monitor: JarMonitor, auto_recover: bool) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows or unsupported
            pass

    def on_transfer(transfer: DetectedTransfer) -> None:
        _print_json(transfer.to_dict())

    def on_health(health: JarHealth) -> None:
        _print_json(health.to_dict())

    handle = await jar_monitor.start_monitoring_session(
        SessionOptions(auto_recover=auto_recover, notification_callback=on_transfer, on_health_change=on_health)
    )
    try:
        await stop.wait()
    finally:
        session = await jar_monitor.stop_monitoring_session(handle)
        if session is not None:
            _print_json(session.to_dict())


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    client = LedgerClient.from_settings(settings)
    jar_monitor = JarMonitor(client)
    logger.info(
        "runtime_command_started",
        command=args.command,
        jar_address=client.jar_address,
        rpc_url=mask_url(settings.rpc_url),
        read_only=not client.can_write,
    )
    try:
        if args.command == "scan":
            transfers = await jar_monitor.scan_historical(args.from_block, args.to_block)
            payload: dict[str, Any] = {
                "analysis": summarize_transfers(jar_monitor.jar_address, transfers).to_dict(),
            }
            if args.anomalies:
                payload["anomalies"] = jar_monitor.detect_anomalies(transfers).to_dict()
            _print_json(payload)
        elif args.command == "analyze":
            full = await jar_monitor.perform_full_analysis(args.from_block)
            payload = full.to_dict()
            payload["recommendations"] = jar_monitor.generate_recommendations(full.transfer_analysis).to_dict()
            _print_json(payload)
        elif args.command == "health":
            health = await jar_monitor.check_health(args.from_block)
            _print_json(health.to_dict())
            return 0 if health.is_healthy else 2
        elif args.command == "recover":
            result = await jar_monitor.auto_recover(
                AutoRecoverOptions(
                    enable_monitoring=not args.skip_monitoring,
                    process_unaccounted=not args.skip_unaccounted,
                    process_pending=not args.skip_pending,
                    max_gas_price=args.max_gas_price,
                    dry_run=args.dry_run,
                    from_block=args.from_block,
                )
            )
            _print_json(result.to_dict())
            return 0 if not result.errors else 1
        elif args.command == "monitor":
            await _run_monitor(jar_monitor, args.auto_recover)
        return 0
    finally:
        await jar_monitor.aclose()


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint: parse args, load settings from env, run one command."""
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings(args.jar)
        return asyncio.run(run_command(args, settings))
    except KeyboardInterrupt:
        logger.info("runtime_shutdown_signal")
        return 0
    except ValueError as e:
        logger.error("runtime_config_error", error=str(e))
        return 1
    except Exception as e:
        logger.exception("runtime_fatal", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
