"""
Main entrypoint: run one jar monitor command (scan, analyze, health, recover, monitor).

Connection details come from the environment (.env supported): JARWATCH_RPC_URL,
JARWATCH_JAR_ADDRESS, optional JARWATCH_WS_URL and JARWATCH_PRIVATE_KEY.

Long-running watch with auto-recovery: python main.py monitor --auto-recover
"""

import sys

# Configure structured JSON logging before other imports that may log
from backend_jarwatch.jarwatch_logging import get_logger

logger = get_logger("main")


def main() -> int:
    from backend_jarwatch.agent_worker.runtime import main as run_cli

    logger.info("main_starting", argv=sys.argv[1:])
    return run_cli()


if __name__ == "__main__":
    sys.exit(main())
