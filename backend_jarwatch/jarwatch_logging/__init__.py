"""
Structured logging for Backend JarWatch.

JSON logs with timestamp, jar_address, event_type.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_jarwatch.jarwatch_logging.logger import bind_jar, configure_logging, get_logger, short_hash

__all__ = ["bind_jar", "configure_logging", "get_logger", "short_hash"]
