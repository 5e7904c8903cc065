"""
Test that jarwatch_logging can be imported without circular import and logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from jarwatch_logging and use the logger."""
    from backend_jarwatch.jarwatch_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    logger.info("test_message", key="value")


def test_short_hash_and_bind_jar():
    from backend_jarwatch.jarwatch_logging import bind_jar, short_hash

    assert short_hash("0x" + "ab" * 32) == "0xabababab..."
    assert short_hash("0x12") == "0x12"
    assert short_hash(None) == ""
    bind_jar("0x" + "cd" * 20).info("jar_bound")


def test_wei_amounts_rendered_as_strings():
    from backend_jarwatch.jarwatch_logging.logger import _safe_ints

    out = _safe_ints(None, "info", {"amount": 5 * 10**18, "block_number": 19_000_000, "ok": True})
    assert out == {"amount": "5000000000000000000", "block_number": 19_000_000, "ok": True}


def test_secret_fields_redacted():
    from backend_jarwatch.jarwatch_logging.logger import REDACTED, _redact_secrets

    out = _redact_secrets(None, "info", {"private_key": "0x11", "api_key": "abc", "token": "0xa1"})
    assert out == {"private_key": REDACTED, "api_key": REDACTED, "token": "0xa1"}
