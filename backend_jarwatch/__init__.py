"""
Backend JarWatch: transfer detection and recovery analysis for cookie jars.

Watches a fund-holding jar contract for ERC-20 transfers that bypass its
deposit accounting, classifies and analyzes them, and plans on-chain recovery
actions. Modular architecture: ledger access, transfer listener, analysis
engine, recovery planner, and agent worker (monitoring sessions).
"""

__version__ = "0.1.0"
