"""
Transfer listener package.

Scans ERC-20 Transfer logs addressed to the jar (historical ranges) and watches
for new ones (push subscription + periodic catch-up), producing classified
DetectedTransfer records for the analysis engine and monitoring sessions.
"""

from backend_jarwatch.transfer_listener.models import DetectedTransfer, TransferKey
from backend_jarwatch.transfer_listener.scanner import LATEST, LogScanner, classify_transfer
from backend_jarwatch.transfer_listener.watcher import RealTimeWatcher, WatcherState

__all__ = [
    "DetectedTransfer",
    "LATEST",
    "LogScanner",
    "RealTimeWatcher",
    "TransferKey",
    "WatcherState",
    "classify_transfer",
]
