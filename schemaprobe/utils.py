"""
Generic helpers shared by the fuzzer and the mutation engine.
"""

from pathlib import Path
from typing import Any

import psutil


def resource_snapshot(path: Path | None = None) -> dict[str, Any]:
    """Sample process memory, system load and (optionally) disk usage."""
    snapshot: dict[str, Any] = {}
    try:
        snapshot["system_load_1min"] = psutil.getloadavg()[0]
    except (OSError, AttributeError):
        snapshot["system_load_1min"] = None

    snapshot["process_rss_mb"] = round(psutil.Process().memory_info().rss / (1024 * 1024), 2)

    if path is not None:
        try:
            snapshot["disk_usage_percent"] = psutil.disk_usage(str(path)).percent
        except OSError:
            snapshot["disk_usage_percent"] = None
    return snapshot
