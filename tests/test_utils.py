#!/usr/bin/env python3
"""
Unit tests for schemaprobe/utils.py
"""

import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from schemaprobe.utils import resource_snapshot


class TestResourceSnapshot(unittest.TestCase):
    @patch("schemaprobe.utils.psutil")
    def test_keys_and_values(self, mock_psutil):
        mock_psutil.getloadavg.return_value = (1.5, 1.0, 0.5)
        mock_psutil.Process.return_value.memory_info.return_value = MagicMock(rss=50 * 1024 * 1024)
        mock_psutil.disk_usage.return_value = MagicMock(percent=42.0)

        self.assertEqual(resource_snapshot(), {"system_load_1min": 1.5, "process_rss_mb": 50.0})
        snapshot = resource_snapshot(Path("/tmp"))
        self.assertEqual(snapshot["disk_usage_percent"], 42.0)
        mock_psutil.disk_usage.assert_called_with("/tmp")

    @patch("schemaprobe.utils.psutil")
    def test_unavailable_readings_are_none(self, mock_psutil):
        mock_psutil.getloadavg.side_effect = AttributeError
        mock_psutil.Process.return_value.memory_info.return_value = MagicMock(rss=0)
        mock_psutil.disk_usage.side_effect = OSError("gone")

        snapshot = resource_snapshot(Path("/missing"))
        self.assertIsNone(snapshot["system_load_1min"])
        self.assertIsNone(snapshot["disk_usage_percent"])

    def test_real_process(self):
        snapshot = resource_snapshot()
        self.assertGreater(snapshot["process_rss_mb"], 0)


if __name__ == "__main__":
    unittest.main()
