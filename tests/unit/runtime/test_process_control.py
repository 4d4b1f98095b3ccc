"""
Unit tests for OS process control.
"""

import os
import subprocess
from pathlib import Path
from unittest.mock import patch, MagicMock

from localrag.runtime.process import (
    MacProcessControl,
    PosixProcessControl,
    WindowsProcessControl,
    get_process_control,
)


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestGetProcessControl:
    """Tests for platform selection."""

    def test_selection(self):
        assert isinstance(get_process_control("darwin"), MacProcessControl)
        assert isinstance(get_process_control("win32"), WindowsProcessControl)
        assert type(get_process_control("linux")) is PosixProcessControl


class TestPosixProcessControl:
    """Tests for PosixProcessControl."""

    @patch('localrag.runtime.process.subprocess.run')
    def test_find_pids_excludes_own_process(self, mock_run):
        mock_run.return_value = completed(stdout=f"123\n{os.getpid()}\n456\n")

        pids = PosixProcessControl().find_pids(Path("/data/ollama/bin/ollama"))

        assert pids == [123, 456]
        assert mock_run.call_args[0][0] == ["pgrep", "-f", "/data/ollama/bin/ollama"]

    @patch('localrag.runtime.process.subprocess.run')
    def test_find_pids_no_match(self, mock_run):
        mock_run.return_value = completed(returncode=1)

        assert PosixProcessControl().find_pids(Path("/x/ollama")) == []

    @patch('localrag.runtime.process.os.kill')
    @patch('localrag.runtime.process.subprocess.run')
    def test_terminate_matching_continues_after_failure(self, mock_run, mock_kill):
        mock_run.return_value = completed(stdout="11\n12\n")
        mock_kill.side_effect = [ProcessLookupError("gone"), None]

        count = PosixProcessControl().terminate_matching(Path("/x/ollama"))

        assert count == 2
        assert mock_kill.call_count == 2


class TestMacProcessControl:
    """Tests for quarantine removal."""

    @patch('localrag.runtime.process.subprocess.run')
    def test_missing_attribute_is_not_an_error(self, mock_run):
        mock_run.return_value = completed(returncode=1, stderr="xattr: No such xattr: com.apple.quarantine")

        MacProcessControl().clear_quarantine(Path("/x/ollama"))

        assert mock_run.call_args[0][0][:4] == ["xattr", "-r", "-d", "com.apple.quarantine"]


class TestWindowsProcessControl:
    """Tests for WindowsProcessControl."""

    @patch('localrag.runtime.process.subprocess.run')
    def test_find_pids_parses_wmic_output(self, mock_run):
        mock_run.return_value = completed(stdout="ProcessId  \r\n812        \r\n\r\n")

        assert WindowsProcessControl().find_pids(Path("C:/app/ollama.exe")) == [812]

    @patch('localrag.runtime.process.subprocess.run')
    def test_terminate_uses_taskkill(self, mock_run):
        mock_run.return_value = MagicMock()

        WindowsProcessControl().terminate(812)

        assert mock_run.call_args[0][0] == ["taskkill", "/F", "/PID", "812"]
