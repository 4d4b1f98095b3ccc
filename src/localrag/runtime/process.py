"""
OS-specific process control for the self-managed runtime.

The provisioner only talks to ``ProcessControl``; each platform decides how
to find processes by executable path, terminate them, spawn the runtime and
clear download quarantine flags.
"""

import logging
import os
import signal
import subprocess
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional


logger = logging.getLogger(__name__)


class ProcessControl(ABC):
    """Locate, terminate and launch runtime processes."""

    @abstractmethod
    def find_pids(self, executable: Path) -> List[int]:
        """Return PIDs whose executable path matches ``executable``."""

    @abstractmethod
    def terminate(self, pid: int) -> None:
        """Terminate a single process."""

    def spawn(
        self,
        executable: Path,
        env: Dict[str, str],
        log_path: Optional[Path] = None,
    ) -> subprocess.Popen:
        """Launch ``<executable> serve`` detached from our stdio."""
        stdout = subprocess.DEVNULL
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            stdout = open(log_path, "ab")
        logger.info(f"Launching runtime: {executable} serve")
        try:
            return subprocess.Popen(
                [str(executable), "serve"],
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=stdout,
                stderr=subprocess.STDOUT,
            )
        finally:
            if stdout is not subprocess.DEVNULL:
                stdout.close()

    def clear_quarantine(self, path: Path) -> None:
        """Remove OS download quarantine from ``path``; no-op by default."""

    def terminate_matching(self, executable: Path) -> int:
        """Terminate every process running ``executable``. Returns the count."""
        pids = self.find_pids(executable)
        for pid in pids:
            try:
                self.terminate(pid)
            except (OSError, subprocess.SubprocessError) as e:
                logger.warning(f"Failed to terminate runtime pid {pid}: {e}")
        return len(pids)


class PosixProcessControl(ProcessControl):
    """Linux: ``pgrep -f`` on the full executable path, SIGTERM to stop."""

    def find_pids(self, executable: Path) -> List[int]:
        result = subprocess.run(
            ["pgrep", "-f", str(executable)],
            capture_output=True,
            text=True,
        )
        # pgrep exits 1 when nothing matched
        if result.returncode not in (0, 1):
            logger.warning(f"pgrep failed: {result.stderr.strip()}")
            return []
        own_pid = os.getpid()
        return [
            int(line) for line in result.stdout.split()
            if line.strip().isdigit() and int(line) != own_pid
        ]

    def terminate(self, pid: int) -> None:
        os.kill(pid, signal.SIGTERM)


class MacProcessControl(PosixProcessControl):
    """macOS adds removal of the ``com.apple.quarantine`` attribute."""

    def clear_quarantine(self, path: Path) -> None:
        result = subprocess.run(
            ["xattr", "-r", "-d", "com.apple.quarantine", str(path)],
            capture_output=True,
            text=True,
        )
        if result.returncode == 0:
            logger.info("Cleared macOS quarantine attribute")
        elif "No such xattr" in result.stderr or "No such attribute" in result.stderr:
            logger.debug("No quarantine attribute on runtime binary")
        else:
            logger.warning(f"Failed to clear quarantine attribute: {result.stderr.strip()}")


class WindowsProcessControl(ProcessControl):
    """Windows: match ``ExecutablePath`` through WMIC, stop with taskkill."""

    def find_pids(self, executable: Path) -> List[int]:
        escaped = str(executable).replace("\\", "\\\\")
        result = subprocess.run(
            ["wmic", "process", "where", f"ExecutablePath='{escaped}'", "get", "ProcessId"],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            logger.warning(f"wmic failed: {result.stderr.strip()}")
            return []
        return [int(line) for line in result.stdout.split()[1:] if line.strip().isdigit()]

    def terminate(self, pid: int) -> None:
        subprocess.run(["taskkill", "/F", "/PID", str(pid)], check=True, capture_output=True)


def get_process_control(sys_platform: Optional[str] = None) -> ProcessControl:
    """Pick the ProcessControl for the given (or current) platform."""
    sys_platform = sys_platform or sys.platform
    if sys_platform == "darwin":
        return MacProcessControl()
    if sys_platform in ("win32", "cygwin"):
        return WindowsProcessControl()
    return PosixProcessControl()
