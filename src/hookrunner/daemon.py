"""Background process management: daemonize, PID file, stop, status."""

from __future__ import annotations

import errno
import logging
import os
import signal
import subprocess
import sys
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from hookrunner.config import DaemonConfig

logger = logging.getLogger(__name__)

STOP_TIMEOUT_SECONDS = 5.0
STOP_POLL_SECONDS = 0.1


class DaemonError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class DaemonStatus:
    running: bool
    pid: int | None
    message: str


def write_pid_file(path: Path, pid: int | None = None) -> None:
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    path.write_text(f"{pid if pid is not None else os.getpid()}\n", encoding="utf-8")
    path.chmod(0o600)


def read_pid_file(path: Path) -> int:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DaemonError(f"no PID file at {path}") from e
    try:
        return int(raw.strip())
    except ValueError as e:
        raise DaemonError(f"invalid PID file {path}: {raw.strip()!r}") from e


def remove_pid_file(path: Path) -> None:
    path.unlink(missing_ok=True)


def is_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, but owned by someone else.
        return True
    return True


def daemon_argv(argv: Sequence[str], config_path: Path) -> list[str]:
    """Arguments for the background child: same command line minus ``--daemon``."""

    args: list[str] = []
    skip_next = False
    for arg in argv:
        if skip_next:
            skip_next = False
            continue
        if arg == "--daemon":
            continue
        if arg == "--config":
            skip_next = True
            continue
        if arg.startswith("--config="):
            continue
        args.append(arg)
    return [sys.executable, "-m", "hookrunner.cli", "--config", str(config_path), *args]


def daemonize(argv: Sequence[str], config_path: Path, daemon: DaemonConfig) -> int:
    """Re-exec hookrunner detached from the terminal; returns the child PID.

    The child writes its own PID file once it is serving.
    """

    log_path = daemon.log_path
    try:
        log_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        log_fd = os.open(log_path, os.O_CREAT | os.O_WRONLY | os.O_APPEND, 0o600)
    except OSError as e:
        raise DaemonError(f"opening log file {log_path}: {e}") from e

    try:
        child = subprocess.Popen(
            daemon_argv(argv, config_path),
            stdin=subprocess.DEVNULL,
            stdout=log_fd,
            stderr=log_fd,
            start_new_session=True,
        )
    except OSError as e:
        raise DaemonError(f"starting daemon: {e}") from e
    finally:
        os.close(log_fd)

    return child.pid


def stop(daemon: DaemonConfig, timeout: float = STOP_TIMEOUT_SECONDS) -> int:
    """SIGTERM the daemon, escalating to SIGKILL after ``timeout``; returns its PID."""

    pid_path = daemon.pid_path
    pid = read_pid_file(pid_path)

    try:
        os.kill(pid, signal.SIGTERM)
    except OSError as e:
        remove_pid_file(pid_path)
        if e.errno == errno.ESRCH:
            raise DaemonError(f"process {pid} not found") from e
        raise DaemonError(f"sending SIGTERM to {pid}: {e}") from e

    logger.info("Sent SIGTERM to hookrunner", extra={"pid": pid})

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not is_running(pid):
            remove_pid_file(pid_path)
            return pid
        time.sleep(STOP_POLL_SECONDS)

    logger.warning("Process did not stop in time, sending SIGKILL", extra={"pid": pid})
    try:
        os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    remove_pid_file(pid_path)
    return pid


def status(daemon: DaemonConfig) -> DaemonStatus:
    pid_path = daemon.pid_path
    try:
        pid = read_pid_file(pid_path)
    except DaemonError:
        return DaemonStatus(False, None, f"hookrunner is not running (no PID file at {pid_path})")

    if not is_running(pid):
        remove_pid_file(pid_path)
        return DaemonStatus(False, pid, f"hookrunner is not running (PID {pid} is stale)")
    return DaemonStatus(True, pid, f"hookrunner is running (PID {pid})")
