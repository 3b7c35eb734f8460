"""Deadline-bounded execution of rendered workflow commands."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# How long to keep reading output after the process group has been killed.
DRAIN_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class Completed:
    """The command exited on its own; ``exit_code`` may be non-zero."""

    exit_code: int
    output: str
    duration: float

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class TimedOut:
    duration: float
    output: str = ""


@dataclass(frozen=True, slots=True)
class LaunchFailed:
    error: str


LaunchResult = Completed | TimedOut | LaunchFailed


def _kill_process_group(proc: subprocess.Popen[str]) -> None:
    # The command runs in its own session, so the group id is its pid.
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def launch(
    name: str,
    command: str,
    workdir: str,
    timeout_seconds: float,
    env: Mapping[str, str] | None = None,
) -> LaunchResult:
    """Run ``command`` through ``sh`` and wait at most ``timeout_seconds``.

    Stdout and stderr are captured together. ``env`` is layered over the current
    process environment. On timeout the whole process group is killed.
    """

    merged_env = {**os.environ, **(env or {})}
    start = time.monotonic()

    try:
        proc = subprocess.Popen(
            command,
            shell=True,
            cwd=workdir or None,
            env=merged_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
    except OSError as e:
        return LaunchFailed(error=f"{type(e).__name__}: {e}")

    logger.debug("Workflow %r started", name, extra={"workflow": name, "pid": proc.pid})

    try:
        output, _ = proc.communicate(timeout=timeout_seconds)
    except subprocess.TimeoutExpired:
        _kill_process_group(proc)
        try:
            output, _ = proc.communicate(timeout=DRAIN_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            # Something outside the process group still holds the pipe open.
            logger.warning(
                "Workflow %r left output open after being killed",
                name,
                extra={"workflow": name, "pid": proc.pid},
            )
            if proc.stdout is not None:
                proc.stdout.close()
            output = ""
        return TimedOut(duration=time.monotonic() - start, output=(output or "").strip())

    return Completed(
        exit_code=proc.returncode,
        output=(output or "").strip(),
        duration=time.monotonic() - start,
    )
