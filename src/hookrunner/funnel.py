"""Optional Tailscale Funnel tunnel exposing the local listener."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

STOP_GRACE_SECONDS = 5.0


class FunnelError(RuntimeError):
    pass


@dataclass
class FunnelProcess:
    port: int
    process: subprocess.Popen[bytes]

    def stop(self, grace_seconds: float = STOP_GRACE_SECONDS) -> None:
        """SIGTERM the tunnel, then SIGKILL it if it is still running after the grace period."""

        if self.process.poll() is not None:
            return

        logger.info("Stopping Tailscale Funnel", extra={"port": self.port})
        self.process.terminate()
        try:
            self.process.wait(timeout=grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning("Tailscale Funnel did not stop, sending SIGKILL")
            self.process.kill()
            self.process.wait()
        logger.info("Tailscale Funnel stopped", extra={"port": self.port})


def start_funnel(port: int, binary: str = "tailscale") -> FunnelProcess:
    """Start ``tailscale funnel <port>`` in the background.

    Its output goes to our stdout/stderr so it lands in the same log.
    """

    try:
        process = subprocess.Popen([binary, "funnel", str(port)])
    except OSError as e:
        raise FunnelError(f"starting tailscale funnel: {e}") from e
    return FunnelProcess(port=port, process=process)
