from __future__ import annotations

import subprocess

import pytest

from hookrunner.funnel import FunnelError, FunnelProcess, start_funnel


def test_start_funnel_missing_binary() -> None:
    with pytest.raises(FunnelError):
        start_funnel(7890, binary="definitely-not-tailscale-binary")


def test_stop_terminates_running_process() -> None:
    funnel = FunnelProcess(port=7890, process=subprocess.Popen(["sleep", "30"]))

    funnel.stop(grace_seconds=5)

    assert funnel.process.poll() is not None


def test_stop_kills_process_ignoring_sigterm() -> None:
    process = subprocess.Popen(["sh", "-c", "trap '' TERM; sleep 30"])
    funnel = FunnelProcess(port=7890, process=process)

    funnel.stop(grace_seconds=0.2)

    assert process.poll() is not None
