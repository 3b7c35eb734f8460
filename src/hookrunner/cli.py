"""CLI entrypoint for hookrunner."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn
from pydantic import ValidationError

from hookrunner import __version__
from hookrunner import daemon as daemon_ops
from hookrunner.config import (
    Config,
    ConfigError,
    DaemonConfig,
    Settings,
    generate_default_config,
    load_config,
)
from hookrunner.daemon import DaemonError
from hookrunner.funnel import FunnelError, FunnelProcess, start_funnel
from hookrunner.logging import configure_logging
from hookrunner.server import create_app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hookrunner",
        description="Run local workflows in response to signed GitHub webhooks",
    )
    parser.add_argument("--version", action="version", version=f"hookrunner {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file path (default: $HOOKRUNNER_CONFIG or ~/.hookrunner/config.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Write a starter config file")

    serve = subparsers.add_parser("serve", help="Start the webhook listener")
    serve.add_argument("--port", type=int, default=0, help="Override the configured port")
    serve.add_argument(
        "--no-funnel", action="store_true", help="Do not start Tailscale Funnel"
    )
    serve.add_argument(
        "--daemon", action="store_true", help="Run in the background, logging to daemon.log_file"
    )

    subparsers.add_parser("stop", help="Stop a running daemon")
    subparsers.add_parser("status", help="Report whether a daemon is running")

    return parser


def _daemon_config(config_path: Path) -> DaemonConfig:
    # stop/status should still work with a broken or missing config.
    try:
        return load_config(config_path).daemon
    except ConfigError as e:
        logger.debug("Falling back to default daemon paths", extra={"reason": str(e)})
        return DaemonConfig()


def _apply_overrides(config: Config, port: int, no_funnel: bool) -> Config:
    data = config.model_dump()
    if port:
        data["port"] = port
    if no_funnel:
        data["funnel"]["enabled"] = False
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid command line override: {e}") from e


def _serve(config: Config, settings: Settings) -> int:
    funnel: FunnelProcess | None = None
    if config.funnel.enabled:
        try:
            funnel = start_funnel(config.port)
            logger.info("Tailscale Funnel started", extra={"port": config.port})
        except FunnelError as e:
            logger.warning(
                "Tailscale Funnel failed to start; serving locally only",
                extra={"error": str(e), "host": settings.host, "port": config.port},
            )

    pid_path = config.daemon.pid_path
    try:
        daemon_ops.write_pid_file(pid_path)
    except OSError as e:
        logger.warning("Failed to write PID file", extra={"path": str(pid_path), "error": str(e)})

    try:
        app = create_app(config)
        logger.info(
            "hookrunner listening", extra={"host": settings.host, "port": config.port}
        )
        # uvicorn installs SIGINT/SIGTERM handlers and returns on shutdown.
        uvicorn.run(app, host=settings.host, port=config.port, log_config=None)
    finally:
        daemon_ops.remove_pid_file(pid_path)
        if funnel is not None:
            funnel.stop()
        logger.info("hookrunner stopped")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment / .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    config_path: Path = args.config or settings.config_path

    try:
        if args.command == "init":
            written = generate_default_config(config_path)
            print(f"Config written to {written}")
            return 0

        if args.command == "stop":
            pid = daemon_ops.stop(_daemon_config(config_path))
            print(f"hookrunner stopped (PID {pid})")
            return 0

        if args.command == "status":
            state = daemon_ops.status(_daemon_config(config_path))
            print(state.message)
            return 0 if state.running else 1

        if args.command == "serve":
            config = _apply_overrides(load_config(config_path), args.port, args.no_funnel)

            if args.daemon:
                raw_argv = sys.argv[1:] if argv is None else argv
                pid = daemon_ops.daemonize(raw_argv, config_path, config.daemon)
                print(f"hookrunner started as daemon (PID {pid})")
                print(f"Log file: {config.daemon.log_path}")
                return 0

            return _serve(config, settings)

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except ConfigError as e:
        logger.error(str(e))
        print(str(e), file=sys.stderr)
        return 2

    except DaemonError as e:
        print(str(e), file=sys.stderr)
        return 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
