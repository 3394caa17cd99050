"""launchgate - command-line harness running one simulated application launch."""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from launchgate.host.app import LaunchHost
from launchgate.host.simulator import SimulatedAttribution, SimulatedNotificationPlatform
from launchgate.shared.core.configuration import SystemConfig, ValidationLevel, get_config_manager
from launchgate.shared.domain.models import GateState
from launchgate.shared.infrastructure.signals.push_token import AuthorizationStatus

logger = logging.getLogger(__name__)

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(config: SystemConfig) -> Path:
    """File handler at the configured level, console at WARNING and above."""
    log_dir = Path(config.logging.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file_path = log_dir / "launchgate.log"
    file_log_level = LOG_LEVEL_MAP.get(config.logging.level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(file_log_level)
    root_logger.handlers.clear()

    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(file_log_level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    ))
    root_logger.addHandler(console_handler)

    # Suppress verbose third-party library logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return log_file_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="launchgate",
        description="Run one simulated application launch through the redirect gate.",
    )
    parser.add_argument("--bundle-id", required=True, help="Host application bundle identifier")
    parser.add_argument("--config-dir", type=Path, default=None, help="Directory holding defaults/user/project YAML")
    parser.add_argument("--env-file", type=Path, default=None, help=".env file to load before reading config")
    parser.add_argument("--db", default=None, help="Override the launch state database path")
    parser.add_argument("--deadline", type=float, default=None, help="Override the collection deadline (seconds)")
    parser.add_argument(
        "--permission",
        choices=[s.value for s in AuthorizationStatus],
        default=AuthorizationStatus.NOT_DETERMINED.value,
        help="Current notification authorization status",
    )
    parser.add_argument("--deny-prompt", action="store_true", help="Refuse the permission prompt")
    parser.add_argument("--token-delay", type=float, default=0.5, help="Seconds until the device token arrives")
    parser.add_argument("--no-token", action="store_true", help="Never deliver a device token")
    parser.add_argument("--attribution", default=None, help="Attribution token the lookup returns")
    parser.add_argument("--attribution-fails", action="store_true", help="Make the attribution lookup raise")
    return parser


def load_config(args: argparse.Namespace) -> SystemConfig:
    if args.env_file is not None:
        load_dotenv(dotenv_path=args.env_file)
    else:
        load_dotenv()

    config = get_config_manager(args.config_dir).get_config(ValidationLevel.LENIENT)
    updates = {}
    if args.db:
        updates["database"] = config.database.model_copy(update={"db_path": args.db})
    if args.deadline is not None:
        updates["collection"] = config.collection.model_copy(update={"deadline_seconds": args.deadline})
    return config.model_copy(update=updates) if updates else config


async def run_launch(args: argparse.Namespace, config: SystemConfig) -> GateState:
    platform = SimulatedNotificationPlatform(
        status=AuthorizationStatus(args.permission),
        grant_on_request=not args.deny_prompt,
        token_delay=None if args.no_token else args.token_delay,
    )
    attribution = SimulatedAttribution(token=args.attribution, fail=args.attribution_fails)

    host = LaunchHost(args.bundle_id, platform, attribution_lookup=attribution, config=config)
    platform.attach(host.did_register_for_remote_notifications)

    def on_continue() -> None:
        print("continue: normal application flow")

    try:
        async with host:
            state = await host.launch(on_continue)
            if state == GateState.REDIRECTING:
                print(f"redirect: {host.gate.redirect_address}")
            return state
    finally:
        platform.cancel()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args)
    log_file_path = configure_logging(config)
    logger.info(f"Logging configured: file={log_file_path}, console=WARNING+")

    try:
        asyncio.run(run_launch(args, config))
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
