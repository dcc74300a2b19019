"""
Main entry point for CF-DDNS.
"""

import asyncio
import logging
import sys
from typing import Optional, Sequence

from cf_ddns import __version__
from cf_ddns.config.config import LOGO, Config, load_config
from cf_ddns.controller.controller import Controller
from cf_ddns.controller.reconciler import Reconciler
from cf_ddns.errors import ConfigError
from cf_ddns.provider.cloudflare import CloudflareProvider
from cf_ddns.source.consensus import ConsensusResolver
from cf_ddns.utils.health import HealthCheckServer
from cf_ddns.utils.logs import setup_logging


def build_controller(config: Config) -> Controller:
    """
    Wire the resolver, provider and reconciler for a configuration.

    Args:
        config: Validated configuration

    Returns:
        Controller: Ready to run
    """
    provider = CloudflareProvider(
        config.auth_email,
        config.auth_credential,
        config.zone_id,
    )
    reconciler = Reconciler(provider, config.records, dry_run=config.dry_run)
    return Controller(ConsensusResolver(), reconciler, interval=config.reload_interval)


async def run(config: Config) -> None:
    """Run one cycle or the endless loop, depending on configuration."""
    logger = logging.getLogger("cf-ddns")
    controller = build_controller(config)

    health_server = None
    if config.health_port is not None:
        health_server = HealthCheckServer(
            lambda: controller.last_report, port=config.health_port
        )
        health_server.start()

    try:
        if config.once:
            await controller.run_once()
        else:
            logger.debug(f"Managing records: {', '.join(config.records)}")
            await controller.run_reconciliation_loop()
    finally:
        if health_server is not None:
            health_server.stop()
        await controller.reconciler.provider.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console entry point."""
    try:
        config = load_config(argv)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logger = setup_logging(config.debug)
    print(LOGO)
    logger.info(f"Starting CF-DDNS v{__version__}")
    if config.dry_run:
        logger.info("Dry run mode enabled, records will not be changed")

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        print("\nShutting down CF-DDNS")
    return 0


if __name__ == "__main__":
    sys.exit(main())
