"""
Controller module for CF-DDNS.

This module is responsible for driving the resolve-then-reconcile cycle on a
fixed interval.
"""

import asyncio
import logging
import time
from typing import Optional

from cf_ddns.models.models import CycleReport


class Controller:
    """
    Controller that coordinates between the consensus resolver and the reconciler.
    """

    def __init__(self, resolver, reconciler, interval: int = 300):
        """
        Initialize a Controller.

        Args:
            resolver: Resolver component with ``resolve()``
            reconciler: Reconciler component with ``reconcile(ip)``
            interval: Seconds to sleep between cycles
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.resolver = resolver
        self.reconciler = reconciler
        self.interval = interval
        self.last_report: Optional[CycleReport] = None
        self.logger = logging.getLogger("cf-ddns.controller")

    async def run_reconciliation_loop(self) -> None:
        """
        Runs cycles forever, sleeping ``interval`` seconds after each one.
        """
        self.logger.info(
            f"Starting IP check loop with {self.interval} seconds interval"
        )

        while True:
            try:
                await self.run_once()
            except Exception as e:
                self.logger.error(f"Error in reconciliation loop: {e}", exc_info=True)

            await asyncio.sleep(self.interval)

    async def run_once(self) -> CycleReport:
        """
        Performs a single cycle: resolve the public IP, then reconcile.

        Returns:
            CycleReport: Timing and outcome of the cycle
        """
        started_at = time.time()
        start = time.monotonic()

        current_ip = await self.resolver.resolve()
        if current_ip is None:
            report = CycleReport(started_at, time.monotonic() - start)
            self.logger.error(
                f"Could not determine consensus IP (took {report.duration:.2f}s)"
            )
            self.last_report = report
            return report

        self.logger.info(
            f"Current IP: {current_ip} (took {time.monotonic() - start:.2f}s)"
        )
        summary = await self.reconciler.reconcile(current_ip)

        report = CycleReport(
            started_at, time.monotonic() - start, ip=current_ip, summary=summary
        )
        self.logger.debug(f"Cycle finished in {report.duration:.2f}s")
        self.last_report = report
        return report
