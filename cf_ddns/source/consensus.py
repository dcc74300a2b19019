"""
Consensus resolver module for CF-DDNS.

This module is responsible for deciding the host's public IPv4 address by
asking several independent echo services at once and trusting an address only
when at least two of them agree.
"""

import asyncio
import logging
import time
from collections import Counter
from typing import Callable, Optional, Sequence

import httpx

from cf_ddns.models.models import IpSourceResult, Outcome
from cf_ddns.source.ip_sources import IpSource, default_sources, is_valid_ipv4


class ConsensusResolver:
    """
    Fans out across IP sources and returns the first address reported by
    ``threshold`` of them.
    """

    def __init__(
        self,
        sources: Optional[Sequence[IpSource]] = None,
        threshold: int = 2,
        deadline: Optional[float] = None,
        client_factory: Callable[[], httpx.AsyncClient] = httpx.AsyncClient,
    ):
        """
        Initialize a ConsensusResolver.

        Args:
            sources: IP sources to query; defaults to ``default_sources()``
            threshold: Number of agreeing sources needed
            deadline: Optional overall limit for a round in seconds
            client_factory: Builds the HTTP client shared by one round
        """
        self.sources = list(sources) if sources is not None else default_sources()
        if threshold < 2:
            raise ValueError("threshold must be at least 2")
        longest = max((source.timeout for source in self.sources), default=0.0)
        if deadline is not None and deadline < longest:
            raise ValueError(
                f"deadline {deadline}s is shorter than the source timeout {longest}s"
            )
        self.threshold = threshold
        self.deadline = deadline
        self.client_factory = client_factory
        self.logger = logging.getLogger("cf-ddns.consensus")

    async def resolve(self) -> Optional[str]:
        """
        Run one consensus round.

        Returns:
            Optional[str]: The agreed IPv4 address, or None without agreement
        """
        try:
            async with self.client_factory() as client:
                return await self._run_round(client)
        except Exception as e:
            self.logger.error(f"Consensus round failed: {e}", exc_info=True)
            return None

    async def _run_round(self, client: httpx.AsyncClient) -> Optional[str]:
        loop = asyncio.get_running_loop()
        tally: Counter = Counter()
        lock = asyncio.Lock()
        agreed: asyncio.Future = loop.create_future()

        async def observe(source: IpSource) -> None:
            result = await source.fetch(client)
            if not self._accept(result):
                return
            async with lock:
                # Late arrivals after a decision are discarded
                if agreed.done():
                    return
                tally[result.value] += 1
                if tally[result.value] >= self.threshold:
                    self.logger.debug(f"Found consensus IP early: {result.value}")
                    agreed.set_result(result.value)

        tasks = [
            asyncio.create_task(observe(source), name=f"ip-source-{source.name}")
            for source in self.sources
        ]
        started = time.monotonic()
        pending = set(tasks)
        try:
            while pending and not agreed.done():
                timeout = None
                if self.deadline is not None:
                    timeout = self.deadline - (time.monotonic() - started)
                    if timeout <= 0:
                        self.logger.debug("Consensus deadline reached")
                        break
                done, pending = await asyncio.wait(
                    pending | {agreed},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                pending.discard(agreed)
                if not done:
                    self.logger.debug("Consensus deadline reached")
                    break
        finally:
            for task in pending:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if agreed.done():
            return agreed.result()

        agreed.cancel()
        self.logger.debug(f"No consensus among results: {dict(tally)}")
        return None

    def _accept(self, result: IpSourceResult) -> bool:
        if result.outcome is Outcome.OK and is_valid_ipv4(result.value):
            self.logger.debug(f"Got IP from {result.source_name}: {result.value}")
            return True
        if result.outcome is Outcome.INVALID:
            self.logger.debug(
                f"Error: Invalid IPv4 from {result.source_name} (parse): {result.value!r}"
            )
        else:
            self.logger.debug(
                f"Error: Failed to get IP from {result.source_name}: {result.value}"
            )
        return False
