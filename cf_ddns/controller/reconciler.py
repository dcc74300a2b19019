"""
Reconciler module for CF-DDNS.

This module is responsible for bringing each configured A record in line with
the current public address.
"""

import logging
from typing import Sequence

from cf_ddns.errors import ProviderError
from cf_ddns.models.models import ReconcileSummary


class Reconciler:
    """
    Compares each configured record with the current IP and updates stale ones.
    """

    def __init__(self, provider, records: Sequence[str], dry_run: bool = False):
        """
        Initialize a Reconciler.

        Args:
            provider: Provider component with ``get_record`` and ``update_record``
            records: Record names to manage, processed in order
            dry_run: Log updates instead of applying them
        """
        self.provider = provider
        self.records = list(records)
        self.dry_run = dry_run
        self.logger = logging.getLogger("cf-ddns.reconciler")

    async def reconcile(self, current_ip: str) -> ReconcileSummary:
        """
        Run one reconcile pass over every configured record.

        A failure on one record never prevents the remaining records from
        being processed.

        Args:
            current_ip: Agreed public IPv4 address

        Returns:
            ReconcileSummary: What happened to each record
        """
        summary = ReconcileSummary()
        for record_name in self.records:
            await self._reconcile_record(record_name, current_ip, summary)

        log_level = logging.INFO if summary.updated else logging.DEBUG
        self.logger.log(
            log_level,
            f"Reconciliation finished: {len(summary.updated)} updated, "
            f"{len(summary.unchanged)} unchanged, {len(summary.missing)} missing, "
            f"{len(summary.failed)} failed",
        )
        return summary

    async def _reconcile_record(
        self, record_name: str, current_ip: str, summary: ReconcileSummary
    ) -> None:
        try:
            record = await self.provider.get_record(record_name)
        except ProviderError as e:
            self.logger.error(f"Failed to fetch record {record_name}: {e}")
            summary.failed.append(record_name)
            return
        except Exception as e:
            self.logger.error(
                f"Failed to fetch record {record_name}: {e}", exc_info=True
            )
            summary.failed.append(record_name)
            return

        if record is None:
            self.logger.error(f"DNS record {record_name} not found")
            summary.missing.append(record_name)
            return

        if record.content == current_ip:
            self.logger.debug(f"No update needed for {record.name}, IP matches")
            summary.unchanged.append(record_name)
            return

        self.logger.info(
            f"Updating {record.name} from {record.content} to {current_ip}"
        )
        if self.dry_run:
            self.logger.info(f"Dry run mode, not updating {record.name}")
            summary.updated.append(record_name)
            return

        try:
            await self.provider.update_record(record, current_ip)
        except ProviderError as e:
            self.logger.error(f"Failed to update {record.name}: {e}")
            summary.failed.append(record_name)
            return
        except Exception as e:
            self.logger.error(f"Failed to update {record.name}: {e}", exc_info=True)
            summary.failed.append(record_name)
            return

        self.logger.info(f"Successfully updated {record.name}")
        summary.updated.append(record_name)
