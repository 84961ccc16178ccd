import asyncio
import time
from typing import List, Optional
from loguru import logger
from starlette.concurrency import run_in_threadpool

from explorer.api.exceptions import AssetNotFoundError
from explorer.base.metrics import MetricsRegistry, DURATION_BUCKETS
from explorer.api.services.records import AssetDescriptionWithAsset, Transaction


class EnrichmentMetrics:
    """Metrics for the asset lookups done while enriching transactions"""

    def __init__(self, registry: MetricsRegistry):
        self.asset_lookups_total = registry.create_counter(
            'enrichment_asset_lookups_total',
            'Total asset lookups issued while enriching transactions',
            ['outcome']
        )
        self.enrichment_duration = registry.create_histogram(
            'enrichment_duration_seconds',
            'Time spent enriching one transaction',
            buckets=DURATION_BUCKETS
        )


class EnrichmentService:
    """
    Attaches asset descriptions and their assets to a transaction.

    Descriptions are loaded first; the asset of every description is then
    looked up concurrently, at most `max_concurrency` lookups at a time. The
    result keeps the description order. A missing asset means the store is
    inconsistent: the first failure cancels the remaining lookups and is
    raised to the caller, so a partial view is never returned.
    """

    def __init__(self, asset_descriptions_service, assets_service, max_concurrency: int = 8,
                 metrics: Optional[EnrichmentMetrics] = None):
        self.asset_descriptions_service = asset_descriptions_service
        self.assets_service = assets_service
        self.max_concurrency = max_concurrency
        self.metrics = metrics

    async def resolve(self, transaction: Transaction) -> List[AssetDescriptionWithAsset]:
        start_time = time.time()
        try:
            return await self._resolve(transaction)
        finally:
            if self.metrics:
                self.metrics.enrichment_duration.observe(time.time() - start_time)

    async def _resolve(self, transaction: Transaction) -> List[AssetDescriptionWithAsset]:
        asset_descriptions = await run_in_threadpool(
            self.asset_descriptions_service.find_by_transaction, transaction
        )
        if not asset_descriptions:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def find_asset(asset_description):
            async with semaphore:
                return await run_in_threadpool(self.assets_service.find_or_raise, asset_description.asset_id)

        tasks = [asyncio.ensure_future(find_asset(asset_description)) for asset_description in asset_descriptions]
        try:
            assets = await asyncio.gather(*tasks)
        except AssetNotFoundError as e:
            await self._cancel(tasks)
            self._record_lookups('missing_asset', len(tasks))
            logger.error(
                "Asset description references a missing asset",
                extra={
                    "transaction_hash": transaction.hash,
                    "asset_id": e.identifier,
                    "asset_description_count": len(asset_descriptions),
                }
            )
            raise
        except BaseException:
            await self._cancel(tasks)
            self._record_lookups('error', len(tasks))
            raise

        self._record_lookups('found', len(assets))

        return [
            AssetDescriptionWithAsset(asset=asset, asset_description=asset_description)
            for asset, asset_description in zip(assets, asset_descriptions)
        ]

    @staticmethod
    async def _cancel(tasks):
        for task in tasks:
            task.cancel()
        # Drain so no task exception goes unretrieved
        await asyncio.gather(*tasks, return_exceptions=True)

    def _record_lookups(self, outcome: str, count: int):
        if self.metrics:
            self.metrics.asset_lookups_total.labels(outcome=outcome).inc(count)
