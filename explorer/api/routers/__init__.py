from functools import lru_cache
from fastapi import Depends, Request

from explorer.base import (
    get_clickhouse_client,
    get_clickhouse_connection_string,
    get_enrichment_max_concurrency,
    get_network,
)
from explorer.api.services.asset_descriptions_service import AssetDescriptionsService
from explorer.api.services.assets_service import AssetsService
from explorer.api.services.enrichment_service import EnrichmentService
from explorer.api.services.transactions_service import TransactionsService


@lru_cache(maxsize=None)
def _get_client_for_network(network: str):
    return get_clickhouse_client(get_clickhouse_connection_string(network))


def get_client():
    """ClickHouse client shared by all requests of the process"""
    return _get_client_for_network(get_network())


def get_transactions_service(client=Depends(get_client)) -> TransactionsService:
    return TransactionsService(client)


def get_assets_service(client=Depends(get_client)) -> AssetsService:
    return AssetsService(client)


def get_asset_descriptions_service(client=Depends(get_client)) -> AssetDescriptionsService:
    return AssetDescriptionsService(client)


def get_enrichment_service(
    request: Request,
    asset_descriptions_service=Depends(get_asset_descriptions_service),
    assets_service=Depends(get_assets_service),
) -> EnrichmentService:
    return EnrichmentService(
        asset_descriptions_service,
        assets_service,
        max_concurrency=get_enrichment_max_concurrency(),
        metrics=getattr(request.app.state, "enrichment_metrics", None),
    )
