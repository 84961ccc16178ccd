from datetime import datetime
from typing import Any, Dict, List, Optional

from explorer.api.services.records import (
    Asset,
    AssetDescriptionWithAsset,
    Block,
    Transaction,
    TransactionView,
    TransactionWithBlocks,
)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_asset_summary(asset: Asset) -> Dict[str, Any]:
    return {
        "object": "asset",
        "identifier": asset.identifier,
        "name": asset.name,
        "metadata": asset.metadata,
        "owner": asset.owner,
        "creator": asset.creator,
    }


def serialize_asset(asset: Asset) -> Dict[str, Any]:
    return {
        **serialize_asset_summary(asset),
        "supply": str(asset.supply),
        "created_transaction_hash": asset.created_transaction_hash,
        "verified_at": _isoformat(asset.verified_at),
    }


def serialize_asset_description(entry: AssetDescriptionWithAsset) -> Dict[str, Any]:
    asset_description = entry.asset_description
    return {
        "object": "asset_description",
        "transaction_hash": asset_description.transaction_hash,
        "index": asset_description.index,
        "asset_id": asset_description.asset_id,
        "value": str(asset_description.value),
        "asset": serialize_asset_summary(entry.asset),
    }


def serialize_block(block: Block) -> Dict[str, Any]:
    return {
        "object": "block",
        "hash": block.hash,
        "sequence": block.sequence,
        "previous_block_hash": block.previous_block_hash,
        "main": block.main,
        "difficulty": str(block.difficulty),
        "work": str(block.work),
        "timestamp": _isoformat(block.timestamp),
        "transactions_count": block.transactions_count,
        "graffiti": block.graffiti,
        "size": block.size,
    }


def _serialize_transaction_fields(
    transaction: Transaction,
    asset_descriptions: List[AssetDescriptionWithAsset]
) -> Dict[str, Any]:
    return {
        "object": "transaction",
        "hash": transaction.hash,
        "fee": str(transaction.fee),
        "expiration": transaction.expiration,
        "size": transaction.size,
        "notes": [dict(note) for note in transaction.notes],
        "spends": [dict(spend) for spend in transaction.spends],
        "network_version": transaction.network_version,
        "asset_descriptions": [serialize_asset_description(entry) for entry in asset_descriptions],
    }


def serialize_transaction(
    view: TransactionView,
    asset_descriptions: List[AssetDescriptionWithAsset]
) -> Dict[str, Any]:
    """
    Translate a transaction view and its enrichment into the API payload.

    A TransactionWithBlocks view gets a `blocks` list, a FlatTransaction view
    never does. Integer amounts are rendered as decimal strings.
    """
    serialized = _serialize_transaction_fields(view.transaction, asset_descriptions)
    if isinstance(view, TransactionWithBlocks):
        serialized["blocks"] = [serialize_block(block) for block in view.blocks]
    return serialized


def list_response(data: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "object": "list",
        "data": data,
    }
