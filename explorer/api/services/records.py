import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union


def _parse_json_list(value) -> List[Dict[str, Any]]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return json.loads(value)
    return list(value)


@dataclass(frozen=True)
class Transaction:
    hash: str
    fee: int
    size: int
    expiration: int = 0
    notes: List[Dict[str, Any]] = field(default_factory=list)
    spends: List[Dict[str, Any]] = field(default_factory=list)
    network_version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Transaction":
        return cls(
            hash=row["hash"],
            fee=int(row["fee"]),
            size=int(row["size"]),
            expiration=int(row.get("expiration") or 0),
            notes=_parse_json_list(row.get("notes")),
            spends=_parse_json_list(row.get("spends")),
            network_version=int(row.get("network_version") or 0),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@dataclass(frozen=True)
class Block:
    hash: str
    sequence: int
    previous_block_hash: str
    main: bool
    difficulty: int
    work: int
    timestamp: datetime
    transactions_count: int
    graffiti: str
    size: int
    network_version: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Block":
        return cls(
            hash=row["hash"],
            sequence=int(row["sequence"]),
            previous_block_hash=row["previous_block_hash"],
            main=bool(row["main"]),
            difficulty=int(row["difficulty"]),
            work=int(row["work"]),
            timestamp=row["timestamp"],
            transactions_count=int(row["transactions_count"]),
            graffiti=row["graffiti"],
            size=int(row["size"]),
            network_version=int(row.get("network_version") or 0),
        )


@dataclass(frozen=True)
class Asset:
    identifier: str
    name: str
    metadata: str
    owner: str
    creator: str
    supply: int = 0
    created_transaction_hash: Optional[str] = None
    verified_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Asset":
        return cls(
            identifier=row["identifier"],
            name=row["name"],
            metadata=row["metadata"],
            owner=row["owner"],
            creator=row["creator"],
            supply=int(row.get("supply") or 0),
            created_transaction_hash=row.get("created_transaction_hash"),
            verified_at=row.get("verified_at"),
        )


@dataclass(frozen=True)
class AssetDescription:
    transaction_hash: str
    index: int
    asset_id: str
    value: int

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AssetDescription":
        return cls(
            transaction_hash=row["transaction_hash"],
            index=int(row["index"]),
            asset_id=row["asset_id"],
            value=int(row["value"]),
        )


@dataclass(frozen=True)
class AssetDescriptionWithAsset:
    """One entry of the enrichment view attached to a transaction"""
    asset: Asset
    asset_description: AssetDescription


@dataclass(frozen=True)
class FlatTransaction:
    transaction: Transaction


@dataclass(frozen=True)
class TransactionWithBlocks:
    transaction: Transaction
    blocks: List[Block] = field(default_factory=list)


# Shape of a transaction as returned by the query service
TransactionView = Union[FlatTransaction, TransactionWithBlocks]
