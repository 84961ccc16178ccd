import os
import tempfile
import threading
import time
from datetime import datetime, timezone

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="explorer-logs-"))
os.environ["NETWORK"] = "testnet"
os.environ["EXPLORER_API_KEY"] = "test-api-key"

import pytest
from fastapi.testclient import TestClient

from explorer.api.exceptions import AssetNotFoundError
from explorer.api.main import create_app
from explorer.api.routers import (
    get_asset_descriptions_service,
    get_assets_service,
    get_transactions_service,
)
from explorer.api.services.records import (
    Asset,
    AssetDescription,
    Block,
    FlatTransaction,
    Transaction,
    TransactionWithBlocks,
)
from explorer.base.metrics import MetricsRegistry

API_KEY = "test-api-key"


class FakeTransactionsService:
    """In-memory stand-in for TransactionsService"""

    def __init__(self):
        self.transactions = {}
        self.blocks = {}
        self.block_transactions = {}
        self.calls = []

    def add(self, transaction, blocks=None):
        self.transactions[transaction.hash] = transaction
        self.blocks[transaction.hash] = list(blocks or [])
        for block in blocks or []:
            self.block_transactions.setdefault(block.hash, []).append(transaction.hash)

    def _view(self, transaction, with_blocks):
        if with_blocks:
            return TransactionWithBlocks(transaction, self.blocks.get(transaction.hash, []))
        return FlatTransaction(transaction)

    def find(self, hash, with_blocks=False):
        self.calls.append(("find", hash))
        transaction = self.transactions.get(hash)
        return self._view(transaction, with_blocks) if transaction else None

    def list(self, block_hash=None, search=None, with_blocks=False, page=1, page_size=20):
        self.calls.append(("list", block_hash, search))
        if block_hash:
            hashes = self.block_transactions.get(block_hash, [])
        else:
            hashes = list(self.transactions)
        if search:
            hashes = [hash for hash in hashes if search.lower() in hash.lower()]
        start = (page - 1) * page_size
        return [self._view(self.transactions[hash], with_blocks) for hash in hashes[start:start + page_size]]

    def create_many(self, transactions):
        self.calls.append(("create_many", len(transactions)))
        for item in transactions:
            existing = self.transactions.get(item["hash"])
            self.transactions[item["hash"]] = Transaction(
                hash=item["hash"],
                fee=item["fee"],
                size=item["size"],
                expiration=item.get("expiration", 0),
                notes=item.get("notes", []),
                spends=item.get("spends", []),
                network_version=item.get("network_version", 0),
                created_at=existing.created_at if existing else datetime.now(timezone.utc),
            )
        return [self.transactions[item["hash"]] for item in transactions]


class FakeAssetsService:
    """In-memory stand-in for AssetsService that records lookups"""

    def __init__(self, delay=0.0):
        self.assets = {}
        self.delay = delay
        self.lookups = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def add(self, asset):
        self.assets[asset.identifier] = asset

    def find(self, identifier):
        return self.assets.get(identifier)

    def find_or_raise(self, identifier):
        with self._lock:
            self.lookups.append(identifier)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            asset = self.assets.get(identifier)
            if asset is None:
                raise AssetNotFoundError(identifier)
            return asset
        finally:
            with self._lock:
                self.in_flight -= 1

    def list(self, search=None, page=1, page_size=20):
        assets = sorted(self.assets.values(), key=lambda asset: (asset.name, asset.identifier))
        if search:
            assets = [
                asset for asset in assets
                if search.lower() in asset.name.lower() or search.lower() in asset.identifier.lower()
            ]
        start = (page - 1) * page_size
        return assets[start:start + page_size]


class FakeAssetDescriptionsService:
    def __init__(self):
        self.asset_descriptions = {}
        self.calls = []

    def add(self, asset_description):
        self.asset_descriptions.setdefault(asset_description.transaction_hash, []).append(asset_description)

    def find_by_transaction(self, transaction):
        self.calls.append(transaction.hash)
        return sorted(self.asset_descriptions.get(transaction.hash, []), key=lambda entry: entry.index)


class FakeStore:
    def __init__(self):
        self.transactions = FakeTransactionsService()
        self.assets = FakeAssetsService()
        self.asset_descriptions = FakeAssetDescriptionsService()


def make_transaction(hash="abc", fee=10, **kwargs):
    return Transaction(
        hash=hash,
        fee=fee,
        size=kwargs.pop("size", 500),
        expiration=kwargs.pop("expiration", 0),
        notes=kwargs.pop("notes", [{"commitment": f"{hash}-note"}]),
        spends=kwargs.pop("spends", [{"nullifier": f"{hash}-spend"}]),
        network_version=kwargs.pop("network_version", 1),
        **kwargs
    )


def make_asset(identifier, name=None):
    return Asset(
        identifier=identifier,
        name=name or f"asset {identifier}",
        metadata="",
        owner=f"owner-{identifier}",
        creator=f"creator-{identifier}",
        supply=1000,
        created_transaction_hash="mint-tx",
    )


def make_block(hash, sequence):
    return Block(
        hash=hash,
        sequence=sequence,
        previous_block_hash=f"prev-{hash}",
        main=True,
        difficulty=2 ** 70,
        work=2 ** 80,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        transactions_count=1,
        graffiti="graffiti",
        size=2048,
        network_version=1,
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def seeded_store(store):
    """Transaction "abc" minting a1 then burning a2, in block b1"""
    store.transactions.add(make_transaction("abc"), blocks=[make_block("b1", 10)])
    store.assets.add(make_asset("a1"))
    store.assets.add(make_asset("a2"))
    store.asset_descriptions.add(AssetDescription("abc", 0, "a1", 50))
    store.asset_descriptions.add(AssetDescription("abc", 1, "a2", -20))
    return store


@pytest.fixture
def app(store):
    app = create_app(metrics_registry=MetricsRegistry("test-explorer-api"), rate_limit_per_hour=10000)
    app.dependency_overrides[get_transactions_service] = lambda: store.transactions
    app.dependency_overrides[get_assets_service] = lambda: store.assets
    app.dependency_overrides[get_asset_descriptions_service] = lambda: store.asset_descriptions
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {API_KEY}"}
