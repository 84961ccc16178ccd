import json
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from loguru import logger

from explorer.api.exceptions import TransactionNotFoundError
from explorer.api.services.records import (
    Block,
    FlatTransaction,
    Transaction,
    TransactionView,
    TransactionWithBlocks,
)

TRANSACTION_COLUMNS = [
    'hash', 'fee', 'size', 'expiration', 'notes', 'spends',
    'network_version', 'created_at', 'updated_at'
]

TRANSACTION_SELECT = """
    SELECT
        t.hash AS hash,
        t.fee AS fee,
        t.size AS size,
        t.expiration AS expiration,
        t.notes AS notes,
        t.spends AS spends,
        t.network_version AS network_version,
        t.created_at AS created_at,
        t.updated_at AS updated_at
    FROM transactions AS t FINAL
"""


class TransactionsService:
    """Service for querying and upserting transactions"""

    def __init__(self, client):
        """
        Args:
            client: ClickHouse client shared by the application
        """
        self.client = client

    def find(self, hash: str, with_blocks: bool = False) -> Optional[TransactionView]:
        """
        Find a single transaction by hash

        Args:
            hash: Transaction hash
            with_blocks: Also load the blocks the transaction was included in

        Returns:
            FlatTransaction or TransactionWithBlocks, None when no transaction has this hash
        """
        try:
            query = TRANSACTION_SELECT + " WHERE t.hash = {hash:String} LIMIT 1"
            rows = list(self.client.query(query, parameters={'hash': hash}).named_results())
            if not rows:
                return None

            transaction = Transaction.from_row(rows[0])
            return self._to_views([transaction], with_blocks)[0]

        except Exception as e:
            logger.error(f"Error finding transaction {hash}: {str(e)}")
            raise

    def list(
        self,
        block_hash: Optional[str] = None,
        search: Optional[str] = None,
        with_blocks: bool = False,
        page: int = 1,
        page_size: int = 20
    ) -> List[TransactionView]:
        """
        List transactions, optionally restricted to one block or matching a search string

        Transactions of a block come back in their in-block order, otherwise the
        most recently created transactions come first.

        Args:
            block_hash: Only return transactions included in this block
            search: Case-insensitive substring of the transaction hash
            with_blocks: Also load the blocks each transaction was included in
            page: Page number (1-based)
            page_size: Number of transactions per page

        Returns:
            List of transaction views in store order
        """
        try:
            params: Dict[str, Any] = {
                'limit': page_size,
                'offset': (page - 1) * page_size,
            }
            query = TRANSACTION_SELECT
            conditions = []

            if block_hash:
                query += " INNER JOIN blocks_transactions AS bt FINAL ON bt.transaction_hash = t.hash"
                conditions.append("bt.block_hash = {block_hash:String}")
                params['block_hash'] = block_hash
                order_by = "bt.index ASC"
            else:
                order_by = "t.created_at DESC, t.hash ASC"

            if search:
                conditions.append("positionCaseInsensitive(t.hash, {search:String}) > 0")
                params['search'] = search

            if conditions:
                query += " WHERE " + " AND ".join(conditions)
            query += f" ORDER BY {order_by} LIMIT {{limit:UInt32}} OFFSET {{offset:UInt32}}"

            result = self.client.query(query, parameters=params)
            transactions = [Transaction.from_row(row) for row in result.named_results()]
            return self._to_views(transactions, with_blocks)

        except Exception as e:
            logger.error(f"Error listing transactions: {str(e)}")
            raise

    def create_many(self, transactions: List[Dict[str, Any]]) -> List[Transaction]:
        """
        Upsert a batch of transactions keyed by hash

        Submitting an existing hash replaces its data and keeps its creation time.

        Args:
            transactions: Transaction inputs with hash, fee, size, expiration, notes and spends

        Returns:
            Stored transactions, one per input and in input order
        """
        if not transactions:
            return []

        try:
            hashes = list(dict.fromkeys(item['hash'] for item in transactions))
            created_at_by_hash = self._get_created_at(hashes)
            now = datetime.now(timezone.utc)

            # Last occurrence of a hash in the batch wins
            rows_by_hash = {}
            for item in transactions:
                rows_by_hash[item['hash']] = (
                    item['hash'],
                    int(item['fee']),
                    int(item['size']),
                    int(item.get('expiration') or 0),
                    json.dumps(item.get('notes') or []),
                    json.dumps(item.get('spends') or []),
                    int(item.get('network_version') or 0),
                    created_at_by_hash.get(item['hash'], now),
                    now,
                )

            self.client.insert('transactions', list(rows_by_hash.values()), column_names=TRANSACTION_COLUMNS)
            logger.info(f"Upserted {len(rows_by_hash)} transactions")

            stored = self._find_many(hashes)
            result = []
            for item in transactions:
                if item['hash'] not in stored:
                    raise TransactionNotFoundError(item['hash'])
                result.append(stored[item['hash']])
            return result

        except Exception as e:
            logger.error(f"Error upserting transactions: {str(e)}")
            raise

    def _get_created_at(self, hashes: List[str]) -> Dict[str, datetime]:
        query = "SELECT hash, created_at FROM transactions FINAL WHERE hash IN {hashes:Array(String)}"
        result = self.client.query(query, parameters={'hashes': hashes})
        return {row[0]: row[1] for row in result.result_rows}

    def _find_many(self, hashes: List[str]) -> Dict[str, Transaction]:
        query = TRANSACTION_SELECT + " WHERE t.hash IN {hashes:Array(String)}"
        result = self.client.query(query, parameters={'hashes': hashes})
        return {row['hash']: Transaction.from_row(row) for row in result.named_results()}

    def _find_blocks(self, hashes: List[str]) -> Dict[str, List[Block]]:
        """Blocks containing each of the given transactions, ordered by sequence"""
        query = """
                SELECT
                    bt.transaction_hash AS transaction_hash,
                    b.hash AS hash,
                    b.sequence AS sequence,
                    b.previous_block_hash AS previous_block_hash,
                    b.main AS main,
                    b.difficulty AS difficulty,
                    b.work AS work,
                    b.timestamp AS timestamp,
                    b.transactions_count AS transactions_count,
                    b.graffiti AS graffiti,
                    b.size AS size,
                    b.network_version AS network_version
                FROM blocks_transactions AS bt FINAL
                INNER JOIN blocks AS b FINAL ON b.hash = bt.block_hash
                WHERE bt.transaction_hash IN {hashes:Array(String)}
                ORDER BY b.sequence ASC, b.hash ASC
                """
        result = self.client.query(query, parameters={'hashes': hashes})

        blocks_by_transaction = defaultdict(list)
        for row in result.named_results():
            blocks_by_transaction[row['transaction_hash']].append(Block.from_row(row))
        return blocks_by_transaction

    def _to_views(self, transactions: List[Transaction], with_blocks: bool) -> List[TransactionView]:
        if not with_blocks:
            return [FlatTransaction(transaction) for transaction in transactions]
        if not transactions:
            return []

        blocks_by_transaction = self._find_blocks([transaction.hash for transaction in transactions])
        return [
            TransactionWithBlocks(transaction, blocks_by_transaction.get(transaction.hash, []))
            for transaction in transactions
        ]
