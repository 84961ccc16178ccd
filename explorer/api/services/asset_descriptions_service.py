from typing import List
from loguru import logger

from explorer.api.services.records import AssetDescription, Transaction


class AssetDescriptionsService:
    """Service for the mint and burn descriptions recorded by transactions"""

    def __init__(self, client):
        self.client = client

    def find_by_transaction(self, transaction: Transaction) -> List[AssetDescription]:
        """
        Get the asset descriptions of a transaction in their in-transaction order
        """
        try:
            query = """
                    SELECT transaction_hash, index, asset_id, value
                    FROM asset_descriptions FINAL
                    WHERE transaction_hash = {transaction_hash:String}
                    ORDER BY index ASC
                    """
            result = self.client.query(query, parameters={'transaction_hash': transaction.hash})
            return [AssetDescription.from_row(row) for row in result.named_results()]

        except Exception as e:
            logger.error(f"Error getting asset descriptions for transaction {transaction.hash}: {str(e)}")
            raise
