from typing import List, Optional
from loguru import logger

from explorer.api.exceptions import AssetNotFoundError
from explorer.api.services.records import Asset

ASSET_SELECT = """
    SELECT
        identifier,
        name,
        metadata,
        owner,
        creator,
        supply,
        created_transaction_hash,
        verified_at
    FROM assets FINAL
"""


class AssetsService:
    """Service for retrieving asset information"""

    def __init__(self, client):
        """
        Args:
            client: ClickHouse client shared by the application
        """
        self.client = client

    def find(self, identifier: str) -> Optional[Asset]:
        """
        Get an asset by identifier

        Returns:
            The asset, or None if it does not exist
        """
        try:
            query = ASSET_SELECT + " WHERE identifier = {identifier:String} LIMIT 1"
            result = self.client.query(query, parameters={'identifier': identifier})
            rows = list(result.named_results())
            return Asset.from_row(rows[0]) if rows else None

        except Exception as e:
            logger.error(f"Error getting asset {identifier}: {str(e)}")
            raise

    def find_or_raise(self, identifier: str) -> Asset:
        """
        Get an asset that is expected to exist

        Raises:
            AssetNotFoundError: If no asset has this identifier
        """
        asset = self.find(identifier)
        if asset is None:
            raise AssetNotFoundError(identifier)
        return asset

    def list(self, search: Optional[str] = None, page: int = 1, page_size: int = 20) -> List[Asset]:
        """
        Get a page of assets ordered by name

        Args:
            search: Case-insensitive substring of the asset name or identifier
            page: Page number (1-based)
            page_size: Number of assets per page
        """
        try:
            params = {
                'limit': page_size,
                'offset': (page - 1) * page_size,
            }
            query = ASSET_SELECT
            if search:
                query += """
                    WHERE positionCaseInsensitive(name, {search:String}) > 0
                    OR positionCaseInsensitive(identifier, {search:String}) > 0
                """
                params['search'] = search
            query += " ORDER BY name, identifier LIMIT {limit:UInt32} OFFSET {offset:UInt32}"

            result = self.client.query(query, parameters=params)
            return [Asset.from_row(row) for row in result.named_results()]

        except Exception as e:
            logger.error(f"Error listing assets: {str(e)}")
            raise
