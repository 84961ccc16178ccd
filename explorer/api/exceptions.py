class NotFoundError(Exception):
    """A requested record does not exist in the store"""


class TransactionNotFoundError(NotFoundError):
    def __init__(self, hash: str):
        super().__init__(f"Transaction not found: {hash}")
        self.hash = hash


class AssetNotFoundError(NotFoundError):
    def __init__(self, identifier: str):
        super().__init__(f"Asset not found: {identifier}")
        self.identifier = identifier
