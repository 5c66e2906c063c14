"""Exceptions raised by the inventory store, the eBay client and the sync engine"""


class StockForgeError(Exception):
    """Base class for all StockForge errors"""


class AccountNotAuthenticated(StockForgeError):
    """No usable eBay credential for the account; aborts a whole sync call"""

    def __init__(self, account_id: str, reason: str = "Account not authenticated"):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"{reason} ({account_id}). Please reconnect this eBay account.")


class RemoteTransportError(StockForgeError):
    """Network or API failure while talking to eBay"""

    def __init__(self, message: str, status: int = None):
        self.status = status
        super().__init__(message)


class LocalStoreError(StockForgeError):
    """Failure reading or writing a local inventory record"""


class ListingValidationError(StockForgeError):
    """Remote listing data that cannot be reconciled (e.g. no SKU and no item id)"""
