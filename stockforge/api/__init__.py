"""eBay API integration module"""

from .ebay_client import EbayClient
from .oauth import EbayOAuth, PendingAuthRegistry

__all__ = ["EbayClient", "EbayOAuth", "PendingAuthRegistry"]
