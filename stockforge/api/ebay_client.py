"""eBay API client for reading active listings and writing inventory items"""

import asyncio
import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import aiohttp

from ..errors import AccountNotAuthenticated, RemoteTransportError
from ..inventory import ListingUpdate, RemoteListing
from .oauth import ENDPOINTS

logger = logging.getLogger(__name__)

TRADING_ENDPOINTS = {
    "sandbox": "https://api.sandbox.ebay.com/ws/api.dll",
    "production": "https://api.ebay.com/ws/api.dll",
}

NS = {"ebay": "urn:ebay:apis:eBLBaseComponents"}

# Trading API error codes meaning the token was rejected
AUTH_ERROR_CODES = {"931", "932", "16110", "21916984", "21917053"}

MARKETPLACE_ID = "EBAY_US"


def build_selling_request(page: int, page_size: int) -> str:
    """GetMyeBaySelling request for one page of fixed-price active listings"""
    return f"""<?xml version="1.0" encoding="utf-8"?>
<GetMyeBaySellingRequest xmlns="urn:ebay:apis:eBLBaseComponents">
    <DetailLevel>ReturnAll</DetailLevel>
    <ActiveList>
        <Include>true</Include>
        <ListingType>FixedPriceItem</ListingType>
        <Pagination>
            <EntriesPerPage>{page_size}</EntriesPerPage>
            <PageNumber>{page}</PageNumber>
        </Pagination>
        <Sort>TimeLeft</Sort>
    </ActiveList>
    <ErrorLanguage>en_US</ErrorLanguage>
    <WarningLevel>High</WarningLevel>
</GetMyeBaySellingRequest>"""


def _to_int(value: Optional[str], default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def _to_float(value: Optional[str], default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def check_ack(root: ET.Element) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Read the Ack of a Trading API response

    Returns:
        Tuple of (ack, first error code, first error short message)
    """
    ack = root.findtext("ebay:Ack", default="", namespaces=NS)
    error = root.find("ebay:Errors", NS)
    if error is None:
        return ack, None, None
    return (
        ack,
        error.findtext("ebay:ErrorCode", default=None, namespaces=NS),
        error.findtext("ebay:ShortMessage", default=None, namespaces=NS),
    )


def parse_listing(item: ET.Element) -> RemoteListing:
    """Convert one ItemArray/Item element into a RemoteListing"""
    def _text(path: str) -> Optional[str]:
        return item.findtext(path, default=None, namespaces=NS)

    quantity_sold = _to_int(_text("ebay:SellingStatus/ebay:QuantitySold"))
    available = _text("ebay:QuantityAvailable")
    if available is not None:
        quantity = _to_int(available)
    else:
        quantity = max(_to_int(_text("ebay:Quantity"), 1) - quantity_sold, 0)

    price_elem = None
    for path in ("ebay:StartPrice", "ebay:BuyItNowPrice", "ebay:SellingStatus/ebay:CurrentPrice"):
        elem = item.find(path, NS)
        if elem is not None and elem.text:
            price_elem = elem
            break

    return RemoteListing(
        item_id=_text("ebay:ItemID"),
        sku=_text("ebay:SKU") or None,
        title=_text("ebay:Title") or "",
        price=_to_float(price_elem.text) if price_elem is not None else 0.0,
        currency=price_elem.attrib.get("currencyID", "USD") if price_elem is not None else "USD",
        quantity=max(quantity, 0),
        quantity_sold=quantity_sold,
        condition=_text("ebay:ConditionDisplayName"),
        category_id=_text("ebay:PrimaryCategory/ebay:CategoryID"),
        category_name=_text("ebay:PrimaryCategory/ebay:CategoryName"),
    )


def parse_active_listings(xml_text: str) -> Tuple[List[RemoteListing], int]:
    """
    Parse a GetMyeBaySelling response

    Args:
        xml_text: Raw response body

    Returns:
        Tuple of (listings on this page, total number of pages)
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise RemoteTransportError(f"Malformed GetMyeBaySelling response: {e}") from e

    ack, code, message = check_ack(root)
    if ack == "Failure":
        raise RemoteTransportError(message or f"GetMyeBaySelling failed (error {code})")

    active = root.find("ebay:ActiveList", NS)
    if active is None:
        return [], 0

    items = active.findall("ebay:ItemArray/ebay:Item", NS)
    total_pages = _to_int(
        active.findtext("ebay:PaginationResult/ebay:TotalNumberOfPages", default=None, namespaces=NS),
        default=1,
    )
    return [parse_listing(item) for item in items], total_pages


def inventory_item_payload(update: ListingUpdate) -> Dict[str, Any]:
    """Inventory API inventory_item body for a listing update"""
    return {
        "availability": {"shipToLocationAvailability": {"quantity": update.quantity}},
        "condition": update.condition or "NEW",
        "product": {
            "title": update.title,
            "description": update.description,
            "aspects": update.aspects,
        },
    }


class EbayClient:
    """Client for the eBay Trading and Inventory APIs"""

    def __init__(
        self,
        token_provider,
        environment: str = "sandbox",
        page_size: int = 200,
        timeout: int = 30,
        rate_limit_delay: float = 0.2,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize eBay client

        Args:
            token_provider: Object with `async get_token(account_id) -> str`
            environment: 'sandbox' or 'production'
            page_size: Listings per GetMyeBaySelling page
            timeout: Request timeout in seconds
            rate_limit_delay: Pause between paginated calls
            session: Optional shared aiohttp session
        """
        if environment not in ENDPOINTS:
            raise ValueError(f"Unknown eBay environment: {environment}")

        self.token_provider = token_provider
        self.environment = environment
        self.api_url = ENDPOINTS[environment]["api"]
        self.trading_url = TRADING_ENDPOINTS[environment]
        self.page_size = page_size
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.rate_limit_delay = rate_limit_delay
        self._session = session

        logger.info(f"Initialized eBay client ({environment})")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        account_id: str,
        method: str,
        path: str,
        params: Optional[Dict] = None,
        body: Optional[Dict] = None,
    ) -> Dict[str, Any]:
        """
        Make an authenticated REST request

        Args:
            account_id: Account whose token is used
            method: HTTP method
            path: API path below the REST base URL
            params: Query parameters
            body: JSON request body

        Returns:
            Response data as dictionary ({} for empty responses)
        """
        token = await self.token_provider.get_token(account_id)
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Accept-Language": "en-US",
            "Content-Language": "en-US",
        }
        url = f"{self.api_url}{path}"

        try:
            async with self._get_session().request(
                method, url, params=params, json=body, headers=headers
            ) as response:
                if response.status == 204:
                    return {}
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = {}
                data = data or {}

                if response.status == 401:
                    raise AccountNotAuthenticated(account_id, "eBay rejected the access token")
                if response.status >= 400:
                    errors = data.get("errors") or [{}]
                    message = errors[0].get("message") or f"API error: {response.status}"
                    raise RemoteTransportError(message, status=response.status)
                return data

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Request failed: {method} {path}: {e}")
            raise RemoteTransportError(f"{method} {path} failed: {e}") from e

    async def _trading_call(self, account_id: str, call_name: str, xml_body: str) -> str:
        token = await self.token_provider.get_token(account_id)
        headers = {
            "Content-Type": "text/xml",
            "X-EBAY-API-SITEID": "0",
            "X-EBAY-API-COMPATIBILITY-LEVEL": "967",
            "X-EBAY-API-CALL-NAME": call_name,
            "X-EBAY-API-IAF-TOKEN": token,
        }
        try:
            async with self._get_session().post(self.trading_url, data=xml_body, headers=headers) as response:
                text = await response.text()
                if response.status == 401:
                    raise AccountNotAuthenticated(account_id, "eBay rejected the access token")
                if response.status >= 400:
                    raise RemoteTransportError(f"{call_name} failed: HTTP {response.status}", status=response.status)
                return text
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"{call_name} failed: {str(e)}")
            raise RemoteTransportError(f"{call_name} failed: {e}") from e

    async def get_listings_page(self, account_id: str, page: int = 1) -> Tuple[List[RemoteListing], int]:
        """
        Fetch one page of active listings

        Args:
            account_id: eBay account
            page: 1-based page number

        Returns:
            Tuple of (listings, total pages)
        """
        xml_text = await self._trading_call(
            account_id, "GetMyeBaySelling", build_selling_request(page, self.page_size)
        )
        try:
            return parse_active_listings(xml_text)
        except RemoteTransportError:
            root = ET.fromstring(xml_text)
            _, code, message = check_ack(root)
            if code in AUTH_ERROR_CODES:
                raise AccountNotAuthenticated(account_id, message or "Invalid eBay token")
            raise

    async def fetch_listings(self, account_id: str) -> List[RemoteListing]:
        """
        Fetch all active fixed-price listings with pagination

        Args:
            account_id: eBay account

        Returns:
            List of all listings
        """
        listings: List[RemoteListing] = []
        page = 1
        while True:
            batch, total_pages = await self.get_listings_page(account_id, page)
            listings.extend(batch)
            logger.info(f"Fetched {len(listings)} listings (page {page}/{max(total_pages, 1)})")

            if not batch or page >= total_pages:
                break
            page += 1
            await asyncio.sleep(self.rate_limit_delay)

        return listings

    async def get_offers(self, account_id: str, sku: str) -> List[Dict[str, Any]]:
        """Offers for a SKU; an unknown SKU has none"""
        try:
            data = await self._request(
                account_id, "GET", "/sell/inventory/v1/offer",
                params={"sku": sku, "marketplace_id": MARKETPLACE_ID},
            )
        except RemoteTransportError as e:
            if e.status in (400, 404):
                return []
            raise
        return data.get("offers", [])

    async def upsert_listing(self, account_id: str, sku: str, update: ListingUpdate) -> Dict[str, Any]:
        """
        Create or replace the inventory item for a SKU

        The item carries quantity, condition, title, description and
        aspects. Price lives on offers, so it is written through
        bulk_update_price_quantity when the SKU already has offers.

        Args:
            account_id: eBay account
            sku: Inventory SKU
            update: Fields to write

        Returns:
            Dictionary with the SKU and number of offers repriced
        """
        await self._request(
            account_id, "PUT",
            f"/sell/inventory/v1/inventory_item/{quote(sku, safe='')}",
            body=inventory_item_payload(update),
        )

        offers = await self.get_offers(account_id, sku)
        if offers:
            body = {
                "requests": [
                    {
                        "sku": sku,
                        "shipToLocationAvailability": {"quantity": update.quantity},
                        "offers": [
                            {
                                "offerId": offer["offerId"],
                                "availableQuantity": update.quantity,
                                "price": {"value": f"{update.price:.2f}", "currency": "USD"},
                            }
                            for offer in offers if offer.get("offerId")
                        ],
                    }
                ]
            }
            await self._request(account_id, "POST", "/sell/inventory/v1/bulk_update_price_quantity", body=body)

        logger.debug(f"Upserted {sku} on {account_id} (qty {update.quantity}, {len(offers)} offers)")
        return {"sku": sku, "offers_updated": len(offers)}
