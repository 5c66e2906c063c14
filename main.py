"""
Main application entry point with FastAPI
"""
import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from config import settings
from database import AsyncSessionLocal, test_connection
from models import (
    AccountInfo,
    ConnectRequest,
    ConnectResponse,
    HistoryResponse,
    InventoryEdit,
    SyncResponse,
)
from stockforge.api import EbayClient, EbayOAuth
from stockforge.errors import (
    AccountNotAuthenticated,
    LocalStoreError,
    RemoteTransportError,
    StockForgeError,
)
from stockforge.history import adjust_quantity
from stockforge.storage import JsonFileStore, SqlStore
from stockforge.sync import SyncService

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    AccountNotAuthenticated: 401,
    RemoteTransportError: 502,
    LocalStoreError: 500,
}


async def build_store():
    """Storage backend selected by USE_LOCAL_DB"""
    if settings.USE_LOCAL_DB:
        logger.info(f"Using local JSON store: {settings.LOCAL_DB_PATH}")
        return JsonFileStore(settings.LOCAL_DB_PATH, settings.ACCOUNTS_PATH)

    if await test_connection():
        logger.info("Database connection verified")
    else:
        logger.warning("Database connection test failed")
    store = SqlStore(AsyncSessionLocal)
    await store.init_schema()
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting StockForge eBay Sync API...")
    logger.info(f"eBay Environment: {settings.EBAY_ENVIRONMENT}")

    store = await build_store()
    oauth = EbayOAuth(
        store,
        client_id=settings.EBAY_CLIENT_ID,
        client_secret=settings.EBAY_CLIENT_SECRET,
        ru_name=settings.EBAY_RUNAME,
        environment=settings.EBAY_ENVIRONMENT,
        scopes=settings.EBAY_SCOPES,
        timeout=settings.REQUEST_TIMEOUT,
    )
    if not oauth.configured:
        logger.warning("eBay credentials are not configured; connecting accounts will fail")

    client = EbayClient(
        oauth,
        environment=settings.EBAY_ENVIRONMENT,
        page_size=settings.LISTINGS_PAGE_SIZE,
        timeout=settings.REQUEST_TIMEOUT,
    )

    app.state.store = store
    app.state.oauth = oauth
    app.state.ebay_client = client
    app.state.sync_service = SyncService(client, store, token_provider=oauth, account_store=store)

    yield

    # Shutdown
    logger.info("Shutting down StockForge eBay Sync API...")
    await client.close()
    await oauth.close()


app = FastAPI(
    title="StockForge eBay Sync API",
    description="API for keeping warehouse inventory and eBay listings in sync",
    version="0.1.0",
    lifespan=lifespan
)


def error_response(e: Exception, message: str) -> JSONResponse:
    """JSON error body with the status code matching the exception type"""
    status_code = 500
    for error_type, code in ERROR_STATUS.items():
        if isinstance(e, error_type):
            status_code = code
            break
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "error": str(e)
        }
    )


async def run_sync(request: Request, account_id: str, operation: str):
    service: SyncService = request.app.state.sync_service
    start_time = time.time()
    try:
        logger.info(f"{operation} request received for account {account_id}")
        result = await getattr(service, operation)(account_id)
        return SyncResponse(
            success=True,
            message=result.message(),
            summary=result.summary(),
            details=result.model_dump(mode="json"),
            execution_time=time.time() - start_time
        )
    except Exception as e:
        logger.error(f"{operation} failed for {account_id}: {str(e)}")
        return error_response(e, f"{operation} failed")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "StockForge eBay Sync API",
        "version": "0.1.0",
        "endpoints": {
            "health": "/health",
            "status": "/api/ebay/status",
            "accounts": "/api/ebay/accounts",
            "pull": "/api/ebay/pull/{account_id}",
            "push": "/api/ebay/push/{account_id}",
            "sync": "/api/ebay/sync-all/{account_id}"
        }
    }


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    store = request.app.state.store
    try:
        items = await store.count()
        store_status = "connected"
    except LocalStoreError as e:
        logger.error(f"Health check failed: {str(e)}")
        items = None
        store_status = "disconnected"
    return {
        "status": "healthy" if store_status == "connected" else "degraded",
        "store": store_status,
        "items": items,
        "service": "stockforge"
    }


@app.get("/api/ebay/status")
async def ebay_status(request: Request):
    """eBay configuration and account overview"""
    oauth: EbayOAuth = request.app.state.oauth
    accounts = await request.app.state.store.list_accounts()
    return {
        "configured": oauth.configured,
        "environment": oauth.environment,
        "accounts": len(accounts),
        "authenticated": sum(1 for account in accounts if account.tokens and account.tokens.refresh_token),
    }


@app.get("/api/ebay/accounts")
async def list_accounts(request: Request):
    accounts = await request.app.state.store.list_accounts()
    return [
        AccountInfo(
            account_id=account.account_id,
            name=account.name,
            authenticated=bool(account.tokens and account.tokens.refresh_token),
            added_at=account.added_at.isoformat() if account.added_at else None,
            last_sync=account.last_sync.isoformat() if account.last_sync else None
        )
        for account in accounts
    ]


@app.post("/api/ebay/connect", response_model=ConnectResponse)
async def connect_account(body: ConnectRequest, request: Request):
    """Start the eBay consent flow"""
    oauth: EbayOAuth = request.app.state.oauth
    if not oauth.configured:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "eBay credentials are not configured",
                "error": "Set EBAY_CLIENT_ID, EBAY_CLIENT_SECRET and EBAY_RUNAME"
            }
        )
    auth_url, state = oauth.authorization_url(body.account_name, body.account_id)
    return ConnectResponse(auth_url=auth_url, state=state)


@app.get("/api/ebay/callback")
async def oauth_callback(request: Request, code: str = Query(...), state: str = Query(...)):
    """OAuth redirect target"""
    oauth: EbayOAuth = request.app.state.oauth
    try:
        account = await oauth.exchange_code(code, state)
    except ValueError as e:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Authorization failed", "error": str(e)}
        )
    except StockForgeError as e:
        logger.error(f"OAuth callback failed: {str(e)}")
        return error_response(e, "Authorization failed")
    return {
        "success": True,
        "message": f"Connected eBay account {account.name}",
        "account_id": account.account_id
    }


@app.delete("/api/ebay/accounts/{account_id}")
async def remove_account(account_id: str, request: Request):
    if not await request.app.state.store.delete_account(account_id):
        return JSONResponse(
            status_code=404,
            content={"success": False, "message": "Account not found", "error": account_id}
        )
    logger.info(f"Removed eBay account {account_id}")
    return {"success": True, "message": f"Account {account_id} removed"}


@app.post("/api/ebay/pull/{account_id}", response_model=SyncResponse)
async def pull(account_id: str, request: Request):
    """eBay -> local"""
    return await run_sync(request, account_id, "pull")


@app.post("/api/ebay/push/{account_id}", response_model=SyncResponse)
async def push(account_id: str, request: Request):
    """local -> eBay"""
    return await run_sync(request, account_id, "push")


@app.post("/api/ebay/sync-all/{account_id}", response_model=SyncResponse)
async def sync_all(account_id: str, request: Request):
    """Two-way sync with sales detection"""
    return await run_sync(request, account_id, "smart_sync")


@app.post("/api/ebay/sync/{account_id}/{sku}")
async def sync_item(account_id: str, sku: str, request: Request):
    """Push a single item"""
    service: SyncService = request.app.state.sync_service
    try:
        record = await service.sync_item(account_id, sku)
    except StockForgeError as e:
        logger.error(f"Item sync failed for {sku}: {str(e)}")
        return error_response(e, f"Failed to sync {sku}")
    return {
        "success": True,
        "message": f"{sku} synced to eBay",
        "sku": sku,
        "current_qty": record.current_qty
    }


@app.get("/api/inventory/{sku}/history", response_model=HistoryResponse)
async def item_history(sku: str, request: Request):
    record = await request.app.state.store.get_record(sku)
    if record is None:
        return JSONResponse(
            status_code=404,
            content={"success": False, "message": "Item not found", "error": sku}
        )
    return HistoryResponse(
        sku=sku,
        current_qty=record.current_qty,
        history=[entry.model_dump(mode="json") for entry in record.history]
    )


@app.put("/api/inventory/{sku}")
async def edit_item(sku: str, body: InventoryEdit, request: Request):
    """Local edit; quantity changes are logged as ADJUST_UP/ADJUST_DOWN"""
    store = request.app.state.store
    record = await store.get_record(sku)
    if record is None:
        return JSONResponse(
            status_code=404,
            content={"success": False, "message": "Item not found", "error": sku}
        )

    try:
        fields = body.model_dump(exclude_none=True, exclude={"current_qty"})
        if fields:
            record = await store.update_record(sku, fields)
        if body.current_qty is not None and body.current_qty != record.current_qty:
            record = await adjust_quantity(store, sku, body.current_qty)
    except LocalStoreError as e:
        logger.error(f"Edit failed for {sku}: {str(e)}")
        return error_response(e, f"Failed to update {sku}")

    return record.model_dump(mode="json")


@app.delete("/api/inventory/{sku}")
async def delete_item(sku: str, request: Request):
    """Remove an item from local inventory; its eBay listing is left as is"""
    try:
        record = await request.app.state.store.delete_record(sku)
    except LocalStoreError as e:
        logger.error(f"Delete failed for {sku}: {str(e)}")
        return error_response(e, f"Failed to delete {sku}")
    if record is None:
        return JSONResponse(
            status_code=404,
            content={"success": False, "message": "Item not found", "error": sku}
        )
    logger.info(f"Deleted {sku} from local inventory")
    return {"success": True, "message": f"{sku} deleted", "sku": sku}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
