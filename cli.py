"""
Command-line interface for StockForge eBay sync
"""
import asyncio
import argparse
import json
import logging

from config import settings
from database import test_connection
from main import build_store
from stockforge.api import EbayClient, EbayOAuth
from stockforge.errors import AccountNotAuthenticated, StockForgeError
from stockforge.sync import SyncService

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

OPERATIONS = {
    'pull': 'pull',
    'push': 'push',
    'sync': 'smart_sync',
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='StockForge eBay inventory sync CLI')
    parser.add_argument(
        '--account',
        help='eBay account id to sync'
    )
    parser.add_argument(
        '--mode',
        choices=list(OPERATIONS),
        default='sync',
        help='pull (eBay -> local), push (local -> eBay) or sync (two-way with sales detection)'
    )
    parser.add_argument(
        '--sku',
        help='Push a single SKU instead of running a full sync'
    )
    parser.add_argument(
        '--list-accounts',
        action='store_true',
        help='List connected eBay accounts'
    )
    parser.add_argument(
        '--test-db',
        action='store_true',
        help='Test database connection only'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the full result as JSON'
    )
    return parser


async def main(argv=None):
    """Main CLI function"""
    args = build_parser().parse_args(argv)

    # Test database connection if requested
    if args.test_db:
        logger.info("Testing database connection...")
        if await test_connection():
            logger.info("✓ Database connection successful")
            return 0
        else:
            logger.error("✗ Database connection failed")
            return 1

    store = await build_store()

    if args.list_accounts:
        for account in await store.list_accounts():
            state = "connected" if account.tokens and account.tokens.refresh_token else "not authenticated"
            logger.info(f"{account.account_id}  {account.name}  ({state})")
        return 0

    if not args.account:
        logger.error("--account is required")
        return 1

    oauth = EbayOAuth(
        store,
        client_id=settings.EBAY_CLIENT_ID,
        client_secret=settings.EBAY_CLIENT_SECRET,
        ru_name=settings.EBAY_RUNAME,
        environment=settings.EBAY_ENVIRONMENT,
        scopes=settings.EBAY_SCOPES,
        timeout=settings.REQUEST_TIMEOUT,
    )
    client = EbayClient(
        oauth,
        environment=settings.EBAY_ENVIRONMENT,
        page_size=settings.LISTINGS_PAGE_SIZE,
        timeout=settings.REQUEST_TIMEOUT,
    )
    service = SyncService(client, store, token_provider=oauth, account_store=store)

    logger.info("=" * 60)
    logger.info("StockForge eBay Sync")
    logger.info("=" * 60)
    logger.info(f"Environment: {settings.EBAY_ENVIRONMENT}")
    logger.info(f"Account: {args.account}")
    logger.info(f"Mode: {args.sku and 'single item' or args.mode}")
    logger.info(f"Storage: {'JSON file' if settings.USE_LOCAL_DB else 'SQL database'}")
    logger.info("=" * 60)

    try:
        if args.sku:
            record = await service.sync_item(args.account, args.sku)
            logger.info(f"{record.sku} synced (qty {record.current_qty})")
            return 0

        result = await getattr(service, OPERATIONS[args.mode])(args.account)

        logger.info("=" * 60)
        logger.info("Sync Complete")
        logger.info("=" * 60)
        logger.info(f"Message: {result.message()}")
        for name, count in result.summary().items():
            logger.info(f"{name.capitalize()}: {count}")
        for error in result.errors:
            logger.error(f"Error: {error.sku}: {error.error}")
        logger.info("=" * 60)

        if args.json:
            print(json.dumps(result.model_dump(mode="json"), indent=2))
        return 0 if not result.errors else 1

    except AccountNotAuthenticated as e:
        logger.error(str(e))
        return 2
    except StockForgeError as e:
        logger.error(f"Sync failed: {str(e)}")
        return 1
    finally:
        await client.close()
        await oauth.close()


def run():
    """Console script entry point"""
    exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
