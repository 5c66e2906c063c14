"""
Configuration module for StockForge eBay sync
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    # eBay OAuth Configuration
    EBAY_CLIENT_ID: str = ""
    EBAY_CLIENT_SECRET: str = ""
    EBAY_RUNAME: str = ""
    EBAY_ENVIRONMENT: str = "sandbox"
    EBAY_SCOPES: List[str] = [
        "https://api.ebay.com/oauth/api_scope",
        "https://api.ebay.com/oauth/api_scope/sell.inventory",
        "https://api.ebay.com/oauth/api_scope/sell.account",
    ]

    # Storage Configuration
    USE_LOCAL_DB: bool = True
    LOCAL_DB_PATH: str = "./data/inventory.json"
    ACCOUNTS_PATH: str = "./data/.ebay-accounts.json"
    DATABASE_URL: str = "sqlite+aiosqlite:///./stockforge.db"

    # Application Settings
    REQUEST_TIMEOUT: int = 30
    LISTINGS_PAGE_SIZE: int = 200
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
