"""
Request and response schemas for the HTTP API
"""
from typing import Optional, Any, Dict, List
from pydantic import BaseModel, Field


class SyncResponse(BaseModel):
    """Response model for sync operations"""
    success: bool
    message: str
    summary: Dict[str, int] = Field(default_factory=dict)
    details: Dict[str, Any] = Field(default_factory=dict)
    execution_time: float
    error: Optional[str] = None


class ConnectRequest(BaseModel):
    """Start the OAuth consent flow for a new or existing account"""
    account_name: str = "eBay Account"
    account_id: Optional[str] = None


class ConnectResponse(BaseModel):
    auth_url: str
    state: str


class AccountInfo(BaseModel):
    account_id: str
    name: str
    authenticated: bool
    added_at: Optional[str] = None
    last_sync: Optional[str] = None


class InventoryEdit(BaseModel):
    """Local edit of an inventory item"""
    current_qty: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None


class HistoryResponse(BaseModel):
    sku: str
    current_qty: int
    history: List[Dict[str, Any]]
