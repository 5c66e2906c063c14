from .changes import ACCEPT_ALL, FieldChange, detect_changes
from .pull import pull_from_ebay
from .push import push_to_ebay
from .resolver import Action, Resolution, resolve_change
from .results import PullResult, PushResult, SmartSyncResult
from .service import SyncService
from .smart import smart_sync

__all__ = [
    "ACCEPT_ALL",
    "Action",
    "FieldChange",
    "PullResult",
    "PushResult",
    "Resolution",
    "SmartSyncResult",
    "SyncService",
    "detect_changes",
    "pull_from_ebay",
    "push_to_ebay",
    "resolve_change",
    "smart_sync",
]
