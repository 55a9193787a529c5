"""
Persistence for Learn-mode progress.

Components:
- BackgroundRecordSync: fire-and-forget writer used by sessions
- MemoryRecordStore / SqliteRecordStore: local record stores
- PlatformRecordStore: HTTP record store for the study-set platform
"""

from learnloop.sync.background_sync import BackgroundRecordSync, SyncStatus
from learnloop.sync.platform_store import PlatformConfig, PlatformRecordStore
from learnloop.sync.record_store import MemoryRecordStore, SqliteRecordStore, SyncError

__all__ = [
    "BackgroundRecordSync",
    "SyncStatus",
    "MemoryRecordStore",
    "SqliteRecordStore",
    "PlatformConfig",
    "PlatformRecordStore",
    "SyncError",
]
