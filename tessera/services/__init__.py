"""
Services package for Tessera.
"""

from .splitter import ChunkRange, count_chunks, split_chunks, upload_progress
from .storage import UploadSource, PathSource, BytesSource, save_upload
from .store import JobStateStore, get_store
from .uploader import ChunkUploader
from .channel import ProgressChannel, ProgressSubscription, SubscriptionState
from .orchestrator import UploadOrchestrator, get_orchestrator

__all__ = [
    "ChunkRange",
    "count_chunks",
    "split_chunks",
    "upload_progress",
    "UploadSource",
    "PathSource",
    "BytesSource",
    "save_upload",
    "JobStateStore",
    "get_store",
    "ChunkUploader",
    "ProgressChannel",
    "ProgressSubscription",
    "SubscriptionState",
    "UploadOrchestrator",
    "get_orchestrator",
]
