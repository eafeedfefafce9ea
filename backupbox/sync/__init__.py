"""Backup engine for BackupBox - incremental folder uploads."""

from .comparator import FileComparator, SyncAction, SyncDecision, filter_needing_upload
from .engine import SyncEngine
from .models import BatchResult, ProgressCallback, SyncResult
from .operations import UploadPipeline, encode_upload_body
from .scanner import DirectoryScanner, LocalFile
from .state import FileMeta, MetadataStore, RemoteMetadata

__all__ = [
    "SyncEngine",
    "SyncResult",
    "BatchResult",
    "ProgressCallback",
    "UploadPipeline",
    "encode_upload_body",
    "DirectoryScanner",
    "LocalFile",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "filter_needing_upload",
    "FileMeta",
    "MetadataStore",
    "RemoteMetadata",
]
