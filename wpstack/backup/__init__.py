"""Snapshot and restore of the stack's database and WordPress files."""

from .artifacts import ArchiveLocator, ArtifactKind, Compression, SnapshotArtifact, SnapshotSet, classify_artifact
from .database import DatabaseSnapshotClient
from .manager import BackupManager, BackupResult
from .recovery import RecoveryManager, RestorePlan
from .storage import BackupStorage
from .volumes import VolumeSnapshotClient

__all__ = [
    "ArchiveLocator",
    "ArtifactKind",
    "BackupManager",
    "BackupResult",
    "BackupStorage",
    "Compression",
    "DatabaseSnapshotClient",
    "RecoveryManager",
    "RestorePlan",
    "SnapshotArtifact",
    "SnapshotSet",
    "VolumeSnapshotClient",
    "classify_artifact",
]
