"""Backup artifacts: naming, classification and discovery."""

import glob
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

from ..utils.errors import NotFoundError, SnapshotMismatchError, UsageError, create_error_suggestions

logger = logging.getLogger(__name__)

STAMP_FORMAT = "%Y%m%dT%H%M%SZ"
_STAMP_RE = re.compile(r"(\d{8}T\d{6}Z)")

FILES_PATTERNS = ("wpfiles.tar.gz", "wpfiles-*.tar.gz", "wpfiles.tar", "wpfiles-*.tar")
SQL_PATTERNS = ("db.sql.gz", "db.sql", "db-*.sql.gz", "db-*.sql", "*.sql.gz", "*.sql")
DB_VOLUME_PATTERNS = (
    "db_data.tar.gz",
    "db_data-*.tar.gz",
    "db_data.tar",
    "db_data-*.tar",
    "db*.tar.gz",
    "db*.tar",
)


class ArtifactKind(Enum):
    """What a backup file contains."""

    DATABASE_DUMP = "database_dump"
    DATABASE_VOLUME = "database_volume"
    FILE_VOLUME = "file_volume"

    @property
    def is_database(self) -> bool:
        return self in (ArtifactKind.DATABASE_DUMP, ArtifactKind.DATABASE_VOLUME)


class Compression(Enum):
    NONE = "none"
    GZIP = "gzip"


def make_stamp(now: Optional[datetime] = None) -> str:
    """Format a UTC timestamp the way artifact names carry it."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime(STAMP_FORMAT)


def parse_stamp(name: str) -> Optional[datetime]:
    """Extract the UTC timestamp encoded in an artifact file name."""
    match = _STAMP_RE.search(os.path.basename(name))
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), STAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def detect_compression(path: str) -> Compression:
    """Compression is decided by suffix only."""
    name = path.lower()
    if name.endswith(".gz") or name.endswith(".tgz"):
        return Compression.GZIP
    return Compression.NONE


def _is_sql(name: str) -> bool:
    return name.endswith(".sql") or name.endswith(".sql.gz")


def _is_tar(name: str) -> bool:
    return name.endswith(".tar") or name.endswith(".tar.gz") or name.endswith(".tgz")


@dataclass(frozen=True)
class SnapshotArtifact:
    """A single backup file."""

    kind: ArtifactKind
    path: str
    timestamp: Optional[datetime]
    compression: Compression

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def is_gzip(self) -> bool:
        return self.compression is Compression.GZIP


def classify_artifact(path: str, designation: ArtifactKind) -> SnapshotArtifact:
    """
    Classify a backup file.

    Args:
        path: Artifact path
        designation: Which half of a snapshot the caller is supplying:
            a database kind (either one) or FILE_VOLUME

    Returns:
        SnapshotArtifact: The classified artifact

    Raises:
        UsageError: If the suffix does not fit the designated half
    """
    name = os.path.basename(path).lower()

    if designation.is_database:
        if _is_sql(name):
            kind = ArtifactKind.DATABASE_DUMP
        elif _is_tar(name):
            kind = ArtifactKind.DATABASE_VOLUME
        else:
            raise UsageError(
                f"Cannot infer DB file type: {path}",
                details="Use .sql/.sql.gz for SQL or .tar(.gz) for raw volume.",
            )
    else:
        if not _is_tar(name):
            raise UsageError(
                f"Cannot infer files archive type: {path}",
                details="The WordPress files archive must end in .tar, .tar.gz or .tgz.",
            )
        kind = ArtifactKind.FILE_VOLUME

    return SnapshotArtifact(
        kind=kind,
        path=path,
        timestamp=parse_stamp(path),
        compression=detect_compression(path),
    )


@dataclass(frozen=True)
class SnapshotSet:
    """A database artifact and a files artifact taken at one point in time."""

    database: SnapshotArtifact
    files: SnapshotArtifact
    allow_mismatch: bool = False

    def __post_init__(self):
        if not self.database.kind.is_database:
            raise UsageError(f"Not a database artifact: {self.database.path}")
        if self.files.kind is not ArtifactKind.FILE_VOLUME:
            raise UsageError(f"Not a files artifact: {self.files.path}")

        if self.database.timestamp is None or self.files.timestamp is None:
            logger.warning(
                "Cannot verify that %s and %s come from the same backup (no timestamp in name)",
                self.database.name,
                self.files.name,
            )
        elif self.database.timestamp != self.files.timestamp:
            message = (
                f"Database artifact {self.database.name} and files artifact "
                f"{self.files.name} have different timestamps"
            )
            if not self.allow_mismatch:
                raise SnapshotMismatchError(
                    message,
                    details="Restoring them together would mix two points in time.",
                    suggestions=["Pick artifacts from the same backup", "Pass --allow-mismatch to restore anyway"],
                )
            logger.warning("%s; continuing because mismatches are allowed", message)

    @property
    def is_consistent(self) -> bool:
        return self.database.timestamp is not None and self.database.timestamp == self.files.timestamp

    @property
    def database_mode(self) -> str:
        return "sql" if self.database.kind is ArtifactKind.DATABASE_DUMP else "volume"


class ArchiveLocator:
    """Finds the database and files artifacts inside a backup directory."""

    def __init__(
        self,
        files_patterns: Sequence[str] = FILES_PATTERNS,
        sql_patterns: Sequence[str] = SQL_PATTERNS,
        db_volume_patterns: Sequence[str] = DB_VOLUME_PATTERNS,
    ):
        self.files_patterns = tuple(files_patterns)
        self.sql_patterns = tuple(sql_patterns)
        self.db_volume_patterns = tuple(db_volume_patterns)

    def _check_directory(self, directory: str) -> None:
        if not os.path.isdir(directory):
            raise NotFoundError(f"Backup dir not found: {directory}")

    def _first_match(self, directory: str, patterns: Sequence[str]) -> Optional[str]:
        """First pattern with any match wins; within it the sorted-first file."""
        for pattern in patterns:
            matches = sorted(
                path
                for path in glob.glob(os.path.join(glob.escape(directory), pattern))
                if os.path.isfile(path)
            )
            if matches:
                return matches[0]
        return None

    def find_files_artifact(self, directory: str) -> SnapshotArtifact:
        """Locate the WordPress files archive."""
        self._check_directory(directory)
        path = self._first_match(directory, self.files_patterns)
        if path is None:
            raise NotFoundError(
                f"No WordPress files archive found in {directory}",
                details=f"Looked for: {', '.join(self.files_patterns)}",
                suggestions=create_error_suggestions("artifact_missing", directory=directory),
            )
        return classify_artifact(path, ArtifactKind.FILE_VOLUME)

    def find_database_artifact(self, directory: str) -> SnapshotArtifact:
        """Locate the database artifact, preferring SQL dumps over raw volume archives."""
        self._check_directory(directory)
        path = self._first_match(directory, self.sql_patterns)
        if path is None:
            path = self._first_match(directory, self.db_volume_patterns)
        if path is None:
            raise NotFoundError(
                f"No database artifact found in {directory}",
                details=f"Looked for: {', '.join(self.sql_patterns + self.db_volume_patterns)}",
                suggestions=create_error_suggestions("artifact_missing", directory=directory),
            )
        return classify_artifact(path, ArtifactKind.DATABASE_DUMP)

    def locate(self, directory: str, allow_mismatch: bool = False) -> SnapshotSet:
        """
        Resolve both halves of a snapshot from a directory.

        Args:
            directory: Backup directory
            allow_mismatch: Accept artifacts with different timestamps

        Returns:
            SnapshotSet: The located snapshot
        """
        return SnapshotSet(
            database=self.find_database_artifact(directory),
            files=self.find_files_artifact(directory),
            allow_mismatch=allow_mismatch,
        )

    def resolve(
        self,
        directory: Optional[str] = None,
        db_path: Optional[str] = None,
        files_path: Optional[str] = None,
        allow_mismatch: bool = False,
    ) -> SnapshotSet:
        """
        Combine explicit artifact paths with auto-detection.

        Explicit paths win; a backup directory fills in whatever was not given.

        Raises:
            UsageError: If a half is neither given nor discoverable
            NotFoundError: If a given path or directory does not exist
        """
        if directory:
            self._check_directory(directory)

        if db_path:
            if not os.path.isfile(db_path):
                raise NotFoundError(f"DB file not found: {db_path}")
            database = classify_artifact(db_path, ArtifactKind.DATABASE_DUMP)
        elif directory:
            database = self.find_database_artifact(directory)
        else:
            database = None

        if files_path:
            if not os.path.isfile(files_path):
                raise NotFoundError(f"WP files tar not found: {files_path}")
            files = classify_artifact(files_path, ArtifactKind.FILE_VOLUME)
        elif directory:
            files = self.find_files_artifact(directory)
        else:
            files = None

        if database is None or files is None:
            missing = [label for label, value in (("--db", database), ("--wpfiles", files)) if value is None]
            raise UsageError(
                f"Missing {' and '.join(missing)}",
                details="Give a backup directory or both --db and --wpfiles.",
            )

        return SnapshotSet(database=database, files=files, allow_mismatch=allow_mismatch)
