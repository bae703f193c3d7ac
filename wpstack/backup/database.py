"""Logical dumps and restores of the MariaDB/MySQL database service."""

import gzip
import logging
import os
import shutil
import subprocess
import tempfile
import zlib
from typing import List

from ..config.manager import StackConfig
from ..utils.errors import ArchiveError, ConfigurationError, DatabaseError, NotFoundError
from .artifacts import ArtifactKind, SnapshotArtifact

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

_DUMP_SHIM = 'if command -v mariadb-dump >/dev/null 2>&1; then exec mariadb-dump "$@"; else exec mysqldump "$@"; fi'
_CLIENT_SHIM = 'if command -v mariadb >/dev/null 2>&1; then exec mariadb "$@"; else exec mysql "$@"; fi'

DUMP_OPTIONS = ["--single-transaction", "--quick", "--routines", "--events"]


def _read_stderr(handle) -> str:
    handle.seek(0)
    return handle.read().decode("utf-8", "replace").strip()


class DatabaseSnapshotClient:
    """Dumps the database to SQL and restores it from SQL or from a raw volume archive."""

    def __init__(self, stack, volumes, health_checker, config: StackConfig):
        """
        Initialize database snapshot client.

        Args:
            stack: ComposeStack used to exec into the database service
            volumes: VolumeSnapshotClient for raw volume restores
            health_checker: DatabaseHealthChecker guarding imports
            config: Resolved stack configuration
        """
        self.stack = stack
        self.volumes = volumes
        self.health_checker = health_checker
        self.config = config

    def _require_credentials(self) -> None:
        missing = [
            name
            for name, value in (
                ("MYSQL_DATABASE", self.config.db_name),
                ("MYSQL_USER", self.config.db_user),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Database settings missing: {', '.join(missing)}",
                suggestions=["Set them in .env or in the database section of wpstack.yml"],
            )

    def dump_command(self) -> List[str]:
        return ["sh", "-c", _DUMP_SHIM, "sh", f"-u{self.config.db_user}"] + DUMP_OPTIONS + [self.config.db_name]

    def import_command(self) -> List[str]:
        return ["sh", "-c", _CLIENT_SHIM, "sh", "-h", "127.0.0.1", f"-u{self.config.db_user}", self.config.db_name]

    def dump(self, dest_path: str) -> str:
        """
        Write a consistent logical dump of the configured database.

        The dump runs in a single transaction without locking and includes
        stored routines and scheduled events.

        Args:
            dest_path: Output file; gzip-compressed when it ends in ``.gz``

        Returns:
            str: Path of the written dump

        Raises:
            DatabaseError: If the dump process fails (the partial file is removed)
        """
        self._require_credentials()
        opener = gzip.open if dest_path.endswith(".gz") else open

        with tempfile.TemporaryFile() as stderr:
            process = self.stack.open_exec(
                self.config.db_service,
                self.dump_command(),
                env={"MYSQL_PWD": self.config.db_password},
                stdout=subprocess.PIPE,
                stderr=stderr,
            )
            try:
                with opener(dest_path, "wb") as output:
                    shutil.copyfileobj(process.stdout, output, CHUNK_SIZE)
                process.stdout.close()
                returncode = process.wait()
            except BaseException:
                process.kill()
                process.wait()
                self._remove_partial(dest_path)
                raise

            if returncode != 0:
                self._remove_partial(dest_path)
                raise DatabaseError(
                    f"Database dump failed with exit code {returncode}",
                    details=_read_stderr(stderr) or None,
                )

        return dest_path

    def _remove_partial(self, path: str) -> None:
        if os.path.exists(path):
            os.remove(path)

    def verify_dump(self, artifact: SnapshotArtifact) -> int:
        """
        Read a SQL dump end to end.

        Returns:
            int: Uncompressed size in bytes

        Raises:
            ArchiveError: If the dump is empty, truncated or corrupt
        """
        if not os.path.isfile(artifact.path):
            raise NotFoundError(f"DB file not found: {artifact.path}")

        opener = gzip.open if artifact.is_gzip else open
        size = 0
        try:
            with opener(artifact.path, "rb") as source:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
        except (OSError, EOFError, zlib.error) as e:
            raise ArchiveError(f"Unreadable SQL dump {artifact.path}: {e}") from e

        if size == 0:
            raise ArchiveError(f"SQL dump is empty: {artifact.path}")
        return size

    def restore_sql(self, artifact: SnapshotArtifact) -> None:
        """
        Stream a SQL dump into the running database.

        A failed import is not rolled back.

        Raises:
            DatabaseError: If the database is not ready or the import exits non-zero
        """
        self._require_credentials()
        if not self.health_checker.is_ready():
            raise DatabaseError(
                f"Database service '{self.config.db_service}' is not accepting connections",
                suggestions=["Start the database and wait for it before importing"],
            )

        opener = gzip.open if artifact.is_gzip else open

        with tempfile.TemporaryFile() as stderr:
            process = self.stack.open_exec(
                self.config.db_service,
                self.import_command(),
                env={"MYSQL_PWD": self.config.db_password},
                stdin=subprocess.PIPE,
                stderr=stderr,
            )
            try:
                with opener(artifact.path, "rb") as source:
                    shutil.copyfileobj(source, process.stdin, CHUNK_SIZE)
            except BrokenPipeError:
                logger.debug("Import process closed its input early")
            except BaseException:
                process.kill()
                process.wait()
                raise
            finally:
                try:
                    process.stdin.close()
                except BrokenPipeError:
                    pass
            returncode = process.wait()

            if returncode != 0:
                raise DatabaseError(
                    f"SQL import into '{self.config.db_name}' failed with exit code {returncode}",
                    details=_read_stderr(stderr) or None,
                    suggestions=["The database may be partially imported; restore again before starting the app"],
                )

    def restore_volume(self, artifact: SnapshotArtifact) -> None:
        """Replace the database volume with a raw volume archive taken while the database was stopped."""
        self.volumes.restore(self.config.db_volume, artifact.path)

    def restore(self, artifact: SnapshotArtifact) -> None:
        """Restore from either kind of database artifact."""
        if artifact.kind is ArtifactKind.DATABASE_DUMP:
            self.restore_sql(artifact)
        elif artifact.kind is ArtifactKind.DATABASE_VOLUME:
            self.restore_volume(artifact)
        else:
            raise DatabaseError(f"Not a database artifact: {artifact.path}")
