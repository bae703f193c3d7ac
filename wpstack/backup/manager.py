"""Backup workflow for the WordPress stack."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import click

from ..config.manager import StackConfig
from .storage import BackupStorage

logger = logging.getLogger(__name__)


@dataclass
class BackupResult:
    """Files produced by one backup run."""

    stamp: str
    backup_dir: str
    database: str
    files: str
    config_files: List[str] = field(default_factory=list)


class BackupManager:
    """Takes a point-in-time snapshot of the database and the WordPress files volume."""

    def __init__(
        self,
        config: StackConfig,
        stack,
        database,
        volumes,
        health_checker,
        storage: Optional[BackupStorage] = None,
    ):
        """
        Initialize backup manager.

        Args:
            config: Resolved stack configuration
            stack: ComposeStack controlling the services
            database: DatabaseSnapshotClient producing the SQL dump
            volumes: VolumeSnapshotClient archiving the files volume
            health_checker: DatabaseHealthChecker used before dumping
            storage: Backup directory layout
        """
        self.config = config
        self.stack = stack
        self.database = database
        self.volumes = volumes
        self.health_checker = health_checker
        self.storage = storage or BackupStorage(config)

    def _ensure_database_running(self) -> None:
        if not self.stack.is_running(self.config.db_service):
            logger.info("Database service '%s' is not running, starting it", self.config.db_service)
            self.stack.up(self.config.db_service)
        self.health_checker.wait_until_ready()

    def run(self, output_dir: str = "backup") -> BackupResult:
        """
        Run a full backup.

        Steps run one after another: SQL dump, files volume archive, then a
        copy of the compose and env files. Every artifact carries the same
        UTC stamp.

        Args:
            output_dir: Parent directory; a ``<stamp>`` subdirectory is created in it

        Returns:
            BackupResult: Paths of everything written
        """
        stamp = self.storage.new_stamp()
        backup_dir = self.storage.create_backup_dir(output_dir, stamp)
        paths = self.storage.artifact_paths(backup_dir, stamp)

        self._ensure_database_running()

        click.echo(f"==> Dumping database to {paths['database']}")
        self.database.dump(paths["database"])

        click.echo(f"==> Archiving WordPress files to {paths['files']}")
        self.volumes.archive(self.config.files_volume, paths["files"])

        config_files = self.storage.snapshot_config(paths)

        click.echo("==> Done.")
        for line in self.storage.describe_sizes([paths["database"], paths["files"]]):
            click.echo(line)

        click.echo(self.stack.ps().rstrip())

        return BackupResult(
            stamp=stamp,
            backup_dir=backup_dir,
            database=paths["database"],
            files=paths["files"],
            config_files=config_files,
        )
