"""Restore workflow for the WordPress stack."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import click

from ..config.manager import StackConfig
from .artifacts import ArchiveLocator, ArtifactKind, SnapshotSet

logger = logging.getLogger(__name__)


@dataclass
class RestorePlan:
    """A verified snapshot and the options it will be restored with."""

    snapshot: SnapshotSet
    ssl_check: bool = False
    force_ssl: bool = False
    files_members: int = 0
    database_size: int = 0

    @property
    def database_mode(self) -> str:
        return self.snapshot.database_mode


class RecoveryManager:
    """Restores a snapshot into the stack's volumes and restarts the services in order."""

    def __init__(
        self,
        config: StackConfig,
        stack,
        runtime,
        database,
        volumes,
        health_checker,
        letsencrypt=None,
        locator: Optional[ArchiveLocator] = None,
    ):
        """
        Initialize recovery manager.

        Args:
            config: Resolved stack configuration
            stack: ComposeStack controlling the services
            runtime: ContainerRuntime owning the volumes
            database: DatabaseSnapshotClient
            volumes: VolumeSnapshotClient
            health_checker: DatabaseHealthChecker
            letsencrypt: LetsEncryptManager for the optional certificate step
            locator: Artifact discovery
        """
        self.config = config
        self.stack = stack
        self.runtime = runtime
        self.database = database
        self.volumes = volumes
        self.health_checker = health_checker
        self.letsencrypt = letsencrypt
        self.locator = locator or ArchiveLocator()

    def plan(
        self,
        directory: Optional[str] = None,
        db_path: Optional[str] = None,
        files_path: Optional[str] = None,
        allow_mismatch: bool = False,
        ssl_check: bool = False,
        force_ssl: bool = False,
    ) -> RestorePlan:
        """
        Resolve the snapshot and read both archives end to end.

        Nothing in the stack is touched here, so an unreadable archive stops
        the restore before either volume is cleared.

        Returns:
            RestorePlan: The verified plan
        """
        snapshot = self.locator.resolve(directory, db_path, files_path, allow_mismatch=allow_mismatch)

        logger.info("Verifying %s", snapshot.files.path)
        files_members = self.volumes.verify_archive(snapshot.files.path)

        logger.info("Verifying %s", snapshot.database.path)
        if snapshot.database.kind is ArtifactKind.DATABASE_DUMP:
            database_size = self.database.verify_dump(snapshot.database)
        else:
            database_size = self.volumes.verify_archive(snapshot.database.path)

        return RestorePlan(
            snapshot=snapshot,
            ssl_check=ssl_check or force_ssl,
            force_ssl=force_ssl,
            files_members=files_members,
            database_size=database_size,
        )

    def describe(self, plan: RestorePlan) -> List[str]:
        """Plan summary shown before the confirmation prompt."""
        snapshot = plan.snapshot
        lines = [
            "==> Plan:",
            f"   - Restore WordPress files tar -> volume '{self.config.files_volume}'",
            f"   - Restore DB ({plan.database_mode}) -> volume '{self.config.db_volume}'",
            f"   - WP files: {snapshot.files.path}",
            f"   - DB file : {snapshot.database.path}",
        ]
        if plan.database_mode == "volume":
            lines.append(
                "   ! Raw DB volume restore: the archive must have been taken while the database was stopped"
            )
        if not snapshot.is_consistent:
            lines.append("   ! Artifacts are not from the same backup stamp")
        if plan.ssl_check:
            lines.append("   - SSL certificate check and reissuing enabled")
            if plan.force_ssl:
                lines.append("   - Force SSL certificate reissuing")
        return lines

    def execute(self, plan: RestorePlan) -> None:
        """
        Apply a verified plan.

        The stack is stopped first so that nothing writes to the volumes while
        they are replaced. An error at any step aborts the restore and may
        leave the stack down.
        """
        snapshot = plan.snapshot

        self.stack.down()

        for volume in (self.config.files_volume, self.config.db_volume):
            self.runtime.ensure_volume(volume)

        click.echo(f"==> Restoring WordPress files to volume '{self.config.files_volume}'")
        self.volumes.restore(self.config.files_volume, snapshot.files.path)

        if snapshot.database.kind is ArtifactKind.DATABASE_VOLUME:
            click.echo(
                f"==> Restoring DB volume '{self.config.db_volume}' from raw tar (assumed cold/clean backup)"
            )
            self.database.restore_volume(snapshot.database)

            click.echo("==> Starting DB + WordPress")
            self.stack.start_database_then_app(self.health_checker)
        else:
            click.echo("==> Starting DB container to import SQL")
            self.stack.up(self.config.db_service)
            self.health_checker.wait_until_ready()

            click.echo(f"==> Importing SQL into database '{self.config.db_name}'")
            self.database.restore_sql(snapshot.database)

            click.echo("==> Starting WordPress")
            self.stack.up(self.config.app_service)

        if plan.ssl_check:
            if self.letsencrypt is None:
                logger.warning("Certificate check requested but no certificate manager is configured")
            else:
                self.letsencrypt.ensure_certificates(force=plan.force_ssl)

        click.echo("==> Restore complete.")
        click.echo(self.stack.ps().rstrip())
