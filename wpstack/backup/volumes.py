"""Archive and restore of Docker volumes through a disposable helper container."""

import gzip
import logging
import os
import tarfile
import zlib

from ..config.manager import StackConfig
from ..utils.errors import ArchiveError, DockerError, NotFoundError
from .artifacts import Compression, detect_compression

logger = logging.getLogger(__name__)

VOLUME_MOUNT = "/volume"
BACKUP_MOUNT = "/backup"
CHUNK_SIZE = 1024 * 1024


def _unsafe_member(member: tarfile.TarInfo) -> bool:
    name = member.name.replace("\\", "/")
    if name.startswith("/"):
        return True
    if any(part == ".." for part in name.split("/")):
        return True
    if member.islnk():
        target = member.linkname.replace("\\", "/")
        return target.startswith("/") or ".." in target.split("/")
    return False


class VolumeSnapshotClient:
    """Archives a volume into a single tar stream and replaces a volume's contents from one."""

    def __init__(self, runtime, config: StackConfig):
        """
        Initialize volume snapshot client.

        Args:
            runtime: ContainerRuntime used to run helper containers
            config: Resolved stack configuration
        """
        self.runtime = runtime
        self.config = config

    def archive(self, volume: str, dest_path: str) -> str:
        """
        Archive the contents of a volume.

        The archive is rooted at the volume's top level, so restoring is a
        direct extraction into an empty volume.

        Args:
            volume: Source volume name (mounted read-only)
            dest_path: Archive to write; ``.tar.gz``/``.tgz`` is compressed, ``.tar`` is not

        Returns:
            str: Absolute path of the written archive
        """
        dest_path = os.path.abspath(dest_path)
        dest_dir, name = os.path.split(dest_path)
        os.makedirs(dest_dir, exist_ok=True)

        flags = "czf" if detect_compression(name) is Compression.GZIP else "cf"
        self.runtime.run_helper(
            self.config.helper_image,
            ["tar", flags, f"{BACKUP_MOUNT}/{name}", "-C", VOLUME_MOUNT, "."],
            volumes={
                volume: {"bind": VOLUME_MOUNT, "mode": "ro"},
                dest_dir: {"bind": BACKUP_MOUNT, "mode": "rw"},
            },
        )

        if not os.path.exists(dest_path):
            raise DockerError(f"Archive of volume '{volume}' was not written: {dest_path}")

        return dest_path

    def restore_command(self, archive_name: str) -> list:
        """Shell command that empties the volume and then extracts the archive into it."""
        flags = "xzf" if detect_compression(archive_name) is Compression.GZIP else "xf"
        script = (
            f"set -e; find {VOLUME_MOUNT} -mindepth 1 -delete; "
            f'tar {flags} "{BACKUP_MOUNT}/$1" -C {VOLUME_MOUNT}'
        )
        return ["sh", "-c", script, "sh", archive_name]

    def restore(self, volume: str, archive_path: str) -> None:
        """
        Replace the whole contents of a volume with an archive.

        Everything already in the volume is deleted before extraction; restore
        never merges.

        Args:
            volume: Destination volume name
            archive_path: Archive to extract
        """
        if not os.path.isfile(archive_path):
            raise NotFoundError(f"Archive not found: {archive_path}")

        source_dir, name = os.path.split(os.path.abspath(archive_path))
        self.runtime.run_helper(
            self.config.helper_image,
            self.restore_command(name),
            volumes={
                volume: {"bind": VOLUME_MOUNT, "mode": "rw"},
                source_dir: {"bind": BACKUP_MOUNT, "mode": "ro"},
            },
        )

    def verify_archive(self, archive_path: str) -> int:
        """
        Read an archive end to end before anything is overwritten with it.

        Args:
            archive_path: Archive to check

        Returns:
            int: Number of members

        Raises:
            NotFoundError: If the archive does not exist
            ArchiveError: If it is unreadable, truncated, or has unsafe member paths
        """
        if not os.path.isfile(archive_path):
            raise NotFoundError(f"Archive not found: {archive_path}")

        compressed = detect_compression(archive_path) is Compression.GZIP
        if compressed:
            self._verify_gzip_stream(archive_path)

        mode = "r:gz" if compressed else "r:"
        count = 0
        try:
            with tarfile.open(archive_path, mode) as archive:
                for member in archive:
                    if _unsafe_member(member):
                        raise ArchiveError(
                            f"Unsafe member path in {archive_path}: {member.name}",
                            details="Archives must be rooted at the volume's top level.",
                        )
                    count += 1
        except (tarfile.TarError, EOFError, OSError, zlib.error) as e:
            raise ArchiveError(f"Unreadable archive {archive_path}: {e}") from e

        logger.debug("Verified %s (%d members)", archive_path, count)
        return count

    def _verify_gzip_stream(self, archive_path: str) -> None:
        """Decompress the whole file so the gzip trailer and CRC are checked too."""
        try:
            with gzip.open(archive_path, "rb") as source:
                while source.read(CHUNK_SIZE):
                    pass
        except (OSError, EOFError, zlib.error) as e:
            raise ArchiveError(f"Unreadable archive {archive_path}: {e}") from e
