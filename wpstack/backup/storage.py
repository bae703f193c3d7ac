"""Backup directory layout and configuration snapshots."""

import os
import shutil
from typing import Dict, List, Optional

from ..config.manager import StackConfig
from ..utils.errors import NotFoundError
from .artifacts import make_stamp


def format_bytes(size_bytes: Optional[int]) -> str:
    """Converts bytes to human-readable format."""
    if size_bytes is None or size_bytes < 0:
        return "N/A"
    if size_bytes == 0:
        return "0B"
    size_name = ("B", "K", "M", "G", "T")
    size = float(size_bytes)
    i = 0
    while size >= 1024 and i < len(size_name) - 1:
        size /= 1024.0
        i += 1
    if i == 0:
        return f"{int(size)}B"
    return f"{size:.1f}{size_name[i]}"


class BackupStorage:
    """Lays out one timestamped backup directory per run."""

    def __init__(self, config: StackConfig):
        """
        Initialize backup storage.

        Args:
            config: Resolved stack configuration
        """
        self.config = config

    def new_stamp(self) -> str:
        return make_stamp()

    def create_backup_dir(self, output_dir: str, stamp: str) -> str:
        """Create ``<output_dir>/<stamp>`` and return its absolute path."""
        backup_dir = os.path.abspath(os.path.join(self.config.resolve_path(output_dir), stamp))
        os.makedirs(backup_dir, exist_ok=True)
        return backup_dir

    def artifact_paths(self, backup_dir: str, stamp: str) -> Dict[str, str]:
        """File names of everything one backup run produces."""
        return {
            "database": os.path.join(backup_dir, f"db-{stamp}.sql.gz"),
            "files": os.path.join(backup_dir, f"wpfiles-{stamp}.tar.gz"),
            "compose": os.path.join(backup_dir, f"compose-{stamp}.yml"),
            "env": os.path.join(backup_dir, f"env-{stamp}"),
        }

    def snapshot_config(self, paths: Dict[str, str]) -> List[str]:
        """
        Copy the compose file and the env file used to run this version.

        Returns:
            List[str]: Paths written
        """
        if not os.path.isfile(self.config.compose_path):
            raise NotFoundError(f"Compose file not found: {self.config.compose_path}")

        written = [shutil.copy2(self.config.compose_path, paths["compose"])]

        if os.path.isfile(self.config.env_path):
            written.append(shutil.copy2(self.config.env_path, paths["env"]))
            # Env files hold database credentials
            os.chmod(paths["env"], 0o600)

        return written

    def describe_sizes(self, paths: List[str]) -> List[str]:
        """One ``size  path`` line per existing file."""
        lines = []
        for path in paths:
            size = os.path.getsize(path) if os.path.exists(path) else None
            lines.append(f"   {format_bytes(size):>7}  {path}")
        return lines
