"""Docker runtime access for wpstack: volumes and disposable helper containers."""

import logging
from typing import Any, Dict, List, Optional

import docker
from docker.errors import APIError, ContainerError, DockerException, ImageNotFound, NotFound

from ..utils.errors import DockerError, RuntimeUnavailableError, create_error_suggestions

logger = logging.getLogger(__name__)


class ContainerRuntime:
    """Manages Docker volumes and helper containers."""

    def __init__(self, verbose: bool = False, client: Optional[Any] = None):
        """
        Initialize container runtime.

        Args:
            verbose: Whether to enable verbose output
            client: Pre-built Docker client (created from the environment when omitted)
        """
        self.verbose = verbose
        self._client = client

    @property
    def client(self) -> Any:
        """Get Docker client, creating it if necessary."""
        if self._client is None:
            try:
                self._client = docker.from_env()
                # Test connection
                self._client.ping()
            except DockerException as e:
                raise RuntimeUnavailableError(
                    f"Cannot connect to Docker daemon: {e}",
                    suggestions=create_error_suggestions("runtime_unavailable"),
                ) from e

        return self._client

    def volume_exists(self, name: str) -> bool:
        """Check whether a named volume exists."""
        try:
            self.client.volumes.get(name)
            return True
        except NotFound:
            return False
        except APIError as e:
            raise DockerError(f"Failed to inspect volume '{name}': {e}") from e

    def ensure_volume(self, name: str) -> bool:
        """
        Create a named volume if it doesn't exist. Volumes are never removed here.

        Args:
            name: Volume name

        Returns:
            bool: True if the volume was created, False if it already existed
        """
        if self.volume_exists(name):
            logger.debug("Volume '%s' already exists", name)
            return False

        try:
            self.client.volumes.create(name=name)
        except APIError as e:
            raise DockerError(f"Failed to create volume '{name}': {e}") from e

        logger.info("Created volume '%s'", name)
        return True

    def run_helper(self, image: str, command: List[str], volumes: Dict[str, Dict[str, str]]) -> str:
        """
        Run a disposable container to completion and return its output.

        Args:
            image: Image to run
            command: Command and arguments
            volumes: Volume bindings in docker SDK form ``{source: {"bind": ..., "mode": ...}}``

        Returns:
            str: Combined container output

        Raises:
            DockerError: If the container exits non-zero or cannot be started
        """
        self._pull_image_if_needed(image)
        logger.debug("Helper %s: %s", image, " ".join(command))

        try:
            output = self.client.containers.run(
                image=image,
                command=command,
                volumes=volumes,
                remove=True,
                stdout=True,
                stderr=True,
            )
        except ContainerError as e:
            stderr = e.stderr.decode("utf-8", "replace") if isinstance(e.stderr, bytes) else e.stderr
            raise DockerError(
                f"Helper container '{image}' exited with status {e.exit_status}",
                details=(stderr or "").strip() or None,
            ) from e
        except (APIError, ImageNotFound) as e:
            raise DockerError(f"Failed to run helper container '{image}': {e}") from e

        if isinstance(output, bytes):
            return output.decode("utf-8", "replace")
        return output or ""

    def _pull_image_if_needed(self, image: str) -> None:
        """Pull Docker image if not present locally."""
        try:
            self.client.images.get(image)
        except ImageNotFound:
            logger.info("Pulling image '%s'", image)
            try:
                self.client.images.pull(image)
            except APIError as e:
                raise DockerError(f"Failed to pull image '{image}': {e}") from e
