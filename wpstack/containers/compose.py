"""Docker Compose control of the managed stack."""

import logging
import os
import shutil
import subprocess
from typing import Dict, List, Optional

from ..config.manager import StackConfig
from ..utils.errors import DockerError, RuntimeUnavailableError, create_error_suggestions

logger = logging.getLogger(__name__)


def detect_compose_command() -> List[str]:
    """
    Pick the compose front-end available on this host.

    Returns:
        List[str]: ``["docker", "compose"]`` or ``["docker-compose"]``

    Raises:
        RuntimeUnavailableError: If neither is installed
    """
    try:
        result = subprocess.run(
            ["docker", "compose", "version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
        if result.returncode == 0:
            return ["docker", "compose"]
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass

    if shutil.which("docker-compose"):
        return ["docker-compose"]

    raise RuntimeUnavailableError(
        "Neither 'docker compose' nor 'docker-compose' found.",
        suggestions=create_error_suggestions("runtime_unavailable"),
    )


class ComposeStack:
    """Starts, stops and executes commands in the services of the managed stack."""

    def __init__(self, config: StackConfig, compose_command: Optional[List[str]] = None, verbose: bool = False):
        """
        Initialize the stack controller.

        Args:
            config: Resolved stack configuration
            compose_command: Compose front-end to use (detected when omitted)
            verbose: Stream compose output instead of capturing it
        """
        self.config = config
        self.verbose = verbose
        self._compose_command = list(compose_command) if compose_command else None

    @property
    def compose_command(self) -> List[str]:
        """Get the compose command, detecting it on first use."""
        if self._compose_command is None:
            self._compose_command = detect_compose_command()
        return self._compose_command

    def base_command(self) -> List[str]:
        """Compose command bound to this project's compose file and directory."""
        cmd = self.compose_command + [
            "-f",
            self.config.compose_path,
            "--project-directory",
            self.config.project_dir,
        ]
        if os.path.exists(self.config.env_path):
            cmd.extend(["--env-file", self.config.env_path])
        return cmd

    def _run(self, args: List[str], timeout: Optional[int] = 300, capture: bool = True) -> subprocess.CompletedProcess:
        cmd = self.base_command() + args
        logger.debug("Running: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                capture_output=capture,
                text=True,
                timeout=timeout,
                cwd=self.config.project_dir,
            )
        except subprocess.TimeoutExpired:
            raise DockerError(f"Docker Compose '{args[0]}' timed out after {timeout}s")
        except FileNotFoundError as e:
            raise RuntimeUnavailableError(
                f"Compose command not found: {e}",
                suggestions=create_error_suggestions("runtime_unavailable"),
            )

        if result.returncode != 0:
            error_msg = f"Docker Compose '{args[0]}' failed with exit code {result.returncode}"
            raise DockerError(error_msg, details=(result.stderr or "").strip() or None)

        return result

    def down(self) -> None:
        """Stop and remove all services of the stack. Named volumes are kept."""
        self._run(["down"], timeout=120, capture=not self.verbose)

    def up(self, *services: str) -> None:
        """
        Start services in detached mode.

        Args:
            *services: Services to start (all when empty)
        """
        self._run(["up", "-d"] + list(services), timeout=600, capture=not self.verbose)

    def ps(self) -> str:
        """Get the service listing as printed by compose."""
        return self._run(["ps"], timeout=30).stdout

    def running_services(self) -> List[str]:
        """Names of services that are currently running."""
        result = self._run(["ps", "--services", "--status", "running"], timeout=30)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def is_running(self, service: str) -> bool:
        return service in self.running_services()

    def exec_args(self, service: str, command: List[str], env: Optional[Dict[str, str]] = None) -> List[str]:
        """Build the argument list for a non-interactive exec."""
        args = ["exec", "-T"]
        # Values travel through the child environment, not the command line.
        for name in sorted(env or {}):
            args.extend(["-e", name])
        return self.base_command() + args + [service] + list(command)

    def _child_env(self, env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        if not env:
            return None
        child_env = dict(os.environ)
        child_env.update(env)
        return child_env

    def exec(
        self,
        service: str,
        command: List[str],
        env: Optional[Dict[str, str]] = None,
        check: bool = True,
        timeout: Optional[int] = 120,
    ) -> subprocess.CompletedProcess:
        """
        Execute a command in a running service and capture its output.

        Args:
            service: Service name
            command: Command and arguments
            env: Extra environment variables for the command
            check: Raise DockerError on a non-zero exit
            timeout: Timeout in seconds

        Returns:
            subprocess.CompletedProcess: Completed process with text output
        """
        cmd = self.exec_args(service, command, env)
        logger.debug("Running: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=self._child_env(env),
                cwd=self.config.project_dir,
            )
        except subprocess.TimeoutExpired:
            raise DockerError(f"Command in service '{service}' timed out after {timeout}s")

        if check and result.returncode != 0:
            raise DockerError(
                f"Command in service '{service}' failed with exit code {result.returncode}",
                details=(result.stderr or "").strip() or None,
            )

        return result

    def open_exec(
        self,
        service: str,
        command: List[str],
        env: Optional[Dict[str, str]] = None,
        stdin=None,
        stdout=None,
        stderr=subprocess.PIPE,
    ) -> subprocess.Popen:
        """
        Start a command in a running service for streaming input or output.

        The caller owns the returned process and must wait for it.
        """
        cmd = self.exec_args(service, command, env)
        logger.debug("Streaming: %s", " ".join(cmd))
        return subprocess.Popen(
            cmd,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            env=self._child_env(env),
            cwd=self.config.project_dir,
        )

    def start_database_then_app(self, health_checker) -> None:
        """Start the database, wait until it accepts connections, then start the app."""
        self.up(self.config.db_service)
        health_checker.wait_until_ready()
        self.up(self.config.app_service)
