"""Database readiness checking for wpstack."""

import logging
import time
from typing import Callable, List, Optional, Tuple

import click

from ..config.manager import StackConfig
from ..utils.errors import DockerError, ReadinessTimeoutError, create_error_suggestions

logger = logging.getLogger(__name__)

# Prefer the MariaDB client names, fall back to the MySQL ones.
_ADMIN_SHIM = 'if command -v mariadb-admin >/dev/null 2>&1; then exec mariadb-admin "$@"; else exec mysqladmin "$@"; fi'


class DatabaseHealthChecker:
    """Polls the database service until it accepts connections."""

    def __init__(
        self,
        stack,
        config: StackConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize health checker.

        Args:
            stack: ComposeStack used to exec into the database service
            config: Resolved stack configuration (credentials, timeouts)
            clock: Monotonic clock
            sleep: Sleep function
        """
        self.stack = stack
        self.config = config
        self.clock = clock
        self.sleep = sleep

    def _credential_sets(self) -> List[Tuple[str, str]]:
        credentials = []
        if self.config.db_user:
            credentials.append((self.config.db_user, self.config.db_password))
        if self.config.db_root_password:
            credentials.append(("root", self.config.db_root_password))
        return credentials

    def ping_command(self, user: str) -> List[str]:
        return ["sh", "-c", _ADMIN_SHIM, "sh", "ping", "-h", "127.0.0.1", f"-u{user}", "--silent"]

    def is_ready(self) -> bool:
        """
        Probe the database once.

        The application credentials are tried first and the administrative
        credentials second; any zero exit counts as ready.
        """
        for user, password in self._credential_sets():
            try:
                result = self.stack.exec(
                    self.config.db_service,
                    self.ping_command(user),
                    env={"MYSQL_PWD": password},
                    check=False,
                    timeout=30,
                )
            except DockerError as e:
                logger.debug("Readiness check as %s failed: %s", user, e)
                continue
            if result.returncode == 0:
                return True
            logger.debug("Readiness check as %s exited %s", user, result.returncode)
        return False

    def wait_until_ready(self, timeout: Optional[float] = None, poll_interval: Optional[float] = None) -> float:
        """
        Block until the database accepts connections.

        Args:
            timeout: Maximum time to wait in seconds (config default when omitted)
            poll_interval: Delay between checks in seconds

        Returns:
            float: Seconds spent waiting

        Raises:
            ReadinessTimeoutError: If the deadline passes first
        """
        timeout = self.config.readiness_timeout if timeout is None else timeout
        poll_interval = self.config.poll_interval if poll_interval is None else poll_interval

        click.echo("==> Waiting for DB to accept connections", nl=False)
        started = self.clock()
        deadline = started + timeout

        while True:
            if self.is_ready():
                click.echo()
                return self.clock() - started

            now = self.clock()
            if now >= deadline:
                click.echo()
                raise ReadinessTimeoutError(
                    f"Database service '{self.config.db_service}' not ready after {now - started:.0f}s",
                    details=f"Gave up after the {timeout:g}s readiness timeout",
                    suggestions=create_error_suggestions("database_not_ready", service=self.config.db_service),
                )

            click.echo(".", nl=False)
            self.sleep(min(poll_interval, max(deadline - now, 0)))
