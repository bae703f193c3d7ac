"""Error handling utilities for wpstack."""

import sys
import traceback
from typing import Optional

import click


class WPStackError(Exception):
    """Base exception for wpstack errors."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[list] = None,
    ):
        self.message = message
        self.details = details
        self.suggestions = suggestions or []
        super().__init__(message)


class UsageError(WPStackError):
    """Raised when command-line arguments are missing or inconsistent."""

    pass


class ConfigurationError(WPStackError):
    """Raised when configuration is invalid or missing."""

    pass


class NotFoundError(WPStackError):
    """Raised when a backup directory or artifact cannot be found."""

    pass


class ArchiveError(WPStackError):
    """Raised when an archive is unreadable or contains unsafe members."""

    pass


class SnapshotMismatchError(WPStackError):
    """Raised when the two halves of a snapshot come from different points in time."""

    pass


class DatabaseError(WPStackError):
    """Raised when dump, restore or connectivity to the database fails."""

    pass


class ReadinessTimeoutError(DatabaseError):
    """Raised when the database does not accept connections in time."""

    pass


class CertError(WPStackError):
    """Raised when certificate issuance or challenge verification fails."""

    pass


class RuntimeUnavailableError(WPStackError):
    """Raised when no supported container orchestration command is available."""

    pass


class DockerError(WPStackError):
    """Raised when Docker operations fail."""

    pass


class ErrorHandler:
    """Handles and formats errors for user-friendly display."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def handle_error(self, error: Exception, context: Optional[str] = None) -> None:
        """
        Handle and display error with appropriate formatting.

        Args:
            error: Exception to handle
            context: Optional context about when/where error occurred
        """
        if isinstance(error, WPStackError):
            self._handle_wpstack_error(error, context)
        else:
            self._handle_generic_error(error, context)

    def _handle_wpstack_error(self, error: WPStackError, context: Optional[str]) -> None:
        """Handle wpstack-specific errors."""
        click.echo(f"✗ {error.message}", err=True)

        if context:
            click.echo(f"Context: {context}", err=True)

        if error.details:
            click.echo(f"Details: {error.details}", err=True)

        if error.suggestions:
            click.echo("\nSuggestions:", err=True)
            for suggestion in error.suggestions:
                click.echo(f"  • {suggestion}", err=True)

        if self.verbose:
            click.echo("\nFull traceback:", err=True)
            traceback.print_exc()

    def _handle_generic_error(self, error: Exception, context: Optional[str]) -> None:
        """Handle generic Python exceptions."""
        error_type = type(error).__name__

        if isinstance(error, FileNotFoundError):
            message = f"File not found: {error}"
            suggestions = [
                "Check that the file path is correct",
                "Ensure the file exists and is readable",
            ]
        elif isinstance(error, PermissionError):
            message = f"Permission denied: {error}"
            suggestions = [
                "Check file/directory permissions",
                "Try running with appropriate privileges",
            ]
        else:
            message = f"{error_type}: {error}"
            suggestions = []

        click.echo(f"✗ {message}", err=True)

        if context:
            click.echo(f"Context: {context}", err=True)

        if suggestions:
            click.echo("\nSuggestions:", err=True)
            for suggestion in suggestions:
                click.echo(f"  • {suggestion}", err=True)

        if self.verbose:
            click.echo("\nFull traceback:", err=True)
            traceback.print_exc()

    def exit_with_error(self, error: Exception, context: Optional[str] = None, exit_code: int = 1) -> None:
        """Handle error and exit with specified code."""
        self.handle_error(error, context)
        sys.exit(exit_code)


def create_error_suggestions(error_type: str, **kwargs) -> list:
    """
    Create contextual error suggestions based on error type and context.

    Args:
        error_type: Type of error
        **kwargs: Additional context information (directory, service, host)

    Returns:
        list: List of suggestion strings
    """
    directory = kwargs.get("directory", "the backup directory")
    service = kwargs.get("service", "db")
    host = kwargs.get("host", "the primary domain")

    suggestions = {
        "runtime_unavailable": [
            "Install Docker Engine with the compose plugin, or docker-compose",
            "Check that the Docker daemon is running",
            "Verify Docker permissions for current user",
        ],
        "database_not_ready": [
            f"Check the '{service}' service logs for startup errors",
            "Verify MYSQL_USER / MYSQL_PASSWORD / MYSQL_ROOT_PASSWORD",
            "Increase the readiness timeout (WPSTACK_READINESS_TIMEOUT)",
        ],
        "artifact_missing": [
            f"List the contents of {directory}",
            "Pass the artifacts explicitly with --db and --wpfiles",
            "Artifacts are named db-<stamp>.sql.gz and wpfiles-<stamp>.tar.gz",
        ],
        "challenge_unreachable": [
            "Check nginx/conf.d/wp.conf and the certbot webroot mount",
            f"Verify that DNS for {host} points at this host",
            "Make sure port 80 is reachable from the internet",
        ],
        "configuration_invalid": [
            "Check YAML syntax in the configuration file",
            "Validate configuration values against the documented keys",
        ],
    }

    return suggestions.get(error_type, [])


def format_validation_errors(errors: list) -> str:
    """
    Format validation errors for display.

    Args:
        errors: List of validation error messages

    Returns:
        str: Formatted error message
    """
    if not errors:
        return "No validation errors"

    if len(errors) == 1:
        return f"Validation error: {errors[0]}"

    formatted = "Validation errors:\n"
    for i, error in enumerate(errors, 1):
        formatted += f"  {i}. {error}\n"

    return formatted.strip()
