"""Main CLI entry point for wpstack.

This module provides the command-line interface for wpstack, an operations
tool for a Docker Compose WordPress deployment. It includes commands for
backing up and restoring the stack's database and files, starting and
stopping the services, and provisioning TLS certificates for the proxy.

The CLI is built using Click. Every failure exits with status 1, including
argument errors detected by Click itself.
"""

import os
from typing import Any, Dict, Optional

import click

from wpstack import __version__
from wpstack.utils.errors import ErrorHandler, UsageError
from wpstack.utils.logging import setup_logging


class WPStackCommand(click.Command):
    """Command whose argument errors exit with status 1."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = 1
            raise


class WPStackGroup(click.Group):
    """Group whose argument and unknown-command errors exit with status 1."""

    command_class = WPStackCommand
    group_class = type

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = 1
            raise

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as e:
            e.exit_code = 1
            raise


@click.group(cls=WPStackGroup, context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--log-file", help="Log to file in addition to console")
@click.option("--config", "config_file", help="Configuration file (default: ./wpstack.yml)")
@click.option("--env-file", help="Env file with credentials and domains (default: ./.env)")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    log_file: Optional[str],
    config_file: Optional[str],
    env_file: Optional[str],
) -> None:
    """wpstack - Backup, restore and TLS for a WordPress compose stack.

    Run from the directory holding docker-compose.yml. Database credentials,
    volume names and domains are read from .env and the environment.

    Args:
        ctx: Click context object containing shared state
        verbose: Enable verbose output for detailed logging
        log_file: Optional path to log file for additional logging
        config_file: Optional YAML configuration file
        env_file: Optional env file overriding the configured one
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["log_file"] = log_file
    ctx.obj["config_file"] = config_file
    ctx.obj["env_file"] = env_file
    ctx.obj["error_handler"] = ErrorHandler(verbose=verbose)

    # Setup logging
    setup_logging(verbose=verbose, log_file=log_file)


def _get_config(ctx: click.Context):
    """Load the stack configuration once per invocation."""
    if "config" not in ctx.obj:
        from wpstack.config import ConfigManager

        config_manager = ConfigManager(os.getcwd())
        ctx.obj["config"] = config_manager.load(
            os.environ,
            config_file=ctx.obj.get("config_file"),
            env_file=ctx.obj.get("env_file"),
        )
    return ctx.obj["config"]


def _build_services(ctx: click.Context) -> Dict[str, Any]:
    """Wire the stack components for one command."""
    from wpstack.backup import DatabaseSnapshotClient, VolumeSnapshotClient
    from wpstack.containers import ComposeStack, ContainerRuntime, DatabaseHealthChecker

    config = _get_config(ctx)
    verbose = ctx.obj["verbose"]

    stack = ComposeStack(config, verbose=verbose)
    runtime = ContainerRuntime(verbose=verbose)
    health_checker = DatabaseHealthChecker(stack, config)
    volumes = VolumeSnapshotClient(runtime, config)
    database = DatabaseSnapshotClient(stack, volumes, health_checker, config)

    return {
        "config": config,
        "stack": stack,
        "runtime": runtime,
        "health_checker": health_checker,
        "volumes": volumes,
        "database": database,
    }


def _build_letsencrypt(services: Dict[str, Any]):
    from wpstack.ssl import LetsEncryptManager, SSLManager

    ssl_manager = SSLManager(services["config"])
    return LetsEncryptManager(
        services["config"],
        services["stack"],
        services["runtime"],
        ssl_manager=ssl_manager,
    )


def _usage_exit(ctx: click.Context, error: UsageError) -> None:
    """Show the command's usage, then the error, and exit 1."""
    click.echo(ctx.get_help(), err=True)
    click.echo(err=True)
    ctx.obj["error_handler"].exit_with_error(error)


@cli.command()
@click.argument("output_dir", required=False, default="backup")
@click.pass_context
def backup(ctx: click.Context, output_dir: str) -> None:
    """Back up the database and WordPress files.

    Writes OUTPUT_DIR/<stamp>/ (default: backup/) containing a gzipped SQL
    dump, a tar.gz of the WordPress files volume and copies of the compose
    and env files, all named with the same UTC stamp.

    Args:
        ctx: Click context object
        output_dir: Parent directory for the backup
    """
    try:
        from wpstack.backup import BackupManager

        services = _build_services(ctx)
        manager = BackupManager(
            services["config"],
            services["stack"],
            services["database"],
            services["volumes"],
            services["health_checker"],
        )
        manager.run(output_dir)

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Backup")


@cli.command()
@click.argument("backup_dir", required=False, type=click.Path(exists=True, file_okay=False))
@click.option("--dir", "dir_option", metavar="PATH", help="Backup directory to restore from")
@click.option("--wpfiles", metavar="PATH", help="WordPress files archive (.tar, .tar.gz, .tgz)")
@click.option("--db", "db_file", metavar="PATH", help="Database dump (.sql, .sql.gz) or raw volume archive (.tar, .tar.gz)")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option("--ssl-check", is_flag=True, help="Check certificates after restore and re-issue if needed")
@click.option("--force-ssl", is_flag=True, help="Re-issue certificates after restore even if valid")
@click.option("--allow-mismatch", is_flag=True, help="Restore artifacts with different backup stamps")
@click.pass_context
def restore(
    ctx: click.Context,
    backup_dir: Optional[str],
    dir_option: Optional[str],
    wpfiles: Optional[str],
    db_file: Optional[str],
    yes: bool,
    ssl_check: bool,
    force_ssl: bool,
    allow_mismatch: bool,
) -> None:
    """Restore the database and WordPress files from a backup.

    Both archives are read in full before the stack is stopped. The files
    volume is emptied and re-extracted, then the database is restored either
    by importing a SQL dump or by replacing its volume with a raw archive.

    Args:
        ctx: Click context object
        backup_dir: Backup directory (positional form of --dir)
        dir_option: Backup directory
        wpfiles: Explicit WordPress files archive
        db_file: Explicit database artifact
        yes: Skip the confirmation prompt
        ssl_check: Run the certificate check after the restore
        force_ssl: Force certificate re-issue after the restore
        allow_mismatch: Accept artifacts from different backups
    """
    try:
        if backup_dir and dir_option:
            raise UsageError("Give the backup directory either as an argument or with --dir, not both")

        from wpstack.backup import RecoveryManager

        services = _build_services(ctx)
        letsencrypt = None
        if ssl_check or force_ssl:
            letsencrypt = _build_letsencrypt(services)

        manager = RecoveryManager(
            services["config"],
            services["stack"],
            services["runtime"],
            services["database"],
            services["volumes"],
            services["health_checker"],
            letsencrypt=letsencrypt,
        )
        plan = manager.plan(
            directory=backup_dir or dir_option,
            db_path=db_file,
            files_path=wpfiles,
            allow_mismatch=allow_mismatch,
            ssl_check=ssl_check,
            force_ssl=force_ssl,
        )

    except UsageError as e:
        _usage_exit(ctx, e)
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Restore planning")

    for line in manager.describe(plan):
        click.echo(line)

    if not yes and not click.confirm("Proceed?", default=False):
        click.echo("Aborted.")
        ctx.exit(1)

    try:
        manager.execute(plan)
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Restore")


@cli.command()
@click.argument("services", nargs=-1)
@click.pass_context
def up(ctx: click.Context, services: tuple) -> None:
    """Start the stack.

    Without SERVICES the database is started first and the remaining
    services only once it accepts connections.
    """
    try:
        components = _build_services(ctx)
        stack = components["stack"]

        if services:
            stack.up(*services)
        else:
            stack.start_database_then_app(components["health_checker"])
            stack.up()

        click.echo(stack.ps().rstrip())

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Stack startup")


@cli.command()
@click.pass_context
def down(ctx: click.Context) -> None:
    """Stop the stack. Volumes are kept."""
    try:
        _build_services(ctx)["stack"].down()
        click.echo("✓ Stack stopped")
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Stack shutdown")


@cli.command()
@click.pass_context
def ps(ctx: click.Context) -> None:
    """List the stack's services."""
    try:
        click.echo(_build_services(ctx)["stack"].ps().rstrip())
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Service listing")


@cli.command("wait-db")
@click.option("--timeout", type=float, help="Seconds to wait (default: WPSTACK_READINESS_TIMEOUT or 120)")
@click.pass_context
def wait_db(ctx: click.Context, timeout: Optional[float]) -> None:
    """Wait until the database accepts connections."""
    try:
        elapsed = _build_services(ctx)["health_checker"].wait_until_ready(timeout=timeout)
        click.echo(f"✓ Database ready after {elapsed:.1f}s")
    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Database readiness")


@cli.group("ssl")
@click.pass_context
def ssl_group(ctx: click.Context) -> None:
    """Manage TLS certificates for the nginx proxy."""
    pass


@ssl_group.command("check")
@click.pass_context
def ssl_check(ctx: click.Context) -> None:
    """Report the certificate state of every configured domain."""
    try:
        from wpstack.ssl import SSLManager

        config = _get_config(ctx)
        domains = config.domains
        if not domains:
            click.echo("No domains configured (set PRIMARY_DOMAIN and ALT_DOMAINS)")
            return

        click.echo("==> Checking SSL certificates")
        SSLManager(config).check_domains(domains)

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Certificate check")


@ssl_group.command("render")
@click.option("--write", is_flag=True, help="Write nginx/conf.d/wp.conf instead of printing")
@click.pass_context
def ssl_render(ctx: click.Context, write: bool) -> None:
    """Render the nginx proxy configuration for the configured domains."""
    try:
        if write:
            letsencrypt = _build_letsencrypt(_build_services(ctx))
            letsencrypt.ensure_dirs()
            path = letsencrypt.write_proxy_config()
            if path:
                click.echo(f"✓ Wrote {path}")
            return

        from wpstack.ssl import SSLManager

        config = _get_config(ctx)
        click.echo(SSLManager(config).render_proxy_config(config.domains), nl=False)

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Proxy configuration")


@ssl_group.command("issue")
@click.option("--force", is_flag=True, help="Re-issue even if the certificate is still valid")
@click.pass_context
def ssl_issue(ctx: click.Context, force: bool) -> None:
    """Obtain certificates from Let's Encrypt through the proxy's webroot."""
    try:
        services = _build_services(ctx)
        config = services["config"]
        letsencrypt = _build_letsencrypt(services)

        if not letsencrypt.needs_issuance(config.domains, config.certbot_email, force=force):
            return

        if not services["stack"].is_running(config.proxy_service):
            letsencrypt.start_proxy()
        letsencrypt.verify_challenge_path(config.domains[0])

        if letsencrypt.issue(force=force, check_existing=False):
            click.echo("✓ Certificates issued")

    except Exception as e:
        ctx.obj["error_handler"].exit_with_error(e, "Certificate issuance")


if __name__ == "__main__":
    cli()
