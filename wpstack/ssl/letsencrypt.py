"""Let's Encrypt issuance through certbot's webroot challenge."""

import logging
import os
import secrets
from typing import Dict, List, Optional

import click
import requests

from ..config.manager import StackConfig
from ..utils.errors import CertError, DockerError, create_error_suggestions
from .manager import CertState, SSLManager

logger = logging.getLogger(__name__)

WEBROOT = "/var/www/certbot"
CHALLENGE_PATH = ".well-known/acme-challenge"


class LetsEncryptManager:
    """Drives the proxy and certbot to obtain certificates for the configured domains."""

    def __init__(
        self,
        config: StackConfig,
        stack,
        runtime,
        ssl_manager: Optional[SSLManager] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Let's Encrypt manager.

        Args:
            config: Resolved stack configuration
            stack: ComposeStack running the proxy service
            runtime: ContainerRuntime used to run certbot
            ssl_manager: Certificate reader
            session: HTTP session for the challenge round trip
        """
        self.config = config
        self.stack = stack
        self.runtime = runtime
        self.ssl_manager = ssl_manager or SSLManager(config)
        self.session = session or requests.Session()

    @property
    def proxy_config_path(self) -> str:
        return os.path.join(self.config.nginx_path, "conf.d", "wp.conf")

    @property
    def webroot_path(self) -> str:
        return os.path.join(self.config.nginx_path, "certbot")

    def ensure_dirs(self) -> None:
        os.makedirs(os.path.join(self.config.nginx_path, "conf.d"), exist_ok=True)
        os.makedirs(self.webroot_path, exist_ok=True)
        os.makedirs(self.config.letsencrypt_path, exist_ok=True)

    def write_proxy_config(self) -> Optional[str]:
        """Render the proxy configuration for the configured domains into conf.d."""
        domains = self.config.domains
        if not domains:
            click.echo("==> No domains configured, skipping nginx config generation")
            return None

        click.echo(f"==> Generating nginx config for domains: {' '.join(domains)}")
        content = self.ssl_manager.render_proxy_config(domains)
        with open(self.proxy_config_path, "w", encoding="utf-8") as f:
            f.write(content)
        return self.proxy_config_path

    def start_proxy(self) -> None:
        """Write the proxy config, start the proxy and check its configuration."""
        click.echo("==> Starting/ensuring Nginx is up")
        self.ensure_dirs()
        self.write_proxy_config()
        self.stack.up(self.config.proxy_service)
        self.stack.exec(self.config.proxy_service, ["nginx", "-t"])

    def reload_proxy(self) -> None:
        self.stack.exec(self.config.proxy_service, ["nginx", "-s", "reload"])

    def verify_challenge_path(self, host: str, base_url: str = "http://127.0.0.1") -> None:
        """
        Prove that the challenge path is served on plain HTTP for a host.

        A random token is published in the webroot and fetched back through
        the proxy before certbot is asked to do the same.

        Raises:
            CertError: If the token cannot be fetched back
        """
        click.echo(f"==> Verifying ACME webroot can be served for Host: {host}")
        token = secrets.token_urlsafe(16)
        challenge_dir = os.path.join(self.webroot_path, *CHALLENGE_PATH.split("/"))
        os.makedirs(challenge_dir, exist_ok=True)
        token_path = os.path.join(challenge_dir, token)
        with open(token_path, "w", encoding="utf-8") as f:
            f.write(token)

        try:
            self.reload_proxy()
            url = f"{base_url}/{CHALLENGE_PATH}/{token}"
            try:
                response = self.session.get(url, headers={"Host": host}, timeout=10, allow_redirects=False)
            except requests.RequestException as e:
                raise CertError(
                    "ACME path not reachable.",
                    details=str(e),
                    suggestions=create_error_suggestions("challenge_unreachable", host=host),
                ) from e

            if response.status_code != 200 or response.text.strip() != token:
                raise CertError(
                    "ACME path not reachable.",
                    details=f"GET {url} returned HTTP {response.status_code}",
                    suggestions=create_error_suggestions("challenge_unreachable", host=host),
                )
        finally:
            os.remove(token_path)

        click.echo("    ACME path OK")

    def certbot_args(self, domains: List[str], email: str, force: bool = False) -> List[str]:
        args = [
            "certonly",
            "--webroot",
            "-w",
            WEBROOT,
            "--email",
            email,
            "--agree-tos",
            "--no-eff-email",
            "--non-interactive",
            "--expand",
            "--cert-name",
            domains[0],
        ]
        for domain in domains:
            args.extend(["-d", domain])
        if self.config.certbot_staging:
            args.append("--staging")
        if force:
            args.append("--force-renewal")
        return args

    def _primary_state(self, primary: str) -> CertState:
        try:
            return self.ssl_manager.check_expiry(primary)
        except CertError as e:
            logger.warning("%s: %s", e.message, e.details)
            click.echo(f"    Error reading certificate for {primary}")
            return CertState.ABSENT

    def needs_issuance(
        self,
        domains: List[str],
        email: Optional[str],
        force: bool = False,
        check_existing: bool = True,
    ) -> bool:
        """
        Decide whether certbot should run, reporting the reason when it should not.

        Args:
            domains: Domain set, primary first
            email: Contact address
            force: Re-issue even if the primary certificate is still valid
            check_existing: Skip when the primary certificate is valid

        Returns:
            bool: True if a certificate should be requested
        """
        if not domains:
            click.echo("==> No domains configured, skipping certificate issuance")
            return False

        if not email:
            click.echo("==> No cert email provided (CERTBOT_EMAIL), skipping certificate issuance")
            return False

        if force or not check_existing:
            return True

        primary = domains[0]
        state = self._primary_state(primary)
        if state is CertState.VALID:
            click.echo(f"==> Valid certificate already exists for {primary}; skipping (use --force-ssl to re-issue).")
            return False
        if state is not CertState.ABSENT:
            click.echo(f"==> Certificate for {primary} is invalid or expiring soon, will re-issue")
        return True

    def issue(
        self,
        domains: Optional[List[str]] = None,
        email: Optional[str] = None,
        force: bool = False,
        check_existing: bool = True,
    ) -> bool:
        """
        Obtain a certificate for a domain set.

        Args:
            domains: Domain set, primary first (configured domains when omitted)
            email: Contact address (configured address when omitted)
            force: Pass ``--force-renewal`` to certbot
            check_existing: Skip when the primary certificate is still valid

        Returns:
            bool: True if certbot ran, False if issuance was skipped

        Raises:
            CertError: If certbot fails or leaves no certificate behind
        """
        domains = list(domains or self.config.domains)
        email = email or self.config.certbot_email
        if not self.needs_issuance(domains, email, force=force, check_existing=check_existing):
            return False

        primary = domains[0]
        self.ensure_dirs()
        click.echo(f"==> Running Certbot (webroot) for: {' '.join(domains)}")
        try:
            self.runtime.run_helper(
                self.config.certbot_image,
                self.certbot_args(domains, email, force=force),
                volumes={
                    self.config.letsencrypt_path: {"bind": "/etc/letsencrypt", "mode": "rw"},
                    self.webroot_path: {"bind": WEBROOT, "mode": "rw"},
                },
            )
        except DockerError as e:
            raise CertError("Certificate issuance failed.", details=e.details or e.message) from e

        if not os.path.isfile(self.ssl_manager.certificate_path(primary)):
            raise CertError("Cert issuance appears to have failed.", details=f"No certificate for {primary} after certbot ran")

        click.echo("==> Reloading Nginx")
        self.reload_proxy()
        return True

    def ensure_certificates(self, force: bool = False) -> Dict[str, CertState]:
        """
        Check the configured domains and re-issue when any is not valid.

        Starts the proxy first if it is not running.

        Returns:
            Dict[str, CertState]: State per domain before any re-issue
        """
        click.echo("==> Checking SSL certificates")
        domains = self.config.domains
        if not domains:
            click.echo("==> No domains configured, skipping certificate check")
            return {}

        if not self.stack.is_running(self.config.proxy_service):
            self.start_proxy()

        states = self.ssl_manager.check_domains(domains)
        needs_issue = any(state is not CertState.VALID for state in states.values())

        if needs_issue or force:
            if force:
                click.echo("==> Forcing certificate re-issue")
            else:
                click.echo("==> Certificate issues detected, re-issuing certificates")
            self.verify_challenge_path(domains[0])
            # An alternate domain can be missing while the primary is valid
            self.issue(domains, force=force, check_existing=False)
        else:
            click.echo("==> All certificates are valid")

        return states
