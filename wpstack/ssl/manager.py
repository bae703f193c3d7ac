"""Certificate state checks and proxy configuration rendering."""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

import click
from cryptography import x509

from ..config.manager import StackConfig
from ..templates.proxy import get_proxy_config
from ..utils.errors import CertError

logger = logging.getLogger(__name__)

RENEWAL_MARGIN = timedelta(days=30)


class CertState(Enum):
    ABSENT = "absent"
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


@dataclass(frozen=True)
class CertificateRecord:
    """Expiry information read from a certificate file."""

    domain: str
    not_after: datetime
    names: Tuple[str, ...] = field(default_factory=tuple)

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        now = now or datetime.now(timezone.utc)
        return self.not_after - now

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        return self.remaining(now).days

    def state(self, now: Optional[datetime] = None) -> CertState:
        """Valid only while strictly more than the renewal margin remains."""
        remaining = self.remaining(now)
        if remaining <= timedelta(0):
            return CertState.EXPIRED
        if remaining <= RENEWAL_MARGIN:
            return CertState.EXPIRING_SOON
        return CertState.VALID

    def covers(self, domain: str) -> bool:
        return domain == self.domain or domain in self.names


class SSLManager:
    """Reads certificates from the Let's Encrypt directory and renders the proxy config."""

    def __init__(self, config: StackConfig):
        """Initialize SSL manager."""
        self.config = config

    def live_dir(self, domain: str) -> str:
        return os.path.join(self.config.letsencrypt_path, "live", domain)

    def certificate_path(self, domain: str) -> str:
        return os.path.join(self.live_dir(domain), "fullchain.pem")

    def key_path(self, domain: str) -> str:
        return os.path.join(self.live_dir(domain), "privkey.pem")

    def load_record(self, domain: str) -> Optional[CertificateRecord]:
        """
        Read the certificate for a domain.

        Returns:
            Optional[CertificateRecord]: None if there is no certificate file

        Raises:
            CertError: If the file exists but cannot be parsed
        """
        cert_path = self.certificate_path(domain)
        if not os.path.exists(cert_path):
            return None

        try:
            with open(cert_path, "rb") as f:
                cert = x509.load_pem_x509_certificate(f.read())
        except (OSError, ValueError) as e:
            raise CertError(f"Error reading certificate for {domain}", details=str(e)) from e

        try:
            san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
            names = tuple(san.value.get_values_for_type(x509.DNSName))
        except x509.ExtensionNotFound:
            names = ()

        return CertificateRecord(domain=domain, not_after=cert.not_valid_after_utc, names=names)

    def check_expiry(self, domain: str, now: Optional[datetime] = None) -> CertState:
        """Get the current state of a domain's certificate."""
        record = self.load_record(domain)
        if record is None:
            return CertState.ABSENT
        return record.state(now)

    def check_domains(self, domains: List[str], now: Optional[datetime] = None) -> Dict[str, CertState]:
        """
        Check every domain of the set and report one line per domain.

        A domain without its own certificate is judged by the primary
        domain's certificate when that certificate lists it.

        A certificate file that cannot be parsed is reported and counted as
        absent, so the caller goes on to issue a new one.

        Returns:
            Dict[str, CertState]: State per domain, in domain order
        """
        records = {}
        unreadable = set()
        for domain in domains:
            try:
                records[domain] = self.load_record(domain)
            except CertError as e:
                logger.warning("%s: %s", e.message, e.details)
                records[domain] = None
                unreadable.add(domain)

        states = {}
        primary = records[domains[0]] if domains else None

        for domain in domains:
            if domain in unreadable:
                states[domain] = CertState.ABSENT
                click.echo(f"    Error reading certificate for {domain}")
                continue

            record = records[domain]
            if record is None and primary is not None and primary.covers(domain):
                record = primary

            if record is None:
                states[domain] = CertState.ABSENT
                click.echo(f"    Certificate not found for {domain}")
                continue

            state = record.state(now)
            states[domain] = state
            days = record.days_remaining(now)
            if state is CertState.EXPIRED:
                click.echo(f"    Certificate for {domain} is EXPIRED")
            elif state is CertState.EXPIRING_SOON:
                click.echo(f"    Certificate for {domain} expires in {days} days")
            else:
                click.echo(f"    Certificate for {domain} is valid for {days} days")

        return states

    def render_proxy_config(self, domains: List[str], upstream: Optional[str] = None) -> str:
        """
        Render the nginx configuration for a domain set.

        The output depends only on the arguments.

        Raises:
            CertError: If the domain set is empty
        """
        if not domains:
            raise CertError("No domains configured for the proxy")
        return get_proxy_config(domains, upstream or self.config.app_upstream)
