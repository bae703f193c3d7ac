"""Pytest configuration and shared fixtures."""

import gzip
import io
import os
import shutil
import tarfile
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID

from wpstack.config.manager import StackConfig

STAMP = "20250102T030405Z"
OTHER_STAMP = "20250203T040506Z"

_STACK_ENV_KEYS = [
    "DB_VOL",
    "DB_VOLUME",
    "WP_VOL",
    "WP_VOLUME",
    "MYSQL_DATABASE",
    "MYSQL_USER",
    "MYSQL_PASSWORD",
    "MYSQL_ROOT_PASSWORD",
    "PRIMARY_DOMAIN",
    "ALT_DOMAINS",
    "CERTBOT_EMAIL",
    "WPSTACK_CERTBOT_STAGING",
    "WPSTACK_READINESS_TIMEOUT",
    "WPSTACK_HELPER_IMAGE",
]


@pytest.fixture
def temp_directory():
    """Create a temporary directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    # Cleanup
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolate_filesystem(temp_directory, monkeypatch):
    """Isolate filesystem operations and stack settings to a temporary directory."""
    monkeypatch.chdir(temp_directory)
    for key in _STACK_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return temp_directory


@pytest.fixture
def stack_config(temp_directory):
    """Resolved configuration for a stack living in the temp directory."""
    return StackConfig(
        project_dir=temp_directory,
        db_name="wordpress",
        db_user="wp",
        db_password="secret",
        db_root_password="rootsecret",
        readiness_timeout=10.0,
        poll_interval=1.0,
        primary_domain="example.org",
        alt_domains=["www.example.org"],
        certbot_email="admin@example.org",
    )


@pytest.fixture
def mock_docker_client():
    """Mock Docker client for testing."""
    client = MagicMock()
    client.ping.return_value = True
    client.containers.run.return_value = b""
    return client


@pytest.fixture
def make_tar():
    """Write a tar archive from a ``{name: bytes}`` mapping."""

    def _make_tar(path, members, compressed=True):
        mode = "w:gz" if compressed else "w"
        with tarfile.open(path, mode) as archive:
            for name, data in members.items():
                info = tarfile.TarInfo(name)
                info.size = len(data)
                archive.addfile(info, io.BytesIO(data))
        return path

    return _make_tar


@pytest.fixture
def make_sql_dump():
    """Write a SQL dump, gzip-compressed when the name ends in .gz."""

    def _make_sql_dump(path, content=b"CREATE TABLE wp_posts (id INT);\n"):
        opener = gzip.open if path.endswith(".gz") else open
        with opener(path, "wb") as f:
            f.write(content)
        return path

    return _make_sql_dump


@pytest.fixture
def backup_directory(temp_directory, make_tar, make_sql_dump):
    """A backup directory as written by the backup command."""
    backup_dir = os.path.join(temp_directory, "backup", STAMP)
    os.makedirs(backup_dir)
    make_sql_dump(os.path.join(backup_dir, f"db-{STAMP}.sql.gz"))
    make_tar(os.path.join(backup_dir, f"wpfiles-{STAMP}.tar.gz"), {"./wp-config.php": b"<?php\n"})
    return backup_dir


@pytest.fixture
def make_certificate(stack_config):
    """Write a self-signed fullchain.pem for a domain into the Let's Encrypt live directory."""

    def _make_certificate(domain, not_after, names=None):
        key = ec.generate_private_key(ec.SECP256R1())
        subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain)])
        not_after = not_after.replace(microsecond=0)
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_after - timedelta(days=90))
            .not_valid_after(not_after)
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName(name) for name in (names or [domain])]),
                critical=False,
            )
        )
        cert = builder.sign(key, hashes.SHA256())

        live_dir = os.path.join(stack_config.letsencrypt_path, "live", domain)
        os.makedirs(live_dir, exist_ok=True)
        cert_path = os.path.join(live_dir, "fullchain.pem")
        with open(cert_path, "wb") as f:
            f.write(cert.public_bytes(Encoding.PEM))
        return cert_path

    return _make_certificate


@pytest.fixture
def now():
    """A fixed point in time for certificate checks."""
    return datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
