"""TLS certificate handling for the stack's reverse proxy."""

from .letsencrypt import LetsEncryptManager
from .manager import CertificateRecord, CertState, SSLManager

__all__ = ["CertState", "CertificateRecord", "LetsEncryptManager", "SSLManager"]
