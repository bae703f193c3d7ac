"""Configuration validation for wpstack."""

import re
from typing import Any, Dict, List

import jsonschema

from .schemas import STACK_CONFIG_SCHEMA

_HOSTNAME_RE = re.compile(r"^(?=.{1,253}$)([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)(\.[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$")


class ConfigValidator:
    """Validates wpstack configuration files and resolved settings."""

    def validate_stack_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Validate a YAML stack configuration document.

        Args:
            config: Configuration dictionary to validate

        Returns:
            List[str]: List of validation errors (empty if valid)
        """
        errors = []

        validator = jsonschema.Draft7Validator(STACK_CONFIG_SCHEMA)
        for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path)):
            location = ".".join(str(part) for part in error.path)
            if location:
                errors.append(f"{location}: {error.message}")
            else:
                errors.append(f"Schema validation failed: {error.message}")

        ssl_config = config.get("ssl") if isinstance(config, dict) else None
        if isinstance(ssl_config, dict):
            domains = []
            if isinstance(ssl_config.get("primary_domain"), str) and ssl_config["primary_domain"]:
                domains.append(ssl_config["primary_domain"])
            if isinstance(ssl_config.get("alt_domains"), list):
                domains.extend(d for d in ssl_config["alt_domains"] if isinstance(d, str))
            errors.extend(self.validate_domains(domains))

            email = ssl_config.get("email")
            if isinstance(email, str) and email:
                errors.extend(self.validate_email(email))

        return errors

    def validate_domains(self, domains: List[str]) -> List[str]:
        """Validate hostnames used for certificates and server names."""
        errors = []
        seen = set()
        for domain in domains:
            if not _HOSTNAME_RE.match(domain):
                errors.append(f"Invalid domain name: {domain}")
            if domain in seen:
                errors.append(f"Duplicate domain name: {domain}")
            seen.add(domain)
        return errors

    def validate_email(self, email: str) -> List[str]:
        """Validate the certificate contact address."""
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            return [f"Invalid certificate contact email: {email}"]
        return []
