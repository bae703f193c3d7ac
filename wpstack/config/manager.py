"""Configuration management for wpstack."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import dotenv_values

from ..utils.errors import ConfigurationError, create_error_suggestions, format_validation_errors
from .validator import ConfigValidator

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "wpstack.yml"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class StackConfig:
    """Resolved settings for one managed stack.

    Every component receives this object in its constructor; nothing below
    the CLI reads the process environment.
    """

    project_dir: str = "."
    compose_file: str = "docker-compose.yml"
    env_file: str = ".env"
    db_volume: str = "db_data"
    files_volume: str = "wordpress_data"
    db_service: str = "db"
    app_service: str = "wordpress"
    proxy_service: str = "nginx"
    db_name: str = ""
    db_user: str = ""
    db_password: str = ""
    db_root_password: str = ""
    readiness_timeout: float = 120.0
    poll_interval: float = 2.0
    primary_domain: str = ""
    alt_domains: List[str] = field(default_factory=list)
    certbot_email: str = ""
    certbot_staging: bool = False
    letsencrypt_dir: str = "letsencrypt"
    nginx_dir: str = "nginx"
    certbot_image: str = "certbot/certbot"
    helper_image: str = "alpine"
    app_upstream: str = "http://wordpress:80"

    def __post_init__(self):
        self.project_dir = os.path.abspath(self.project_dir)

    @property
    def domains(self) -> List[str]:
        """Primary domain first, then the alternates, without duplicates."""
        domains = []
        for domain in [self.primary_domain] + list(self.alt_domains):
            if domain and domain not in domains:
                domains.append(domain)
        return domains

    def resolve_path(self, path: str) -> str:
        """Resolve a path relative to the project directory."""
        if os.path.isabs(path):
            return path
        return os.path.join(self.project_dir, path)

    @property
    def compose_path(self) -> str:
        return self.resolve_path(self.compose_file)

    @property
    def env_path(self) -> str:
        return self.resolve_path(self.env_file)

    @property
    def letsencrypt_path(self) -> str:
        return self.resolve_path(self.letsencrypt_dir)

    @property
    def nginx_path(self) -> str:
        return self.resolve_path(self.nginx_dir)


# YAML section/key -> StackConfig field
_YAML_FIELDS = {
    ("compose", "file"): "compose_file",
    ("compose", "env_file"): "env_file",
    ("volumes", "database"): "db_volume",
    ("volumes", "files"): "files_volume",
    ("services", "database"): "db_service",
    ("services", "app"): "app_service",
    ("services", "proxy"): "proxy_service",
    ("database", "name"): "db_name",
    ("database", "user"): "db_user",
    ("database", "password"): "db_password",
    ("database", "root_password"): "db_root_password",
    ("database", "readiness_timeout"): "readiness_timeout",
    ("database", "poll_interval"): "poll_interval",
    ("ssl", "primary_domain"): "primary_domain",
    ("ssl", "alt_domains"): "alt_domains",
    ("ssl", "email"): "certbot_email",
    ("ssl", "staging"): "certbot_staging",
    ("ssl", "letsencrypt_dir"): "letsencrypt_dir",
    ("ssl", "nginx_dir"): "nginx_dir",
    ("ssl", "certbot_image"): "certbot_image",
    ("ssl", "app_upstream"): "app_upstream",
}

# Environment variable -> StackConfig field. Earlier entries win when several
# variables map to the same field.
_ENV_FIELDS = [
    ("DB_VOL", "db_volume"),
    ("DB_VOLUME", "db_volume"),
    ("WP_VOL", "files_volume"),
    ("WP_VOLUME", "files_volume"),
    ("MYSQL_DATABASE", "db_name"),
    ("MYSQL_USER", "db_user"),
    ("MYSQL_PASSWORD", "db_password"),
    ("MYSQL_ROOT_PASSWORD", "db_root_password"),
    ("PRIMARY_DOMAIN", "primary_domain"),
    ("ALT_DOMAINS", "alt_domains"),
    ("CERTBOT_EMAIL", "certbot_email"),
    ("WPSTACK_CERTBOT_STAGING", "certbot_staging"),
    ("WPSTACK_READINESS_TIMEOUT", "readiness_timeout"),
    ("WPSTACK_HELPER_IMAGE", "helper_image"),
]


class ConfigManager:
    """Builds a StackConfig from defaults, wpstack.yml, the env file and the environment."""

    def __init__(self, path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            path: Optional project directory (defaults to current directory)
        """
        self.path = os.path.abspath(path or os.getcwd())
        self.validator = ConfigValidator()

    def get_config_path(self, config_file: Optional[str] = None) -> Optional[str]:
        """Get the YAML configuration file to use, if any."""
        if config_file:
            if not os.path.exists(config_file):
                raise ConfigurationError(f"Configuration file not found: {config_file}")
            return config_file

        default_path = os.path.join(self.path, CONFIG_FILENAME)
        if os.path.exists(default_path):
            return default_path
        return None

    def load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load and validate a YAML configuration file.

        Args:
            config_path: Path to configuration file

        Returns:
            Dict[str, Any]: Parsed configuration

        Raises:
            ConfigurationError: If the file is unreadable or invalid
        """
        try:
            with open(config_path, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in {config_path}",
                details=str(e),
                suggestions=create_error_suggestions("configuration_invalid"),
            ) from e
        except OSError as e:
            raise ConfigurationError(f"Error loading config file {config_path}: {e}") from e

        errors = self.validator.validate_stack_config(config)
        if errors:
            raise ConfigurationError(
                f"Invalid configuration in {config_path}",
                details=format_validation_errors(errors),
                suggestions=create_error_suggestions("configuration_invalid"),
            )

        return config

    def load_env_file(self, env_path: str) -> Dict[str, str]:
        """Read KEY=VALUE pairs from an env file without touching the process environment."""
        if not os.path.exists(env_path):
            logger.debug("No env file at %s", env_path)
            return {}
        values = dotenv_values(env_path)
        return {key: value for key, value in values.items() if value is not None}

    def load(
        self,
        environ: Optional[Mapping[str, str]] = None,
        config_file: Optional[str] = None,
        env_file: Optional[str] = None,
    ) -> StackConfig:
        """
        Resolve the stack configuration.

        Args:
            environ: Process environment mapping supplied by the caller
            config_file: Explicit YAML configuration file
            env_file: Explicit env file (overrides compose.env_file)

        Returns:
            StackConfig: Resolved configuration
        """
        values: Dict[str, Any] = {"project_dir": self.path}

        config_path = self.get_config_path(config_file)
        if config_path:
            document = self.load_config_file(config_path)
            if "project_dir" in document:
                values["project_dir"] = os.path.join(self.path, document["project_dir"])
            if "helper_image" in document:
                values["helper_image"] = document["helper_image"]
            for (section, key), field_name in _YAML_FIELDS.items():
                section_values = document.get(section) or {}
                if key in section_values:
                    values[field_name] = section_values[key]

        if env_file:
            values["env_file"] = env_file

        config = StackConfig(**values)

        env_values = self.load_env_file(config.env_path)
        env_values.update(environ or {})
        self._apply_environment(config, env_values)

        declared = [domain for domain in [config.primary_domain] + list(config.alt_domains) if domain]
        errors = self.validator.validate_domains(declared)
        if config.certbot_email:
            errors.extend(self.validator.validate_email(config.certbot_email))
        if errors:
            raise ConfigurationError(
                "Invalid environment configuration",
                details=format_validation_errors(errors),
                suggestions=create_error_suggestions("configuration_invalid"),
            )

        return config

    def _apply_environment(self, config: StackConfig, env: Mapping[str, str]) -> None:
        """Overlay environment variables onto the configuration."""
        applied = set()
        for variable, field_name in _ENV_FIELDS:
            if field_name in applied:
                continue
            raw = env.get(variable)
            if raw is None or raw == "":
                continue
            setattr(config, field_name, self._coerce(variable, field_name, raw))
            applied.add(field_name)

    def _coerce(self, variable: str, field_name: str, raw: str) -> Any:
        if field_name == "alt_domains":
            return raw.split()
        if field_name == "certbot_staging":
            return raw.strip().lower() in _TRUE_VALUES
        if field_name == "readiness_timeout":
            try:
                timeout = float(raw)
            except ValueError:
                raise ConfigurationError(f"{variable} must be a number of seconds, got {raw!r}")
            if timeout <= 0:
                raise ConfigurationError(f"{variable} must be positive, got {raw!r}")
            return timeout
        return raw
