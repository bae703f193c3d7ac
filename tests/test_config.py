"""Tests for configuration management."""

import os

import pytest
import yaml

from wpstack.config.manager import ConfigManager, StackConfig
from wpstack.config.validator import ConfigValidator
from wpstack.utils.errors import ConfigurationError


def write_yaml(directory, document, name="wpstack.yml"):
    path = os.path.join(directory, name)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(document, f)
    return path


def write_env(directory, content, name=".env"):
    path = os.path.join(directory, name)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


class TestStackConfig:
    """Test the resolved configuration object."""

    def test_defaults(self, temp_directory):
        config = StackConfig(project_dir=temp_directory)

        assert config.db_volume == "db_data"
        assert config.files_volume == "wordpress_data"
        assert config.db_service == "db"
        assert config.app_service == "wordpress"
        assert config.readiness_timeout == 120.0
        assert config.compose_path == os.path.join(temp_directory, "docker-compose.yml")
        assert config.domains == []

    def test_domains_primary_first_without_duplicates(self):
        config = StackConfig(primary_domain="example.org", alt_domains=["www.example.org", "example.org"])

        assert config.domains == ["example.org", "www.example.org"]

    def test_absolute_paths_kept(self, temp_directory):
        config = StackConfig(project_dir=temp_directory, letsencrypt_dir="/etc/letsencrypt")

        assert config.letsencrypt_path == "/etc/letsencrypt"


class TestConfigManager:
    """Test configuration loading and precedence."""

    def test_load_without_files(self, temp_directory):
        config = ConfigManager().load({})

        assert os.path.samefile(config.project_dir, temp_directory)
        assert config.db_name == ""

    def test_yaml_overrides_defaults(self, temp_directory):
        write_yaml(
            temp_directory,
            {
                "services": {"database": "mariadb", "app": "wp"},
                "volumes": {"files": "wp_files"},
                "database": {"readiness_timeout": 300},
                "ssl": {"primary_domain": "example.org", "alt_domains": ["www.example.org"]},
                "helper_image": "busybox",
            },
        )

        config = ConfigManager(temp_directory).load({})

        assert config.db_service == "mariadb"
        assert config.app_service == "wp"
        assert config.files_volume == "wp_files"
        assert config.readiness_timeout == 300
        assert config.helper_image == "busybox"
        assert config.domains == ["example.org", "www.example.org"]

    def test_env_file_overrides_yaml(self, temp_directory):
        write_yaml(temp_directory, {"volumes": {"database": "from_yaml"}})
        write_env(temp_directory, "DB_VOLUME=from_env\nMYSQL_DATABASE=wordpress\nMYSQL_USER=wp\n")

        config = ConfigManager(temp_directory).load({})

        assert config.db_volume == "from_env"
        assert config.db_name == "wordpress"
        assert config.db_user == "wp"

    def test_environment_overrides_env_file(self, temp_directory):
        write_env(temp_directory, "MYSQL_PASSWORD=from_file\n")

        config = ConfigManager(temp_directory).load({"MYSQL_PASSWORD": "from_environ"})

        assert config.db_password == "from_environ"

    def test_short_volume_names_win(self, temp_directory):
        config = ConfigManager(temp_directory).load({"DB_VOL": "short", "DB_VOLUME": "long", "WP_VOLUME": "files"})

        assert config.db_volume == "short"
        assert config.files_volume == "files"

    def test_alt_domains_split_on_whitespace(self, temp_directory):
        config = ConfigManager(temp_directory).load(
            {"PRIMARY_DOMAIN": "example.org", "ALT_DOMAINS": "www.example.org  blog.example.org"}
        )

        assert config.domains == ["example.org", "www.example.org", "blog.example.org"]

    def test_staging_flag(self, temp_directory):
        config = ConfigManager(temp_directory).load({"WPSTACK_CERTBOT_STAGING": "yes"})

        assert config.certbot_staging is True

    def test_explicit_env_file(self, temp_directory):
        write_env(temp_directory, "MYSQL_USER=other\n", name="prod.env")

        config = ConfigManager(temp_directory).load({}, env_file="prod.env")

        assert config.db_user == "other"
        assert config.env_path == os.path.join(temp_directory, "prod.env")

    def test_invalid_timeout(self, temp_directory):
        with pytest.raises(ConfigurationError):
            ConfigManager(temp_directory).load({"WPSTACK_READINESS_TIMEOUT": "soon"})

        with pytest.raises(ConfigurationError):
            ConfigManager(temp_directory).load({"WPSTACK_READINESS_TIMEOUT": "0"})

    def test_unknown_yaml_key(self, temp_directory):
        write_yaml(temp_directory, {"volumes": {"uploads": "x"}})

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(temp_directory).load({})

        assert "volumes" in exc_info.value.details

    def test_invalid_yaml_syntax(self, temp_directory):
        with open(os.path.join(temp_directory, "wpstack.yml"), "w") as f:
            f.write("volumes: [unclosed\n")

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(temp_directory).load({})

        assert "Invalid YAML" in exc_info.value.message

    def test_explicit_config_missing(self, temp_directory):
        with pytest.raises(ConfigurationError):
            ConfigManager(temp_directory).load({}, config_file="missing.yml")

    def test_invalid_domain_from_environment(self, temp_directory):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(temp_directory).load({"PRIMARY_DOMAIN": "not a domain"})

        assert "Invalid domain name" in exc_info.value.details

    def test_duplicate_alternate_domain(self, temp_directory):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(temp_directory).load({"PRIMARY_DOMAIN": "example.org", "ALT_DOMAINS": "www.example.org example.org"})

        assert "Duplicate domain name: example.org" in exc_info.value.details

    def test_invalid_email(self, temp_directory):
        with pytest.raises(ConfigurationError):
            ConfigManager(temp_directory).load({"CERTBOT_EMAIL": "nobody"})


class TestConfigValidator:
    """Test validation rules."""

    def setup_method(self):
        """Setup test environment."""
        self.validator = ConfigValidator()

    def test_valid_document(self):
        errors = self.validator.validate_stack_config(
            {"compose": {"file": "compose.yml"}, "ssl": {"email": "admin@example.org", "staging": True}}
        )

        assert errors == []

    def test_wrong_types(self):
        errors = self.validator.validate_stack_config({"database": {"readiness_timeout": -1}, "ssl": {"staging": "no"}})

        assert len(errors) == 2
        assert any(error.startswith("database.readiness_timeout") for error in errors)

    def test_duplicate_domains(self):
        errors = self.validator.validate_domains(["example.org", "example.org"])

        assert errors == ["Duplicate domain name: example.org"]
