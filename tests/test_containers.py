"""Tests for the container runtime and compose stack control."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from docker.errors import ContainerError, DockerException, NotFound

from wpstack.containers.compose import ComposeStack, detect_compose_command
from wpstack.containers.manager import ContainerRuntime
from wpstack.utils.errors import DockerError, RuntimeUnavailableError


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestDetectComposeCommand:
    """Test compose front-end detection."""

    def test_prefers_plugin(self):
        with patch("subprocess.run", return_value=completed()):
            assert detect_compose_command() == ["docker", "compose"]

    def test_falls_back_to_standalone(self):
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            with patch("shutil.which", return_value="/usr/bin/docker-compose"):
                assert detect_compose_command() == ["docker-compose"]

    def test_neither_available(self):
        with patch("subprocess.run", return_value=completed(returncode=1)):
            with patch("shutil.which", return_value=None):
                with pytest.raises(RuntimeUnavailableError) as exc_info:
                    detect_compose_command()

        assert "docker-compose" in exc_info.value.message


class TestComposeStack:
    """Test compose command construction."""

    @pytest.fixture(autouse=True)
    def setup_stack(self, stack_config):
        self.config = stack_config
        self.stack = ComposeStack(stack_config, compose_command=["docker", "compose"])

    def test_base_command(self, temp_directory):
        assert self.stack.base_command() == [
            "docker",
            "compose",
            "-f",
            self.config.compose_path,
            "--project-directory",
            self.config.project_dir,
        ]

    def test_base_command_with_env_file(self, temp_directory):
        open(self.config.env_path, "w").close()

        assert self.stack.base_command()[-2:] == ["--env-file", self.config.env_path]

    def test_up_services(self):
        with patch("subprocess.run", return_value=completed()) as mock_run:
            self.stack.up("db")

        cmd = mock_run.call_args[0][0]
        assert cmd[-3:] == ["up", "-d", "db"]

    def test_down_failure(self):
        with patch("subprocess.run", return_value=completed(returncode=1, stderr="boom")):
            with pytest.raises(DockerError) as exc_info:
                self.stack.down()

        assert exc_info.value.details == "boom"

    def test_running_services(self):
        with patch("subprocess.run", return_value=completed(stdout="db\nwordpress\n")):
            assert self.stack.running_services() == ["db", "wordpress"]

    def test_exec_passes_secrets_through_environment(self):
        with patch("subprocess.run", return_value=completed()) as mock_run:
            self.stack.exec("db", ["true"], env={"MYSQL_PWD": "secret"})

        cmd = mock_run.call_args[0][0]
        assert cmd[-5:] == ["-T", "-e", "MYSQL_PWD", "db", "true"]
        assert "secret" not in cmd
        assert mock_run.call_args[1]["env"]["MYSQL_PWD"] == "secret"

    def test_exec_check(self):
        with patch("subprocess.run", return_value=completed(returncode=3)):
            with pytest.raises(DockerError):
                self.stack.exec("db", ["false"])

            assert self.stack.exec("db", ["false"], check=False).returncode == 3

    def test_start_database_then_app(self):
        steps = []
        self.stack.up = MagicMock(side_effect=lambda *services: steps.append(("up",) + services))
        health_checker = MagicMock()
        health_checker.wait_until_ready.side_effect = lambda: steps.append(("wait",))

        self.stack.start_database_then_app(health_checker)

        assert steps == [("up", "db"), ("wait",), ("up", "wordpress")]


class TestContainerRuntime:
    """Test volume handling and helper containers."""

    def test_ensure_volume_creates_missing(self, mock_docker_client):
        mock_docker_client.volumes.get.side_effect = NotFound("missing")
        runtime = ContainerRuntime(client=mock_docker_client)

        assert runtime.ensure_volume("db_data") is True
        mock_docker_client.volumes.create.assert_called_once_with(name="db_data")

    def test_ensure_volume_keeps_existing(self, mock_docker_client):
        runtime = ContainerRuntime(client=mock_docker_client)

        assert runtime.ensure_volume("db_data") is False
        mock_docker_client.volumes.create.assert_not_called()

    def test_run_helper_removes_container(self, mock_docker_client):
        mock_docker_client.containers.run.return_value = b"ok\n"
        runtime = ContainerRuntime(client=mock_docker_client)

        output = runtime.run_helper("alpine", ["true"], volumes={"db_data": {"bind": "/volume", "mode": "ro"}})

        assert output == "ok\n"
        assert mock_docker_client.containers.run.call_args[1]["remove"] is True

    def test_run_helper_failure(self, mock_docker_client):
        mock_docker_client.containers.run.side_effect = ContainerError(
            "c1", 2, "tar xzf", "alpine", b"tar: unexpected EOF"
        )
        runtime = ContainerRuntime(client=mock_docker_client)

        with pytest.raises(DockerError) as exc_info:
            runtime.run_helper("alpine", ["tar"], volumes={})

        assert exc_info.value.details == "tar: unexpected EOF"

    def test_daemon_unavailable(self):
        with patch("docker.from_env", side_effect=DockerException("no socket")):
            runtime = ContainerRuntime()

            with pytest.raises(RuntimeUnavailableError):
                runtime.volume_exists("db_data")
