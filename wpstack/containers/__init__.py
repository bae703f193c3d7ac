"""Container runtime and stack control for wpstack."""

from .compose import ComposeStack, detect_compose_command
from .health import DatabaseHealthChecker
from .manager import ContainerRuntime

__all__ = ["ComposeStack", "ContainerRuntime", "DatabaseHealthChecker", "detect_compose_command"]
