"""Command-line and environment configuration, plus logging setup."""

import argparse
import logging
import os
import sys
from typing import Literal, Optional, Sequence

from pydantic import BaseModel, Field

from .security import ExecutionLimits, load_execution_limits

# Define environment variable names
ENV_DDEV_PROJECT = "DDEV_PROJECT"
ENV_HOST_PROJECT_ROOT = "HOST_PROJECT_ROOT"
ENV_CONTAINER_PROJECT_ROOT = "CONTAINER_PROJECT_ROOT"
ENV_SSH_USER = "SSH_USER"
ENV_DOCKER_GROUP = "DOCKER_GROUP"

DEFAULT_LOG_FILE = "/tmp/toolbridge-mcp.log"
LOG_FORMAT = "%(asctime)s - toolbridge-mcp - %(levelname)s - %(message)s"

LogLevel = Literal["debug", "info", "warn", "warning", "error"]


class BridgeConfig(BaseModel):
    """Process-wide settings for the bridge."""
    tools_config_path: str
    ddev_project: str = "default-project"
    log_level: LogLevel = "info"
    log_file: Optional[str] = DEFAULT_LOG_FILE
    host_project_root: str = "/workspace"
    container_project_root: str = "/var/www/html"
    ssh_user: Optional[str] = None
    docker_group: Optional[str] = "docker"
    limits: ExecutionLimits = Field(default_factory=ExecutionLimits)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolbridge-mcp",
        description="MCP server exposing tools defined in YAML files.",
        epilog=(
            "Environment variables:\n"
            f"  {ENV_DDEV_PROJECT}            Project name (default: \"default-project\")\n"
            f"  {ENV_HOST_PROJECT_ROOT}       Host project root (default: /workspace)\n"
            f"  {ENV_CONTAINER_PROJECT_ROOT}  Container project root (default: /var/www/html)\n"
            f"  {ENV_SSH_USER}                Default ssh user (default: current user)\n"
            f"  {ENV_DOCKER_GROUP}            Group activated for docker calls, empty to disable (default: docker)\n"
            "  COMMAND_TIMEOUT         Seconds per spawned command (default: 120)\n"
            "  MAX_OUTPUT_BYTES        Output cap per stream (default: 10485760)"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--tools-config", required=True, help="Directory containing YAML tool configuration files")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warn", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path, empty to disable (default: {DEFAULT_LOG_FILE})",
    )
    return parser


def load_bridge_config(argv: Optional[Sequence[str]] = None) -> BridgeConfig:
    """Parses CLI arguments and reads the environment into a BridgeConfig."""
    args = _build_parser().parse_args(argv)

    return BridgeConfig(
        tools_config_path=args.tools_config,
        ddev_project=os.getenv(ENV_DDEV_PROJECT) or "default-project",
        log_level=args.log_level,
        log_file=args.log_file or None,
        host_project_root=os.getenv(ENV_HOST_PROJECT_ROOT) or "/workspace",
        container_project_root=os.getenv(ENV_CONTAINER_PROJECT_ROOT) or "/var/www/html",
        ssh_user=os.getenv(ENV_SSH_USER) or None,
        docker_group=os.getenv(ENV_DOCKER_GROUP, "docker") or None,
        limits=load_execution_limits(),
    )


def configure_logging(level: str = "info", log_file: Optional[str] = None) -> None:
    """
    Sends log records to stderr and, optionally, a file truncated at start-up.

    stdout is left alone: it carries the JSON-RPC stream.
    """
    numeric_level = logging.WARNING if level.lower() == "warn" else getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
        except OSError as e:
            print(f"Warning: cannot open log file {log_file}: {e}", file=sys.stderr)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(numeric_level)
