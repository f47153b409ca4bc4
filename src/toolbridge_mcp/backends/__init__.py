"""Execution backends for command tools."""

from .base import ExecutionBackend, ResolutionCache
from .docker import ContainerBackend
from .process import run_process
from .ssh import SshBackend

__all__ = ["ExecutionBackend", "ResolutionCache", "ContainerBackend", "SshBackend", "run_process"]
