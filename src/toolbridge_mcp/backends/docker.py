"""Docker backend: runs commands in existing containers via `docker exec`."""

from __future__ import annotations

import logging
import shlex
from typing import Optional, Sequence

from ..security import ExecutionError, ExecutionLimits, OwnershipMismatchError
from .base import ExecutionBackend, ResolutionCache
from .process import ProcessRunner, run_process

logger = logging.getLogger(__name__)

PROJECT_LABEL = "com.ddev.site-name"
WILDCARD_PROJECT = "default-project"
UID_FROM_PATH = "auto:uid-from-path"
DEFAULT_UID_PATH = "/var/www/html"
FALLBACK_USER = "www-data"
DEFAULT_SHELL = "/bin/bash"


class ContainerBackend(ExecutionBackend):
    """Executes commands inside already-running containers.

    The two caches are owned by the backend instance; every command executor
    sharing a backend shares its caches.
    """

    def __init__(
        self,
        limits: Optional[ExecutionLimits] = None,
        docker_group: Optional[str] = "docker",
        runner: Optional[ProcessRunner] = None,
        validation_cache: Optional[ResolutionCache[tuple[str, str], bool]] = None,
        uid_cache: Optional[ResolutionCache[tuple[str, str], str]] = None,
    ) -> None:
        """
        Args:
            limits: Timeout and output bounds for each docker invocation.
            docker_group: Group activated with `sg <group> -c` around docker
                          calls; None or "" runs docker directly.
            runner: Process runner, replaceable in tests.
            validation_cache: (container, project) -> validated.
            uid_cache: (container, path) -> resolved user.
        """
        self.limits = limits or ExecutionLimits()
        self.docker_group = docker_group or None
        self._runner = runner or run_process
        self.validation_cache = validation_cache if validation_cache is not None else ResolutionCache()
        self.uid_cache = uid_cache if uid_cache is not None else ResolutionCache()

    async def _docker(self, args: Sequence[str]) -> str:
        argv = ["docker", *args]
        if self.docker_group:
            # `sg -c` hands the line to a host shell; every element is quoted.
            wrapped = shlex.join(argv)
            argv = ["sg", self.docker_group, "-c", wrapped]
        return await self._runner(argv, self.limits)

    async def execute(
        self,
        target: str,
        command: str,
        user: Optional[str] = None,
        shell: Optional[str] = None,
        working_dir: Optional[str] = None,
    ) -> str:
        args = ["exec"]
        if user:
            args += ["-u", user]
        if working_dir:
            args += ["-w", working_dir]
        args += [target, shell or DEFAULT_SHELL, "-c", command]
        return await self._docker(args)

    async def resolve_user(self, user: Optional[str], target: str) -> Optional[str]:
        """
        Resolves `auto:uid-from-path[:<path>]` to the numeric owner of <path>.

        Lookup failures fall back to www-data and are cached like a success.
        """
        if not user or not user.startswith(UID_FROM_PATH):
            return user

        parts = user.split(":", 2)
        path = parts[2] if len(parts) > 2 and parts[2] else DEFAULT_UID_PATH

        async def _stat_owner() -> str:
            try:
                output = await self.execute(
                    target,
                    f"stat -c %u {shlex.quote(path)}",
                    user="root",
                    shell="/bin/sh",
                )
            except ExecutionError as e:
                logger.warning("Error resolving UID for %s:%s: %s. Falling back to %s", target, path, e, FALLBACK_USER)
                return FALLBACK_USER
            uid = output.strip()
            if not uid:
                logger.warning("Empty UID for %s:%s. Falling back to %s", target, path, FALLBACK_USER)
                return FALLBACK_USER
            logger.info("Resolved %s:%s -> UID %s (cached)", UID_FROM_PATH, path, uid)
            return uid

        return await self.uid_cache.get_or_resolve((target, path), _stat_owner)

    async def validate_target(self, target: str, project: str) -> None:
        """
        Checks the container's project label against `project`.

        Raises:
            OwnershipMismatchError: the container declares a different project.
                A failed inspect (missing container, daemon error) only warns.
        """
        async def _inspect() -> bool:
            logger.debug('Validating container "%s" for project "%s"', target, project)
            fmt = '{{index .Config.Labels "%s"}}' % PROJECT_LABEL
            try:
                label = (await self._docker(["inspect", "--format", fmt, target])).strip()
            except ExecutionError as e:
                logger.warning("Container validation warning: %s", e)
                return True
            if project != WILDCARD_PROJECT and label != project:
                raise OwnershipMismatchError(
                    f'Container "{target}" belongs to "{label}", not "{project}"'
                )
            logger.debug('Container "%s" validated (cached)', target)
            return True

        await self.validation_cache.get_or_resolve((target, project), _inspect)
