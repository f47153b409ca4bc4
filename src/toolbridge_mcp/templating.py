"""Placeholder substitution and path rewriting for tool arguments."""

import json
import logging
import os
import re
from typing import Any, Mapping, Optional

from .security import MissingArgumentError

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")
ENV_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)\}")
BRIDGE_PLACEHOLDER_RE = re.compile(r"(?<!\$)\{(\w+)\}")


def placeholders(template: str) -> list[str]:
    """Names referenced by `{name}` placeholders, in first-seen order."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_RE.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value)
    return str(value)


def substitute(template: str, args: Mapping[str, Any]) -> str:
    """
    Replaces every `{name}` in `template` with `args[name]`.

    Substituted values are not scanned again, so a value that itself looks like
    a placeholder is inserted literally.

    Raises:
        MissingArgumentError: for the first placeholder absent from `args`.
    """
    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in args:
            raise MissingArgumentError(key)
        return _stringify(args[key])

    return PLACEHOLDER_RE.sub(_replace, template)


def normalize_path_prefix(value: Any, host_root: str, container_root: str) -> Any:
    """
    Rewrites host paths to container paths anywhere inside `value`.

    Strings starting with `host_root + "/"` get that root swapped for
    `container_root`; lists, tuples and mappings are walked recursively and
    rebuilt, so the input is never modified.
    """
    prefix = host_root + "/"

    def _normalize(v: Any) -> Any:
        if isinstance(v, str):
            if v.startswith(prefix):
                return container_root + v[len(host_root):]
            return v
        if isinstance(v, Mapping):
            return {k: _normalize(item) for k, item in v.items()}
        if isinstance(v, (list, tuple)):
            return type(v)(_normalize(item) for item in v)
        return v

    return _normalize(value)


def resolve_env_vars(
    template: str,
    env: Optional[Mapping[str, str]] = None,
    bridge_vars: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Resolves `${VAR}` from the environment, then `{VAR}` from bridge variables.

    Unknown or empty variables leave the placeholder in place.
    """
    env = os.environ if env is None else env
    bridge_vars = bridge_vars or {}

    def _from_env(match: re.Match) -> str:
        value = env.get(match.group(1))
        if not value:
            logger.warning("Environment variable not found: %s, keeping placeholder", match.group(1))
            return match.group(0)
        return value

    def _from_bridge(match: re.Match) -> str:
        value = bridge_vars.get(match.group(1))
        if not value:
            logger.warning("Bridge variable not found: %s, keeping placeholder", match.group(1))
            return match.group(0)
        return value

    result = ENV_PLACEHOLDER_RE.sub(_from_env, template)
    return BRIDGE_PLACEHOLDER_RE.sub(_from_bridge, result)


def resolve_env_vars_in_mapping(
    mapping: Mapping[str, Any],
    env: Optional[Mapping[str, str]] = None,
    bridge_vars: Optional[Mapping[str, str]] = None,
) -> dict[str, Any]:
    """Applies resolve_env_vars to each string value; other values pass through."""
    return {
        key: resolve_env_vars(value, env, bridge_vars) if isinstance(value, str) else value
        for key, value in mapping.items()
    }
