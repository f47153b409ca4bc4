"""Reads tool definitions from YAML files."""

import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

TOOL_FILE_PATTERNS = ("*.yml", "*.yaml")


def load_tool_definitions(directory: str) -> dict[str, list[dict[str, Any]]]:
    """
    Collects raw tool definitions from every YAML file in `directory`.

    Files are read in sorted name order and each file's `tools` list in array
    order. A file that is empty, unparsable or lacks a `tools` list is logged
    and skipped.

    Returns:
        Mapping of file name to that file's definitions, in file order.
    """
    root = Path(directory).expanduser().resolve()
    if not root.is_dir():
        logger.error("Tools config directory not found: %s", root)
        return {}

    files = sorted({p for pattern in TOOL_FILE_PATTERNS for p in root.glob(pattern)}, key=lambda p: p.name)
    definitions: dict[str, list[dict[str, Any]]] = {}

    for path in files:
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error("Error loading %s: %s", path.name, e)
            continue
        except OSError as e:
            logger.error("Error reading %s: %s", path.name, e)
            continue

        if not data:
            logger.warning("Empty config file: %s", path.name)
            continue
        tools = data.get("tools") if isinstance(data, dict) else None
        if not isinstance(tools, list):
            logger.error("Missing 'tools' array: %s", path.name)
            continue

        entries = definitions.setdefault(path.name, [])
        for entry in tools:
            if not isinstance(entry, dict):
                logger.warning("Skipping non-mapping tool entry in %s: %r", path.name, entry)
                continue
            entries.append(entry)

    logger.debug("Read %d tool definitions from %d files", sum(len(v) for v in definitions.values()), len(definitions))
    return definitions
