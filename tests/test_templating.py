import copy

import pytest

from toolbridge_mcp.security import MissingArgumentError
from toolbridge_mcp.templating import (
    normalize_path_prefix,
    placeholders,
    resolve_env_vars,
    resolve_env_vars_in_mapping,
    substitute,
)

HOST = "/workspace"
CONTAINER = "/var/www/html"


def test_placeholders_in_first_seen_order():
    assert placeholders("{cmd} {path} --x {cmd}") == ["cmd", "path"]
    assert placeholders("ls -la") == []


def test_substitute_replaces_all_placeholders():
    assert substitute("drush {cmd} --uri={uri}", {"cmd": "cr", "uri": "site"}) == "drush cr --uri=site"


def test_substitute_stringifies_values():
    assert substitute("{n} {flag}", {"n": 3, "flag": True}) == "3 true"


def test_substitute_missing_argument():
    with pytest.raises(MissingArgumentError) as excinfo:
        substitute("cat {path}", {})
    assert excinfo.value.name == "path"
    assert str(excinfo.value) == "Missing required argument: path"


def test_substitute_does_not_expand_recursively():
    assert substitute("echo {a}", {"a": "{b}", "b": "nope"}) == "echo {b}"


def test_normalize_rewrites_host_prefix():
    result = normalize_path_prefix({"path": "/workspace/app/file.php"}, HOST, CONTAINER)
    assert result == {"path": "/var/www/html/app/file.php"}


def test_normalize_requires_separator_boundary():
    assert normalize_path_prefix("/workspace-other/x", HOST, CONTAINER) == "/workspace-other/x"
    assert normalize_path_prefix("/workspace", HOST, CONTAINER) == "/workspace"


def test_normalize_walks_nested_structures():
    value = {
        "files": ["/workspace/a.php", "relative/b.php", ("/workspace/c",)],
        "opts": {"deep": {"path": "/workspace/d"}, "count": 2, "flag": None},
    }
    assert normalize_path_prefix(value, HOST, CONTAINER) == {
        "files": ["/var/www/html/a.php", "relative/b.php", ("/var/www/html/c",)],
        "opts": {"deep": {"path": "/var/www/html/d"}, "count": 2, "flag": None},
    }


def test_normalize_does_not_mutate_input():
    value = {"paths": ["/workspace/a"], "nested": {"p": "/workspace/b"}}
    original = copy.deepcopy(value)
    result = normalize_path_prefix(value, HOST, CONTAINER)
    assert value == original
    assert result is not value
    assert result["paths"] is not value["paths"]


def test_normalize_is_idempotent():
    once = normalize_path_prefix({"path": "/workspace/app/file.php"}, HOST, CONTAINER)
    assert normalize_path_prefix(once, HOST, CONTAINER) == once


def test_resolve_env_vars_uses_env_then_bridge():
    env = {"SSH_USER": "deploy"}
    assert resolve_env_vars("${SSH_USER}@{DDEV_PROJECT}.ddev.site", env, {"DDEV_PROJECT": "shop"}) == (
        "deploy@shop.ddev.site"
    )


def test_resolve_env_vars_keeps_unknown_placeholders():
    assert resolve_env_vars("${MISSING}-{ALSO_MISSING}", {}, {}) == "${MISSING}-{ALSO_MISSING}"


def test_unresolved_env_placeholder_is_not_taken_from_bridge_vars():
    assert resolve_env_vars("${NAME}", {}, {"NAME": "bridge"}) == "${NAME}"


def test_resolve_env_vars_in_mapping_skips_non_strings():
    result = resolve_env_vars_in_mapping({"url": "http://${HOST}", "timeout": 5}, {"HOST": "mcp"})
    assert result == {"url": "http://mcp", "timeout": 5}
