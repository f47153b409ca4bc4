import logging

import pytest

from toolbridge_mcp.config import DEFAULT_LOG_FILE, configure_logging, load_bridge_config

ENV_VARS = (
    "DDEV_PROJECT",
    "HOST_PROJECT_ROOT",
    "CONTAINER_PROJECT_ROOT",
    "SSH_USER",
    "DOCKER_GROUP",
    "COMMAND_TIMEOUT",
    "MAX_OUTPUT_BYTES",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    config = load_bridge_config(["--tools-config", "/etc/tools"])

    assert config.tools_config_path == "/etc/tools"
    assert config.ddev_project == "default-project"
    assert config.log_level == "info"
    assert config.log_file == DEFAULT_LOG_FILE
    assert config.host_project_root == "/workspace"
    assert config.container_project_root == "/var/www/html"
    assert config.ssh_user is None
    assert config.docker_group == "docker"
    assert config.limits.command_timeout == 120


def test_environment_overrides(clean_env):
    clean_env.setenv("DDEV_PROJECT", "shop")
    clean_env.setenv("HOST_PROJECT_ROOT", "/home/me/shop")
    clean_env.setenv("SSH_USER", "deploy")
    clean_env.setenv("DOCKER_GROUP", "")
    clean_env.setenv("COMMAND_TIMEOUT", "30")

    config = load_bridge_config(["--tools-config", "tools", "--log-level", "debug", "--log-file", ""])

    assert config.ddev_project == "shop"
    assert config.host_project_root == "/home/me/shop"
    assert config.ssh_user == "deploy"
    assert config.docker_group is None
    assert config.log_level == "debug"
    assert config.log_file is None
    assert config.limits.command_timeout == 30


def test_tools_config_is_required(clean_env, capsys):
    with pytest.raises(SystemExit):
        load_bridge_config([])
    assert "--tools-config" in capsys.readouterr().err


def test_invalid_log_level(clean_env):
    with pytest.raises(SystemExit):
        load_bridge_config(["--tools-config", "x", "--log-level", "loud"])


def test_configure_logging_writes_to_stderr_and_file(tmp_path, capsys, restore_logging):
    log_file = tmp_path / "bridge.log"
    log_file.write_text("stale line\n", encoding="utf-8")

    configure_logging("warn", str(log_file))
    logging.getLogger("toolbridge_mcp.test").warning("disk almost full")
    logging.getLogger("toolbridge_mcp.test").info("not shown")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.WARNING
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "toolbridge-mcp - WARNING - disk almost full" in captured.err
    assert "not shown" not in captured.err

    contents = log_file.read_text(encoding="utf-8")
    assert "stale line" not in contents
    assert "disk almost full" in contents


def test_configure_logging_unwritable_file(tmp_path, capsys, restore_logging):
    configure_logging("info", str(tmp_path / "missing-dir" / "bridge.log"))

    assert "Warning: cannot open log file" in capsys.readouterr().err
    assert len(logging.getLogger().handlers) == 1
