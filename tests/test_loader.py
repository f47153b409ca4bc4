import logging

from toolbridge_mcp.loader import load_tool_definitions


def write(directory, name, text):
    (directory / name).write_text(text, encoding="utf-8")


def test_files_load_in_sorted_order(tmp_path):
    write(tmp_path, "b.yaml", "tools:\n  - name: b1\n  - name: b2\n")
    write(tmp_path, "a.yml", "tools:\n  - name: a1\n")
    write(tmp_path, "notes.txt", "tools:\n  - name: ignored\n")

    definitions = load_tool_definitions(str(tmp_path))

    assert list(definitions) == ["a.yml", "b.yaml"]
    assert [d["name"] for d in definitions["b.yaml"]] == ["b1", "b2"]


def test_bad_files_are_skipped(tmp_path, caplog):
    write(tmp_path, "1-empty.yml", "")
    write(tmp_path, "2-broken.yml", "tools: [unclosed\n")
    write(tmp_path, "3-no-tools.yml", "something_else: true\n")
    write(tmp_path, "4-tools-not-list.yml", "tools: {name: x}\n")
    write(tmp_path, "5-good.yml", "tools:\n  - name: ok\n    container: web\n    command_template: ls\n")

    with caplog.at_level(logging.WARNING, logger="toolbridge_mcp.loader"):
        definitions = load_tool_definitions(str(tmp_path))

    assert definitions == {"5-good.yml": [{"name": "ok", "container": "web", "command_template": "ls"}]}
    messages = [r.getMessage() for r in caplog.records]
    assert "Empty config file: 1-empty.yml" in messages
    assert any(m.startswith("Error loading 2-broken.yml") for m in messages)
    assert "Missing 'tools' array: 3-no-tools.yml" in messages
    assert "Missing 'tools' array: 4-tools-not-list.yml" in messages


def test_non_mapping_entries_are_dropped(tmp_path):
    write(tmp_path, "tools.yml", "tools:\n  - just a string\n  - name: real\n  - 42\n")

    assert load_tool_definitions(str(tmp_path)) == {"tools.yml": [{"name": "real"}]}


def test_missing_directory(tmp_path):
    assert load_tool_definitions(str(tmp_path / "nope")) == {}
