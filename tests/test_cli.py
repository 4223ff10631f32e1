import importlib
import json
from types import SimpleNamespace

import pytest

from bitbucket_mcp.exceptions import UsageError


@pytest.mark.parametrize("argv", [["--version"], ["-h"], []])
def test_main_basic_cli(argv, capsys):
    cli = importlib.import_module("cli")
    exit_code = cli.main(argv)

    # argparse raises SystemExit for help; main returns that exit code instead.
    assert exit_code == 0
    out, err = capsys.readouterr()
    assert out.strip() != ""
    assert err == ""


def test_version_reads_pyproject(tmp_path):
    cli = importlib.import_module("cli")
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text('[project]\nname = "x"\nversion = "9.9.9"\n', encoding="utf-8")

    assert cli._load_project_version(pyproject) == "9.9.9"
    assert cli._load_project_version(tmp_path / "missing.toml") == "0.0.0"


def test_version_prefers_installed_metadata(capsys, monkeypatch):
    cli = importlib.import_module("cli")
    seen = []

    def version(name):
        seen.append(name)
        return "1.2.3"

    monkeypatch.setattr(cli.metadata, "version", version)

    assert cli.main(["--version"]) == 0
    out, _ = capsys.readouterr()
    assert out.strip() == "1.2.3"
    assert seen == ["bitbucket-mcp"]


def test_version_falls_back_to_pyproject_when_not_installed(capsys, monkeypatch):
    cli = importlib.import_module("cli")

    def version(name):
        raise cli.metadata.PackageNotFoundError(name)

    monkeypatch.setattr(cli.metadata, "version", version)
    monkeypatch.setattr(cli, "_load_project_version", lambda: "4.5.6")

    assert cli.main(["--version"]) == 0
    out, _ = capsys.readouterr()
    assert out.strip() == "4.5.6"


def _fake_main(monkeypatch, tools):
    fake_main = SimpleNamespace(tools_from_env=lambda: tools)
    monkeypatch.setitem(importlib.import_module("sys").modules, "main", fake_main)


def test_list_files_command_prints_json(capsys, monkeypatch):
    cli = importlib.import_module("cli")
    calls = []

    def list_files(branch):
        calls.append(branch)
        return json.dumps(["a.txt"])

    _fake_main(monkeypatch, SimpleNamespace(list_files=list_files))

    assert cli.main(["list-files", "feature-x"]) == 0
    out, _ = capsys.readouterr()
    assert json.loads(out) == ["a.txt"]
    assert calls == ["feature-x"]


def test_read_command_prints_one_line_per_file(capsys, monkeypatch):
    cli = importlib.import_module("cli")
    tools = SimpleNamespace(
        read_files=lambda branch, names: [json.dumps({n: "x"}) for n in names]
    )
    _fake_main(monkeypatch, tools)

    assert cli.main(["read", "main", "a.txt", "b.txt"]) == 0
    out, _ = capsys.readouterr()
    assert out.splitlines() == ['{"a.txt": "x"}', '{"b.txt": "x"}']


def test_usage_error_is_reported(capsys, monkeypatch):
    cli = importlib.import_module("cli")

    def tools_from_env():
        raise UsageError("BITBUCKET_WORKSPACE and BITBUCKET_REPOSITORY must be set")

    monkeypatch.setitem(
        importlib.import_module("sys").modules,
        "main",
        SimpleNamespace(tools_from_env=tools_from_env),
    )

    assert cli.main(["branches"]) == 1
    _, err = capsys.readouterr()
    assert "BITBUCKET_WORKSPACE" in err
