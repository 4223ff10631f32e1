from __future__ import annotations

import importlib
import logging

import pytest


def _reload_config(monkeypatch, env: dict[str, str | None]):
    import bitbucket_mcp.config as config

    for key, value in env.items():
        if value is None:
            monkeypatch.delenv(key, raising=False)
        else:
            monkeypatch.setenv(key, value)

    return importlib.reload(config)


@pytest.fixture(autouse=True)
def _restore_config(monkeypatch):
    yield
    monkeypatch.undo()
    import bitbucket_mcp.config as config

    importlib.reload(config)


def test_protected_branches_parse_comma_list(monkeypatch):
    config = _reload_config(
        monkeypatch, {"BITBUCKET_PROTECTED_BRANCHES": " main, release ,,develop "}
    )
    assert config.BITBUCKET_PROTECTED_BRANCHES == frozenset({"main", "release", "develop"})


def test_defaults_without_environment(monkeypatch):
    config = _reload_config(
        monkeypatch,
        {
            "BITBUCKET_PROTECTED_BRANCHES": None,
            "BITBUCKET_BASE_BRANCH": None,
            "BITBUCKET_WORKSPACE": None,
            "BITBUCKET_PAGE_LEN": None,
        },
    )
    assert config.BITBUCKET_PROTECTED_BRANCHES == frozenset()
    assert config.BITBUCKET_BASE_BRANCH == "main"
    assert config.BITBUCKET_WORKSPACE is None
    assert config.BITBUCKET_PAGE_LEN == 100


def test_blank_values_fall_back_to_defaults(monkeypatch):
    config = _reload_config(
        monkeypatch, {"BITBUCKET_BASE_BRANCH": "   ", "BITBUCKET_WORKSPACE": "\t"}
    )
    assert config.BITBUCKET_BASE_BRANCH == "main"
    assert config.BITBUCKET_WORKSPACE is None


@pytest.mark.parametrize(
    "name, expected",
    [
        (None, logging.INFO),
        ("debug", logging.DEBUG),
        ("DETAILED", 15),
        ("chat", 25),
        ("30", 30),
        ("bogus", logging.INFO),
    ],
)
def test_resolve_log_level(name, expected):
    from bitbucket_mcp.config import _resolve_log_level

    assert _resolve_log_level(name) == expected


def test_custom_levels_are_installed():
    import bitbucket_mcp.config  # noqa: F401

    logger = logging.getLogger("bitbucket_mcp.test")
    assert callable(getattr(logger, "chat"))
    assert callable(getattr(logger, "detailed"))
    assert logging.getLevelName(25) == "CHAT"
