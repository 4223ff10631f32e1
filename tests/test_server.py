import json

import pytest

from bitbucket_mcp import server as server_module
from bitbucket_mcp.metrics import _metrics_snapshot, _reset_metrics_for_tests
from bitbucket_mcp.models import RepositoryIdentity
from bitbucket_mcp.repository import RepositorySession
from bitbucket_mcp.tools import BitbucketTools


def _tools(remote):
    session = RepositorySession(remote, RepositoryIdentity("acme", "demo"), "main")
    return BitbucketTools(session, ["main"])


@pytest.mark.asyncio
async def test_build_server_registers_three_tools(fake_remote):
    server = server_module.build_server(_tools(fake_remote))

    tools = await server.list_tools()

    assert sorted(tool.name for tool in tools) == ["commitFiles", "listFiles", "readFiles"]
    commit = next(tool for tool in tools if tool.name == "commitFiles")
    assert set(commit.inputSchema["required"]) == {"branchName", "files", "commitMessage"}


def test_tool_wrappers_return_payloads_and_record_metrics(fake_remote):
    _reset_metrics_for_tests()
    fns = server_module._tool_functions(_tools(fake_remote))

    listed = json.loads(fns["listFiles"]("main"))
    read = fns["readFiles"]("main", ["README.md"])

    assert "README.md" in listed
    assert read == [json.dumps({"README.md": "# demo\n"})]
    metrics = _metrics_snapshot()["tools"]
    assert metrics["listFiles"]["calls_total"] == 1
    assert metrics["readFiles"]["errors_total"] == 0


def test_protected_commit_returns_structured_error(fake_remote):
    _reset_metrics_for_tests()
    fns = server_module._tool_functions(_tools(fake_remote))

    payload = json.loads(
        fns["commitFiles"]("main", [{"path": "a.txt", "content": "a"}], "msg")
    )

    assert payload["error"]["error"] == "ProtectedBranchError"
    assert payload["error"]["category"] == "protected_branch"
    assert payload["error"]["code"] == "PROTECTED_BRANCH"
    assert fake_remote.calls == []
    bucket = _metrics_snapshot()["tools"]["commitFiles"]
    assert bucket["errors_total"] == 1
    assert bucket["write_calls_total"] == 1


def test_read_files_wrapper_wraps_error_payload_in_list(fake_remote):
    def broken(repo, name):
        raise RuntimeError("boom")

    fake_remote.get_branch = broken
    fns = server_module._tool_functions(_tools(fake_remote))

    [item] = fns["readFiles"]("main", ["README.md"])
    assert json.loads(item)["error"]["message"] == "boom"
