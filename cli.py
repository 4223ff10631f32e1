from __future__ import annotations

import argparse
import json
import sys
from importlib import metadata
from pathlib import Path

DIST_NAME = "bitbucket-mcp"


def _load_project_version(pyproject_path: Path | None = None) -> str:
    """Best-effort loader for the project version from pyproject.toml.

    Avoids importing the server module (and the MCP SDK) just to answer
    `--version`.
    """
    if pyproject_path is None:
        pyproject_path = Path(__file__).with_name("pyproject.toml")

    try:
        import tomllib  # Python 3.11+
    except ImportError:  # pragma: no cover
        return "0.0.0"

    try:
        data = tomllib.loads(pyproject_path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return "0.0.0"

    project = data.get("project") or {}
    version = project.get("version")
    if isinstance(version, str) and version.strip():
        return version.strip()
    return "0.0.0"


def _project_version() -> str:
    """Installed distribution version, or pyproject.toml for a source checkout."""

    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return _load_project_version()


def _tools():
    # Lazy import so `--version` works without configuration.
    import main as server_main

    return server_main.tools_from_env()


def _run_branches() -> int:
    for name in _tools().session.list_branches():
        print(name)
    return 0


def _run_list_files(branch: str) -> int:
    print(_tools().list_files(branch))
    return 0


def _run_read(branch: str, filenames: list[str]) -> int:
    for item in _tools().read_files(branch, filenames):
        print(item)
    return 0


def _run_definitions() -> int:
    print(json.dumps(_tools().function_definitions(), indent=2))
    return 0


def _run_serve(transport: str) -> int:
    import main as server_main

    server_main.run(transport=transport)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="bitbucket-mcp",
        description="Bitbucket repository tools for agents.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the bitbucket-mcp version and exit.",
    )

    subparsers = parser.add_subparsers(dest="command")
    serve = subparsers.add_parser("serve", help="Serve the tools over MCP.")
    serve.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
    )
    subparsers.add_parser("branches", help="List the repository's branches.")
    list_files = subparsers.add_parser("list-files", help="List files on a branch.")
    list_files.add_argument("branch")
    read = subparsers.add_parser("read", help="Read files from a branch.")
    read.add_argument("branch")
    read.add_argument("filenames", nargs="+")
    subparsers.add_parser("definitions", help="Print the tool function definitions.")

    if argv is None:
        argv = sys.argv[1:]

    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        # Return the exit code instead of raising when used as a library function.
        return int(getattr(exc, "code", 1) or 0)

    if args.version and not args.command:
        print(_project_version())
        return 0

    from bitbucket_mcp.exceptions import BitbucketAPIError, UsageError

    try:
        if args.command == "serve":
            return _run_serve(args.transport)
        if args.command == "branches":
            return _run_branches()
        if args.command == "list-files":
            return _run_list_files(args.branch)
        if args.command == "read":
            return _run_read(args.branch, args.filenames)
        if args.command == "definitions":
            return _run_definitions()
    except (UsageError, BitbucketAPIError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
