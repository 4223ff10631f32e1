"""Function definitions for the repository tools, plus argument validation."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import jsonschema

from .exceptions import ToolInputValidationError

LIST_FILES = "listFiles"
READ_FILES = "readFiles"
COMMIT_FILES = "commitFiles"

TOOL_NAMES = (LIST_FILES, READ_FILES, COMMIT_FILES)

WRITE_TOOLS = frozenset({COMMIT_FILES})


def _branch_param(description: str, branches: Optional[Sequence[str]]) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "string", "description": description}
    if branches:
        schema["enum"] = list(branches)
    return schema


def function_definitions(branches: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
    """Describe ``listFiles``, ``readFiles`` and ``commitFiles`` for an agent.

    ``branches`` constrains the branch argument of the read tools. Unlike the
    read tools, ``commitFiles`` deliberately carries no branch enum: it takes any
    non-empty name because checkout creates missing branches, so an agent can
    commit to a fresh feature branch.
    """

    return [
        {
            "name": LIST_FILES,
            "description": "List all files in the specified branch.",
            "parameters": {
                "type": "object",
                "properties": {
                    "branchName": _branch_param("The branch to list files from", branches),
                },
                "required": ["branchName"],
            },
        },
        {
            "name": READ_FILES,
            "description": "Read contents of specified files from the specified branch.",
            "parameters": {
                "type": "object",
                "properties": {
                    "branchName": _branch_param("The branch to read files from", branches),
                    "filenames": {
                        "type": "array",
                        "description": "An array of filenames to read",
                        "items": {"type": "string", "description": "A filename"},
                    },
                },
                "required": ["branchName", "filenames"],
            },
        },
        {
            "name": COMMIT_FILES,
            "description": "Modify multiple files and commit them to the specified branch.",
            "parameters": {
                "type": "object",
                "properties": {
                    "branchName": {
                        "type": "string",
                        "minLength": 1,
                        "description": "The branch to commit files to",
                    },
                    "files": {
                        "type": "array",
                        "description": "An array of files to commit",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "description": "The file to commit",
                            "properties": {
                                "path": {
                                    "type": "string",
                                    "description": "The path of the file to commit",
                                },
                                "content": {
                                    "type": "string",
                                    "description": "The content of the file to commit",
                                },
                            },
                            "required": ["path", "content"],
                        },
                    },
                    "commitMessage": {"type": "string", "description": "The commit message"},
                },
                "required": ["branchName", "files", "commitMessage"],
            },
        },
    ]


def find_definition(
    definitions: Sequence[Mapping[str, Any]], tool_name: str
) -> Mapping[str, Any]:
    for definition in definitions:
        if definition.get("name") == tool_name:
            return definition
    raise ToolInputValidationError(
        tool_name, f"Unknown tool. Available tools: {', '.join(TOOL_NAMES)}"
    )


def validate_tool_args(
    definitions: Sequence[Mapping[str, Any]],
    tool_name: str,
    args: Mapping[str, Any],
) -> Dict[str, Any]:
    """Check ``args`` against the tool's parameter schema and return them as a dict.

    Raises ToolInputValidationError describing the first failure.
    """

    schema = find_definition(definitions, tool_name)["parameters"]
    normalized_args = dict(args or {})

    validator_cls = jsonschema.validators.validator_for(schema)
    validator = validator_cls(schema)

    errors = sorted(
        validator.iter_errors(normalized_args),
        key=lambda e: [str(p) for p in e.absolute_path],
    )
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.absolute_path) or None
        raise ToolInputValidationError(tool_name, first.message, field)

    return normalized_args


__all__ = [
    "COMMIT_FILES",
    "LIST_FILES",
    "READ_FILES",
    "TOOL_NAMES",
    "WRITE_TOOLS",
    "find_definition",
    "function_definitions",
    "validate_tool_args",
]
