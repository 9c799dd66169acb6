"""
Filesystem adapter for sechecker.

Loads the data sources a library is built from: a policy fact file
(YAML or JSON) and an optional file_contexts file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from sechecker.domain.exceptions import DataSourceError
from sechecker.domain.policy import FileContextEntry, FileContexts, PolicyFacts
from sechecker.utils.logging import get_logger

logger = get_logger("adapters.fs")

FILE_TYPE_FLAGS = {"--", "-d", "-c", "-b", "-s", "-l", "-p"}
NO_CONTEXT = "<<none>>"


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise DataSourceError(f"File not found: {path}", source=str(path))
    except PermissionError:
        raise DataSourceError(f"Permission denied reading: {path}", source=str(path))
    except OSError as e:
        raise DataSourceError(f"Error reading {path}: {e}", source=str(path)) from e


def load_policy_facts(path: str | Path) -> PolicyFacts:
    """
    Load a policy fact file.

    Raises:
        DataSourceError: If the file cannot be read or is not a valid fact file.
    """
    path = Path(path)
    content = _read_text(path)

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise DataSourceError(f"Invalid policy fact file: {e}", source=str(path)) from e

    facts = parse_policy_facts(data, source=str(path))
    logger.info(
        f"Loaded policy {path} (version {facts.version}, {facts.policy_type.value})"
    )
    return facts


def parse_policy_facts(data: Any, source: str = "<memory>") -> PolicyFacts:
    """Build PolicyFacts from parsed data."""
    if not isinstance(data, dict):
        raise DataSourceError("Policy fact file must contain a mapping", source=source)

    try:
        return PolicyFacts(source=source, **{k: v for k, v in data.items() if k != "source"})
    except ValidationError as e:
        raise DataSourceError(f"Invalid policy facts: {e}", source=source) from e


def load_file_contexts(path: str | Path) -> FileContexts:
    """
    Load a file_contexts file.

    Raises:
        DataSourceError: If the file cannot be read or a line is malformed.
    """
    path = Path(path)
    entries = parse_file_contexts(_read_text(path), source=str(path))
    logger.info(f"Loaded {len(entries)} file context entries from {path}")
    return entries


def parse_file_contexts(content: str, source: str = "<memory>") -> FileContexts:
    """
    Parse file_contexts text.

    Each non-comment line is ``<path regex> [<file type>] <context>``, where
    the context is ``user:role:type[:range]`` or ``<<none>>``.
    """
    entries: list[FileContextEntry] = []

    for lineno, raw in enumerate(content.splitlines(), 1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue

        fields = line.split()
        if len(fields) == 2:
            path, file_type, context = fields[0], None, fields[1]
        elif len(fields) == 3 and fields[1] in FILE_TYPE_FLAGS:
            path, file_type, context = fields
        else:
            raise DataSourceError(f"Malformed file context entry: {raw.strip()!r}", source=source, line=lineno)

        if context == NO_CONTEXT:
            entries.append(FileContextEntry(path=path, file_type=file_type))
            continue

        if len(context.split(":")) < 3:
            raise DataSourceError(f"Malformed security context: {context!r}", source=source, line=lineno)
        entries.append(FileContextEntry(path=path, file_type=file_type, context=context))

    return FileContexts(source=source, entries=tuple(entries))
