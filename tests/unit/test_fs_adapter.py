"""
Unit tests for the filesystem adapter.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sechecker.adapters.fs import (
    load_file_contexts,
    load_policy_facts,
    parse_file_contexts,
    parse_policy_facts,
)
from sechecker.domain.exceptions import DataSourceError
from sechecker.domain.policy import PolicyType


class TestPolicyFacts:
    """Tests for loading policy fact files."""

    def test_load_yaml(self, policy_file: Path) -> None:
        """A YAML fact file should load into PolicyFacts."""
        facts = load_policy_facts(policy_file)

        assert facts.version == 21
        assert facts.policy_type == PolicyType.BINARY
        assert facts.selinux_enabled is True
        assert facts.source == str(policy_file)
        assert facts.query("types") == ["init_t", "httpd_t"]
        assert facts.query("roles") == []

    def test_load_json(self, tmp_path: Path) -> None:
        """JSON fact files are accepted too."""
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"version": 18, "policy_type": "source", "mls_policy": True}))

        facts = load_policy_facts(path)

        assert facts.policy_type == PolicyType.SOURCE
        assert facts.mls_policy is True

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is a data-source error naming the path."""
        with pytest.raises(DataSourceError) as exc_info:
            load_policy_facts(tmp_path / "nope.yaml")

        assert exc_info.value.source.endswith("nope.yaml")

    def test_not_a_mapping(self) -> None:
        """Facts must be a mapping."""
        with pytest.raises(DataSourceError):
            parse_policy_facts(["version", 21])

    def test_invalid_facts(self) -> None:
        """Invalid fact values are rejected."""
        with pytest.raises(DataSourceError):
            parse_policy_facts({"version": 21, "policy_type": "compiled"})

    def test_source_field_ignored(self) -> None:
        """The source is taken from the caller, not the file."""
        facts = parse_policy_facts({"version": 21, "policy_type": "binary", "source": "x"}, source="real")

        assert facts.source == "real"


class TestFileContexts:
    """Tests for file_contexts parsing."""

    def test_load(self, fc_file: Path) -> None:
        """Entries should parse with their optional file type."""
        contexts = load_file_contexts(fc_file)

        assert len(contexts) == 4
        bin_entry, shadow, proc, www = contexts.entries
        assert bin_entry.file_type is None
        assert bin_entry.context_type == "bin_t"
        assert shadow.file_type == "--"
        assert proc.context is None
        assert proc.context_type is None
        assert www.file_type == "-d"
        assert www.context == "system_u:object_r:httpd_sys_content_t:s0"

    def test_for_type(self, fc_file: Path) -> None:
        """Entries should be found by context type."""
        contexts = load_file_contexts(fc_file)

        assert [e.path for e in contexts.for_type("shadow_t")] == ["/etc/shadow"]

    def test_comments_and_blank_lines(self) -> None:
        """Comments and blank lines are ignored."""
        contexts = parse_file_contexts("# only a comment\n\n   \n/a  u:r:t  # trailing\n")

        assert len(contexts) == 1
        assert contexts.entries[0].context == "u:r:t"

    def test_empty_is_not_none(self) -> None:
        """An empty file gives empty, present file contexts."""
        contexts = parse_file_contexts("")

        assert len(contexts) == 0
        assert contexts is not None

    @pytest.mark.parametrize(
        "line",
        [
            "/only/path",
            "/a -x u:r:t",
            "/a -- u:r:t extra",
            "/a u:r",
        ],
    )
    def test_malformed_line(self, line: str) -> None:
        """Malformed lines are reported with their line number."""
        with pytest.raises(DataSourceError) as exc_info:
            parse_file_contexts(f"/ok u:r:t\n{line}\n", source="fc")

        assert exc_info.value.line == 2
        assert exc_info.value.source == "fc"
