"""
Pytest configuration and shared fixtures for sechecker tests.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Callable

import pytest
from rich.console import Console

from sechecker.domain.exceptions import ModuleError
from sechecker.domain.models import Item, ItemKind, Proof, Severity
from sechecker.domain.policy import PolicyFacts, PolicyType
from sechecker.engine.library import Library
from sechecker.modules.base import BaseModule, Module


# --- Markers ---

def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# --- Test modules ---

class RecordingModule(BaseModule):
    """
    Configurable module that records every callback it receives.

    ``items`` is a list of (item_id, [(severity, text), ...]).
    ``fail_in`` names the callback that should fail ("init" or "run").
    """

    item_kind = ItemKind.TYPE

    def __init__(
        self,
        name: str,
        calls: list[tuple[str, str]],
        requirements: tuple[tuple[str, str], ...] = (),
        dependencies: tuple[str, ...] = (),
        items: list[tuple[Any, list[tuple[Severity, str]]]] | None = None,
        fail_in: str | None = None,
        description: str = "",
    ) -> None:
        super().__init__()
        self.name = name
        self.description = description or f"Test module {name}"
        self.requirements = requirements
        self.dependencies = dependencies
        self.items = items or []
        self.fail_in = fail_in
        self.calls = calls

    def init(self, module: Module, policy: Any) -> Any:
        self.calls.append((self.name, "init"))
        if self.fail_in == "init":
            return 1
        return None

    def run(self, module: Module, policy: Any) -> Any:
        self.calls.append((self.name, "run"))
        if self.fail_in == "run":
            raise ModuleError("run exploded", module=self.name)

        result = self.new_result(module)
        for item_id, proofs in self.items:
            item = Item(item_id=item_id)
            for index, (severity, text) in enumerate(proofs):
                item.add_proof(
                    Proof(index=index, kind=ItemKind.TYPE, text=text, severity=severity)
                )
            result.add_item(item)
        return 0

    def free(self, module: Module) -> None:
        self.calls.append((self.name, "free"))
        super().free(module)


# --- Fixtures: Policy data ---

@pytest.fixture
def binary_policy() -> PolicyFacts:
    """A binary, non-MLS policy on an SELinux-enabled system."""
    return PolicyFacts(
        source="policy.21",
        version=21,
        policy_type=PolicyType.BINARY,
        selinux_enabled=True,
        mls_policy=False,
        mls_system=False,
        collections={"types": ["init_t", "httpd_t", "user_t"]},
    )


@pytest.fixture
def source_policy() -> PolicyFacts:
    """A source MLS policy."""
    return PolicyFacts(
        source="policy.conf",
        version=19,
        policy_type=PolicyType.SOURCE,
        selinux_enabled=False,
        mls_policy=True,
        mls_system=True,
    )


@pytest.fixture
def library(binary_policy: PolicyFacts) -> Library:
    """An empty library over the binary policy."""
    return Library(binary_policy)


# --- Fixtures: Modules ---

@pytest.fixture
def calls() -> list[tuple[str, str]]:
    """Shared callback log for RecordingModule instances."""
    return []


@pytest.fixture
def make_module(calls: list[tuple[str, str]]) -> Callable[..., RecordingModule]:
    """Factory for RecordingModule instances sharing the `calls` log."""

    def factory(name: str, **kwargs: Any) -> RecordingModule:
        return RecordingModule(name, calls, **kwargs)

    return factory


# --- Fixtures: Output ---

@pytest.fixture
def console() -> Console:
    """A plain-text console writing to memory."""
    return Console(file=io.StringIO(), width=200, color_system=None, force_terminal=False)


# --- Fixtures: Files ---

@pytest.fixture
def policy_file(tmp_path: Path) -> Path:
    """A policy fact file on disk."""
    import yaml

    path = tmp_path / "policy.yaml"
    path.write_text(
        yaml.dump(
            {
                "version": 21,
                "policy_type": "binary",
                "selinux_enabled": True,
                "mls_policy": False,
                "collections": {"types": ["init_t", "httpd_t"]},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def fc_file(tmp_path: Path) -> Path:
    """A file_contexts file on disk."""
    path = tmp_path / "file_contexts"
    path.write_text(
        "# system files\n"
        "/bin(/.*)?            system_u:object_r:bin_t\n"
        "/etc/shadow    --     system_u:object_r:shadow_t\n"
        "/proc(/.*)?           <<none>>\n"
        "\n"
        "/var/www(/.*)? -d     system_u:object_r:httpd_sys_content_t:s0\n",
        encoding="utf-8",
    )
    return path
