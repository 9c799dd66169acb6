"""
Policy and file-context data handles.

The engine only reads the handful of policy facts used to gate modules;
everything else is exposed to modules through ``query()`` and is opaque
to the engine. Both handles are frozen and shared read-only by every
module for the lifetime of a library.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class PolicyType(str, Enum):
    """Whether the policy was loaded from source or a compiled binary."""

    SOURCE = "source"
    BINARY = "binary"


@runtime_checkable
class PolicyHandle(Protocol):
    """Read-only view of a loaded policy."""

    @property
    def version(self) -> int: ...

    @property
    def policy_type(self) -> PolicyType: ...

    @property
    def selinux_enabled(self) -> bool: ...

    @property
    def mls_policy(self) -> bool: ...

    @property
    def mls_system(self) -> bool: ...

    def query(self, collection: str) -> list[Any]:
        """Return the entries of a named policy collection (types, roles, ...)."""
        ...


class PolicyFacts(BaseModel):
    """
    Policy summary loaded from a fact file.

    Collections hold whatever entity listings the modules need, keyed by
    collection name, e.g. ``{"types": [...], "allow_rules": [...]}``.
    """

    model_config = ConfigDict(frozen=True)

    source: str = Field(default="<memory>", description="Where the policy was loaded from")
    version: int = Field(..., ge=0, description="Policy version")
    policy_type: PolicyType = Field(..., description="source or binary")
    selinux_enabled: bool = Field(default=False, description="SELinux enabled on the system")
    mls_policy: bool = Field(default=False, description="Policy contains MLS components")
    mls_system: bool = Field(default=False, description="System runs with MLS enabled")
    collections: dict[str, tuple[Any, ...]] = Field(
        default_factory=dict, description="Named entity collections for modules"
    )

    def query(self, collection: str) -> list[Any]:
        return list(self.collections.get(collection, ()))


class FileContextEntry(BaseModel):
    """One line of a file_contexts file."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1, description="Path regular expression")
    file_type: str | None = Field(
        default=None, description="File type flag such as -- or -d; None matches all"
    )
    context: str | None = Field(
        default=None, description="Security context, None for <<none>>"
    )

    @property
    def context_type(self) -> str | None:
        """Type field of the context (user:role:type[:range])."""
        if self.context is None:
            return None
        parts = self.context.split(":")
        return parts[2] if len(parts) >= 3 else None


class FileContexts(BaseModel):
    """Ordered file-context entries loaded alongside the policy."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(default="<memory>", description="Where the entries were loaded from")
    entries: tuple[FileContextEntry, ...] = Field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)

    def for_type(self, type_name: str) -> list[FileContextEntry]:
        return [entry for entry in self.entries if entry.context_type == type_name]
