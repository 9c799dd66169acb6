"""
Domain models for sechecker.

This module contains the evidence data model every check module writes
into: Proof, Item and Result, together with the closed enumerations they
are tagged with (Severity, ItemKind) and the output-format bitmask.

Evidence models are Pydantic v2 for validation and serialization.
"""

from __future__ import annotations

from enum import Enum, IntFlag
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sechecker.domain.exceptions import DuplicateItemError


class Severity(str, Enum):
    """Evidence strength level, NONE through DANGER."""

    NONE = "NONE"
    MINIMAL = "MINIMAL"
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    DANGER = "DANGER"

    @classmethod
    def ordered(cls) -> list[Severity]:
        return [cls.NONE, cls.MINIMAL, cls.LOW, cls.MODERATE, cls.HIGH, cls.DANGER]

    @classmethod
    def from_level(cls, level: int) -> Severity:
        """Map a numeric level (0 = NONE .. 5 = DANGER) to a severity."""
        if isinstance(level, bool) or not isinstance(level, int):
            raise ValueError(f"Severity level must be an integer, got {level!r}")
        order = cls.ordered()
        if not 0 <= level < len(order):
            raise ValueError(f"Unknown severity level: {level}")
        return order[level]

    @property
    def level(self) -> int:
        return Severity.ordered().index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level < other.level

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level <= other.level

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level > other.level

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level >= other.level


class ItemKind(str, Enum):
    """Kind of policy entity an item or proof refers to."""

    TYPE = "type"
    ATTRIBUTE = "attribute"
    ROLE = "role"
    USER = "user"
    OBJECT_CLASS = "object_class"
    COMMON_PERM = "common_perm"
    PERMISSION = "permission"
    BOOLEAN = "boolean"
    INITIAL_SID = "initial_sid"
    AV_ACCESS = "av_access"  # allow / neverallow
    AV_AUDIT = "av_audit"  # auditallow / dontaudit
    TE_RULE = "te_rule"  # type_transition / type_change / type_member
    ROLE_ALLOW = "role_allow"
    ROLE_TRANSITION = "role_transition"
    RANGE_TRANSITION = "range_transition"
    SENSITIVITY = "sensitivity"
    CATEGORY = "category"
    FS_USE = "fs_use"
    GENFS_CON = "genfs_con"
    PORT_CON = "port_con"
    NETIF_CON = "netif_con"
    NODE_CON = "node_con"
    FC_ENTRY = "fc_entry"  # file_contexts entry, not part of the policy itself


class OutputFormat(IntFlag):
    """
    Report verbosity bitmask.

    The four base flags select report components; the named combinations
    are the modes accepted in profiles and settings.
    """

    NONE = 0x00
    STATS = 0x01
    LIST = 0x02
    PROOF = 0x04
    HEADER = 0x08
    QUIET = STATS | HEADER
    SHORT = QUIET | LIST
    LONG = QUIET | PROOF
    VERBOSE = SHORT | LONG

    @classmethod
    def parse(cls, value: OutputFormat | int | str) -> OutputFormat:
        """
        Convert a mode name ("short", "quiet", "long", "verbose", ...) or an
        integer mask into an OutputFormat.

        Raises:
            ValueError: If the value names no format or sets unknown bits.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            member = cls.__members__.get(value.strip().upper())
            if member is None:
                raise ValueError(f"Unknown output format: {value!r}")
            return member
        if isinstance(value, int) and not isinstance(value, bool):
            if value & ~int(cls.VERBOSE):
                raise ValueError(f"Unknown output format bits: {value:#x}")
            return cls(value)
        raise ValueError(f"Unknown output format: {value!r}")


class ModuleState(str, Enum):
    """Lifecycle state of a module within one library run."""

    REGISTERED = "REGISTERED"
    ELIGIBLE = "ELIGIBLE"
    INITIALIZED = "INITIALIZED"
    RAN = "RAN"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"

    @property
    def is_terminal(self) -> bool:
        return self in (ModuleState.COMPLETED, ModuleState.FAILED, ModuleState.SKIPPED)


class NameValue(BaseModel):
    """Ordered key/value pair used for module options, requirements and dependencies."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Key")
    value: str = Field(default="", description="Value")

    @field_validator("value", mode="before")
    @classmethod
    def scalar_as_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value


class Proof(BaseModel):
    """
    One piece of evidence.

    Proofs are immutable; they are appended to an Item in the order the
    module detected them.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Sequence index of the evidence entity")
    kind: ItemKind = Field(..., description="Kind of entity the proof refers to")
    text: str = Field(..., description="Human-readable evidence")
    markup: str | None = Field(default=None, description="Structured rendering of the evidence")
    severity: Severity = Field(default=Severity.NONE, description="Evidence severity")

    def duplicate(self) -> Proof:
        """Return an independent copy equal to this proof in every field."""
        return self.model_copy(deep=True)


class Item(BaseModel):
    """One policy entity flagged by a module."""

    item_id: int | str = Field(..., description="Module-specific entity identifier")
    passed: bool = Field(default=False, description="Test result for the entity")
    proofs: list[Proof] = Field(default_factory=list, description="Evidence in detection order")

    @property
    def failed(self) -> bool:
        return not self.passed

    @property
    def effective_severity(self) -> Severity:
        """Highest severity among the proofs, NONE when there are none."""
        return max((proof.severity for proof in self.proofs), default=Severity.NONE)

    def add_proof(self, proof: Proof) -> None:
        self.proofs.append(proof)

    def has_proof(self, index: int, kind: ItemKind) -> bool:
        """Whether a proof for the given entity is already attached."""
        return any(p.index == index and p.kind == kind for p in self.proofs)


class Result(BaseModel):
    """
    Aggregate output of one module run.

    A result is created once per successful run; running the module again
    replaces it as a whole.
    """

    module_name: str = Field(..., min_length=1, description="Owning module")
    item_kind: ItemKind = Field(..., description="Kind of entity the items reference")
    items: list[Item] = Field(default_factory=list, description="Items in insertion order")

    @property
    def num_items(self) -> int:
        return len(self.items)

    @property
    def failing_items(self) -> list[Item]:
        return [item for item in self.items if item.failed]

    def add_item(self, item: Item) -> Item:
        """
        Append an item.

        Raises:
            DuplicateItemError: If an item with the same identifier exists.
        """
        if self.find_item(item.item_id) is not None:
            raise DuplicateItemError(item.item_id, self.module_name)
        self.items.append(item)
        return item

    def find_item(self, item_id: int | str) -> Item | None:
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def severity_histogram(self) -> dict[Severity, int]:
        """Count failing items by effective severity."""
        counts = {severity: 0 for severity in Severity.ordered()}
        for item in self.failing_items:
            counts[item.effective_severity] += 1
        return counts


def new_result(module_name: str, item_kind: ItemKind | str) -> Result:
    """Create an empty result for a module."""
    return Result(module_name=module_name, item_kind=item_kind)
