"""
Run report models.

These models record the disposition of every selected module after a
library run, including summary statistics for the ones that completed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from sechecker.domain.models import ModuleState, Result, Severity


class ModuleOutcome(BaseModel):
    """Disposition of one selected module."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Module name")
    state: ModuleState = Field(..., description="Terminal lifecycle state")
    reason: str | None = Field(default=None, description="Why the module was skipped or failed")
    items_tested: int = Field(default=0, ge=0, description="Items in the module's result")
    items_failing: int = Field(default=0, ge=0, description="Failing items in the result")
    max_severity: Severity = Field(default=Severity.NONE, description="Worst failing item severity")

    @classmethod
    def from_result(cls, name: str, result: Result | None) -> ModuleOutcome:
        """Outcome of a module that completed, with or without a result."""
        if result is None:
            return cls(name=name, state=ModuleState.COMPLETED)
        failing = result.failing_items
        return cls(
            name=name,
            state=ModuleState.COMPLETED,
            items_tested=result.num_items,
            items_failing=len(failing),
            max_severity=max(
                (item.effective_severity for item in failing), default=Severity.NONE
            ),
        )


class RunSummary(BaseModel):
    """Summary statistics for a run."""

    model_config = ConfigDict(frozen=True)

    completed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    items_failing: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.completed + self.failed + self.skipped

    @classmethod
    def from_outcomes(cls, outcomes: list[ModuleOutcome]) -> RunSummary:
        return cls(
            completed=sum(1 for o in outcomes if o.state == ModuleState.COMPLETED),
            failed=sum(1 for o in outcomes if o.state == ModuleState.FAILED),
            skipped=sum(1 for o in outcomes if o.state == ModuleState.SKIPPED),
            items_failing=sum(o.items_failing for o in outcomes),
        )


class RunReport(BaseModel):
    """
    Complete run report.

    Lists every selected module in run order, whether it produced
    findings or not.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(
        default_factory=lambda: f"run_{uuid4().hex[:12]}",
        description="Unique run identifier",
    )
    started_at: datetime = Field(default_factory=datetime.now, description="When the run started")
    policy_source: str = Field(default="<memory>", description="Policy the run analyzed")
    duration_ms: float = Field(default=0.0, ge=0, description="Run duration in milliseconds")
    order: list[str] = Field(default_factory=list, description="Module run order")
    outcomes: list[ModuleOutcome] = Field(default_factory=list, description="Per-module dispositions")
    summary: RunSummary = Field(default_factory=RunSummary)

    @property
    def passed(self) -> bool:
        """No module failed and no failing items were found."""
        return self.summary.failed == 0 and self.summary.items_failing == 0

    def outcome(self, name: str) -> ModuleOutcome | None:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None

    def outcomes_by_state(self, state: ModuleState) -> list[ModuleOutcome]:
        return [o for o in self.outcomes if o.state == state]

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return self.model_dump(mode="json")
