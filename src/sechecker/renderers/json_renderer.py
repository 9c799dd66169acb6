"""
JSON renderer for sechecker.

Outputs machine-readable run reports.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from sechecker.domain.models import ModuleState, Result

if TYPE_CHECKING:
    from sechecker.domain.report import RunReport
    from sechecker.engine.library import Library


class JsonRenderer:
    """
    Renders run reports as JSON.

    When given the library the report came from, the result of every
    completed module is included with its items and proofs.
    """

    def __init__(
        self,
        indent: int = 2,
        include_passing: bool = False,
    ) -> None:
        """
        Initialize the JSON renderer.

        Args:
            indent: JSON indentation level.
            include_passing: Whether to include items that passed.
        """
        self.indent = indent
        self.include_passing = include_passing

    def render(self, report: RunReport, library: Library | None = None) -> str:
        data = self.to_dict(report, library)
        return json.dumps(data, indent=self.indent, default=str)

    def to_dict(self, report: RunReport, library: Library | None = None) -> dict[str, Any]:
        """
        Convert a run report to a dictionary.

        Args:
            report: The run report to convert.
            library: Library holding the module results (optional).

        Returns:
            Dictionary representation.
        """
        modules: list[dict[str, Any]] = []
        for outcome in report.outcomes:
            entry: dict[str, Any] = {
                "name": outcome.name,
                "state": outcome.state.value,
                "reason": outcome.reason,
                "items_tested": outcome.items_tested,
                "items_failing": outcome.items_failing,
                "max_severity": outcome.max_severity.value,
            }
            if library is not None and outcome.state == ModuleState.COMPLETED:
                module = library.registry.get(outcome.name)
                if module is not None and module.result is not None:
                    entry["result"] = self._result_to_dict(module.result)
            modules.append(entry)

        return {
            "run_id": report.run_id,
            "started_at": report.started_at.isoformat(),
            "policy": report.policy_source,
            "passed": report.passed,
            "duration_ms": report.duration_ms,
            "order": report.order,
            "summary": {
                "completed": report.summary.completed,
                "failed": report.summary.failed,
                "skipped": report.summary.skipped,
                "items_failing": report.summary.items_failing,
                "total": report.summary.total,
            },
            "modules": modules,
        }

    def _result_to_dict(self, result: Result) -> dict[str, Any]:
        items = result.items if self.include_passing else result.failing_items
        return {
            "item_kind": result.item_kind.value,
            "num_items": result.num_items,
            "items": [
                {
                    "id": item.item_id,
                    "passed": item.passed,
                    "severity": item.effective_severity.value,
                    "proofs": [
                        {
                            "index": proof.index,
                            "kind": proof.kind.value,
                            "severity": proof.severity.value,
                            "text": proof.text,
                            "markup": proof.markup,
                        }
                        for proof in item.proofs
                    ],
                }
                for item in items
            ],
        }

    def render_to_file(self, report: RunReport, path: str, library: Library | None = None) -> None:
        from pathlib import Path

        Path(path).write_text(self.render(report, library), encoding="utf-8")


def render_json(report: RunReport, library: Library | None = None, **kwargs) -> str:
    """
    Convenience function to render a report as JSON.

    Args:
        report: The run report to render.
        library: Library holding the module results (optional).
        **kwargs: Options passed to JsonRenderer.

    Returns:
        JSON string.
    """
    renderer = JsonRenderer(**kwargs)
    return renderer.render(report, library)
