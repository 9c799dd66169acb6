"""
Terminal renderer using Rich.

Renders module results according to the output-format bitmask and prints
the disposition of every module of a run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table
from rich.text import Text

from sechecker.domain.models import Item, ModuleState, OutputFormat, Severity
from sechecker.modules.base import CallbackSlot, callback_succeeded
from sechecker.utils.logging import get_logger

if TYPE_CHECKING:
    from sechecker.engine.library import Library
    from sechecker.modules.base import Module

logger = get_logger("renderers.terminal")


class TerminalRenderer:
    """
    Renders module output to the terminal using Rich.

    Which parts of a module's result are shown is controlled by the
    OutputFormat flags: HEADER, STATS, LIST and PROOF.
    """

    SEVERITY_COLORS = {
        Severity.DANGER: "red bold",
        Severity.HIGH: "red",
        Severity.MODERATE: "yellow",
        Severity.LOW: "cyan",
        Severity.MINIMAL: "blue",
        Severity.NONE: "dim",
    }

    STATE_COLORS = {
        ModuleState.COMPLETED: "green",
        ModuleState.FAILED: "red",
        ModuleState.SKIPPED: "yellow",
    }

    def __init__(self, console: Console | None = None) -> None:
        """
        Initialize the terminal renderer.

        Args:
            console: Rich console to use (creates new one if None).
        """
        self.console = console or Console()

    def format_module(
        self,
        module: Module,
        output_format: OutputFormat | None = None,
        library: Library | None = None,
    ) -> None:
        """
        Render one module.

        Args:
            module: The module to render.
            output_format: Format to use; defaults to the module's own
                format, then the library's global format (SHORT when no
                library is given).
            library: Library hosting the module.
        """
        if output_format is None:
            if library is not None:
                output_format = library.effective_format(module)
            elif module.output_format is not None:
                output_format = module.output_format
            else:
                output_format = OutputFormat.SHORT

        if module.state != ModuleState.COMPLETED:
            self._render_status(module)
            return

        if output_format & OutputFormat.HEADER:
            self._render_header(module)

        result = module.result
        if result is None:
            if output_format & (OutputFormat.STATS | OutputFormat.LIST | OutputFormat.PROOF):
                self.console.print(Text("No results.", style="dim"))
            return

        failing = result.failing_items

        if output_format & OutputFormat.STATS:
            self._render_stats(module)

        if output_format & OutputFormat.LIST:
            self._render_list(failing)

        if output_format & OutputFormat.PROOF:
            self._render_proofs(failing)

        self.console.print()

    def print_all(self, library: Library) -> None:
        """
        Print every module of the last run in run order, then a summary
        of all dispositions.

        Completed modules with their own print callback print themselves;
        all others go through `format_module()`.
        """
        for name in library.order:
            module = library.get_module(name)
            printer = module.get_callback(CallbackSlot.PRINT)

            if module.state == ModuleState.COMPLETED and printer is not None:
                try:
                    status = printer(module, library.policy)
                except Exception as e:
                    logger.warning(f"print_output of '{name}' raised: {e}", exc_info=True)
                    status = False
                if not callback_succeeded(status):
                    self.console.print(
                        Text(f"{name}: error printing output", style="red")
                    )
                continue

            self.format_module(module, library=library)

        self._render_summary(library)

    def _render_status(self, module: Module) -> None:
        """Status line for a module that produced no result."""
        line = Text.assemble(
            (module.name, "bold"),
            ": ",
            (module.state.value, self.STATE_COLORS.get(module.state, "dim")),
        )
        if module.reason:
            line.append(f" ({module.reason})", style="dim")
        self.console.print(line)

    def _render_header(self, module: Module) -> None:
        self.console.print(Text(f"Module: {module.name}", style="bold"))
        if module.description:
            self.console.print(Text(module.description))

    def _render_stats(self, module: Module) -> None:
        result = module.result
        assert result is not None

        self.console.print(
            Text(
                f"Items tested: {result.num_items}   "
                f"Items failing: {len(result.failing_items)}"
            )
        )

        histogram = result.severity_histogram()
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Severity", style="bold")
        table.add_column("Count", justify="right")

        for severity in reversed(Severity.ordered()):
            count = histogram[severity]
            if count > 0:
                style = self.SEVERITY_COLORS[severity]
                table.add_row(Text(severity.value, style=style), Text(str(count), style=style))

        if table.row_count:
            self.console.print(table)

    def _render_list(self, items: list[Item]) -> None:
        for item in items:
            severity = item.effective_severity
            self.console.print(
                Text.assemble(
                    "  ",
                    (str(item.item_id), "cyan"),
                    "  ",
                    (severity.value, self.SEVERITY_COLORS[severity]),
                )
            )

    def _render_proofs(self, items: list[Item]) -> None:
        for item in items:
            severity = item.effective_severity
            self.console.print(
                Text.assemble(
                    (str(item.item_id), "bold cyan"),
                    " (",
                    (severity.value, self.SEVERITY_COLORS[severity]),
                    "):",
                )
            )
            for proof in item.proofs:
                self.console.print(
                    Text.assemble(
                        "    ",
                        (proof.severity.value, self.SEVERITY_COLORS[proof.severity]),
                        " ",
                        proof.text,
                    )
                )
                if proof.markup:
                    self.console.print(Text(f"      {proof.markup}", style="dim"))

    def _render_summary(self, library: Library) -> None:
        if not library.order:
            self.console.print(Text("No modules were run.", style="yellow"))
            return

        table = Table(title="Module summary")
        table.add_column("Module", style="cyan")
        table.add_column("Status")
        table.add_column("Failing", justify="right")
        table.add_column("Severity")
        table.add_column("Reason", style="dim")

        for name in library.order:
            module = library.get_module(name)
            state_style = self.STATE_COLORS.get(module.state, "dim")
            failing = "-"
            severity_cell = Text("-")
            if module.state == ModuleState.COMPLETED and module.result is not None:
                failing_items = module.result.failing_items
                failing = str(len(failing_items))
                worst = max(
                    (item.effective_severity for item in failing_items), default=Severity.NONE
                )
                severity_cell = Text(worst.value, style=self.SEVERITY_COLORS[worst])

            table.add_row(
                Text(name),
                Text(module.state.value, style=state_style),
                failing,
                severity_cell,
                Text(module.reason or ""),
            )

        self.console.print(table)


def render_module(
    module: Module,
    output_format: OutputFormat | None = None,
    library: Library | None = None,
    **kwargs,
) -> None:
    """
    Convenience function to render one module to the terminal.

    Args:
        module: The module to render.
        output_format: Format to use.
        library: Library whose global format applies when neither
            ``output_format`` nor the module sets one.
        **kwargs: Options passed to TerminalRenderer.
    """
    renderer = TerminalRenderer(**kwargs)
    renderer.format_module(module, output_format, library)
