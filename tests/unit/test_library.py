"""
Unit tests for the library lifecycle.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from rich.console import Console

from sechecker.domain.exceptions import (
    AllocationError,
    CyclicDependencyError,
    DuplicateNameError,
    InvalidArgumentError,
    NotFoundError,
)
from sechecker.domain.models import ModuleState, OutputFormat, Result, Severity
from sechecker.domain.policy import PolicyFacts
from sechecker.engine.library import Library
from sechecker.modules.base import CallbackSlot, Module
from sechecker.renderers.terminal import TerminalRenderer


class TestLibraryConstruction:
    """Tests for building a library."""

    def test_requires_policy(self) -> None:
        """A library cannot be built without a policy."""
        with pytest.raises(InvalidArgumentError) as exc_info:
            Library(None)

        assert exc_info.value.argument == "policy"

    def test_rejects_non_policy(self) -> None:
        """Objects that are not policy handles should be rejected."""
        with pytest.raises(InvalidArgumentError):
            Library({"version": 21})

    def test_rejects_bad_output_format(self, binary_policy: PolicyFacts) -> None:
        """An unknown output format should be rejected."""
        with pytest.raises(InvalidArgumentError):
            Library(binary_policy, output_format="loud")

    def test_defaults(self, library: Library) -> None:
        """A new library is empty and reports in SHORT format."""
        assert library.output_format == OutputFormat.SHORT
        assert library.file_contexts is None
        assert library.modules == []
        assert library.order == []

    def test_from_paths(self, policy_file: Path, fc_file: Path) -> None:
        """Should load the policy and file contexts from disk."""
        library = Library.from_paths(policy_file, fc_file, output_format="long")

        assert library.policy.version == 21
        assert len(library.file_contexts) == 4
        assert library.output_format == OutputFormat.LONG

    def test_from_paths_out_of_memory(
        self, policy_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Running out of memory while loading data is an AllocationError."""

        def exhausted(path: Path) -> PolicyFacts:
            raise MemoryError

        monkeypatch.setattr("sechecker.adapters.fs.load_policy_facts", exhausted)

        with pytest.raises(AllocationError):
            Library.from_paths(policy_file)


class TestRegistration:
    """Tests for registering and selecting modules."""

    def test_register_base_module_selects_it(self, library: Library, make_module: Callable) -> None:
        """Registering a BaseModule should host it as a selected Module."""
        module = library.register(make_module("a"))

        assert isinstance(module, Module)
        assert library.get_module("a") is module
        assert library.is_selected("a")

    def test_register_without_selecting(self, library: Library, make_module: Callable) -> None:
        """select=False should leave the module unselected."""
        library.register(make_module("a"), select=False)

        assert not library.is_selected("a")
        assert library.selected == []

    def test_register_none(self, library: Library) -> None:
        """Registering nothing is an invalid argument."""
        with pytest.raises(InvalidArgumentError):
            library.register(None)

    def test_duplicate_name(self, library: Library, make_module: Callable) -> None:
        """Module names must be unique."""
        library.register(make_module("a"))

        with pytest.raises(DuplicateNameError):
            library.register(make_module("a"))

    def test_register_all_rolls_back(self, library: Library, make_module: Callable) -> None:
        """A failed bulk registration should leave the library unchanged."""
        library.register(make_module("existing"))

        with pytest.raises(DuplicateNameError):
            library.register_all([make_module("a"), make_module("b"), make_module("existing")])

        assert [m.name for m in library.modules] == ["existing"]
        assert library.selected == ["existing"]

    def test_unregister(self, library: Library, make_module: Callable) -> None:
        """Unregistering should remove the module and its selection."""
        library.register(make_module("a"))
        library.unregister("a")

        assert library.modules == []
        assert not library.is_selected("a")
        with pytest.raises(NotFoundError):
            library.get_module("a")

    def test_get_module_function(self, library: Library, make_module: Callable) -> None:
        """Callbacks should resolve only for set slots of known modules."""
        library.register(make_module("a"))

        assert callable(library.get_module_function("a", CallbackSlot.RUN))
        with pytest.raises(NotFoundError):
            library.get_module_function("a", CallbackSlot.PRINT)
        with pytest.raises(NotFoundError):
            library.get_module_function("ghost", CallbackSlot.RUN)

    def test_selection(self, library: Library, make_module: Callable) -> None:
        """Selection helpers should report names in registration order."""
        for name in ("a", "b", "c"):
            library.register(make_module(name), select=False)

        library.select("c")
        library.select("a")
        assert library.selected == ["a", "c"]

        library.deselect("a")
        assert library.selected == ["c"]

        library.select_only(["b"])
        assert library.selected == ["b"]

        library.select_all()
        assert library.selected == ["a", "b", "c"]

    def test_select_only_validates_first(self, library: Library, make_module: Callable) -> None:
        """An unknown name should leave the selection unchanged."""
        library.register(make_module("a"))

        with pytest.raises(NotFoundError):
            library.select_only(["a", "ghost"])

        assert library.selected == ["a"]

    def test_set_output_format(self, library: Library, make_module: Callable) -> None:
        """Should set the global format and optionally every module's."""
        module = library.register(make_module("a"))

        library.set_output_format("quiet")
        assert library.output_format == OutputFormat.QUIET
        assert library.effective_format(module) == OutputFormat.QUIET

        library.set_output_format(OutputFormat.LONG, apply_to_modules=True)
        assert module.output_format == OutputFormat.LONG

        with pytest.raises(InvalidArgumentError):
            library.set_output_format(0x40)

    def test_module_format_overrides_global(self, library: Library, make_module: Callable) -> None:
        """A module's own format wins over the global one."""
        module = library.register(make_module("a"))
        module.output_format = OutputFormat.VERBOSE

        assert library.effective_format(module) == OutputFormat.VERBOSE


class TestRun:
    """Tests for the module lifecycle."""

    def test_requirement_skip_does_not_stop_others(self, library: Library, make_module: Callable) -> None:
        """A module with an unmet requirement is skipped; others complete."""
        library.register(make_module("M1", requirements=(("policy_type", "source"),)))
        library.register(make_module("M2"))

        report = library.run()

        assert library.get_module("M1").state == ModuleState.SKIPPED
        assert "policy_type=source" in library.get_module("M1").reason
        assert library.get_module("M2").state == ModuleState.COMPLETED
        assert report.summary.skipped == 1
        assert report.summary.completed == 1

    def test_dependent_of_skipped_module_is_skipped(
        self, library: Library, make_module: Callable, calls: list
    ) -> None:
        """A module depending on a skipped module is skipped too."""
        library.register(make_module("M1", requirements=(("policy_type", "source"),)))
        library.register(make_module("M3", dependencies=("M1",), requirements=(("policy_type", "binary"),)))

        library.run()

        m3 = library.get_module("M3")
        assert m3.state == ModuleState.SKIPPED
        assert "M1 (skipped)" in m3.reason
        assert calls == []

    def test_dependent_of_failed_module_is_skipped(
        self, library: Library, make_module: Callable, calls: list
    ) -> None:
        """A module whose dependency failed is skipped, not run."""
        library.register(make_module("base", fail_in="run"))
        library.register(make_module("dependent", dependencies=("base",)))

        library.run()

        assert library.get_module("base").state == ModuleState.FAILED
        assert library.get_module("dependent").state == ModuleState.SKIPPED
        assert ("dependent", "run") not in calls

    def test_dependency_runs_first(self, library: Library, make_module: Callable, calls: list) -> None:
        """Dependencies should run before their dependents."""
        library.register(make_module("report", dependencies=("types",)))
        library.register(make_module("types"))

        report = library.run()

        assert report.order == ["types", "report"]
        runs = [name for name, phase in calls if phase == "run"]
        assert runs == ["types", "report"]

    def test_inits_before_runs(self, library: Library, make_module: Callable, calls: list) -> None:
        """All modules are initialized before any of them runs."""
        library.register(make_module("a"))
        library.register(make_module("b"))

        library.run()

        assert calls == [("a", "init"), ("b", "init"), ("a", "run"), ("b", "run")]

    def test_missing_dependency_skips(self, library: Library, make_module: Callable) -> None:
        """A dependency on an unregistered module skips the dependent."""
        library.register(make_module("a", dependencies=("ghost",)))

        library.run()

        module = library.get_module("a")
        assert module.state == ModuleState.SKIPPED
        assert "ghost (not registered)" in module.reason

    def test_init_failure_is_isolated(self, library: Library, make_module: Callable, calls: list) -> None:
        """A failing init fails only that module."""
        library.register(make_module("broken", fail_in="init"))
        library.register(make_module("fine"))

        report = library.run()

        broken = library.get_module("broken")
        assert broken.state == ModuleState.FAILED
        assert broken.reason == "init returned 1"
        assert ("broken", "run") not in calls
        assert library.get_module("fine").state == ModuleState.COMPLETED
        assert not report.passed

    def test_run_exception_is_isolated(self, library: Library, make_module: Callable) -> None:
        """An exception in run fails only that module."""
        library.register(make_module("broken", fail_in="run"))
        library.register(make_module("fine"))

        library.run()

        broken = library.get_module("broken")
        assert broken.state == ModuleState.FAILED
        assert "ModuleError: run exploded" in broken.reason
        assert broken.result is None
        assert library.get_module("fine").state == ModuleState.COMPLETED

    def test_missing_mandatory_callback(self, library: Library) -> None:
        """A module without a run callback is skipped."""
        library.register(Module("bare", callbacks={CallbackSlot.INIT: lambda m, p: None}))

        library.run()

        module = library.get_module("bare")
        assert module.state == ModuleState.SKIPPED
        assert module.reason == "missing callback: run"

    def test_unselected_modules_untouched(self, library: Library, make_module: Callable, calls: list) -> None:
        """Unselected modules are neither run nor reported."""
        library.register(make_module("a"), select=False)
        library.register(make_module("b"))

        report = library.run()

        assert library.get_module("a").state == ModuleState.REGISTERED
        assert report.order == ["b"]
        assert all(name == "b" for name, _ in calls)

    def test_cycle_aborts_before_any_init(self, library: Library, make_module: Callable, calls: list) -> None:
        """A cycle among eligible modules aborts the run before any callback."""
        library.register(make_module("a", dependencies=("b",)))
        library.register(make_module("b", dependencies=("a",)))
        library.register(make_module("c"))

        with pytest.raises(CyclicDependencyError):
            library.run()

        assert calls == []
        assert all(m.state == ModuleState.REGISTERED for m in library.modules)

    def test_cycle_keeps_previous_outcome(self, library: Library, make_module: Callable) -> None:
        """A cycle introduced after a run should leave the earlier states as they were."""
        library.register(make_module("a"))
        library.run()
        library.register(make_module("b", dependencies=("b",)))

        with pytest.raises(CyclicDependencyError):
            library.run()

        assert library.get_module("a").state == ModuleState.COMPLETED
        assert library.get_module("b").state == ModuleState.REGISTERED

    def test_cycle_through_ineligible_module_is_broken(
        self, library: Library, make_module: Callable, calls: list
    ) -> None:
        """A module skipped for its requirements cannot close a cycle."""
        library.register(make_module("a", dependencies=("b",), requirements=(("policy_type", "source"),)))
        library.register(make_module("b", dependencies=("a",)))
        library.register(make_module("c"))

        report = library.run()

        assert library.get_module("a").state == ModuleState.SKIPPED
        assert "policy_type=source" in library.get_module("a").reason
        assert library.get_module("b").state == ModuleState.SKIPPED
        assert "a (skipped)" in library.get_module("b").reason
        assert library.get_module("c").state == ModuleState.COMPLETED
        assert report.order == ["a", "b", "c"]
        assert calls == [("c", "init"), ("c", "run")]

    def test_cycle_through_module_missing_callback_is_broken(self, library: Library, make_module: Callable) -> None:
        """A module without a run callback cannot close a cycle."""
        library.register(
            Module(
                "bare",
                callbacks={CallbackSlot.INIT: lambda m, p: None},
                dependencies=[("module", "b")],
            )
        )
        library.register(make_module("b", dependencies=("bare",)))

        library.run()

        assert library.get_module("bare").reason == "missing callback: run"
        assert library.get_module("b").state == ModuleState.SKIPPED

    def test_result_collected(self, library: Library, make_module: Callable) -> None:
        """A completed module's result should be attached and summarized."""
        library.register(
            make_module(
                "m",
                items=[
                    ("httpd_t", [(Severity.LOW, "low proof"), (Severity.HIGH, "high proof")]),
                    ("user_t", [(Severity.MINIMAL, "minor")]),
                ],
            )
        )

        report = library.run()

        result = library.get_module("m").result
        assert isinstance(result, Result)
        assert result.find_item("httpd_t").effective_severity == Severity.HIGH
        outcome = report.outcome("m")
        assert outcome.items_tested == 2
        assert outcome.items_failing == 2
        assert outcome.max_severity == Severity.HIGH

    def test_rerun_replaces_result(self, library: Library, make_module: Callable) -> None:
        """Running again should replace the result as a whole."""
        recording = make_module("m", items=[("a", [(Severity.LOW, "x")])])
        library.register(recording)
        library.run()
        first = library.get_module("m").result

        recording.items = [("b", [(Severity.HIGH, "y")])]
        library.run()
        second = library.get_module("m").result

        assert second is not first
        assert [item.item_id for item in second.items] == ["b"]

    def test_get_result_must_return_result(self, library: Library) -> None:
        """A get_result callback returning something else fails the module."""
        module = Module(
            "odd",
            callbacks={
                CallbackSlot.INIT: lambda m, p: None,
                CallbackSlot.RUN: lambda m, p: None,
                CallbackSlot.GET_RESULT: lambda m: {"items": []},
            },
        )
        library.register(module)

        library.run()

        assert module.state == ModuleState.FAILED
        assert "not a Result" in module.reason

    def test_no_get_result_completes_without_result(self, library: Library) -> None:
        """A module without get_result completes with no result."""
        module = Module(
            "silent",
            callbacks={CallbackSlot.INIT: lambda m, p: 0, CallbackSlot.RUN: lambda m, p: True},
        )
        library.register(module)

        report = library.run()

        assert module.state == ModuleState.COMPLETED
        assert module.result is None
        assert report.outcome("silent").items_tested == 0

    def test_empty_library(self, library: Library) -> None:
        """Running an empty library passes with nothing ordered."""
        report = library.run()

        assert report.order == []
        assert report.summary.total == 0
        assert report.passed

    def test_callbacks_receive_policy(self, library: Library, binary_policy: PolicyFacts) -> None:
        """init and run should receive the shared policy handle."""
        seen = []
        module = Module(
            "m",
            callbacks={
                CallbackSlot.INIT: lambda m, p: seen.append(p),
                CallbackSlot.RUN: lambda m, p: seen.append(p),
            },
        )
        library.register(module)

        library.run()

        assert seen == [binary_policy, binary_policy]


class TestTeardown:
    """Tests for closing a library."""

    def test_close_frees_every_module(self, library: Library, make_module: Callable, calls: list) -> None:
        """close() should free selected and unselected modules alike."""
        library.register(make_module("a"))
        library.register(make_module("b"), select=False)
        library.run()

        library.close()

        assert ("a", "free") in calls
        assert ("b", "free") in calls
        assert library.modules == []
        assert library.order == []

    def test_context_manager(self, binary_policy: PolicyFacts, make_module: Callable, calls: list) -> None:
        """Leaving the with block should close the library."""
        with Library(binary_policy) as library:
            library.register(make_module("a"))
            library.run()

        assert ("a", "free") in calls
        assert library.modules == []

    def test_free_error_does_not_stop_teardown(
        self, library: Library, make_module: Callable, calls: list
    ) -> None:
        """A failing free callback should not stop the others."""

        def broken_free(module: Module) -> None:
            raise RuntimeError("boom")

        library.register(
            Module(
                "broken",
                callbacks={
                    CallbackSlot.INIT: lambda m, p: None,
                    CallbackSlot.RUN: lambda m, p: None,
                    CallbackSlot.FREE: broken_free,
                },
            )
        )
        library.register(make_module("fine"))

        library.close()

        assert ("fine", "free") in calls
        assert library.modules == []


class TestPrintAll:
    """Tests for printing a run through the library."""

    def test_long_format_shows_every_proof(
        self, library: Library, make_module: Callable, console: Console
    ) -> None:
        """LONG output should include the text of every proof."""
        library.set_output_format(OutputFormat.LONG)
        library.register(
            make_module("m", items=[("httpd_t", [(Severity.LOW, "low proof"), (Severity.HIGH, "high proof")])])
        )
        library.run()

        library.print_all(TerminalRenderer(console=console))
        output = console.file.getvalue()

        assert "httpd_t (HIGH):" in output
        assert "low proof" in output
        assert "high proof" in output

    def test_module_print_callback_used(self, library: Library, console: Console) -> None:
        """A module's own print callback replaces the default rendering."""
        printed = []
        library.register(
            Module(
                "custom",
                callbacks={
                    CallbackSlot.INIT: lambda m, p: None,
                    CallbackSlot.RUN: lambda m, p: None,
                    CallbackSlot.PRINT: lambda m, p: printed.append(m.name),
                },
            )
        )
        library.run()

        library.print_all(TerminalRenderer(console=console))

        assert printed == ["custom"]
        assert "Module: custom" not in console.file.getvalue()

    def test_failing_print_callback_reported(self, library: Library, console: Console) -> None:
        """A failing print callback should be reported, not raised."""
        library.register(
            Module(
                "custom",
                callbacks={
                    CallbackSlot.INIT: lambda m, p: None,
                    CallbackSlot.RUN: lambda m, p: None,
                    CallbackSlot.PRINT: lambda m, p: 1,
                },
            )
        )
        library.run()

        library.print_all(TerminalRenderer(console=console))

        assert "custom: error printing output" in console.file.getvalue()
