"""
The library: the engine instance.

Owns the policy and file-context handles, the registered modules and the
selection set, and drives every selected module through its lifecycle:

    REGISTERED -> ELIGIBLE -> INITIALIZED -> RAN -> COMPLETED
                                                  \\-> FAILED / SKIPPED

Modules are processed in dependency order. A module that fails or is
skipped never stops the others; modules that depend on it are skipped
when their turn comes.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from sechecker.domain.exceptions import AllocationError, InvalidArgumentError
from sechecker.domain.models import ModuleState, OutputFormat, Result
from sechecker.domain.policy import FileContexts, PolicyHandle
from sechecker.domain.report import ModuleOutcome, RunReport, RunSummary
from sechecker.engine.registry import ModuleRegistry
from sechecker.engine.requirements import (
    dependency_order,
    unmet_dependencies,
    unmet_requirements,
)
from sechecker.modules.base import (
    BaseModule,
    Callback,
    CallbackSlot,
    Module,
    callback_succeeded,
)
from sechecker.utils.logging import get_logger

if TYPE_CHECKING:
    from sechecker.config.profile import Profile
    from sechecker.config.settings import EngineSettings
    from sechecker.renderers.terminal import TerminalRenderer

logger = get_logger("engine.library")


class Library:
    """
    Engine instance and composition root.

    Example:
        >>> with Library(policy) as lib:
        ...     lib.register(FindDomains())
        ...     report = lib.run()
        ...     lib.print_all()
    """

    def __init__(
        self,
        policy: PolicyHandle,
        file_contexts: FileContexts | None = None,
        output_format: OutputFormat | str = OutputFormat.SHORT,
    ) -> None:
        """
        Initialize the library.

        Args:
            policy: Loaded policy, shared read-only by every module.
            file_contexts: Optional file-context entries.
            output_format: Global report format for modules without an override.

        Raises:
            InvalidArgumentError: If the policy handle is missing or invalid.
        """
        if policy is None:
            raise InvalidArgumentError("A policy handle is required", argument="policy")
        if not isinstance(policy, PolicyHandle):
            raise InvalidArgumentError(
                f"Not a policy handle: {type(policy).__name__}", argument="policy"
            )
        try:
            output_format = OutputFormat.parse(output_format)
        except ValueError as e:
            raise InvalidArgumentError(str(e), argument="output_format") from e

        self.registry = ModuleRegistry()
        self._selected: set[str] = set()

        self.policy = policy
        self.file_contexts = file_contexts
        self.output_format = output_format
        self.order: list[str] = []

    @classmethod
    def from_paths(
        cls,
        policy_path: str | Path,
        fc_path: str | Path | None = None,
        output_format: OutputFormat | str = OutputFormat.SHORT,
    ) -> Library:
        """
        Build a library from data-source locations.

        Raises:
            DataSourceError: If the policy or file contexts cannot be loaded.
        """
        from sechecker.adapters.fs import load_file_contexts, load_policy_facts

        try:
            policy = load_policy_facts(policy_path)
            file_contexts = load_file_contexts(fc_path) if fc_path is not None else None
        except MemoryError as e:
            raise AllocationError("Out of memory while loading policy data") from e

        return cls(policy, file_contexts=file_contexts, output_format=output_format)

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        modules: Iterable[Module | BaseModule] = (),
    ) -> Library:
        """
        Build a library from engine settings.

        ``modules`` are registered before the settings' profile, if any, is
        applied, so the profile can configure and select them.

        Raises:
            InvalidArgumentError: If the settings name no policy.
            DataSourceError: If the policy or file contexts cannot be loaded.
            ProfileError: If the profile cannot be read or parsed.
            NotFoundError: If the profile names a module that is not registered.
        """
        if settings.policy_path is None:
            raise InvalidArgumentError("Settings do not name a policy", argument="policy_path")
        library = cls.from_paths(
            settings.policy_path,
            fc_path=settings.fc_path,
            output_format=settings.output_format,
        )
        library.register_all(modules)
        if settings.profile_path is not None:
            library.apply_profile(settings.profile_path)
        return library

    def apply_profile(self, profile: Profile | str | Path, select_listed: bool = True) -> None:
        """Apply a module profile, given as a Profile or a path to one."""
        from sechecker.config.profile import Profile, apply_profile, load_profile

        if not isinstance(profile, Profile):
            profile = load_profile(profile)
        apply_profile(self, profile, select_listed=select_listed)

    # --- Registration and selection ---

    def register(self, module: Module | BaseModule, select: bool = True) -> Module:
        """
        Register a module and, by default, select it.

        Raises:
            InvalidArgumentError: If ``module`` is missing or not a module.
            DuplicateNameError: If the name is already registered.
        """
        if module is None:
            raise InvalidArgumentError("A module is required", argument="module")
        if isinstance(module, BaseModule):
            module = module.to_module()

        registered = self.registry.register(module)
        if select:
            self._selected.add(registered.name)
        return registered

    def register_all(self, modules: Iterable[Module | BaseModule], select: bool = True) -> list[Module]:
        """Register several modules; on any error none of them stays registered."""
        registered: list[Module] = []
        try:
            for module in modules:
                registered.append(self.register(module, select=select))
        except Exception:
            for module in registered:
                self.unregister(module.name)
            raise
        return registered

    def unregister(self, name: str) -> Module:
        module = self.registry.unregister(name)
        self._selected.discard(name)
        if name in self.order:
            self.order.remove(name)
        return module

    def get_module(self, name: str) -> Module:
        """Raises NotFoundError if absent."""
        return self.registry.lookup(name)

    def get_module_function(self, name: str, slot: CallbackSlot | str) -> Callback:
        """Raises NotFoundError if the module or the slot is not set."""
        return self.registry.resolve_callback(name, slot)

    @property
    def modules(self) -> list[Module]:
        return list(self.registry)

    def select(self, name: str) -> None:
        self.registry.lookup(name)
        self._selected.add(name)

    def deselect(self, name: str) -> None:
        self.registry.lookup(name)
        self._selected.discard(name)

    def select_only(self, names: Iterable[str]) -> None:
        names = list(names)
        for name in names:
            self.registry.lookup(name)
        self._selected = set(names)

    def select_all(self) -> None:
        self._selected = set(self.registry.names)

    def is_selected(self, name: str) -> bool:
        return name in self._selected

    @property
    def selected(self) -> list[str]:
        """Selected module names in registration order."""
        return [name for name in self.registry.names if name in self._selected]

    def set_output_format(self, output_format: OutputFormat | str, apply_to_modules: bool = False) -> None:
        """Set the global format; optionally override every module's own format too."""
        try:
            output_format = OutputFormat.parse(output_format)
        except ValueError as e:
            raise InvalidArgumentError(str(e), argument="output_format") from e

        self.output_format = output_format
        if apply_to_modules:
            for module in self.registry:
                module.output_format = output_format

    def effective_format(self, module: Module) -> OutputFormat:
        if module.output_format is not None:
            return module.output_format
        return self.output_format

    # --- Lifecycle ---

    def prepare(self) -> list[str]:
        """
        Compute the run order and reset the selected modules.

        Modules missing a mandatory callback or with an unmet requirement
        are skipped here and take no part in cycle detection.

        Raises:
            CyclicDependencyError: If the eligible modules depend on each
                other cyclically. No module state is touched in that case.
        """
        selected = [module for module in self.registry if self.is_selected(module.name)]
        ineligible: dict[str, str] = {}
        for module in selected:
            reason = self._ineligibility(module)
            if reason is not None:
                ineligible[module.name] = reason

        order = dependency_order(self, exclude=ineligible)

        for module in selected:
            module.reset()
            if module.name in ineligible:
                self._skip(module, ineligible[module.name])

        self.order = order
        logger.debug(f"Run order: {', '.join(order) if order else '(empty)'}")
        return order

    def init_modules(self) -> None:
        """Evaluate and initialize every module in run order."""
        for name in self.order:
            module = self.registry.lookup(name)
            if not self._admit(module):
                continue
            if self._invoke(module, CallbackSlot.INIT):
                module.state = ModuleState.INITIALIZED

    def run_modules(self) -> None:
        """Run every initialized module in run order and collect its result."""
        for name in self.order:
            module = self.registry.lookup(name)
            if module.state != ModuleState.INITIALIZED:
                continue

            unmet = unmet_dependencies(module, self)
            if unmet:
                self._skip(module, self._describe_dependencies(unmet))
                continue

            if not self._invoke(module, CallbackSlot.RUN):
                continue
            module.state = ModuleState.RAN

            result: Result | None = None
            get_result = module.get_callback(CallbackSlot.GET_RESULT)
            if get_result is not None:
                try:
                    result = get_result(module)
                except Exception as e:
                    self._fail(module, f"get_result raised {type(e).__name__}: {e}", exc_info=True)
                    continue
                if result is not None and not isinstance(result, Result):
                    self._fail(module, f"get_result returned {type(result).__name__}, not a Result")
                    continue

            module.result = result
            module.state = ModuleState.COMPLETED
            logger.info(f"Module '{name}' completed")

    def run(self) -> RunReport:
        """
        Prepare, initialize and run all selected modules.

        Raises:
            CyclicDependencyError: Before any module executes.
        """
        start_time = time.perf_counter()

        self.prepare()
        self.init_modules()
        self.run_modules()

        return self.report(duration_ms=(time.perf_counter() - start_time) * 1000)

    def report(self, duration_ms: float = 0.0) -> RunReport:
        """Dispositions of the modules of the last run, in run order."""
        outcomes: list[ModuleOutcome] = []
        for name in self.order:
            module = self.registry.lookup(name)
            if module.state == ModuleState.COMPLETED:
                outcomes.append(ModuleOutcome.from_result(name, module.result))
            else:
                outcomes.append(ModuleOutcome(name=name, state=module.state, reason=module.reason))

        return RunReport(
            policy_source=getattr(self.policy, "source", "<memory>"),
            duration_ms=duration_ms,
            order=list(self.order),
            outcomes=outcomes,
            summary=RunSummary.from_outcomes(outcomes),
        )

    def print_all(self, renderer: TerminalRenderer | None = None) -> None:
        """Print every module of the last run in run order."""
        from sechecker.renderers.terminal import TerminalRenderer

        (renderer or TerminalRenderer()).print_all(self)

    def close(self) -> None:
        """Release every module, its result and private data, then the registry."""
        for module in self.registry:
            try:
                module.release()
            except Exception:
                logger.exception(f"Error releasing module '{module.name}'")
        self.registry.clear()
        self._selected.clear()
        self.order = []

    def __enter__(self) -> Library:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- Internals ---

    def _ineligibility(self, module: Module) -> str | None:
        """Why a module can never run against this policy, or None."""
        missing = module.missing_slots
        if missing:
            return "missing callback: " + ", ".join(slot.value for slot in missing)

        unmet = unmet_requirements(module, self)
        if unmet:
            return "unmet requirement: " + ", ".join(f"{r.name}={r.value}" for r in unmet)
        return None

    def _admit(self, module: Module) -> bool:
        if module.state == ModuleState.SKIPPED:
            return False

        deps = unmet_dependencies(module, self)
        if deps:
            self._skip(module, self._describe_dependencies(deps))
            return False

        module.state = ModuleState.ELIGIBLE
        return True

    def _invoke(self, module: Module, slot: CallbackSlot) -> bool:
        fn = module.get_callback(slot)
        if fn is None:
            self._fail(module, f"{slot.value} callback not set")
            return False
        try:
            status = fn(module, self.policy)
        except Exception as e:
            self._fail(module, f"{slot.value} raised {type(e).__name__}: {e}", exc_info=True)
            return False

        if not callback_succeeded(status):
            self._fail(module, f"{slot.value} returned {status!r}")
            return False
        return True

    @staticmethod
    def _describe_dependencies(unmet: list[tuple[str, str]]) -> str:
        return "unmet dependency: " + ", ".join(f"{name} ({why})" for name, why in unmet)

    def _skip(self, module: Module, reason: str) -> None:
        module.state = ModuleState.SKIPPED
        module.reason = reason
        logger.info(f"Module '{module.name}' skipped: {reason}")

    def _fail(self, module: Module, reason: str, exc_info: bool = False) -> None:
        module.state = ModuleState.FAILED
        module.reason = reason
        module.result = None
        logger.warning(f"Module '{module.name}' failed: {reason}", exc_info=exc_info)
