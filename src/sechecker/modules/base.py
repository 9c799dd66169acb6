"""
Base module infrastructure.

Defines the module entity hosted by a library, the closed set of callback
slots a module may fill, and a base class for class-based modules.
Modules never see each other directly: they receive the shared policy
handle and keep their own state in their private data slot.
"""

from __future__ import annotations

from abc import abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, TypeVar

from sechecker.domain.exceptions import InvalidArgumentError
from sechecker.domain.models import (
    ItemKind,
    ModuleState,
    NameValue,
    OutputFormat,
    Result,
    new_result,
)

if TYPE_CHECKING:
    from sechecker.domain.policy import PolicyHandle

T = TypeVar("T")

Callback = Callable[..., Any]


class CallbackSlot(str, Enum):
    """Named callback slots of a module."""

    INIT = "init"
    RUN = "run"
    FREE = "data_free"
    PRINT = "print_output"
    GET_RESULT = "get_result"


# A module missing either of these can never run.
MANDATORY_SLOTS = (CallbackSlot.INIT, CallbackSlot.RUN)


def callback_succeeded(status: Any) -> bool:
    """Interpret a callback status: None, True and 0 are success."""
    if status is None or status is True:
        return True
    if status is False:
        return False
    if isinstance(status, int):
        return status == 0
    return True


def _name_values(pairs: Iterable[NameValue | tuple[str, str]] | None, what: str) -> list[NameValue]:
    values: list[NameValue] = []
    for pair in pairs or ():
        if isinstance(pair, NameValue):
            values.append(pair)
        elif isinstance(pair, tuple) and len(pair) == 2:
            values.append(NameValue(name=pair[0], value=str(pair[1])))
        else:
            raise InvalidArgumentError(f"Invalid {what} entry: {pair!r}", argument=what)
    return values


class Module:
    """
    A check module hosted by a library.

    Callbacks take the module itself as first argument:

    - ``init(module, policy)`` / ``run(module, policy)`` /
      ``print_output(module, policy)`` return a status; ``None``, ``True``
      or ``0`` mean success, ``False`` or a non-zero integer mean failure.
    - ``data_free(module)`` releases the private data.
    - ``get_result(module)`` returns the module's Result, if any.
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        *,
        options: Iterable[NameValue | tuple[str, str]] | None = None,
        requirements: Iterable[NameValue | tuple[str, str]] | None = None,
        dependencies: Iterable[NameValue | tuple[str, str]] | None = None,
        callbacks: dict[CallbackSlot | str, Callback | None] | None = None,
        output_format: OutputFormat | None = None,
        data: Any = None,
    ) -> None:
        if not isinstance(name, str) or not name.strip():
            raise InvalidArgumentError("Module name must be a non-empty string", argument="name")

        self.name = name
        self.description = description
        self.options = _name_values(options, "options")
        self.requirements = _name_values(requirements, "requirements")
        self.dependencies = _name_values(dependencies, "dependencies")
        self.output_format = output_format
        self.data = data

        self.callbacks: dict[CallbackSlot, Callback] = {}
        for slot, fn in (callbacks or {}).items():
            self.set_callback(slot, fn)

        self.state = ModuleState.REGISTERED
        self.reason: str | None = None
        self.result: Result | None = None

    def set_callback(self, slot: CallbackSlot | str, fn: Callback | None) -> None:
        """Fill a callback slot, or clear it when ``fn`` is None."""
        try:
            slot = CallbackSlot(slot)
        except ValueError:
            raise InvalidArgumentError(f"Unknown callback slot: {slot!r}", argument="slot")

        if fn is None:
            self.callbacks.pop(slot, None)
        elif not callable(fn):
            raise InvalidArgumentError(f"Callback for '{slot.value}' is not callable", argument="fn")
        else:
            self.callbacks[slot] = fn

    def get_callback(self, slot: CallbackSlot) -> Callback | None:
        return self.callbacks.get(slot)

    def has_callback(self, slot: CallbackSlot) -> bool:
        return slot in self.callbacks

    @property
    def missing_slots(self) -> list[CallbackSlot]:
        """Mandatory slots that are not filled."""
        return [slot for slot in MANDATORY_SLOTS if slot not in self.callbacks]

    @property
    def dependency_names(self) -> list[str]:
        return [dep.value for dep in self.dependencies]

    def option(self, name: str, default: str | None = None) -> str | None:
        """First value of an option."""
        for opt in self.options:
            if opt.name == name:
                return opt.value
        return default

    def option_values(self, name: str) -> list[str]:
        """All values of a repeated option, in declaration order."""
        return [opt.value for opt in self.options if opt.name == name]

    def data_as(self, kind: type[T]) -> T:
        """
        Return the private data as ``kind``.

        Raises:
            TypeError: If the data slot holds something else.
        """
        if not isinstance(self.data, kind):
            raise TypeError(
                f"Module '{self.name}' data is {type(self.data).__name__}, not {kind.__name__}"
            )
        return self.data

    def reset(self) -> None:
        """Forget the outcome of a previous run."""
        self.state = ModuleState.REGISTERED
        self.reason = None
        self.result = None

    def release(self) -> None:
        """Release the result and, through the free callback, the private data."""
        free = self.callbacks.get(CallbackSlot.FREE)
        try:
            if free is not None:
                free(self)
        finally:
            self.result = None
            self.data = None

    def __repr__(self) -> str:
        return f"<Module {self.name} {self.state.value}>"


class BaseModule:
    """
    Base class for class-based check modules.

    Subclasses define the module through class attributes and implement
    `run()`. The instance becomes the module's private data, so any state a
    subclass keeps on ``self`` belongs to that module alone. `print_output()`
    is only wired into the callback table when a subclass overrides it.
    """

    # Subclasses must override these
    name: str = ""
    description: str = ""
    item_kind: ItemKind = ItemKind.TYPE
    # (name, value) pairs
    options: tuple[tuple[str, str], ...] = ()
    requirements: tuple[tuple[str, str], ...] = ()
    # names of modules this one needs
    dependencies: tuple[str, ...] = ()
    output_format: OutputFormat | None = None

    def __init__(self) -> None:
        self.result: Result | None = None

    def init(self, module: Module, policy: PolicyHandle) -> Any:
        """Prepare for a run. Succeeds by default."""
        return None

    @abstractmethod
    def run(self, module: Module, policy: PolicyHandle) -> Any:
        """Analyze the policy and fill ``self.result``."""
        raise NotImplementedError

    def free(self, module: Module) -> None:
        self.result = None

    def print_output(self, module: Module, policy: PolicyHandle) -> Any:
        raise NotImplementedError

    def get_result(self, module: Module) -> Result | None:
        return self.result

    def new_result(self, module: Module) -> Result:
        """Start a fresh result for this run, replacing any earlier one."""
        self.result = new_result(module.name, self.item_kind)
        return self.result

    def to_module(self) -> Module:
        """Build the hosted module entity for this instance."""
        callbacks: dict[CallbackSlot | str, Callback | None] = {
            CallbackSlot.INIT: self.init,
            CallbackSlot.RUN: self.run,
            CallbackSlot.FREE: self.free,
            CallbackSlot.GET_RESULT: self.get_result,
        }
        if type(self).print_output is not BaseModule.print_output:
            callbacks[CallbackSlot.PRINT] = self.print_output

        return Module(
            name=self.name,
            description=self.description,
            options=self.options,
            requirements=self.requirements,
            dependencies=[NameValue(name="module", value=dep) for dep in self.dependencies],
            callbacks=callbacks,
            output_format=self.output_format,
            data=self,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"
