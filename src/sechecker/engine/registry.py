"""
Module registry.

Stores module definitions by name and resolves their callbacks. The
registry never executes a callback; lifecycle policy lives in the library.
"""

from __future__ import annotations

from typing import Iterator

from sechecker.domain.exceptions import DuplicateNameError, InvalidArgumentError, NotFoundError
from sechecker.modules.base import Callback, CallbackSlot, Module
from sechecker.utils.logging import get_logger

logger = get_logger("engine.registry")


class ModuleRegistry:
    """Name-keyed module table that preserves registration order."""

    def __init__(self) -> None:
        self._modules: dict[str, Module] = {}

    def register(self, module: Module) -> Module:
        """
        Add a module.

        Raises:
            InvalidArgumentError: If ``module`` is not a Module.
            DuplicateNameError: If a module with the same name exists.
        """
        if not isinstance(module, Module):
            raise InvalidArgumentError(
                f"Expected a Module, got {type(module).__name__}", argument="module"
            )
        if module.name in self._modules:
            raise DuplicateNameError(module.name)

        self._modules[module.name] = module
        logger.debug(f"Registered module '{module.name}'")
        return module

    def unregister(self, name: str) -> Module:
        """Remove and return a module. Raises NotFoundError if absent."""
        module = self.lookup(name)
        del self._modules[name]
        logger.debug(f"Unregistered module '{name}'")
        return module

    def lookup(self, name: str) -> Module:
        """Raises NotFoundError if no module has this name."""
        try:
            return self._modules[name]
        except KeyError:
            raise NotFoundError(name) from None

    def get(self, name: str) -> Module | None:
        return self._modules.get(name)

    def resolve_callback(self, name: str, slot: CallbackSlot | str) -> Callback:
        """
        Resolve a module's callback.

        Raises:
            NotFoundError: If the module or the slot is not set.
        """
        module = self.lookup(name)
        try:
            slot = CallbackSlot(slot)
        except ValueError:
            raise NotFoundError(name, slot=str(slot)) from None

        fn = module.get_callback(slot)
        if fn is None:
            raise NotFoundError(name, slot=slot.value)
        return fn

    def position(self, name: str) -> int:
        """Registration index of a module."""
        for index, registered in enumerate(self._modules):
            if registered == name:
                return index
        raise NotFoundError(name)

    @property
    def names(self) -> list[str]:
        return list(self._modules)

    def clear(self) -> None:
        self._modules.clear()

    def __iter__(self) -> Iterator[Module]:
        return iter(list(self._modules.values()))

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, name: object) -> bool:
        return name in self._modules
