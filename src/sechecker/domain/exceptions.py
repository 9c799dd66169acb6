"""
Exception hierarchy for sechecker.

All exceptions inherit from SecheckerError for easy catching.
"""

from __future__ import annotations


class SecheckerError(Exception):
    """Base exception for all sechecker errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidArgumentError(SecheckerError):
    """Raised when a required input to an engine call is missing or malformed."""

    def __init__(self, message: str, argument: str | None = None) -> None:
        super().__init__(message, {"argument": argument})
        self.argument = argument


class DuplicateNameError(SecheckerError):
    """Raised when a module name is registered twice in the same library."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Module already registered: {name}", {"name": name})
        self.name = name


class DuplicateItemError(SecheckerError):
    """Raised when an item identifier already exists in a result."""

    def __init__(self, item_id: int | str, module_name: str) -> None:
        super().__init__(
            f"Item {item_id!r} already present in result of '{module_name}'",
            {"item_id": item_id, "module_name": module_name},
        )
        self.item_id = item_id
        self.module_name = module_name


class NotFoundError(SecheckerError):
    """Raised when a module, or a callback slot within it, is unknown."""

    def __init__(self, name: str, slot: str | None = None) -> None:
        if slot is None:
            message = f"Module not found: {name}"
        else:
            message = f"Callback '{slot}' not set for module: {name}"
        super().__init__(message, {"name": name, "slot": slot})
        self.name = name
        self.slot = slot


class CyclicDependencyError(SecheckerError):
    """Raised when module dependencies form a cycle; fatal to the whole run."""

    def __init__(self, module: str, cycle: list[str] | None = None) -> None:
        cycle = cycle or [module]
        super().__init__(
            f"Cyclic dependency involving module '{module}': {' -> '.join(cycle)}",
            {"module": module, "cycle": cycle},
        )
        self.module = module
        self.cycle = cycle


class AllocationError(SecheckerError):
    """Raised when resources are exhausted while building engine state."""


class ModuleError(SecheckerError):
    """Raised by module code to report a failure of one of its callbacks."""

    def __init__(self, message: str, module: str | None = None) -> None:
        super().__init__(message, {"module": module})
        self.module = module


class ProfileError(SecheckerError):
    """Raised when a module profile is invalid or cannot be read."""

    def __init__(self, message: str, profile_path: str | None = None) -> None:
        super().__init__(message, {"profile_path": profile_path})
        self.profile_path = profile_path


class DataSourceError(SecheckerError):
    """Raised when policy or file-context data cannot be loaded."""

    def __init__(self, message: str, source: str | None = None, line: int | None = None) -> None:
        super().__init__(message, {"source": source, "line": line})
        self.source = source
        self.line = line


class ConfigError(SecheckerError):
    """Raised when engine settings are invalid."""

    def __init__(self, message: str, config_key: str | None = None) -> None:
        super().__init__(message, {"config_key": config_key})
        self.config_key = config_key
