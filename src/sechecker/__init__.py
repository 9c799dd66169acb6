"""
sechecker — pluggable analysis engine for SELinux policies

Hosts independently written check modules, gates each one on facts of
the loaded policy and on the other modules it depends on, runs them in
dependency order and reports their severity-ranked evidence.

Usage:
    from sechecker import Library, BaseModule, PolicyFacts

    policy = PolicyFacts(version=21, policy_type="binary")

    with Library(policy) as lib:
        lib.register(MyCheck())
        report = lib.run()
        lib.print_all()
"""

from sechecker.domain.exceptions import (
    CyclicDependencyError,
    DuplicateItemError,
    DuplicateNameError,
    NotFoundError,
    SecheckerError,
)
from sechecker.domain.models import (
    Item,
    ItemKind,
    ModuleState,
    NameValue,
    OutputFormat,
    Proof,
    Result,
    Severity,
    new_result,
)
from sechecker.domain.policy import FileContexts, PolicyFacts, PolicyHandle, PolicyType
from sechecker.domain.report import ModuleOutcome, RunReport
from sechecker.engine.library import Library
from sechecker.modules.base import BaseModule, CallbackSlot, Module

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Evidence model
    "Item",
    "ItemKind",
    "NameValue",
    "OutputFormat",
    "Proof",
    "Result",
    "Severity",
    "new_result",
    # Policy data
    "FileContexts",
    "PolicyFacts",
    "PolicyHandle",
    "PolicyType",
    # Modules
    "BaseModule",
    "CallbackSlot",
    "Module",
    "ModuleState",
    # Engine
    "Library",
    "ModuleOutcome",
    "RunReport",
    # Exceptions
    "CyclicDependencyError",
    "DuplicateItemError",
    "DuplicateNameError",
    "NotFoundError",
    "SecheckerError",
]
