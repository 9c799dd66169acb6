"""
Domain layer for sechecker.

Contains the evidence model, the policy data handles, run reports and the
exception hierarchy, with no dependencies beyond Pydantic.
"""

from sechecker.domain.exceptions import (
    AllocationError,
    ConfigError,
    CyclicDependencyError,
    DataSourceError,
    DuplicateItemError,
    DuplicateNameError,
    InvalidArgumentError,
    ModuleError,
    NotFoundError,
    ProfileError,
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
from sechecker.domain.policy import (
    FileContextEntry,
    FileContexts,
    PolicyFacts,
    PolicyHandle,
    PolicyType,
)
from sechecker.domain.report import ModuleOutcome, RunReport, RunSummary

__all__ = [
    # Models
    "Item",
    "ItemKind",
    "ModuleState",
    "NameValue",
    "OutputFormat",
    "Proof",
    "Result",
    "Severity",
    "new_result",
    # Policy data
    "FileContextEntry",
    "FileContexts",
    "PolicyFacts",
    "PolicyHandle",
    "PolicyType",
    # Reports
    "ModuleOutcome",
    "RunReport",
    "RunSummary",
    # Exceptions
    "AllocationError",
    "ConfigError",
    "CyclicDependencyError",
    "DataSourceError",
    "DuplicateItemError",
    "DuplicateNameError",
    "InvalidArgumentError",
    "ModuleError",
    "NotFoundError",
    "ProfileError",
    "SecheckerError",
]
