"""
Engine layer for sechecker.

Contains the module registry, the requirement/dependency evaluator and
the library that drives module lifecycles.
"""

from sechecker.engine.library import Library
from sechecker.engine.registry import ModuleRegistry
from sechecker.engine.requirements import (
    check_dependency,
    check_requirement,
    dependency_order,
)

__all__ = [
    "Library",
    "ModuleRegistry",
    "check_dependency",
    "check_requirement",
    "dependency_order",
]
