"""
Check modules for sechecker.

Each module is an independent unit that analyzes the policy and writes
its evidence into a Result.
"""

from sechecker.modules.base import BaseModule, CallbackSlot, Module

__all__ = [
    "BaseModule",
    "CallbackSlot",
    "Module",
]
