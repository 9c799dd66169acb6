"""
Adapters for sechecker.

External I/O: loading policy facts and file contexts from disk.
"""

from sechecker.adapters.fs import load_file_contexts, load_policy_facts

__all__ = [
    "load_file_contexts",
    "load_policy_facts",
]
