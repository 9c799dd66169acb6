"""
Renderers for sechecker.

Output formatters for module results and run reports: terminal and JSON.
"""

from sechecker.renderers.terminal import TerminalRenderer
from sechecker.renderers.json_renderer import JsonRenderer

__all__ = [
    "TerminalRenderer",
    "JsonRenderer",
]
