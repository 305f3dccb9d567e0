"""
Code-generation backends for modelforge.

Each backend is a `Backend` subclass keyed by a canonical kind:
- grace: Python dataclasses plus an object store
- dwarf: flat JSON node list
"""

from .base import Backend, BackendOptions, write_generated
from .registry import BackendRegistry, BackendSelection
from .grace import GraceBackend, GraceOptions
from .dwarf import DwarfBackend, DwarfOptions


def create_default_registry() -> BackendRegistry:
    """A fresh registry holding every built-in backend."""
    return BackendRegistry([GraceBackend(), DwarfBackend()])


__all__ = [
    "Backend",
    "BackendOptions",
    "BackendRegistry",
    "BackendSelection",
    "DwarfBackend",
    "DwarfOptions",
    "GraceBackend",
    "GraceOptions",
    "create_default_registry",
    "write_generated",
]
