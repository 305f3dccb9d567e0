"""Naming and formatting helpers."""

import re
import uuid

import black

_WORD_BOUNDARY = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])")

# Fixed namespace so derived identifiers are stable across runs and machines.
MODELFORGE_NS = uuid.uuid5(uuid.NAMESPACE_OID, "modelforge")


def _words(text: str) -> list[str]:
    return _WORD_BOUNDARY.findall(text or "")


def to_snake_case(text: str) -> str:
    """
    >>> to_snake_case("Shopping Cart")
    'shopping_cart'
    >>> to_snake_case("HTTPServer")
    'http_server'
    """
    return "_".join(word.lower() for word in _words(text))


def to_title_case(text: str) -> str:
    """
    >>> to_title_case("shopping_cart")
    'Shopping Cart'
    """
    return " ".join(word.capitalize() for word in _words(text))


def to_type_name(text: str) -> str:
    """
    >>> to_type_name("line item")
    'LineItem'
    """
    return "".join(word.capitalize() for word in _words(text))


def stable_uuid(*parts: str) -> uuid.UUID:
    """UUIDv5 of the joined *parts* under the modelforge namespace."""
    return uuid.uuid5(MODELFORGE_NS, "::".join(parts))


def format_python_code(code: str) -> str:
    """Format generated Python code with Black."""
    return black.format_str(code, mode=black.Mode())
