from pathlib import Path
from jinja2 import Environment, FileSystemLoader, StrictUndefined


_PY_TYPES = {
    "string": "str",
    "integer": "int",
    "float": "float",
    "boolean": "bool",
    "uuid": "uuid.UUID",
}

_DOCTEST_VALUES = {
    "string": "'value'",
    "integer": "42",
    "float": "1.5",
    "boolean": "True",
    "uuid": "uuid.UUID(int=1)",
}


def py_type(t: str) -> str:
    """Map model attribute type -> Python type hint."""
    return _PY_TYPES[t]


def _docstring(text: str) -> str:
    """Make free text safe inside a generated triple-quoted docstring."""
    return str(text).replace("\\", "\\\\").replace('"""', '\\"\\"\\"')


def _oneline(text: str) -> str:
    return " ".join(str(text).split())


def doctest_value(t: str) -> str:
    """Map model attribute type -> literal used in generated doctests."""
    return _DOCTEST_VALUES[t]


env = Environment(
    loader=FileSystemLoader(Path(__file__).parent),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)

env.filters["py_type"] = py_type
env.filters["doctest_value"] = doctest_value
env.filters["docstring"] = _docstring
env.filters["oneline"] = _oneline
