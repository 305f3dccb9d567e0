"""
Pytest configuration and shared fixtures for the modelforge test suite.
"""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path

import pytest
import yaml

from modelforge.backends import create_default_registry
from modelforge.orchestrator import Orchestrator


@pytest.fixture(autouse=True)
def reset_modelforge_logger():
    """CLI runs detach the modelforge logger from root; reattach it so caplog sees records."""
    logger = logging.getLogger("modelforge")
    yield
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def temp_output_dir():
    """Create a temporary directory for generated output."""
    temp_dir = tempfile.mkdtemp(prefix="modelforge_test_")
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def package_root(temp_output_dir):
    """A minimal package: pyproject.toml plus an empty models directory."""
    root = temp_output_dir / "shop_app"
    (root / "models").mkdir(parents=True)
    (root / "pyproject.toml").write_text('[project]\nname = "shop-app"\n')
    return root


@pytest.fixture
def registry():
    return create_default_registry()


@pytest.fixture
def shop_model():
    """A small but complete source model."""
    return {
        "domain": "Shop",
        "description": "Things people buy.",
        "objects": [
            {
                "name": "Customer",
                "description": "Someone with an account.",
                "attributes": [
                    {"name": "name", "type": "string"},
                    {"name": "vip", "type": "boolean"},
                ],
            },
            {
                "name": "Order",
                "attributes": [
                    {"name": "total", "type": "float"},
                    {"name": "line count", "type": "integer"},
                ],
            },
        ],
        "relationships": [
            {"name": "R1", "from": "Order", "to": "Customer", "cardinality": "one",
             "description": "is placed by"},
        ],
    }


@pytest.fixture
def blank_model():
    return {"domain": "Blank", "objects": [], "relationships": []}


@pytest.fixture
def write_model_file(package_root):
    """Factory fixture to write a source model into models/."""
    def _write(content, filename: str = "shop.json") -> Path:
        file_path = package_root / "models" / filename
        if not isinstance(content, str):
            content = json.dumps(content, indent=2)
        file_path.write_text(content)
        return file_path
    return _write


@pytest.fixture
def write_config(package_root):
    """Factory fixture to write modelforge.yaml from a `modules` mapping (or raw text)."""
    def _write(modules, filename: str = "modelforge.yaml") -> Path:
        file_path = package_root / filename
        if isinstance(modules, str):
            file_path.write_text(modules)
        else:
            file_path.write_text(yaml.safe_dump({"modules": modules}, sort_keys=False))
        return file_path
    return _write


@pytest.fixture
def orchestrator(package_root, registry):
    return Orchestrator(package_root, registry=registry)


@pytest.fixture
def two_module_package(write_model_file, write_config, shop_model, blank_model):
    """alpha (grace, shop model) and beta (dwarf, blank model), declared in that order."""
    write_model_file(shop_model, "shop.json")
    write_model_file(blank_model, "blank.json")
    return write_config({
        "alpha": {"model": "models/shop.json", "compiler": {"kind": "grace", "options": {}}},
        "beta": {"model": "models/blank.json", "compiler": {"kind": "dwarf", "options": {"pretty": False}}},
    })


# Helper fixtures available to all tests

@pytest.fixture
def snapshot_tree():
    """Return a function mapping every file under a root to (bytes, mtime_ns)."""
    return _snapshot_tree


@pytest.fixture
def touch_forward():
    """Return a function that moves a file's modification time strictly forward."""
    return _touch_forward


def _snapshot_tree(root: Path) -> dict:
    """Map every file under *root* to (bytes, mtime_ns); directories map to None."""
    snapshot = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        if path.is_file():
            snapshot[rel] = (path.read_bytes(), path.stat().st_mtime_ns)
        else:
            snapshot[rel] = None
    return snapshot


def _touch_forward(path: Path, seconds: int = 10) -> None:
    """Move *path*'s modification time strictly forward."""
    stat = path.stat()
    bump = seconds * 1_000_000_000
    os.utime(path, ns=(stat.st_atime_ns + bump, stat.st_mtime_ns + bump))
