"""Path layout for a modelforge package.

All functions here are pure: they compute a target path from
(root, module, kind) and never touch the filesystem or the process
working directory. `find_package_root` and `resolve_model_path` are the
exceptions and only read.
"""

from pathlib import Path

from modelforge.errors import PackageNotFound


# ------------------------------------------------------------------------------
# Constants
CONFIG_FILE = "modelforge.yaml"
PROJECT_MARKERS = (CONFIG_FILE, "pyproject.toml")

MODEL_DIR = "models"
SOURCE_DIR = "src"

MODEL_EXT = ".json"
DERIVED_SUFFIX = ".v2"
DERIVED_MODEL_FILE = "domain.json"
METADATA_FILE = "metadata.json"


def config_path(root: Path, config_name: str | Path = CONFIG_FILE) -> Path:
    config_name = Path(config_name)
    if config_name.is_absolute():
        return config_name
    return root / config_name


def models_dir(root: Path) -> Path:
    return root / MODEL_DIR


def source_dir(root: Path) -> Path:
    return root / SOURCE_DIR


def default_model_path(root: Path, domain_name: str) -> Path:
    """models/<domain_name>.json under *root*."""
    return models_dir(root) / f"{domain_name}{MODEL_EXT}"


def relative_model_entry(domain_name: str) -> str:
    """The `model:` value written into the configuration for a new module."""
    return f"{MODEL_DIR}/{domain_name}{MODEL_EXT}"


def module_source_dir(output_root: Path, module_name: str) -> Path:
    return output_root / module_name


def derived_model_path(source_model_path: Path, derived_root: Path) -> Path:
    """
    <derived_root>/<stem>.v2.json for a source model.

    >>> derived_model_path(Path("/pkg/models/shop.json"), Path("/pkg/models")).as_posix()
    '/pkg/models/shop.v2.json'
    """
    source_model_path = Path(source_model_path)
    return Path(derived_root) / f"{source_model_path.stem}{DERIVED_SUFFIX}{source_model_path.suffix}"


def metadata_path(derived_path: Path) -> Path:
    return Path(derived_path) / METADATA_FILE


def derived_domain_file(derived_path: Path) -> Path:
    return Path(derived_path) / DERIVED_MODEL_FILE


def resolve_model_path(root: Path, model_entry: str | Path) -> Path:
    """
    Resolve a configured `model:` entry to a source path.

    Absolute entries are used as-is. Relative entries are taken from the
    package root; if nothing exists there, the models directory is tried.
    """
    entry = Path(model_entry)
    if entry.is_absolute():
        return entry
    candidate = root / entry
    if not candidate.exists():
        fallback = models_dir(root) / entry
        if fallback.exists():
            return fallback
    return candidate


def find_package_root(start: Path) -> Path:
    """Walk up from *start* to the nearest directory holding a project marker."""
    start = Path(start).resolve()
    for directory in (start, *start.parents):
        if any((directory / marker).is_file() for marker in PROJECT_MARKERS):
            return directory
    raise PackageNotFound(
        f"Unable to find a package in {start}: no {' or '.join(PROJECT_MARKERS)} in it or its parents."
    )
