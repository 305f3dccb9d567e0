"""
Declared configuration and its resolution.

The configuration file (`modelforge.yaml`) declares the modules of a
package. `ConfigResolver` turns it into `ModuleSpec` values for one run,
and `resolve_option` / `resolve_backend_options` merge option values with
the precedence

    explicit (command line) > persisted (configuration file) > default
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from modelforge.errors import ConfigError, ModuleCollision, ModuleNotFound, NothingToDo
from modelforge.gen_logging import get_logger
from modelforge.paths import (
    CONFIG_FILE,
    SOURCE_DIR,
    default_model_path,
    relative_model_entry,
    resolve_model_path,
)
from modelforge.utils import to_snake_case

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_BACKEND = "grace"


# ------------------------------------------------------------------------------
# Schema

class CompilerSelection(BaseModel):
    """A backend kind plus that backend's own options payload."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: str = DEFAULT_BACKEND
    options: dict[str, Any] = Field(default_factory=dict)


class ModuleConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    model: str
    output: str = SOURCE_DIR
    compiler: CompilerSelection = Field(default_factory=CompilerSelection)


class DeclaredConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    modules: dict[str, ModuleConfig] = Field(default_factory=dict)

    def with_module(self, name: str, module: ModuleConfig) -> "DeclaredConfig":
        modules = dict(self.modules)
        modules[name] = module
        return DeclaredConfig(modules=modules)


@dataclass(frozen=True)
class ModuleSpec:
    name: str
    source_model_path: Path
    generated_location: Path
    backend_selection: CompilerSelection


# ------------------------------------------------------------------------------
# File I/O

class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that refuses duplicate mapping keys instead of keeping the last one."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping", node.start_mark,
                    f"found duplicate key '{key}'", key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def load_config(path: Path) -> DeclaredConfig:
    """Read and validate the configuration file at *path*."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Unable to open configuration file: {path}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Unable to read configuration file {path}: {e}") from e

    try:
        raw = yaml.load(text, Loader=_UniqueKeyLoader)
    except yaml.YAMLError as e:
        raise ConfigError(f"Unable to parse {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping with a 'modules' table.")
    if raw.get("modules") is None:
        raw["modules"] = {}

    try:
        config = DeclaredConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.debug(f"[CONFIG] Loaded {path} ({len(config.modules)} module(s))")
    return config


def load_config_or_empty(path: Path) -> DeclaredConfig:
    if not Path(path).exists():
        return DeclaredConfig()
    return load_config(path)


def save_config(path: Path, config: DeclaredConfig, dry_run: bool = False) -> None:
    path = Path(path)
    data = config.model_dump(mode="json")
    if dry_run:
        logger.info(f"[DRY-RUN] Would write {path}")
        return
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    logger.debug(f"[CONFIG] Wrote {path}")


# ------------------------------------------------------------------------------
# Option precedence

def resolve_option(explicit: Optional[T], persisted: Optional[T], default: T) -> T:
    """Explicit value if present, else persisted value if present, else *default*."""
    if explicit is not None:
        return explicit
    if persisted is not None:
        return persisted
    return default


def resolve_backend_options(
    kind: str,
    options_model: type[BaseModel],
    explicit: Mapping[str, Any],
    persisted: Mapping[str, Any],
) -> BaseModel:
    """Resolve every field of *options_model* through `resolve_option`."""
    fields = options_model.model_fields
    unknown = sorted((set(explicit) | set(persisted)) - set(fields))
    if unknown:
        raise ConfigError(
            f"Unknown option(s) for compiler '{kind}': {', '.join(unknown)}. "
            f"Valid: {', '.join(fields) or 'none'}."
        )

    values = {
        name: resolve_option(explicit.get(name), persisted.get(name), field.get_default())
        for name, field in fields.items()
    }
    try:
        return options_model.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid options for compiler '{kind}': {e}") from e


# ------------------------------------------------------------------------------
# Resolver

class ConfigResolver:
    """Resolves the modules of one run against the declared configuration.

    Args:
        declared: The deserialized configuration.
        root: Package root that relative paths in the configuration hang off.
        config_name: Name used in messages.
        default_selection: Backend selection given to newly registered modules.
    """

    def __init__(
        self,
        declared: DeclaredConfig,
        root: Path,
        config_name: str = CONFIG_FILE,
        default_selection: Optional[CompilerSelection] = None,
    ):
        self.declared = declared
        self.root = Path(root)
        self.config_name = str(config_name)
        self.default_selection = default_selection or CompilerSelection()

    def is_declared(self, name: str) -> bool:
        return name in self.declared.modules

    def module_spec(self, name: str) -> ModuleSpec:
        module = self.declared.modules.get(name)
        if module is None:
            raise ModuleNotFound(name, self.config_name)
        return ModuleSpec(
            name=name,
            source_model_path=resolve_model_path(self.root, module.model),
            generated_location=self.root / module.output,
            backend_selection=module.compiler,
        )

    def resolve_modules(self, requested_names: Optional[Sequence[str]] = None) -> list[ModuleSpec]:
        """
        Modules to process, in a stable order.

        With no *requested_names*, every declared module in declaration order;
        an empty declaration raises `NothingToDo`. With names, the declared
        ones in requested order; blank names are ignored and undeclared ones
        are logged and skipped.
        """
        if requested_names is None:
            if not self.declared.modules:
                raise NothingToDo(f"Nothing to do. Maybe declare a module in {self.config_name}?")
            return [self.module_spec(name) for name in self.declared.modules]

        specs = []
        seen = set()
        for name in _clean_names(requested_names):
            if name in seen:
                raise ConfigError(f"Module '{name}' was requested more than once.")
            seen.add(name)
            try:
                specs.append(self.module_spec(name))
            except ModuleNotFound as e:
                logger.warning(f"[SKIP] {e}")
        return specs

    def register_new_module(
        self,
        name: str,
        target_directory: Path,
        module: Optional[str] = None,
    ) -> ModuleSpec:
        """
        Settings for a brand-new module named after *name* (or *module*).

        Raises `ModuleCollision` if the module name is already declared.
        Nothing is written; the caller persists the result.
        """
        domain_name = to_snake_case(name)
        module_name = to_snake_case(module) if module else domain_name
        if not module_name:
            raise ConfigError(f"'{module or name}' does not yield a usable module name.")
        if self.is_declared(module_name):
            raise ModuleCollision(module_name, self.config_name)

        target_directory = Path(target_directory)
        return ModuleSpec(
            name=module_name,
            source_model_path=default_model_path(target_directory, domain_name),
            generated_location=target_directory / SOURCE_DIR,
            backend_selection=self.default_selection,
        )

    def declare(self, spec: ModuleSpec) -> DeclaredConfig:
        """The declared configuration with *spec* added (as a new value)."""
        module = ModuleConfig(
            model=relative_model_entry(spec.source_model_path.stem),
            output=_relative_to(spec.generated_location, self.root),
            compiler=spec.backend_selection,
        )
        return self.declared.with_module(spec.name, module)


def _clean_names(names: Iterable[str]) -> list[str]:
    # "a, b,,c" on the command line yields blank and padded entries
    return [n.strip() for n in names if n and n.strip()]


def _relative_to(path: Path, root: Path) -> str:
    try:
        return Path(path).relative_to(root).as_posix()
    except ValueError:
        return str(path)
