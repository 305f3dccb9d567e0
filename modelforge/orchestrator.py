"""
Top-level driver for the `gen` and `new` operations.

For `gen`, modules are processed one at a time, in a stable order:

    RESOLVED -> STALENESS_CHECKED -> REBUILT | CACHE_HIT -> DISPATCHED -> DONE

with ERROR reachable from any step. The first failing module aborts the
run; a requested module that is not declared is logged and skipped.

The package root is threaded explicitly through every call; nothing here
changes the process working directory.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

from modelforge.backends import BackendRegistry, BackendSelection, create_default_registry
from modelforge.cache import ModelCache
from modelforge.config import (
    DEFAULT_BACKEND,
    CompilerSelection,
    ConfigResolver,
    DeclaredConfig,
    ModuleSpec,
    load_config,
    load_config_or_empty,
    resolve_backend_options,
    save_config,
)
from modelforge.errors import ModuleDirectoryMissing, OrchestrationError, UnknownBackendError
from modelforge.gen_logging import get_logger
from modelforge.language import Domain, build_domain
from modelforge.paths import CONFIG_FILE, config_path, models_dir, module_source_dir
from modelforge.templates import env as jinja_env
from modelforge.utils import format_python_code, to_snake_case, to_title_case

logger = get_logger(__name__)


class ModuleState(str, Enum):
    RESOLVED = "RESOLVED"
    STALENESS_CHECKED = "STALENESS_CHECKED"
    REBUILT = "REBUILT"
    CACHE_HIT = "CACHE_HIT"
    DISPATCHED = "DISPATCHED"
    DONE = "DONE"
    ERROR = "ERROR"


_ALLOWED = {
    (ModuleState.RESOLVED, ModuleState.STALENESS_CHECKED),
    (ModuleState.STALENESS_CHECKED, ModuleState.REBUILT),
    (ModuleState.STALENESS_CHECKED, ModuleState.CACHE_HIT),
    (ModuleState.REBUILT, ModuleState.DISPATCHED),
    (ModuleState.CACHE_HIT, ModuleState.DISPATCHED),
    (ModuleState.DISPATCHED, ModuleState.DONE),
}

_TERMINAL = {ModuleState.DONE, ModuleState.ERROR}


def can_transition(src: ModuleState, dst: ModuleState) -> bool:
    if src in _TERMINAL:
        return False
    if dst == ModuleState.ERROR:
        return True
    return (src, dst) in _ALLOWED


@dataclass
class ModuleOutcome:
    name: str
    backend: str
    model_path: Path
    state: ModuleState = ModuleState.RESOLVED
    was_rebuilt: bool = False
    files: list[Path] = field(default_factory=list)

    def advance(self, dst: ModuleState) -> None:
        if not can_transition(self.state, dst):
            raise ValueError(f"Illegal transition for '{self.name}': {self.state.value} -> {dst.value}")
        self.state = dst


@dataclass
class GenerationReport:
    outcomes: list[ModuleOutcome] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def generated(self) -> list[str]:
        return [o.name for o in self.outcomes if o.state == ModuleState.DONE]

    @property
    def rebuilt(self) -> list[str]:
        return [o.name for o in self.outcomes if o.was_rebuilt]


@dataclass(frozen=True)
class BackendOverride:
    """A compiler chosen on the command line, for this run only."""

    kind: str
    options: Mapping[str, Any] = field(default_factory=dict)


class Orchestrator:
    """Drives `gen` and `new` for the package at *root*.

    Args:
        root: Package root; every path is computed from it.
        registry: Backends to dispatch to (a fresh default registry if omitted).
        config_name: Configuration file, relative to *root* or absolute.
        dry_run: Validate and log everything, write nothing.
        loader: Builds a `Domain` from a source model path.
    """

    def __init__(
        self,
        root: Path,
        registry: Optional[BackendRegistry] = None,
        config_name: str | Path = CONFIG_FILE,
        dry_run: bool = False,
        loader: Callable[[Path], Domain] = build_domain,
    ):
        self.root = Path(root)
        self.registry = registry or create_default_registry()
        self.config_file = config_path(self.root, config_name)
        self.dry_run = dry_run
        self.cache = ModelCache(loader=loader, dry_run=dry_run)

    @property
    def package_context(self) -> str:
        return to_snake_case(self.root.name) or "package"

    def resolver(self, declared: DeclaredConfig) -> ConfigResolver:
        default = self.registry.get(DEFAULT_BACKEND)
        return ConfigResolver(
            declared,
            self.root,
            config_name=self.config_file.name,
            default_selection=CompilerSelection(
                kind=default.kind,
                options=default.default_options().model_dump(),
            ),
        )

    # ------------------------------------------------------------------------------
    # gen

    def generate(
        self,
        modules: Optional[Sequence[str]] = None,
        override: Optional[BackendOverride] = None,
    ) -> GenerationReport:
        """Generate code for *modules* (every declared module if None)."""
        if override is not None and override.kind not in self.registry:
            raise UnknownBackendError(override.kind, self.registry.kinds())

        resolver = self.resolver(load_config(self.config_file))
        specs = resolver.resolve_modules(modules)

        report = GenerationReport(dry_run=self.dry_run)
        if modules is not None:
            report.skipped = [
                name.strip() for name in modules
                if name and name.strip() and not resolver.is_declared(name.strip())
            ]

        if specs and not models_dir(self.root).is_dir():
            raise ModuleDirectoryMissing(f"Unable to find models directory: {models_dir(self.root)}.")

        for spec in specs:
            report.outcomes.append(self.generate_module(spec, override))

        logger.info(
            f"[DONE] {len(report.generated)} module(s) generated, "
            f"{len(report.rebuilt)} model(s) rebuilt, {len(report.skipped)} skipped"
        )
        return report

    def generate_module(self, spec: ModuleSpec, override: Optional[BackendOverride] = None) -> ModuleOutcome:
        outcome = ModuleOutcome(
            name=spec.name,
            backend=override.kind if override else spec.backend_selection.kind,
            model_path=spec.source_model_path,
        )

        try:
            selection = self.effective_selection(spec, override)
            logger.info(
                f"[DISPATCH] Generating module '{spec.name}' from {spec.source_model_path.name} ({selection.kind})"
            )
            model, was_rebuilt = self.cache.ensure_fresh(spec.source_model_path, models_dir(self.root))
            outcome.advance(ModuleState.STALENESS_CHECKED)
            outcome.was_rebuilt = was_rebuilt
            outcome.advance(ModuleState.REBUILT if was_rebuilt else ModuleState.CACHE_HIT)

            outcome.files = self.registry.dispatch(
                selection,
                model,
                self.package_context,
                spec.name,
                spec.generated_location,
                self.dry_run,
            )
            outcome.advance(ModuleState.DISPATCHED)
        except OrchestrationError as e:
            outcome.advance(ModuleState.ERROR)
            logger.error(f"[ERROR] Module '{spec.name}': {e}")
            raise

        outcome.advance(ModuleState.DONE)
        return outcome

    def effective_selection(self, spec: ModuleSpec, override: Optional[BackendOverride] = None) -> BackendSelection:
        """
        Backend and options for *spec* in this run.

        A command-line override wins over the declared kind. Declared options
        only take part when the declared kind is the kind being run.
        """
        declared = spec.backend_selection
        if override is None:
            kind, explicit, persisted = declared.kind, {}, declared.options
        else:
            kind, explicit = override.kind, override.options
            persisted = declared.options if declared.kind == override.kind else {}

        backend = self.registry.get(kind)
        options = resolve_backend_options(kind, backend.options_model, explicit, persisted)
        return BackendSelection(kind=kind, options=options)

    # ------------------------------------------------------------------------------
    # new

    def new_module(self, domain: str, module: Optional[str] = None) -> ModuleSpec:
        """Declare a new module and scaffold its model file and source package."""
        if not self.root.is_dir():
            raise ModuleDirectoryMissing(f"Package directory {self.root} does not exist.")

        resolver = self.resolver(load_config_or_empty(self.config_file))
        spec = resolver.register_new_module(domain, self.root, module)

        src_dir = module_source_dir(spec.generated_location, spec.name)
        if src_dir.exists():
            raise OrchestrationError(f"Module directory {src_dir} already exists.")

        logger.info(f"[SCAFFOLD] Creating domain '{domain}' as module '{spec.name}' in {self.root}")
        save_config(self.config_file, resolver.declare(spec), self.dry_run)
        self._write_blank_model(spec.source_model_path, domain)
        self._write_module_package(src_dir, domain)
        return spec

    def _write_blank_model(self, model_path: Path, domain: str) -> None:
        if model_path.exists():
            logger.warning(f"[SCAFFOLD] Keeping existing model file {model_path}")
            return
        text = jinja_env.get_template("scaffold/blank_model.json.jinja").render(domain=domain)
        if self.dry_run:
            logger.info(f"[DRY-RUN] Would create blank model {model_path}")
            return
        model_path.parent.mkdir(parents=True, exist_ok=True)
        model_path.write_text(text, encoding="utf-8")
        logger.debug(f"[SCAFFOLD] Created blank model {model_path}")

    def _write_module_package(self, src_dir: Path, domain: str) -> None:
        text = jinja_env.get_template("scaffold/module_init.py.jinja").render(
            domain=domain,
            title=to_title_case(domain),
            uuid_ns=uuid.uuid5(uuid.NAMESPACE_OID, domain),
        )
        text = format_python_code(text)
        init_file = src_dir / "__init__.py"
        if self.dry_run:
            logger.info(f"[DRY-RUN] Would create {init_file}")
            return
        src_dir.mkdir(parents=True)
        init_file.write_text(text, encoding="utf-8")
        logger.debug(f"[SCAFFOLD] Created {init_file}")
