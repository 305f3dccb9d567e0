"""Backend registry and uniform dispatch."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from modelforge.backends.base import Backend, BackendOptions
from modelforge.errors import BackendError, OrchestrationError, UnknownBackendError
from modelforge.gen_logging import get_logger
from modelforge.language import Domain

logger = get_logger(__name__)


@dataclass(frozen=True)
class BackendSelection:
    """A backend kind with its fully resolved options."""

    kind: str
    options: BackendOptions


class BackendRegistry:
    """Maps a canonical backend kind to its implementation.

    One registry serves both the command-line override path and the
    persisted-configuration path.
    """

    def __init__(self, backends: Optional[Iterable[Backend]] = None):
        self._backends: dict[str, Backend] = {}
        for backend in backends or ():
            self.register(backend)

    def register(self, backend: Backend) -> None:
        if backend.kind in self._backends:
            raise ValueError(f"Backend '{backend.kind}' is already registered.")
        self._backends[backend.kind] = backend

    def get(self, kind: str) -> Backend:
        try:
            return self._backends[kind]
        except KeyError:
            raise UnknownBackendError(kind, self._backends) from None

    def kinds(self) -> list[str]:
        return list(self._backends)

    def __contains__(self, kind: str) -> bool:
        return kind in self._backends

    def __iter__(self):
        return iter(self._backends.values())

    def dispatch(
        self,
        selection: BackendSelection,
        model: Domain,
        package_context: str,
        module_name: str,
        output_root: Path,
        dry_run: bool,
    ) -> list[Path]:
        """Invoke the backend for *selection* with its own options payload."""
        backend = self.get(selection.kind)
        if not isinstance(selection.options, backend.options_model):
            raise TypeError(
                f"Options of type {type(selection.options).__name__} "
                f"do not belong to compiler '{selection.kind}'."
            )

        logger.debug(
            f"[DISPATCH] {selection.kind} -> module '{module_name}' "
            f"(package '{package_context}', options {selection.options.model_dump()})"
        )
        try:
            return backend.compile(
                model,
                package_context,
                module_name,
                Path(output_root),
                selection.options,
                dry_run,
            )
        except BackendError:
            raise
        except OrchestrationError as e:
            raise BackendError(selection.kind, module_name, str(e)) from e
        except Exception as e:
            raise BackendError(selection.kind, module_name, f"{type(e).__name__}: {e}") from e
