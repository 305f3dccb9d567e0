"""Backend contract shared by every code generator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from modelforge.gen_logging import get_logger
from modelforge.language import Domain

logger = get_logger(__name__)


class BackendOptions(BaseModel):
    """Base for backend option models. Every field must carry its default."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class Backend(ABC):
    """A pluggable code generator.

    Subclasses set `kind` (the canonical tag used in configuration and on
    the command line) and `options_model`, and implement `compile`.
    """

    kind: str
    description: str = ""
    options_model: type[BackendOptions] = BackendOptions

    def default_options(self) -> BackendOptions:
        return self.options_model()

    @abstractmethod
    def compile(
        self,
        model: Domain,
        package_context: str,
        module_name: str,
        output_root: Path,
        options: BackendOptions,
        dry_run: bool,
    ) -> list[Path]:
        """Generate source for *model* under *output_root*/<module_name>.

        Returns the files written, or that would be written when *dry_run*
        is set. Must not touch the filesystem in dry run.
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.kind!r})"


def write_generated(path: Path, content: str, dry_run: bool) -> Path:
    """Write *content* to *path* unless it is already there or this is a dry run."""
    path = Path(path)
    if path.is_file() and path.read_text(encoding="utf-8") == content:
        logger.debug(f"[UNCHANGED] {path}")
        return path
    if dry_run:
        logger.info(f"[DRY-RUN] Would write {path}")
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.debug(f"[GENERATED] {path}")
    return path
