"""
Staleness tracking for derived models.

Building a `Domain` from its source model is the expensive step of a run,
so the derived form is persisted next to the source and reused until the
source changes:

    <derived_root>/<stem>.v2.json/domain.json     derived model
    <derived_root>/<stem>.v2.json/metadata.json   rebuild metadata

A derived model is rebuilt when it is missing, when its metadata names a
different source path (two sources sharing a stem), or when the source's
current modification time is strictly newer than the one recorded.
Timestamp granularity coarser than the edit interval, or clock skew between
the writer of the source and this machine, can hide an edit; that is an
accepted limitation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import BaseModel, ValidationError

from modelforge.errors import MetadataReadError, ModelNotFound, UnsupportedFormat
from modelforge.gen_logging import get_logger
from modelforge.language import FORMAT_VERSION, Domain, build_domain
from modelforge.paths import MODEL_EXT, derived_model_path, metadata_path

logger = get_logger(__name__)


class CacheMetadata(BaseModel):
    source: str
    source_mtime_ns: int
    built_at: str
    format_version: int = FORMAT_VERSION


@dataclass(frozen=True)
class CachedModel:
    derived_path: Path
    source: str
    source_mtime_seen: int


class ModelCache:
    """Owns the on-disk lifecycle of derived models.

    Args:
        loader: Builds a `Domain` from a source model path.
        dry_run: When set, rebuilt models are returned but never persisted.
    """

    def __init__(self, loader: Callable[[Path], Domain] = build_domain, dry_run: bool = False):
        self.loader = loader
        self.dry_run = dry_run

    def ensure_fresh(self, source_model_path: Path, derived_root: Path) -> tuple[Domain, bool]:
        """Return the model for *source_model_path* and whether it was rebuilt."""
        source_model_path = Path(source_model_path)
        self._check_source(source_model_path)

        derived_path = derived_model_path(source_model_path, derived_root)
        source_mtime = source_model_path.stat().st_mtime_ns

        if not derived_path.exists():
            logger.debug(f"[CACHE] No derived model at {derived_path}")
            return self._rebuild(source_model_path, derived_path, source_mtime), True

        cached = self.read_metadata(derived_path)
        if cached.source != str(source_model_path):
            # another source with the same stem owns this derived model
            logger.debug(f"[CACHE] {derived_path} was built from {cached.source}, not {source_model_path}")
            return self._rebuild(source_model_path, derived_path, source_mtime), True
        if source_mtime > cached.source_mtime_seen:
            logger.debug(
                f"[CACHE] {source_model_path.name} changed since last build "
                f"({source_mtime} > {cached.source_mtime_seen})"
            )
            return self._rebuild(source_model_path, derived_path, source_mtime), True

        logger.debug(f"[CACHE] Reusing {derived_path}")
        return Domain.load(derived_path), False

    def read_metadata(self, derived_path: Path) -> CachedModel:
        meta_file = metadata_path(derived_path)
        try:
            meta = CacheMetadata.model_validate_json(meta_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            raise MetadataReadError(f"Unable to read derived model metadata: {meta_file}: {e}") from e
        except ValidationError as e:
            raise MetadataReadError(f"Derived model metadata is malformed: {meta_file}: {e}") from e
        return CachedModel(
            derived_path=Path(derived_path),
            source=meta.source,
            source_mtime_seen=meta.source_mtime_ns,
        )

    # ------------------------------------------------------------------------------
    # Internals

    @staticmethod
    def _check_source(source_model_path: Path) -> None:
        if not source_model_path.exists():
            raise ModelNotFound(f"Model file {source_model_path} does not exist.")
        if not source_model_path.is_file():
            raise ModelNotFound(f"{source_model_path} is not a model file.")
        if source_model_path.suffix != MODEL_EXT:
            raise UnsupportedFormat(
                f"{source_model_path} is not a {MODEL_EXT.lstrip('.')} file."
            )

    def _rebuild(self, source_model_path: Path, derived_path: Path, source_mtime: int) -> Domain:
        logger.info(f"[REBUILD] Building derived model for {source_model_path.name}")
        model = self.loader(source_model_path)

        if self.dry_run:
            logger.info(f"[DRY-RUN] Would persist derived model to {derived_path}")
            return model

        # Metadata goes last: an interrupted rebuild still reads as stale.
        model.persist(derived_path)
        meta = CacheMetadata(
            source=str(source_model_path),
            source_mtime_ns=source_mtime,
            built_at=datetime.now(timezone.utc).isoformat(),
        )
        metadata_path(derived_path).write_text(meta.model_dump_json(indent=2), encoding="utf-8")
        logger.debug(f"[CACHE] Persisted {derived_path}")
        return model
