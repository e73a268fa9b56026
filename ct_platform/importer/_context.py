# ct_platform/importer/_context.py
# Collaborators and tunables shared by the full importer and the sync engine.
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional

from _logging import log as _log

from ._binge import BINGE_THRESHOLD
from ._guard import ExistenceGuard
from ._types import ImageCache, MetadataClient, SourceClient

CURSOR_BUFFER = timedelta(hours=1)


class _NoImages:
    def cache_movie_images(self, details: Any) -> None:
        return None

    def cache_series_images(self, details: Any) -> None:
        return None

    def cache_season_images(self, season: Any) -> None:
        return None


@dataclass
class ImportContext:
    source: SourceClient
    metadata: MetadataClient
    store: Any
    images: ImageCache = field(default_factory=_NoImages)
    binge_threshold: int = BINGE_THRESHOLD
    cursor_buffer: timedelta = CURSOR_BUFFER
    guard: Optional[ExistenceGuard] = None

    def __post_init__(self) -> None:
        if self.guard is None:
            self.guard = ExistenceGuard(self.store)

    @classmethod
    def from_config(
        cls,
        cfg: Mapping[str, Any],
        *,
        source: SourceClient,
        metadata: MetadataClient,
        store: Any,
        images: Optional[ImageCache] = None,
    ) -> "ImportContext":
        imp = dict(cfg.get("importer") or {})
        try:
            threshold = int(imp.get("binge_threshold", BINGE_THRESHOLD))
        except (TypeError, ValueError):
            threshold = BINGE_THRESHOLD
        try:
            buffer = timedelta(hours=float(imp.get("cursor_buffer_hours", 1)))
        except (TypeError, ValueError):
            buffer = CURSOR_BUFFER
        return cls(
            source=source,
            metadata=metadata,
            store=store,
            images=images or _NoImages(),
            binge_threshold=max(1, threshold),
            cursor_buffer=buffer,
        )


def log(msg: str, level: str = "INFO", module: str = "IMPORT") -> None:
    _log(msg, level=level, module=module)


__all__ = ["ImportContext", "CURSOR_BUFFER", "log"]
