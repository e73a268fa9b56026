# Public surface of the importer package.
from ._binge import BINGE_THRESHOLD, apply_binge_correction
from ._context import CURSOR_BUFFER, ImportContext
from ._guard import ExistenceGuard, dedupe_by_external_id
from ._jobs import ImportJobManager
from ._ratings import map_rating, rating_label
from ._types import (
    EpisodeWatch,
    HistoryItem,
    ImportAlreadyRunning,
    ImporterError,
    ImportJobState,
    ImportOptions,
    NotAuthenticated,
    Preview,
    PreviewError,
    SyncError,
    SyncResult,
    SyncStatus,
    WatchedSeriesRecord,
)
from .facade import TraktImporter

__all__ = [
    "TraktImporter",
    "ImportContext",
    "ImportJobManager",
    "ExistenceGuard",
    "dedupe_by_external_id",
    "apply_binge_correction",
    "map_rating",
    "rating_label",
    "BINGE_THRESHOLD",
    "CURSOR_BUFFER",
    "ImportOptions",
    "HistoryItem",
    "EpisodeWatch",
    "WatchedSeriesRecord",
    "ImportJobState",
    "SyncResult",
    "SyncStatus",
    "Preview",
    "ImporterError",
    "ImportAlreadyRunning",
    "NotAuthenticated",
    "PreviewError",
    "SyncError",
]
