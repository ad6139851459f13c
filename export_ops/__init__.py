from .models import (
    ArchiveTarget,
    BuildResult,
    ExclusionConfig,
    ExportOutcome,
    ExportResult,
    ExportState,
    FileManifest,
    SkipRecord,
    PARKED_SUFFIX,
)
from .path_utils import ArchivePathGenerator
from .path_filter import PathFilter, ScanStats
from .safe_replace import SafeReplaceWriter, ReplaceError
from .archive_builder import (
    ArchiveBuilder,
    CancelToken,
    ProgressPacer,
    ProgressSink,
    SourceReadError,
)
from .archive_verifier import ZipArchiveVerifier

# Orchestrator (depends on all of the above)
from .export_coordinator import ExportCoordinator, ExportContext, ExportHost

__all__ = [
    # Data model
    "ArchiveTarget",
    "BuildResult",
    "ExclusionConfig",
    "ExportOutcome",
    "ExportResult",
    "ExportState",
    "FileManifest",
    "SkipRecord",
    "PARKED_SUFFIX",
    # Filtering
    "ArchivePathGenerator",
    "PathFilter",
    "ScanStats",
    # Destination handling
    "SafeReplaceWriter",
    "ReplaceError",
    # Archive creation
    "ArchiveBuilder",
    "CancelToken",
    "ProgressPacer",
    "ProgressSink",
    "SourceReadError",
    "ZipArchiveVerifier",
    # Orchestration
    "ExportCoordinator",
    "ExportContext",
    "ExportHost",
]
