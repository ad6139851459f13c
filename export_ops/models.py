"""
Data model shared by the export components.

Everything here is a plain value object. Per-run state lives in
``ExportContext`` (see export_coordinator) rather than at module level.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Iterator, List, Optional, Tuple

PARKED_SUFFIX = "-temp-old-delete.zip"

DEFAULT_SOFT_FAIL_FOLDERS = frozenset({"Library"})
DEFAULT_CARVE_OUTS = (
    "Library/LastSceneManagerSetup.txt",
    "Library/EditorUserBuildSettings.asset",
)


def _normalize_extension(extension: str) -> str:
    extension = extension.strip()
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    return extension


@dataclass(frozen=True)
class ExclusionConfig:
    """Immutable filtering snapshot taken once per export."""

    excluded_folders: FrozenSet[str] = frozenset()
    excluded_extensions: FrozenSet[str] = frozenset()
    name_root_with_zip_name: bool = True
    soft_fail_folders: FrozenSet[str] = DEFAULT_SOFT_FAIL_FOLDERS
    carve_outs: Tuple[str, ...] = DEFAULT_CARVE_OUTS

    def __post_init__(self):
        # frozen: assign through object.__setattr__
        object.__setattr__(
            self,
            "excluded_folders",
            frozenset(name for name in self.excluded_folders if name),
        )
        object.__setattr__(
            self,
            "excluded_extensions",
            frozenset(
                ext
                for ext in (_normalize_extension(e) for e in self.excluded_extensions)
                if ext
            ),
        )
        object.__setattr__(
            self,
            "soft_fail_folders",
            frozenset(name for name in self.soft_fail_folders if name),
        )
        object.__setattr__(self, "carve_outs", tuple(self.carve_outs))


class FileManifest:
    """Ordered list of absolute source paths selected for archiving."""

    def __init__(self, root_path: str, paths: Optional[Iterable[str]] = None):
        self.root_path = os.path.abspath(root_path)
        self._paths: List[str] = []
        self._seen = set()
        for path in paths or ():
            self.add(path)

    def add(self, path: str) -> bool:
        """Append a path unless it is already present. Returns True if added."""
        path = os.path.abspath(path)
        if path in self._seen:
            return False
        self._seen.add(path)
        self._paths.append(path)
        return True

    def __contains__(self, path: str) -> bool:
        return os.path.abspath(path) in self._seen

    def __iter__(self) -> Iterator[str]:
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __getitem__(self, index: int) -> str:
        return self._paths[index]

    def without(self, paths: Iterable[str]) -> "FileManifest":
        """Copy of this manifest with ``paths`` removed, order preserved."""
        dropped = {os.path.abspath(path) for path in paths}
        return FileManifest(
            self.root_path, (path for path in self._paths if path not in dropped)
        )

    def relative_paths(self) -> List[str]:
        return [os.path.relpath(path, self.root_path) for path in self._paths]

    def total_size(self) -> int:
        """Sum of source file sizes in bytes; files that vanished count as 0."""
        total = 0
        for path in self._paths:
            try:
                total += os.path.getsize(path)
            except OSError:
                continue
        return total


@dataclass
class ArchiveTarget:
    """Destination of one export and its parked counterpart."""

    final_path: str
    parked_path: str = ""
    has_parked_original: bool = False

    def __post_init__(self):
        self.final_path = os.path.abspath(self.final_path)
        if not self.parked_path:
            self.parked_path = self.final_path + PARKED_SUFFIX

    @property
    def zip_name(self) -> str:
        return os.path.basename(self.final_path)

    @property
    def zip_name_without_ext(self) -> str:
        return os.path.splitext(self.zip_name)[0]


@dataclass
class SkipRecord:
    """A source file that could not be archived but did not abort the run."""

    path: str
    reason: str = ""


@dataclass
class BuildResult:
    completed: bool
    included_count: int = 0
    skipped: List[SkipRecord] = field(default_factory=list)
    cancelled: bool = False
    error: Optional[str] = None
    # the archive itself could not be created at the destination
    destination_failed: bool = False


class ExportOutcome(Enum):
    """Terminal classification of an export."""

    SUCCESS = "success"
    PREFLIGHT_ABORTED = "preflight_aborted"
    NO_DESTINATION = "no_destination"
    REPLACE_FAILED = "replace_failed"
    PARTIAL_FAILURE = "partial_failure"
    CANCELLED = "cancelled"


class ExportState(Enum):
    IDLE = "idle"
    PREFLIGHT_CHECKING = "preflight_checking"
    AWAITING_DESTINATION = "awaiting_destination"
    WRITING = "writing"
    FINALIZING = "finalizing"
    RESTORING = "restoring"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ExportState.SUCCESS, ExportState.FAILED, ExportState.CANCELLED)


@dataclass
class ExportResult:
    """What the host gets back from an export."""

    outcome: ExportOutcome
    message: str = ""
    included_count: int = 0
    skipped: List[SkipRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    archive_path: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome is ExportOutcome.SUCCESS

    @property
    def skipped_paths(self) -> List[str]:
        return [record.path for record in self.skipped]
