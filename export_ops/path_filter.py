"""
File selection for project exports.

This module walks a project directory, applies the exclusion rules of an
``ExclusionConfig`` and produces the ordered ``FileManifest`` consumed by the
archive builder.
"""

import os
from typing import Dict, Any, List
from colored_logger import get_colored_logger

from .models import ExclusionConfig, FileManifest
from .path_utils import ArchivePathGenerator

logger = get_colored_logger(__name__)


class ScanStats:
    """Counters collected while building a manifest."""

    def __init__(self):
        self.scanned_files = 0
        self.included_files = 0
        self.excluded_files = 0
        self.pruned_folders = 0
        self.carve_outs_added = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanned_files": self.scanned_files,
            "included_files": self.included_files,
            "excluded_files": self.excluded_files,
            "pruned_folders": self.pruned_folders,
            "carve_outs_added": self.carve_outs_added,
        }


class PathFilter:
    """Decides which project files go into the archive."""

    def __init__(self, path_generator: ArchivePathGenerator = None):
        self.path_generator = path_generator or ArchivePathGenerator()

    def should_include(
        self, path: str, root_path: str, config: ExclusionConfig
    ) -> bool:
        """Return True if ``path`` passes the folder and top-level extension rules."""
        path = os.path.abspath(path)
        root_path = os.path.abspath(root_path)
        relative = os.path.relpath(path, root_path)

        for folder in config.excluded_folders:
            if path.startswith(self.path_generator.folder_prefix(root_path, folder)):
                return False

        if os.path.dirname(relative) == "":
            extension = os.path.splitext(path)[1]
            if extension in config.excluded_extensions:
                return False

        return True

    def _is_excluded_root_folder(
        self, dir_path: str, root_path: str, config: ExclusionConfig
    ) -> bool:
        return (
            os.path.dirname(dir_path) == root_path
            and os.path.basename(dir_path) in config.excluded_folders
        )

    def iter_candidate_files(self, root_path: str, config: ExclusionConfig, stats: ScanStats):
        """
        Yield every file under ``root_path`` in a deterministic order.

        Directory and file names are sorted at every level so repeated runs
        over an unchanged tree produce the same sequence. Excluded root
        folders are pruned instead of walked.
        """
        for current, dirs, files in os.walk(root_path):
            kept = []
            for name in sorted(dirs):
                if self._is_excluded_root_folder(
                    os.path.join(current, name), root_path, config
                ):
                    stats.pruned_folders += 1
                    continue
                kept.append(name)
            dirs[:] = kept

            for name in sorted(files):
                stats.scanned_files += 1
                yield os.path.join(current, name)

    def build_manifest(self, root_path: str, config: ExclusionConfig) -> FileManifest:
        """Collect the filtered files, then append the carve-outs that exist."""
        manifest, _ = self.build_manifest_with_stats(root_path, config)
        return manifest

    def build_manifest_with_stats(self, root_path: str, config: ExclusionConfig):
        root_path = os.path.abspath(root_path)
        if not os.path.exists(root_path):
            raise FileNotFoundError(f"Project directory not found: {root_path}")
        if not os.path.isdir(root_path):
            raise NotADirectoryError(f"Project path is not a directory: {root_path}")

        stats = ScanStats()
        manifest = FileManifest(root_path)

        for path in self.iter_candidate_files(root_path, config, stats):
            if self.should_include(path, root_path, config):
                manifest.add(path)
                stats.included_files += 1
            else:
                stats.excluded_files += 1

        for carve_out in self._existing_carve_outs(root_path, config):
            if manifest.add(carve_out):
                stats.carve_outs_added += 1
                logger.debug("Carve-out added to manifest: %s", carve_out)

        logger.info(
            "Manifest built: %d files (%d excluded, %d folders pruned, %d carve-outs)",
            len(manifest),
            stats.excluded_files,
            stats.pruned_folders,
            stats.carve_outs_added,
        )
        return manifest, stats

    def _existing_carve_outs(self, root_path: str, config: ExclusionConfig) -> List[str]:
        found = []
        for relative in config.carve_outs:
            full_path = os.path.join(root_path, *relative.replace("\\", "/").split("/"))
            if os.path.isfile(full_path):
                found.append(full_path)
        return found
