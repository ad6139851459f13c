"""
Path utilities for archive operations.

This module derives archive file names, in-archive entry names and the
project root metadata used by the export components.
"""

import os
from pathlib import Path
from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)

ZIP_EXTENSION = ".zip"


class ArchivePathGenerator:
    """Generates archive and entry paths for a project export."""

    def project_name(self, project_path: str) -> str:
        """Name of the project, taken from its root folder."""
        return Path(os.path.abspath(project_path)).name

    def default_zip_name(self, project_path: str) -> str:
        """Default output file name offered to the host (``<project>.zip``)."""
        name = self.project_name(project_path)
        return f"{name}{ZIP_EXTENSION}" if name else ""

    def ensure_extension(self, archive_path: str) -> str:
        """Ensure archive path ends with ``.zip`` (case-insensitive)."""
        if archive_path.lower().endswith(ZIP_EXTENSION):
            return archive_path
        return f"{archive_path}{ZIP_EXTENSION}"

    def root_folder_name(
        self, project_path: str, zip_path: str, name_with_zip_name: bool
    ) -> str:
        """Name of the single top-level folder inside the archive."""
        if name_with_zip_name:
            return Path(zip_path).stem
        return self.project_name(project_path)

    def normalize_separators(self, path: str) -> str:
        """Zip entries always use forward slashes, whatever the host OS."""
        return path.replace(os.sep, "/").replace("\\", "/")

    def entry_name(self, root_folder_name: str, relative_path: str) -> str:
        """Build ``<root_folder_name>/<relative_path>`` with zip separators."""
        combined = os.path.join(root_folder_name, relative_path)
        return self.normalize_separators(combined)

    def folder_prefix(self, project_path: str, folder_name: str) -> str:
        """
        Absolute folder path with a trailing separator.

        The trailing separator keeps ``Build`` from matching ``Builds`` or
        ``BuildTools`` in a plain prefix test.
        """
        return os.path.join(os.path.abspath(project_path), folder_name, "")
