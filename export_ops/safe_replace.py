"""
Crash-safe replacement of an existing archive.

Writing a zip is slow and not atomic, so an existing file at the destination
is renamed aside ("parked") before the new archive is written. After the
write the parked file is either deleted (success) or moved back (failure or
cancellation). Cleanup problems never raise; they come back as warnings that
tell the user what to fix by hand.
"""

import os
from typing import List

from colored_logger import get_colored_logger

from .models import ArchiveTarget

logger = get_colored_logger(__name__)


class ReplaceError(OSError):
    """The existing destination could not be parked; nothing was written."""


class SafeReplaceWriter:
    """Manages the destination file around a non-atomic archive write."""

    def __init__(self, target: ArchiveTarget):
        self.target = target
        self.active = False

    def prepare(self) -> List[str]:
        """
        Park an existing destination file.

        A stale parked file left by an earlier failed run is resolved first.

        Returns:
            Warnings produced while resolving a stale parked file

        Raises:
            ReplaceError: If the existing destination cannot be renamed
        """
        warnings: List[str] = []
        target = self.target
        target.has_parked_original = False

        if not os.path.exists(target.final_path):
            self.active = True
            return warnings

        if os.path.exists(target.parked_path):
            logger.notice("Removing stale parked file: %s", target.parked_path)
            warnings.extend(self._delete(target.parked_path, "old"))

        try:
            os.replace(target.final_path, target.parked_path)
        except OSError as e:
            logger.error("Could not park %s: %s", target.final_path, e)
            raise ReplaceError(
                f"{e}\nThe existing zip file could not be accessed."
            ) from e

        target.has_parked_original = True
        self.active = True
        logger.debug("Parked existing archive as %s", target.parked_path)
        return warnings

    def commit(self) -> List[str]:
        """Finalize the replace by deleting the parked original."""
        if not self.active:
            return []
        self.active = False
        target = self.target
        if not target.has_parked_original or not os.path.exists(target.parked_path):
            return []
        warnings = self._delete(target.parked_path, "old")
        if not warnings:
            target.has_parked_original = False
        return warnings

    def rollback(self) -> List[str]:
        """
        Delete the partial archive, then move the parked original back.

        Does nothing unless prepare() succeeded and neither commit() nor
        rollback() has run since.
        """
        if not self.active:
            return []
        self.active = False
        target = self.target
        warnings: List[str] = []

        if os.path.exists(target.final_path):
            warnings.extend(self._delete(target.final_path, "incomplete"))

        if not target.has_parked_original or not os.path.exists(target.parked_path):
            return warnings

        if os.path.exists(target.final_path):
            # partial archive could not be deleted; original stays parked
            warnings.append(
                f"The old zip file is still named {target.parked_path}. "
                f"(Please rename it manually to {target.final_path}.)"
            )
            return warnings

        try:
            os.replace(target.parked_path, target.final_path)
            target.has_parked_original = False
            logger.info("Restored original archive: %s", target.final_path)
        except OSError as e:
            logger.error("Could not restore %s: %s", target.final_path, e)
            warnings.append(
                f"{e}\nThe name of the old zip file could not be restored. "
                f"(Please rename {target.parked_path} to {target.final_path} manually.)"
            )
        return warnings

    def _delete(self, path: str, kind: str) -> List[str]:
        try:
            os.remove(path)
            logger.debug("Deleted %s file: %s", kind, path)
            return []
        except OSError as e:
            logger.warning("Could not delete %s file %s: %s", kind, path, e)
            return [f"{e} \n(Please delete this {kind} file manually: {path})"]
