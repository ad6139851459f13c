"""
Zip archive creation for project exports.

The builder streams every manifest entry into a deflated zip entry, reports
progress before each write (which doubles as the cancellation checkpoint)
and tolerates locked files inside the soft-fail folders.
"""

import os
import tempfile
import threading
import time
import zipfile
from typing import Callable, Optional, Protocol

from colored_logger import get_colored_logger

from .models import ArchiveTarget, BuildResult, ExclusionConfig, FileManifest, SkipRecord
from .path_utils import ArchivePathGenerator

logger = get_colored_logger(__name__)

LARGE_FILE_BYTES = 25 * 1000 * 1000  # 25 MB
STREAMING_THRESHOLD_BYTES = 10 * 1024 * 1024


class SourceReadError(OSError):
    """A source file could not be read; nothing was written for it."""


class ProgressSink(Protocol):
    """Host-side progress display. Returning False requests cancellation."""

    def report(self, index: int, total: int, relative_path: str) -> bool:
        ...


class CancelToken:
    """Cooperative cancellation flag, checked once per archived file."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class ProgressPacer:
    """
    Inserts short pauses before progress checkpoints.

    Some hosts only repaint their progress display between events, so a tight
    loop over small files shows nothing. Large files get a long pause so their
    name stays readable; short pauses happen at most once per interval.
    """

    def __init__(
        self,
        enabled: bool = True,
        short_pause: float = 0.001,
        long_pause: float = 0.1,
        throttle_interval: float = 0.2,
        large_file_bytes: int = LARGE_FILE_BYTES,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.enabled = enabled
        self.short_pause = short_pause
        self.long_pause = long_pause
        self.throttle_interval = throttle_interval
        self.large_file_bytes = large_file_bytes
        self._sleep = sleep
        self._clock = clock
        self._last_short_pause: Optional[float] = None

    def pause_for(self, file_size: int) -> float:
        """Pause before reporting a file of ``file_size`` bytes. Returns the delay used."""
        if not self.enabled:
            return 0.0

        if file_size >= self.large_file_bytes:
            self._sleep(self.long_pause)
            return self.long_pause

        now = self._clock()
        if (
            self._last_short_pause is not None
            and now - self._last_short_pause < self.throttle_interval
        ):
            return 0.0
        self._last_short_pause = now
        self._sleep(self.short_pause)
        return self.short_pause


class ArchiveBuilder:
    """Writes a manifest into a zip file at the target's final path."""

    def __init__(
        self,
        compression_level: int = 6,
        chunk_size: int = 64 * 1024,
        pacer: Optional[ProgressPacer] = None,
        path_generator: Optional[ArchivePathGenerator] = None,
    ):
        self.compression_level = compression_level
        self.chunk_size = max(1024, chunk_size)
        self.pacer = pacer if pacer is not None else ProgressPacer()
        self.path_generator = path_generator or ArchivePathGenerator()

    def _create_zipfile_instance(self, archive_path: str) -> zipfile.ZipFile:
        return zipfile.ZipFile(
            archive_path,
            "w",
            zipfile.ZIP_DEFLATED,
            compresslevel=self.compression_level,
            allowZip64=True,
        )

    def _file_size(self, file_path: str) -> int:
        try:
            return os.path.getsize(file_path)
        except OSError:
            return 0

    def _read_source(self, file_path: str, file_size: int):
        """
        Read a source file completely.

        Small files come back as bytes; large ones are copied in chunks into
        an anonymous temporary file, positioned at its start.
        """
        with open(file_path, "rb") as src_file:
            if file_size <= STREAMING_THRESHOLD_BYTES:
                return src_file.read()

            spool = tempfile.TemporaryFile()
            try:
                while True:
                    chunk = src_file.read(self.chunk_size)
                    if not chunk:
                        break
                    spool.write(chunk)
                spool.seek(0)
            except BaseException:
                spool.close()
                raise
            return spool

    def _add_file(
        self, zipf: zipfile.ZipFile, file_path: str, entry_name: str, file_size: int
    ) -> None:
        """
        Add one file; large files are streamed in chunks.

        The source is read in full before its entry is opened, so a failed
        read never leaves a truncated entry in the archive. Read failures
        raise SourceReadError; errors from the zip writer propagate as is.
        """
        try:
            zinfo = zipfile.ZipInfo.from_file(file_path, entry_name)
            source = self._read_source(file_path, file_size)
        except OSError as e:
            raise SourceReadError(str(e)) from e

        if isinstance(source, bytes):
            zipf.writestr(
                zinfo,
                source,
                compress_type=zipfile.ZIP_DEFLATED,
                compresslevel=self.compression_level,
            )
            return

        with source:
            zinfo.compress_type = zipfile.ZIP_DEFLATED
            zinfo.file_size = os.fstat(source.fileno()).st_size
            with zipf.open(zinfo, "w") as dst_file:
                while True:
                    chunk = source.read(self.chunk_size)
                    if not chunk:
                        break
                    dst_file.write(chunk)

    def is_soft_fail_path(
        self, file_path: str, root_path: str, config: ExclusionConfig
    ) -> bool:
        """True if errors on ``file_path`` should be skipped instead of fatal."""
        file_path = os.path.abspath(file_path)
        return any(
            file_path.startswith(self.path_generator.folder_prefix(root_path, folder))
            for folder in config.soft_fail_folders
        )

    def _should_log_progress(self, index: int, total: int) -> bool:
        return index == 1 or index == total or index % max(1, total // 20) == 0

    def _checkpoint(
        self,
        report: Optional[Callable[[int, int, str], bool]],
        cancel_token: Optional[CancelToken],
        index: int,
        total: int,
        relative_path: str,
    ) -> bool:
        """Report progress and return False if the host asked to stop."""
        if self._should_log_progress(index, total):
            logger.progress(
                "Zipping file %d of %d (%d%%)... [%s]",
                index,
                total,
                int(index * 100 / total),
                relative_path,
            )
        if report is not None and report(index, total, relative_path) is False:
            return False
        if cancel_token is not None and cancel_token.is_cancelled:
            return False
        return True

    def build(
        self,
        manifest: FileManifest,
        target: ArchiveTarget,
        config: ExclusionConfig,
        progress_sink=None,
        cancel_token: Optional[CancelToken] = None,
    ) -> BuildResult:
        """
        Write every manifest entry into ``target.final_path``.

        Args:
            manifest: Files to archive, in order
            target: Destination; the file is created at ``final_path``
            config: Exclusion snapshot (root naming and soft-fail folders)
            progress_sink: Object with ``report(index, total, path)`` or a
                callable with the same signature; False cancels
            cancel_token: Optional cooperative cancellation flag

        Returns:
            BuildResult; ``completed`` is False on cancellation or abort
        """
        root_path = manifest.root_path
        total = len(manifest)
        report = getattr(progress_sink, "report", progress_sink)
        root_folder = self.path_generator.root_folder_name(
            root_path, target.final_path, config.name_root_with_zip_name
        )
        result = BuildResult(completed=False)

        logger.info("Archiving %d files into %s", total, target.final_path)

        try:
            with self._create_zipfile_instance(target.final_path) as zipf:
                for position, file_path in enumerate(manifest):
                    index = position + 1
                    relative_path = os.path.relpath(file_path, root_path)
                    file_size = self._file_size(file_path)

                    self.pacer.pause_for(file_size)
                    if not self._checkpoint(
                        report, cancel_token, index, total, relative_path
                    ):
                        logger.notice(
                            "Compression cancelled at file %d of %d", index, total
                        )
                        result.cancelled = True
                        return result

                    entry_name = self.path_generator.entry_name(
                        root_folder, relative_path
                    )
                    try:
                        self._add_file(zipf, file_path, entry_name, file_size)
                    except SourceReadError as e:
                        if self.is_soft_fail_path(file_path, root_path, config):
                            logger.warning(
                                "Skipping locked or missing file %s: %s",
                                relative_path,
                                e,
                            )
                            result.skipped.append(SkipRecord(file_path, str(e)))
                            continue
                        logger.error("Could not add %s to archive: %s", relative_path, e)
                        result.error = (
                            "An error occurred while adding the file to the zip "
                            f"archive: {e}"
                        )
                        return result
                    except OSError:
                        raise
                    except Exception as e:
                        logger.debug("Unexpected archive error", exc_info=True)
                        result.error = f"An unknown error occurred: {e}"
                        return result

                    logger.trace("Added %s", entry_name)
                    result.included_count += 1
        except OSError as e:
            logger.error("Could not write archive %s: %s", target.final_path, e)
            result.error = f"The zip file could not be written: {e}"
            result.destination_failed = result.included_count == 0
            return result

        result.completed = True
        return result
