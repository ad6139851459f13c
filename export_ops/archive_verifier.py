"""
Integrity checks and summaries for exported zip archives.
"""

import zipfile
from typing import Any, Dict, List

from colored_logger import get_colored_logger

logger = get_colored_logger(__name__)


class ZipArchiveVerifier:
    """Verifies and describes zip archives produced by an export."""

    def verify_integrity(self, archive_path: str) -> bool:
        """Run the zip CRC check over every entry."""
        try:
            with zipfile.ZipFile(archive_path, "r") as zipf:
                bad_file = zipf.testzip()
                if bad_file is not None:
                    logger.debug("ZIP integrity check failed on entry: %s", bad_file)
                    return False
                return True
        except (OSError, zipfile.BadZipFile) as e:
            logger.debug("ZIP integrity verification failed: %s", e)
            return False

    def list_entries(self, archive_path: str) -> List[str]:
        with zipfile.ZipFile(archive_path, "r") as zipf:
            return zipf.namelist()

    def get_archive_info(self, archive_path: str) -> Dict[str, Any]:
        """Entry count, sizes and compression ratio of an archive."""
        with zipfile.ZipFile(archive_path, "r") as zipf:
            infos = zipf.infolist()

        compressed = sum(info.compress_size for info in infos)
        uncompressed = sum(info.file_size for info in infos)
        roots = sorted({info.filename.split("/", 1)[0] for info in infos})
        return {
            "file_count": len(infos),
            "compressed_size": compressed,
            "uncompressed_size": uncompressed,
            "compression_ratio": (
                (1 - compressed / uncompressed) * 100 if uncompressed > 0 else 0
            ),
            "root_folders": roots,
        }
