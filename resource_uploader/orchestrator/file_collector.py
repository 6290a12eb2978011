"""File selection rules for queued uploads."""
from pathlib import Path
from typing import List, Tuple

from ..models import UploadConfig, UploadResult
from .models import QueueItem


class FileCollector:
    """Splits selected files into uploadable items and rejections."""

    def __init__(self, config: UploadConfig):
        self._config = config

    def select(self, items: List[QueueItem]) -> Tuple[List[QueueItem], List[UploadResult]]:
        """
        Apply the selection rules, preserving order.

        Args:
            items: Files chosen by the user

        Returns:
            (accepted items, failed results for rejected files)
        """
        accepted: List[QueueItem] = []
        rejected: List[UploadResult] = []
        accepted_label = ", ".join(ext.upper() for ext in self._config.accepted_extensions)

        for item in items:
            path = Path(item.path)
            if not self._config.is_accepted(path):
                rejected.append(UploadResult.fail(
                    path.name, f"{path.name}: Invalid file type. Accepted: {accepted_label}"
                ))
                continue
            if path.is_file() and path.stat().st_size > self._config.max_file_size:
                limit_mb = self._config.max_file_size // (1024 * 1024)
                rejected.append(UploadResult.fail(
                    path.name, f"{path.name}: File exceeds {limit_mb}MB limit"
                ))
                continue
            accepted.append(item)

        return accepted, rejected
