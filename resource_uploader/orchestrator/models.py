"""Orchestrator data models."""
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..models import ResourceMetadata, UploadResult


@dataclass(frozen=True)
class QueueItem:
    """One file waiting in an upload queue."""
    path: Path
    metadata: ResourceMetadata


@dataclass
class QueueUploadResult:
    """Result of a queued multi-file upload."""
    total_files: int
    uploaded_files: int
    failed_files: int
    results: List[UploadResult]

    @property
    def success(self) -> bool:
        return self.total_files > 0 and self.failed_files == 0

    @classmethod
    def from_results(cls, results: List[UploadResult]) -> "QueueUploadResult":
        """Count from the final per-item results, never from in-flight state."""
        uploaded = sum(1 for r in results if r.success)
        return cls(
            total_files=len(results),
            uploaded_files=uploaded,
            failed_files=len(results) - uploaded,
            results=list(results),
        )
