"""Orchestrator package - coordinates upload workflows."""
from .core import UploadOrchestrator
from .models import QueueItem, QueueUploadResult
from .queue_upload import QueueUploadProcess

__all__ = ["UploadOrchestrator", "QueueItem", "QueueUploadResult", "QueueUploadProcess"]
