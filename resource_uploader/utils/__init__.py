"""Shared helpers."""
from .events import EventEmitter, FileProgress, invoke

__all__ = ["EventEmitter", "FileProgress", "invoke"]
