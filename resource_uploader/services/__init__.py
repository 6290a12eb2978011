"""Services for resource_uploader module."""
from .api_client import HTTPAPIClient
from .repository import ResourceRepository, parse_timestamp
from .storage import StorageService

__all__ = [
    "HTTPAPIClient",
    "ResourceRepository",
    "StorageService",
    "parse_timestamp",
]
