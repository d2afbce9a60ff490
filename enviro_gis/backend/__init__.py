"""Persistence backends: HTTP API client and in-memory implementation."""

from .api_client import ApiClient, retry_api_call
from .memory_backend import InMemoryBackend

__all__ = ["ApiClient", "InMemoryBackend", "retry_api_call"]
