"""Structured document storage on top of Kubernetes Secrets.

This module provides:
- JSON document flattening into Secret string maps
- Whole-document read/replace with resourceVersion conflict retry
- Keyed entity collections stored as a single document
"""

from .codec import flatten, unflatten
from .errors import (
    DocumentConflictError,
    DocumentNotFoundError,
    DocumentStoreError,
    StoreVersionConflictError,
)
from .store import DocumentCollection, SecretDocumentStore, StoredDocument

__all__ = [
    "DocumentCollection",
    "DocumentConflictError",
    "DocumentNotFoundError",
    "DocumentStoreError",
    "SecretDocumentStore",
    "StoreVersionConflictError",
    "StoredDocument",
    "flatten",
    "unflatten",
]
