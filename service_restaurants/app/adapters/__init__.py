"""
Adapters package for the restaurant directory.

Contains the document store seam: the ``DocumentStore`` protocol the
directory depends on and the in-process ``InMemoryDocumentStore`` that
executes filter, sort, text, proximity and facet requests.
"""

from .document_store import DocumentStore, DocumentStoreError, InMemoryDocumentStore, new_object_id

__all__ = [
    "DocumentStore",
    "DocumentStoreError",
    "InMemoryDocumentStore",
    "new_object_id",
]
