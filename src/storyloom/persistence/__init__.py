"""Persistence package - gateway contract and document store backends."""

from storyloom.persistence.gateway import DocumentGateway, PersistenceGateway, StoryScope
from storyloom.persistence.sqlite_store import SqliteDocumentStore
from storyloom.persistence.store import DictDocumentStore, DocumentStore, merge_fields

__all__ = [
    "DictDocumentStore",
    "DocumentGateway",
    "DocumentStore",
    "PersistenceGateway",
    "SqliteDocumentStore",
    "StoryScope",
    "merge_fields",
]
