"""
Local SQLite mirrors of remote paginated models.

Remote-backed types are fetched page by page into a typed local table on
first access, then served from the local copy while it stays fresh.
"""

from .config import Config
from .entity import Entity, RemoteBacked
from .exceptions import EmptySchema, RemoteModelsError, RemoteUnavailable, SchemaError
from .fetcher import Page, RemoteFetcher
from .ingest import IngestPipeline
from .resolver import CacheResolver, CacheState, get_resolver, resolve
from .schema import ColumnType, infer_column_type, resolve_schema
from .store import LocalStore

__all__ = [
    'Config',
    'Entity',
    'RemoteBacked',
    'EmptySchema',
    'RemoteModelsError',
    'RemoteUnavailable',
    'SchemaError',
    'Page',
    'RemoteFetcher',
    'IngestPipeline',
    'CacheResolver',
    'CacheState',
    'get_resolver',
    'resolve',
    'ColumnType',
    'infer_column_type',
    'resolve_schema',
    'LocalStore',
]
