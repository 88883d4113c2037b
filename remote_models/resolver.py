"""Decide how each remote entity's local copy is bound, and bind it."""

import os
import threading
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
import logging

from .config import Config
from .entity import Entity
from .fetcher import RemoteFetcher
from .ingest import IngestPipeline
from .store import MEMORY, LocalStore, TTLMarkers

logger = logging.getLogger(__name__)


class CacheState(Enum):
    """Ways an entity's local copy can be bound."""
    FRESH = "fresh"           # Existing cache file is current, no network access
    REBUILD = "rebuild"       # Cache file missing or stale, re-create it from the remote
    EPHEMERAL = "ephemeral"   # Cache directory unusable, load into memory for this process


class CacheResolver:
    """
    Binds remote-backed entity types to local stores.

    Holds the registry of qualified entity name -> bound LocalStore. Each
    entity is resolved at most once per resolver; a failed resolution
    registers nothing and is retried on the next call.
    """

    def __init__(self, config=Config, fetcher: Optional[RemoteFetcher] = None,
                 pipeline: Optional[IngestPipeline] = None):
        """
        Args:
            config: Configuration class
            fetcher: RemoteFetcher to use (for dependency injection)
            pipeline: IngestPipeline to use (for dependency injection)
        """
        self.config = config
        self.fetcher = fetcher or RemoteFetcher(config)
        self.pipeline = pipeline or IngestPipeline(self.fetcher)
        self._registry: Dict[str, LocalStore] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # -- paths ------------------------------------------------------------

    def entity(self, entity_type) -> Entity:
        return Entity.from_type(entity_type, self.config)

    @property
    def cache_directory(self) -> Path:
        return Path(self.config.CACHE_PATH)

    def cache_path(self, entity: Entity) -> Path:
        return self.cache_directory / entity.cache_file_name

    def ttl_markers(self) -> TTLMarkers:
        # Dot separator; entity cache files are always "<prefix>-<name>.sqlite"
        return TTLMarkers(self.cache_directory / f"{self.config.CACHE_PREFIX}.ttl-markers.sqlite")

    def directory_writable(self) -> bool:
        directory = self.cache_directory
        return directory.is_dir() and os.access(directory, os.W_OK)

    # -- state machine ----------------------------------------------------

    def is_fresh(self, entity: Entity) -> bool:
        """
        Whether the entity's cache file can be used without a rebuild.

        With TTL tracking the marker decides; otherwise the file's mtime must
        not be older than the entity's reference timestamp (compared in whole
        seconds, the resolution mtimes are forced at).
        """
        cache_path = self.cache_path(entity)
        if not cache_path.exists():
            return False

        if self.config.cache_ttl() is not None:
            return self.ttl_markers().has(entity.cache_file_name)

        return int(cache_path.stat().st_mtime) >= int(entity.reference_timestamp)

    def decide_state(self, entity: Entity) -> CacheState:
        if self.is_fresh(entity):
            return CacheState.FRESH
        if self.directory_writable():
            return CacheState.REBUILD
        return CacheState.EPHEMERAL

    def resolve(self, entity_type) -> LocalStore:
        """
        Return the bound store for entity_type, resolving it on first call.

        Raises:
            EmptySchema: if no schema could be derived
            RemoteUnavailable: if the remote source failed during a build
        """
        entity = self.entity(entity_type)

        with self._entity_lock(entity.key):
            store = self._registry.get(entity.key)
            if store is not None:
                return store

            state = self.decide_state(entity)
            logger.info(f"Resolving {entity.name}: {state.value}")
            store = self._bind(entity, state)
            self._registry[entity.key] = store
            return store

    def refresh(self, entity_type) -> LocalStore:
        """Rebuild entity_type's local copy regardless of freshness."""
        entity = self.entity(entity_type)

        with self._entity_lock(entity.key):
            self._release(entity.key)
            state = CacheState.REBUILD if self.directory_writable() else CacheState.EPHEMERAL
            logger.info(f"Refreshing {entity.name}: {state.value}")
            store = self._bind(entity, state)
            self._registry[entity.key] = store
            return store

    def forget(self, entity_type) -> None:
        """Drop the binding for entity_type; the next resolve decides again."""
        entity = self.entity(entity_type)
        with self._entity_lock(entity.key):
            self._release(entity.key)

    def bound(self) -> List[str]:
        return sorted(self._registry)

    # -- binding ----------------------------------------------------------

    def _bind(self, entity: Entity, state: CacheState) -> LocalStore:
        if state is CacheState.FRESH:
            return LocalStore(self.cache_path(entity), entity.table)
        if state is CacheState.REBUILD:
            return self._rebuild(entity)
        return self._ephemeral(entity)

    def _rebuild(self, entity: Entity) -> LocalStore:
        cache_path = self.cache_path(entity)
        cache_path.write_bytes(b'')
        # Stale until the build completes, so a failed attempt is rebuilt on next access
        os.utime(cache_path, (0, 0))

        store = LocalStore(cache_path, entity.table)
        try:
            self.pipeline.build(entity, store)
        except Exception:
            store.close()
            raise

        reference = entity.reference_timestamp
        os.utime(cache_path, (reference, reference))

        ttl = self.config.cache_ttl()
        if ttl is not None:
            expires_at = self.ttl_markers().remember(entity.cache_file_name, ttl)
            logger.debug(f"{entity.cache_file_name} expires at {expires_at.isoformat()}")

        logger.info(f"Rebuilt {entity.name} cache at {cache_path}")
        return store

    def _ephemeral(self, entity: Entity) -> LocalStore:
        logger.warning(f"Cache directory {self.cache_directory} is not writable, "
                       f"loading {entity.name} into memory")
        store = LocalStore(MEMORY, entity.table)
        try:
            self.pipeline.build(entity, store)
        except Exception:
            store.close()
            raise
        return store

    def _entity_lock(self, key: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(key, threading.Lock())

    def _release(self, key: str) -> None:
        store = self._registry.pop(key, None)
        if store is not None:
            store.close()


# Singleton instance
_resolver: Optional[CacheResolver] = None


def get_resolver(config=Config) -> CacheResolver:
    """Get or create the global cache resolver."""
    global _resolver
    if _resolver is None:
        _resolver = CacheResolver(config=config)
    return _resolver


def resolve(entity_type) -> LocalStore:
    """Resolve entity_type with the global cache resolver."""
    return get_resolver().resolve(entity_type)
