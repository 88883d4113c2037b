"""Entity types backed by a remote paginated source."""

import inspect
import logging
import os
import re
import time
from typing import Dict, Optional, Protocol, runtime_checkable

from .config import Config

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteBacked(Protocol):
    """
    Capability any type implements to be mirrored from a remote source.

    Only ``remote_endpoint`` is required (None selects the default
    ``/<kebab-case-name>`` endpoint). Optional class attributes:

        remote_schema: mapping of column name to type name; disables inference
        table_name: local table name, default snake_case of the class name
        remote_version: number used instead of the defining file's mtime
        load_remote_data(pipeline, entity, store): classmethod replacing the
            paginated data load
    """

    remote_endpoint: Optional[str]


def kebab_case(name: str) -> str:
    name = re.sub(r'(.)([A-Z][a-z]+)', r'\1-\2', name)
    return re.sub(r'([a-z0-9])([A-Z])', r'\1-\2', name).replace('_', '-').lower()


def snake_case(name: str) -> str:
    return kebab_case(name).replace('-', '_')


def qualified_name(entity_type: type) -> str:
    return f"{entity_type.__module__}.{entity_type.__qualname__}"


def qualified_kebab_case(qualified: str) -> str:
    """Kebab-case every dotted part, e.g. app.models.Celebrity -> app-models-celebrity."""
    parts = (kebab_case(part) for part in qualified.split('.'))
    return re.sub(r'[^a-z0-9]+', '-', '-'.join(parts)).strip('-')


class Entity:
    """Resolved description of a remote-backed type."""

    def __init__(
        self,
        entity_type: type,
        name: str,
        key: str,
        table: str,
        endpoint: str,
        schema: Optional[Dict[str, str]],
        cache_file_name: str,
        reference_timestamp: float
    ):
        self.type = entity_type
        self.name = name
        self.key = key
        self.table = table
        self.endpoint = endpoint
        self.schema = schema
        self.cache_file_name = cache_file_name
        self.reference_timestamp = reference_timestamp

    @classmethod
    def from_type(cls, entity_type: type, config=Config) -> 'Entity':
        """
        Build the entity description for a type implementing RemoteBacked.

        Raises:
            TypeError: if the type does not declare remote_endpoint
        """
        if not isinstance(entity_type, type) or not isinstance(entity_type, RemoteBacked):
            raise TypeError(f"{entity_type!r} does not implement RemoteBacked")

        name = entity_type.__name__
        key = qualified_name(entity_type)
        endpoint = entity_type.remote_endpoint or '/' + kebab_case(name)
        schema = getattr(entity_type, 'remote_schema', None)

        return cls(
            entity_type=entity_type,
            name=name,
            key=key,
            table=getattr(entity_type, 'table_name', None) or snake_case(name),
            endpoint=endpoint,
            schema=dict(schema) if schema else None,
            cache_file_name=f"{config.CACHE_PREFIX}-{qualified_kebab_case(key)}.sqlite",
            reference_timestamp=_reference_timestamp(entity_type),
        )

    @property
    def has_explicit_schema(self) -> bool:
        return bool(self.schema)

    @property
    def custom_loader(self):
        return getattr(self.type, 'load_remote_data', None)

    def __repr__(self):
        return f"Entity({self.name!r}, endpoint={self.endpoint!r})"


def _reference_timestamp(entity_type: type) -> float:
    """Stable version signal for the type's definition."""
    version = getattr(entity_type, 'remote_version', None)
    if version is not None:
        return float(version)

    try:
        return os.path.getmtime(inspect.getfile(entity_type))
    except (TypeError, OSError):
        # No defining file (e.g. interactive session); every process start rebuilds
        logger.warning(f"Cannot locate source file for {entity_type.__name__}, treating cache as stale")
        return time.time()
