"""Populate a local store from a remote paginated endpoint."""

import json
from typing import Dict, Iterator, List, Optional, Set
import logging

import pandas as pd

from .exceptions import TableAlreadyExists
from .fetcher import DEFAULT_PER_PAGE, RemoteFetcher
from .schema import ColumnType, RESERVED_COLUMNS, infer_column_type, parse_datetime, resolve_schema

logger = logging.getLogger(__name__)


def chunked(records: List[Dict], size: int) -> Iterator[List[Dict]]:
    for start in range(0, len(records), size):
        yield records[start:start + size]


def format_timestamp(value: pd.Timestamp) -> str:
    return value.isoformat(sep=' ')


def _date_object_to_timestamp(value: Dict) -> Optional[pd.Timestamp]:
    """Convert a serialized date object like {"date": ..., "timezone": ...}."""
    parsed = parse_datetime(str(value['date']))
    if parsed is None:
        return None

    timezone = value.get('timezone')
    if not timezone:
        return parsed

    try:
        if parsed.tzinfo is None:
            return parsed.tz_localize(timezone)
        return parsed.tz_convert(timezone)
    except (KeyError, ValueError, TypeError):
        logger.debug(f"Ignoring unknown timezone {timezone!r}")
        return parsed


def coerce_value(value):
    """
    Convert a raw JSON value into something the store can hold.

    Date objects and date strings become ISO timestamps, other objects and
    arrays become JSON text, everything else is kept unchanged.
    """
    if isinstance(value, dict) and 'date' in value:
        parsed = _date_object_to_timestamp(value)
        if parsed is not None:
            return format_timestamp(parsed)
    elif isinstance(value, str) and infer_column_type(value) is ColumnType.DATETIME:
        return format_timestamp(parse_datetime(value))

    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def coerce_record(record: Dict, allowed: Optional[Set[str]] = None) -> Dict:
    """Coerce a record, keeping only allowed keys when a set is given."""
    return {
        key: coerce_value(value)
        for key, value in record.items()
        if allowed is None or key in allowed
    }


class IngestPipeline:
    """
    Builds an entity's local table and loads every remote page into it.

    Pages are fetched strictly in order; a failed fetch aborts the build and
    leaves already-inserted pages in place.
    """

    def __init__(self, fetcher: RemoteFetcher):
        self.fetcher = fetcher

    def build(self, entity, store) -> None:
        """
        Create the table for entity in store and populate it.

        Raises:
            EmptySchema: if no schema can be derived
            RemoteUnavailable: if any fetch fails
        """
        schema = resolve_schema(entity, lambda: self.fetcher.fetch(entity, 1))

        try:
            store.create_table(schema)
        except TableAlreadyExists:
            # Another worker won the creation race and owns the load
            logger.warning(f"Table {entity.table} already exists in {store.database}, skipping load")
            return

        if entity.custom_loader is not None:
            entity.custom_loader(self, entity, store)
            logger.info(f"Loaded {entity.name} with custom loader ({store.count()} rows)")
            return

        count = self.load(entity, store)
        logger.info(f"Loaded {count} {entity.name} rows into {store.database}")

    def load(self, entity, store, page: int = 1) -> int:
        """
        Fetch pages starting at page and insert their records.

        Returns:
            Count of rows inserted
        """
        total = 0
        while True:
            result = self.fetcher.fetch(entity, page)
            total += self.insert_records(entity, store, result.records, result.chunk_size)

            if not result.has_more:
                break

            next_page = result.current_page + 1
            if next_page <= page:
                logger.warning(f"{entity.name} page {page} reported current_page={result.current_page}, "
                               f"stopping pagination")
                break
            page = next_page

        return total

    def insert_records(self, entity, store, records: List[Dict], chunk_size: int = DEFAULT_PER_PAGE) -> int:
        """Coerce records and insert them in chunks of chunk_size."""
        allowed = None
        if entity.has_explicit_schema:
            allowed = set(entity.schema) | set(RESERVED_COLUMNS)

        inserted = 0
        for chunk in chunked(records, chunk_size):
            inserted += store.insert([coerce_record(record, allowed) for record in chunk])
            logger.debug(f"Inserted {len(chunk)} {entity.name} rows")
        return inserted
