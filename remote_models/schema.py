"""Column type inference and schema resolution for remote entities."""

import re
from enum import Enum
from numbers import Number
from typing import Callable, Dict, Optional
import logging

import pandas as pd

from .exceptions import EmptySchema, SchemaError

logger = logging.getLogger(__name__)


class ColumnType(Enum):
    """Storage types a remote column can be materialized as."""
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    DATETIME = "dateTime"
    JSON = "json"

    @classmethod
    def parse(cls, name) -> 'ColumnType':
        """Parse a declared type name, accepting common aliases."""
        if isinstance(name, ColumnType):
            return name
        try:
            return _TYPE_ALIASES[str(name).strip().lower()]
        except KeyError:
            raise SchemaError(f"Unknown column type: {name!r}") from None


_TYPE_ALIASES = {
    'integer': ColumnType.INTEGER,
    'int': ColumnType.INTEGER,
    'biginteger': ColumnType.INTEGER,
    'float': ColumnType.FLOAT,
    'double': ColumnType.FLOAT,
    'decimal': ColumnType.FLOAT,
    'string': ColumnType.STRING,
    'text': ColumnType.STRING,
    'datetime': ColumnType.DATETIME,
    'timestamp': ColumnType.DATETIME,
    'date': ColumnType.DATETIME,
    'json': ColumnType.JSON,
}

# SQLite declared type for each column type
SQL_TYPES = {
    ColumnType.INTEGER: 'INTEGER',
    ColumnType.FLOAT: 'REAL',
    ColumnType.STRING: 'TEXT',
    ColumnType.DATETIME: 'TIMESTAMP',
    ColumnType.JSON: 'JSON',
}

ID_COLUMN = 'id'
TIMESTAMP_COLUMNS = ('created_at', 'updated_at')
RESERVED_COLUMNS = (ID_COLUMN,) + TIMESTAMP_COLUMNS


def parse_datetime(value: str) -> Optional[pd.Timestamp]:
    """Parse a date/time string, returning None when it is not one."""
    try:
        parsed = pd.to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed


# Plain decimal or exponent notation only; no nan, inf or digit separators
_NUMERIC_STRING = re.compile(r'\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*')


def _is_numeric_string(value: str) -> bool:
    return _NUMERIC_STRING.fullmatch(value) is not None


def infer_column_type(value) -> ColumnType:
    """
    Derive a column type from a sample JSON value.

    Rules, first match wins: integers, other numbers and numeric strings,
    objects carrying a ``date`` key, other objects and arrays, strings a
    date parser accepts, and finally plain strings.
    """
    if isinstance(value, bool) or value is None:
        return ColumnType.STRING
    if isinstance(value, int):
        return ColumnType.INTEGER
    if isinstance(value, Number):
        return ColumnType.FLOAT
    if isinstance(value, str) and _is_numeric_string(value):
        return ColumnType.FLOAT
    if isinstance(value, dict):
        return ColumnType.DATETIME if 'date' in value else ColumnType.JSON
    if isinstance(value, (list, tuple)):
        return ColumnType.JSON
    if isinstance(value, str) and parse_datetime(value) is not None:
        return ColumnType.DATETIME
    return ColumnType.STRING


def build_descriptor(columns: Dict[str, ColumnType]) -> Dict[str, ColumnType]:
    """Wrap columns with the reserved id and timestamp columns."""
    descriptor = {ID_COLUMN: ColumnType.INTEGER}
    for column, column_type in columns.items():
        if column not in RESERVED_COLUMNS:
            descriptor[column] = column_type
    for column in TIMESTAMP_COLUMNS:
        descriptor[column] = ColumnType.DATETIME
    return descriptor


def resolve_schema(entity, sample_provider: Callable) -> Dict[str, ColumnType]:
    """
    Produce the column-to-type mapping for an entity's local table.

    Args:
        entity: Entity description
        sample_provider: Callable returning page 1 of remote data; only
            called when the entity declares no explicit schema

    Returns:
        Ordered dict of column name -> ColumnType, always including the
        reserved id/created_at/updated_at columns

    Raises:
        EmptySchema: if there is nothing to build the schema from
    """
    if entity.has_explicit_schema:
        columns = {column: ColumnType.parse(type_name) for column, type_name in entity.schema.items()}
        logger.debug(f"Using declared schema for {entity.name}: {list(columns)}")
        return build_descriptor(columns)

    page = sample_provider()
    if not page.records:
        raise EmptySchema(entity.name)

    sample = page.records[0]
    columns = {column: infer_column_type(value) for column, value in sample.items()}
    logger.debug(f"Inferred schema for {entity.name} from {len(columns)} sample columns")
    return build_descriptor(columns)
