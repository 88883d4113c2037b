"""Exceptions raised while resolving remote-backed entities."""

from typing import Optional


class RemoteModelsError(Exception):
    """Base exception for all remote model errors."""

    pass


class RemoteUnavailable(RemoteModelsError):
    """Raised when a remote fetch fails or returns a non-success status."""

    def __init__(self, url: str, status_code: Optional[int] = None, reason: str = ''):
        self.url = url
        self.status_code = status_code
        message = f"Access to remote model endpoint {url} failed"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class EmptySchema(RemoteModelsError):
    """Raised when no explicit schema exists and the sample page has no records."""

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(f"No data returned from remote model {entity_name} to build a schema from")


class SchemaError(RemoteModelsError):
    """Raised when a declared schema names an unknown column type."""

    pass


class TableAlreadyExists(RemoteModelsError):
    """Raised by the store when a concurrent worker already created the table."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f'table "{table}" already exists')
