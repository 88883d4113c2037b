"""HTTP access to a remote paginated model endpoint."""

from typing import Dict, List, Optional
import logging

import requests

from .config import Config
from .exceptions import RemoteUnavailable

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 15

TRANSPORTS = ('get', 'post')


class Page:
    """
    One response from a remote endpoint.

    Either a paginated envelope ({data, per_page, current_page, last_page,
    total}) or a bare array of records.
    """

    def __init__(
        self,
        records: List[Dict],
        per_page: Optional[int] = None,
        current_page: Optional[int] = None,
        last_page: Optional[int] = None,
        total: Optional[int] = None,
        paginated: bool = False
    ):
        self.records = records
        self.per_page = per_page
        self.current_page = current_page
        self.last_page = last_page
        self.total = total
        self.paginated = paginated

    @classmethod
    def from_payload(cls, payload) -> 'Page':
        """Normalize a decoded JSON body; raises ValueError for other shapes."""
        if isinstance(payload, list):
            return cls(records=_check_records(payload))

        if isinstance(payload, dict) and 'data' in payload:
            records = _check_records(payload['data'] or [])

            current_page = _optional_int(payload.get('current_page'))
            last_page = _optional_int(payload.get('last_page'))
            # Continuation needs both markers
            if current_page is None or last_page is None:
                current_page = last_page = None

            return cls(
                records=records,
                per_page=_optional_int(payload.get('per_page')),
                current_page=current_page,
                last_page=last_page,
                total=_optional_int(payload.get('total')),
                paginated=True,
            )

        raise ValueError(f"Unexpected payload type {type(payload).__name__}")

    @property
    def chunk_size(self) -> int:
        return self.per_page if self.per_page and self.per_page > 0 else DEFAULT_PER_PAGE

    @property
    def has_more(self) -> bool:
        if self.current_page is None or self.last_page is None:
            return False
        return self.current_page < self.last_page

    def __repr__(self):
        return (f"Page(records={len(self.records)}, current_page={self.current_page}, "
                f"last_page={self.last_page})")


def _check_records(records) -> List[Dict]:
    if not isinstance(records, list) or not all(isinstance(record, dict) for record in records):
        raise ValueError("records must be an array of objects")
    return records


def _optional_int(value) -> Optional[int]:
    if value is None or value == '':
        return None
    return int(value)


class RemoteFetcher:
    """
    Fetches single pages of an entity from its remote endpoint.

    Failures are never retried; the caller aborts its rebuild.
    """

    def __init__(self, config=Config, session=None):
        """
        Args:
            config: Configuration class providing DOMAIN, API_PATH, API_KEY,
                TRANSPORT and REQUEST_TIMEOUT
            session: requests.Session-like object (for dependency injection)
        """
        self.config = config
        self.session = session or requests.Session()

        if config.TRANSPORT not in TRANSPORTS:
            raise ValueError(f"Unsupported transport {config.TRANSPORT!r}, expected one of {TRANSPORTS}")

    def endpoint_url(self, entity) -> str:
        """Join the configured domain and API path with the entity's endpoint."""
        endpoint = entity.endpoint or ''
        if endpoint.startswith(('http://', 'https://')):
            return endpoint

        domain = (self.config.DOMAIN or '').rstrip('/')
        path = (self.config.API_PATH or '').strip('/')
        path = '/' + path if path else ''
        endpoint = '/' + endpoint.lstrip('/') if endpoint else ''

        return domain + path + endpoint

    def fetch(self, entity, page: int = 1) -> Page:
        """
        Fetch one page of remote records.

        Raises:
            RemoteUnavailable: on connection errors, timeouts, non-2xx
                statuses or a body that is not a page
        """
        url = self.endpoint_url(entity)
        params = {'page': page}
        timeout = self.config.REQUEST_TIMEOUT

        logger.debug(f"Fetching {entity.name} page {page} from {url} ({self.config.TRANSPORT.upper()})")

        try:
            if self.config.TRANSPORT == 'post':
                response = self.session.post(
                    url,
                    params=params,
                    json={'model': entity.name, 'api_key': self.config.API_KEY},
                    timeout=timeout
                )
            else:
                response = self.session.get(url, params=params, timeout=timeout)
        except requests.RequestException as e:
            raise RemoteUnavailable(url, reason=str(e)) from e

        if not 200 <= response.status_code < 300:
            raise RemoteUnavailable(url, status_code=response.status_code)

        try:
            return Page.from_payload(response.json())
        except (ValueError, TypeError) as e:
            raise RemoteUnavailable(url, status_code=response.status_code, reason=f"invalid page body: {e}") from e
