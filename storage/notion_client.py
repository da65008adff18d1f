"""Notion database client used as the sync destination."""
import logging
import time
from typing import Dict, List, Optional

import requests

from processor.dates import format_date_value, parse_date_value
from processor.errors import ApplyError, ListError
from processor.models import DestinationRow, NormalizedEvent

logger = logging.getLogger(__name__)


class NotionDatabaseClient:
    """Client for listing, creating and updating rows of a Notion database."""

    BASE_URL = "https://api.notion.com/v1"
    NOTION_VERSION = "2022-06-28"
    PAGE_SIZE = 100
    MAX_TEXT_LENGTH = 2000  # Notion limit per rich text object
    RETRY_STATUSES = (429, 500, 502, 503, 504)

    def __init__(
        self,
        token: str,
        database_name: str,
        id_property: str,
        date_property: str,
        location_property: Optional[str] = None,
        title_property: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        base_delay: float = 1.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the Notion client.

        Args:
            token: Notion integration token
            database_name: Name of the database to search for
            id_property: Rich text property holding the event identity
            date_property: Date property holding the event range
            location_property: Optional rich text property for the location
            title_property: Title property name (detected when omitted)
            timeout: HTTP request timeout in seconds
            max_retries: Attempts per request for rate limits and server errors
            base_delay: First retry delay in seconds, doubled on each retry
            session: Optional requests session to reuse
        """
        self.database_name = database_name
        self.id_property = id_property
        self.date_property = date_property
        self.location_property = location_property
        self.title_property = title_property
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.database_id: Optional[str] = None

        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Notion-Version': self.NOTION_VERSION,
            'Content-Type': 'application/json',
        })

    @property
    def has_location(self) -> bool:
        return bool(self.location_property)

    def resolve_database(self) -> str:
        """
        Find the database by name and detect its title property.

        Returns:
            Database ID

        Raises:
            ListError: If the search fails or finds no database
        """
        if self.database_id:
            return self.database_id

        logger.info(f"Searching Notion for database '{self.database_name}'")
        try:
            response = self._request('POST', '/search', {
                'query': self.database_name,
                'filter': {'property': 'object', 'value': 'database'},
            })
        except requests.RequestException as e:
            raise ListError(f"Notion search failed: {_describe(e)}") from e

        databases = [
            result for result in response.get('results', [])
            if result.get('object') == 'database'
        ]
        if not databases:
            raise ListError(f"No Notion database named '{self.database_name}'")

        exact = [db for db in databases if _plain_text(db.get('title', [])) == self.database_name]
        database = (exact or databases)[0]

        if not self.title_property:
            for name, prop in database.get('properties', {}).items():
                if prop.get('type') == 'title':
                    self.title_property = name
                    break
            else:
                raise ListError(f"Database '{self.database_name}' has no title property")

        self.database_id = database['id']
        logger.info(
            f"Using Notion database {self.database_id} "
            f"(title property '{self.title_property}')"
        )
        return self.database_id

    def list_rows(self) -> List[DestinationRow]:
        """
        List every row whose identity property is not empty.

        Returns:
            List of DestinationRow objects

        Raises:
            ListError: If the database cannot be resolved or queried
        """
        database_id = self.resolve_database()
        payload = {
            'filter': {
                'property': self.id_property,
                'rich_text': {'is_not_empty': True},
            },
            'page_size': self.PAGE_SIZE,
        }

        pages = []
        while True:
            try:
                response = self._request('POST', f'/databases/{database_id}/query', payload)
            except requests.RequestException as e:
                raise ListError(f"Notion database query failed: {_describe(e)}") from e

            pages.extend(response.get('results', []))
            if not response.get('has_more'):
                break
            payload = dict(payload, start_cursor=response['next_cursor'])

        rows = [self._page_to_row(page) for page in pages]
        logger.info(f"Retrieved {len(rows)} rows from Notion")
        return rows

    def validate_row(self, event: NormalizedEvent) -> None:
        """
        Check the event against Notion's property limits without writing.

        Raises:
            ApplyError: If a text value is longer than Notion accepts
        """
        texts = {
            'title': event.title,
            self.id_property: event.identity,
        }
        if self.has_location and event.location:
            texts[self.location_property] = event.location

        for name, text in texts.items():
            if text and len(text) > self.MAX_TEXT_LENGTH:
                raise ApplyError(
                    f"{name} is {len(text)} characters, Notion accepts at most "
                    f"{self.MAX_TEXT_LENGTH}",
                    identity=event.identity
                )

    def create_row(self, event: NormalizedEvent) -> str:
        """
        Create a page for the event.

        Returns:
            ID of the created page

        Raises:
            ApplyError: If Notion rejects the page
        """
        database_id = self.resolve_database()
        try:
            response = self._request('POST', '/pages', {
                'parent': {'database_id': database_id},
                'properties': self._write_properties(event),
            })
        except requests.RequestException as e:
            raise ApplyError(_describe(e), identity=event.identity) from e
        return response['id']

    def update_row(self, handle: str, event: NormalizedEvent) -> None:
        """
        Overwrite the synced properties of an existing page.

        Raises:
            ApplyError: If Notion rejects the update
        """
        self.resolve_database()
        try:
            self._request('PATCH', f'/pages/{handle}', {
                'properties': self._write_properties(event),
            })
        except requests.RequestException as e:
            raise ApplyError(_describe(e), identity=event.identity) from e

    def _write_properties(self, event: NormalizedEvent) -> Dict[str, dict]:
        properties = {
            self.title_property: {'title': _rich_text(event.title)},
            self.id_property: {'rich_text': _rich_text(event.identity)},
            self.date_property: {
                'date': {
                    'start': format_date_value(event.start),
                    'end': format_date_value(event.end),
                }
            },
        }
        if self.has_location:
            # An empty list clears a location left over from an older version
            properties[self.location_property] = {'rich_text': _rich_text(event.location)}
        return properties

    def _page_to_row(self, page: dict) -> DestinationRow:
        properties = page.get('properties', {})

        identity = _property_text(properties.get(self.id_property), 'rich_text') or None
        title = _property_text(properties.get(self.title_property), 'title')
        location = None
        if self.has_location:
            location = _property_text(properties.get(self.location_property), 'rich_text') or None

        start = end = None
        date = (properties.get(self.date_property) or {}).get('date')
        if date:
            try:
                start = parse_date_value(date.get('start'))
                end = parse_date_value(date.get('end'))
            except ValueError as e:
                logger.warning(f"Unreadable date on Notion page {page.get('id')}: {e}")

        return DestinationRow(
            handle=page['id'],
            identity=identity,
            title=title,
            start=start,
            end=end,
            location=location
        )

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        """
        Send a request, retrying rate limits and server errors.

        Raises:
            requests.RequestException: If the request ultimately fails
        """
        url = self.BASE_URL + path
        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            try:
                response = self.session.request(method, url, json=payload, timeout=self.timeout)
            except requests.RequestException as e:
                if last_attempt:
                    raise
                delay = self.base_delay * (2 ** attempt)
                logger.warning(f"{method} {path} failed: {e}. Retrying in {delay} seconds...")
                time.sleep(delay)
                continue

            if response.status_code in self.RETRY_STATUSES and not last_attempt:
                delay = _retry_after(response, self.base_delay * (2 ** attempt))
                logger.warning(
                    f"{method} {path} returned {response.status_code}. "
                    f"Retrying in {delay} seconds..."
                )
                time.sleep(delay)
                continue

            response.raise_for_status()
            return response.json()


def _rich_text(text: Optional[str]) -> List[dict]:
    if not text:
        return []
    return [{'type': 'text', 'text': {'content': text}}]


def _plain_text(items: List[dict]) -> str:
    return ''.join(item.get('plain_text', '') for item in items or [])


def _property_text(prop: Optional[dict], kind: str) -> str:
    if not prop or prop.get('type', kind) != kind:
        return ''
    return _plain_text(prop.get(kind))


def _retry_after(response: requests.Response, default: float) -> float:
    try:
        return float(response.headers.get('Retry-After', default))
    except ValueError:
        return default


def _describe(error: requests.RequestException) -> str:
    """Prefer Notion's error message over the bare HTTP status."""
    response = getattr(error, 'response', None)
    if response is not None:
        try:
            message = response.json().get('message')
        except ValueError:
            message = None
        if message:
            return f"{response.status_code} {message}"
    return str(error)
