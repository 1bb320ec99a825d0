"""
Notion API client for portfolio-sync.

Queries a collection for published records and walks the block tree of a
record. Every paginated endpoint is exposed as a ``fetch_page(cursor)``
capability returning either a :class:`Page` or a :class:`Failure`;
:func:`paginate` drives any such capability until the cursor runs out.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import urlparse

import aiohttp
import async_timeout
import backoff

from portfolio_sync.utils.http import RateLimiter, REQUEST_TIMEOUT, create_session

# Configure logging
logger = logging.getLogger(__name__)

NOTION_API_URL = 'https://api.notion.com/v1'
NOTION_VERSION = '2022-06-28'
PAGE_SIZE = 100

# Block kinds whose children are part of the rendered body
NESTED_BLOCK_TYPES = {
    'paragraph',
    'bulleted_list_item',
    'numbered_list_item',
    'to_do',
    'toggle',
    'quote',
    'callout',
    'table',
    'heading_1',
    'heading_2',
    'heading_3',
    'column_list',
    'column',
    'synced_block',
}


class NotionAPIError(Exception):
    """A request to the Notion API failed or returned something unusable."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


@dataclass
class Page:
    """One page of a paginated listing."""
    results: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None


@dataclass
class Failure:
    """A page that could not be fetched."""
    error: Exception
    status: Optional[int] = None


FetchPage = Callable[[Optional[str]], Awaitable[Union[Page, Failure]]]


async def paginate(fetch_page: FetchPage, description: str = 'listing') -> List[Dict[str, Any]]:
    """
    Follow cursors until the source reports no further page.

    Args:
        fetch_page: Capability returning a Page or a Failure for a cursor
        description: What is being listed, for error messages

    Returns:
        All results in source order

    Raises:
        NotionAPIError: on the first Failure
    """
    results = []
    cursor = None
    pages = 0
    while True:
        page = await fetch_page(cursor)
        if isinstance(page, Failure):
            raise NotionAPIError(
                f"Failed to fetch {description} (page {pages + 1}): {page.error}",
                status=page.status,
            ) from page.error
        results.extend(page.results)
        pages += 1
        if not page.next_cursor:
            break
        cursor = page.next_cursor
    logger.debug(f"Fetched {len(results)} items of {description} in {pages} page(s)")
    return results


def _is_permanent(error: Exception) -> bool:
    """Client errors other than rate limiting are not worth retrying."""
    status = getattr(error, 'status', None)
    return status is not None and 400 <= status < 500 and status != 429


def _to_page(data: Any) -> Page:
    if not isinstance(data, dict) or not isinstance(data.get('results'), list):
        raise NotionAPIError("Malformed response: missing 'results' list")
    next_cursor = data.get('next_cursor') if data.get('has_more') else None
    return Page(results=data['results'], next_cursor=next_cursor)


class NotionClient:
    """
    Minimal async client for the parts of the Notion API the sync jobs use.
    """
    def __init__(
        self,
        api_key: str,
        api_url: str = NOTION_API_URL,
        version: str = NOTION_VERSION,
        page_size: int = PAGE_SIZE,
        timeout: float = REQUEST_TIMEOUT,
        max_tries: int = 1,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the NotionClient.

        Args:
            api_key: Integration token
            api_url: Base URL of the API
            version: Value of the Notion-Version header
            page_size: Items requested per page (API maximum is 100)
            timeout: Per-request timeout in seconds
            max_tries: Attempts per request; 1 disables retries
            rate_limiter: Shared per-host rate limiter
            session: Existing HTTP session to reuse
        """
        if not api_key:
            raise ValueError("api_key is required")
        self.api_url = api_url.rstrip('/')
        self.page_size = page_size
        self.timeout = timeout
        self.max_tries = max(1, int(max_tries))
        self.rate_limiter = rate_limiter or RateLimiter()
        self.headers = {
            'Authorization': f'Bearer {api_key}',
            'Notion-Version': version,
            'Content-Type': 'application/json',
        }
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """
        Lazy initialization of aiohttp session.

        Returns:
            aiohttp.ClientSession: The HTTP session
        """
        if self._session is None:
            self._session = create_session()
        return self._session

    async def close_session(self):
        """Close the aiohttp session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close_session()

    async def _send(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.api_url}{path}"
        await self.rate_limiter.acquire(urlparse(url).netloc)
        async with async_timeout.timeout(self.timeout):
            async with self.session.request(method, url, headers=self.headers, **kwargs) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise NotionAPIError(
                        f"{method} {path} returned HTTP {response.status}: {body[:200]}",
                        status=response.status,
                    )
                try:
                    return await response.json()
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise NotionAPIError(f"{method} {path} returned invalid JSON: {e}") from e

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """
        Send one API request, retrying transient failures up to ``max_tries``.

        Raises:
            NotionAPIError, aiohttp.ClientError, asyncio.TimeoutError
        """
        send = backoff.on_exception(
            backoff.expo,
            (aiohttp.ClientError, asyncio.TimeoutError, NotionAPIError),
            max_tries=self.max_tries,
            giveup=_is_permanent,
            logger=logger,
        )(self._send)
        return await send(method, path, **kwargs)

    def _capability(self, method: str, path: str, body: Optional[Dict] = None) -> FetchPage:
        async def fetch_page(cursor: Optional[str]) -> Union[Page, Failure]:
            try:
                if method == 'POST':
                    payload = dict(body or {}, page_size=self.page_size)
                    if cursor:
                        payload['start_cursor'] = cursor
                    data = await self.request(method, path, json=payload)
                else:
                    params = {'page_size': str(self.page_size)}
                    if cursor:
                        params['start_cursor'] = cursor
                    data = await self.request(method, path, params=params)
                return _to_page(data)
            except NotionAPIError as e:
                return Failure(e, e.status)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                return Failure(e)
        return fetch_page

    def collection_pages(self, collection_id: str, published_property: str, date_property: str) -> FetchPage:
        """Capability listing the published records of a collection, newest first."""
        body = {
            'filter': {
                'property': published_property,
                'checkbox': {'equals': True},
            },
            'sorts': [
                {'property': date_property, 'direction': 'descending'},
            ],
        }
        return self._capability('POST', f'/databases/{collection_id}/query', body)

    def block_children_pages(self, block_id: str) -> FetchPage:
        """Capability listing the direct children of a block or page."""
        return self._capability('GET', f'/blocks/{block_id}/children')

    async def query_collection(
        self,
        collection_id: str,
        published_property: str = 'Published',
        date_property: str = 'Date',
    ) -> List[Dict[str, Any]]:
        """
        Fetch every published record of a collection.

        Args:
            collection_id: The collection (Notion database) id
            published_property: Checkbox property that marks a record as published
            date_property: Date property to sort by, descending

        Returns:
            Raw page objects in the order the API returned them
        """
        return await paginate(
            self.collection_pages(collection_id, published_property, date_property),
            description=f"collection {collection_id[:8]}",
        )

    async def list_block_children(self, block_id: str) -> List[Dict[str, Any]]:
        """Fetch all direct children of a block, following cursors."""
        return await paginate(self.block_children_pages(block_id), description=f"blocks of {block_id}")

    async def fetch_block_tree(self, block_id: str) -> List[Dict[str, Any]]:
        """
        Fetch the body of a record with nested children attached under
        each block's ``children`` key.
        """
        blocks = await self.list_block_children(block_id)
        for block in blocks:
            if block.get('has_children') and block.get('type') in NESTED_BLOCK_TYPES:
                block['children'] = await self.fetch_block_tree(children_source(block))
        return blocks


def children_source(block: Dict[str, Any]) -> str:
    """
    Id to list a block's children from; a synced duplicate holds its
    content under the original block.
    """
    if block.get('type') == 'synced_block':
        synced_from = (block.get('synced_block') or {}).get('synced_from') or {}
        if synced_from.get('block_id'):
            return synced_from['block_id']
    return block['id']
