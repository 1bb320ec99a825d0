"""
Sync run orchestration for portfolio-sync.
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from tqdm import tqdm

from portfolio_sync.config import Config
from portfolio_sync.core.assets import AssetMaterializer
from portfolio_sync.core.normalizer import RecordNormalizer, order_pages, record_id
from portfolio_sync.core.record import Record
from portfolio_sync.core.snapshot import SnapshotWriter
from portfolio_sync.fetchers.notion import NotionClient
from portfolio_sync.formatters.blocks import BlockFormatter
from portfolio_sync.formatters.html import HtmlConverter
from portfolio_sync.formatters.markdown import MarkdownFormatter
from portfolio_sync.utils.http import MAX_CONCURRENT_REQUESTS, RateLimiter, create_session

# Configure logging
logger = logging.getLogger(__name__)

CONTENT_FORMATS = ('html', 'blocks')


class SyncProcessor:
    """
    Turns raw pages into records: body fetch, flattening, image
    materialization and normalization, one page at a time or fanned out.
    """
    def __init__(
        self,
        client: NotionClient,
        normalizer: RecordNormalizer,
        content_format: str = 'html',
        materializer: Optional[AssetMaterializer] = None,
        concurrent: bool = False,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
    ):
        """
        Initialize the SyncProcessor.

        Args:
            client: Source of block trees
            normalizer: Builds the output records
            content_format: 'html' for ``content_html``, 'blocks' for ``content``
            materializer: Downloads images when set
            concurrent: Process pages concurrently instead of one by one
            max_concurrent: Upper bound on pages in flight when concurrent
        """
        if content_format not in CONTENT_FORMATS:
            raise ValueError(f"Unknown content format: {content_format}")
        self.client = client
        self.normalizer = normalizer
        self.content_format = content_format
        self.materializer = materializer
        self.concurrent = concurrent
        self.max_concurrent = max(1, max_concurrent)
        self.markdown_formatter = MarkdownFormatter()
        self.block_formatter = BlockFormatter()
        self.html_converter = HtmlConverter()

    async def process_page(self, page: Dict[str, Any]) -> Record:
        """
        Build the record for one page.

        Raises:
            Whatever the body fetch or conversion raises; callers decide
            whether that skips the record.
        """
        rid = record_id(page['id'])
        blocks = await self.client.fetch_block_tree(page['id'])

        cover = self.normalizer.cover_url(page)
        if self.materializer and cover:
            logger.debug(f"Downloading cover image for {rid}")
            cover = await self.materializer.download(cover, f"{rid}-cover")

        if self.content_format == 'blocks':
            content = self.block_formatter.flatten(blocks)
            if self.materializer:
                await self.materializer.localize_blocks(content, rid)
            return self.normalizer.normalize(
                page,
                content=content,
                text=self.block_formatter.plain_text(blocks),
                cover=cover,
            )

        markdown_text = self.markdown_formatter.blocks_to_markdown(blocks)
        content_html = self.html_converter.markdown_to_html(markdown_text)
        if self.materializer:
            content_html = await self.materializer.localize_html(content_html, rid)
        return self.normalizer.normalize(
            page,
            content_html=content_html,
            text=self.html_converter.extract_text(content_html),
            cover=cover,
        )

    async def _process_safely(self, page: Dict[str, Any]) -> Optional[Record]:
        try:
            record = await self.process_page(page)
        except Exception as e:
            logger.warning(f"Error processing page {page.get('id')}: {e}", exc_info=True)
            return None
        logger.info(f"Processed \"{record.title}\" ({record.id})")
        return record

    async def process_pages(self, pages: List[Dict[str, Any]]) -> List[Record]:
        """
        Process every page; failed pages are logged and left out.

        Args:
            pages: Raw pages in output order

        Returns:
            Records in the same order as ``pages``
        """
        if self.concurrent:
            results = await self._process_concurrently(pages)
        else:
            results = []
            for page in tqdm(pages, desc="Processing records", disable=not pages):
                results.append(await self._process_safely(page))

        records = [record for record in results if record is not None]
        skipped = len(pages) - len(records)
        if skipped:
            logger.warning(f"Skipped {skipped} of {len(pages)} record(s)")
        return records

    async def _process_concurrently(self, pages: List[Dict[str, Any]]) -> List[Optional[Record]]:
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def process_with_semaphore(position: int, page: Dict[str, Any]) -> Tuple[int, Optional[Record]]:
            async with semaphore:
                return position, await self._process_safely(page)

        tasks = [process_with_semaphore(i, page) for i, page in enumerate(pages)]
        results: List[Optional[Record]] = [None] * len(pages)
        for task in tqdm(asyncio.as_completed(tasks), total=len(tasks), desc="Processing records", disable=not tasks):
            position, record = await task
            results[position] = record
        return results


async def run_sync(
    name: str,
    config: Config,
    root: Union[str, Path] = '.',
    content_format: Optional[str] = None,
    concurrent: Optional[bool] = None,
) -> Path:
    """
    Run one sync job end to end and write its snapshot.

    Args:
        name: Pipeline name, 'articles' or 'projects'
        config: Loaded configuration
        root: Site root; snapshot and assets paths are relative to it
        content_format: Overrides the pipeline's configured format
        concurrent: Overrides ``processing.concurrent``

    Returns:
        Path of the written snapshot

    Raises:
        ConfigError: missing credentials
        NotionAPIError: the collection query failed
    """
    settings = config.pipeline(name)
    api_key = config.require_env(settings['api_key_env'])
    collection_id = config.require_env(settings['collection_env'])
    properties = settings['properties']

    content_format = content_format or settings.get('content_format', 'html')
    if concurrent is None:
        concurrent = bool(config.get('processing.concurrent', False))

    root = Path(root)
    logger.info(f"Syncing {name} from collection {collection_id[:8]}...")

    session = create_session()
    try:
        client = NotionClient(
            api_key,
            api_url=config.get('notion.api_url'),
            version=config.get('notion.version'),
            page_size=config.get('notion.page_size', 100),
            timeout=config.get('rate_limiting.timeout_seconds', 30),
            max_tries=config.get('retry.max_tries', 1),
            rate_limiter=RateLimiter(config.get('rate_limiting.requests_per_second', 3)),
            session=session,
        )

        materializer = None
        if settings.get('materialize_images'):
            materializer = AssetMaterializer(
                root=root,
                directory=config.get('assets.directory'),
                timeout=config.get('assets.timeout_seconds', 30),
                max_redirects=config.get('assets.max_redirects', 5),
                session=session,
            )
            materializer.ensure_directory()

        normalizer = RecordNormalizer(name, properties)
        processor = SyncProcessor(
            client,
            normalizer,
            content_format=content_format,
            materializer=materializer,
            concurrent=concurrent,
            max_concurrent=config.get('rate_limiting.max_concurrent', MAX_CONCURRENT_REQUESTS),
        )

        pages = await client.query_collection(collection_id, properties['published'], properties['date'])
        logger.info(f"Found {len(pages)} published record(s)")
        if not pages:
            logger.warning(f"No published {name} found. Check the Notion collection.")

        records = await processor.process_pages(order_pages(pages, properties['date']))
    finally:
        await session.close()

    writer = SnapshotWriter(root / config.get('output.directory', 'data'))
    snapshot = writer.build(settings['list_key'], records)
    return writer.write(settings['output_file'], snapshot)
