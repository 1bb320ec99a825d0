"""
Local copies of remote images for portfolio-sync.

Notion serves uploaded files from signed URLs that expire after about an
hour, so project images are downloaded next to the site and referenced
by relative path.
"""
import asyncio
import logging
import posixpath
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import unquote, urljoin, urlparse

import aiohttp
import async_timeout
from bs4 import BeautifulSoup

from portfolio_sync.utils.http import REQUEST_TIMEOUT, create_session

# Configure logging
logger = logging.getLogger(__name__)

ASSETS_DIRECTORY = 'assets/images/projects'
ALLOWED_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.webp', '.svg', '.avif')
DEFAULT_EXTENSION = '.jpg'
MAX_REDIRECTS = 5
LOCAL_PREFIXES = ('assets/', './', '/')


def image_extension(url: str) -> str:
    """
    File extension for a downloaded image, taken from the URL path.

    Args:
        url: Image URL

    Returns:
        One of ALLOWED_EXTENSIONS, DEFAULT_EXTENSION when absent or unknown
    """
    path = unquote(urlparse(url).path)
    ext = posixpath.splitext(path)[1].lower()
    return ext if ext in ALLOWED_EXTENSIONS else DEFAULT_EXTENSION


def is_local(src: str) -> bool:
    return src.startswith(LOCAL_PREFIXES)


def _short(url: str) -> str:
    return url if len(url) <= 80 else f"{url[:80]}..."


class AssetMaterializer:
    """
    Downloads remote images to deterministic local filenames.

    Every failure (bad URL, network error, timeout, non-200 status, too
    many redirects, write error) falls back to the original URL.
    """
    def __init__(
        self,
        root: Union[str, Path] = '.',
        directory: str = ASSETS_DIRECTORY,
        timeout: float = REQUEST_TIMEOUT,
        max_redirects: int = MAX_REDIRECTS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the AssetMaterializer.

        Args:
            root: Site root the relative paths are resolved against
            directory: Asset directory, relative to root
            timeout: Per-request timeout in seconds
            max_redirects: Redirect hops followed before giving up
            session: Existing HTTP session to reuse
        """
        self.relative_dir = directory.strip('/')
        self.target_dir = Path(root) / self.relative_dir
        self.timeout = timeout
        self.max_redirects = max_redirects
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = create_session()
        return self._session

    async def close_session(self):
        """Close the aiohttp session if this materializer created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def ensure_directory(self):
        """Create the asset directory if it does not exist."""
        if not self.target_dir.exists():
            self.target_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created images directory: {self.target_dir}")

    async def download(self, url: Optional[str], filename: str) -> Optional[str]:
        """
        Download an image and return its local relative path.

        Args:
            url: Remote image URL
            filename: Target name without extension, e.g. ``<id>-cover``

        Returns:
            ``assets/images/projects/<filename><ext>``, the original URL on
            failure, or None when there is no URL
        """
        if not url:
            return None
        return await self._download(url, url, filename, 0)

    async def _download(self, original: str, url: str, filename: str, hops: int) -> str:
        try:
            parsed = urlparse(url)
            if parsed.scheme not in ('http', 'https') or not parsed.netloc:
                raise ValueError(f"unsupported image URL {_short(url)}")
            async with async_timeout.timeout(self.timeout):
                async with self.session.get(url, allow_redirects=False) as response:
                    status = response.status
                    location = response.headers.get('Location')
                    data = await response.read() if status == 200 else None
        except asyncio.TimeoutError:
            logger.warning(f"Timeout downloading image: {_short(original)}")
            return original
        except (aiohttp.ClientError, ValueError) as e:
            logger.warning(f"Error downloading image {_short(original)}: {e}")
            return original

        if 300 <= status < 400 and location:
            if hops >= self.max_redirects:
                logger.warning(f"Too many redirects ({hops}) for image: {_short(original)}")
                return original
            return await self._download(original, urljoin(url, location), filename, hops + 1)

        if status != 200:
            logger.warning(f"Failed to download image (HTTP {status}): {_short(original)}")
            return original

        return self._write(original, f"{filename}{image_extension(url)}", data)

    def _write(self, original: str, local_filename: str, data: bytes) -> str:
        local_path = self.target_dir / local_filename
        try:
            self.ensure_directory()
            local_path.write_bytes(data)
        except OSError as e:
            local_path.unlink(missing_ok=True)
            logger.warning(f"Error writing image file {local_path}: {e}")
            return original

        logger.info(f"Downloaded image: {local_filename} ({len(data) / 1024:.1f} KB)")
        return f"{self.relative_dir}/{local_filename}"

    async def localize_html(self, html: str, record_id: str) -> str:
        """
        Replace remote ``<img>`` sources in an HTML body with local copies.

        Images are handled one at a time in document order and named
        ``<record_id>-content-<n>``; sources that are already local are
        left alone and do not take a number.

        Returns:
            The rewritten HTML, or the input unchanged if nothing moved
        """
        if not html or '<img' not in html:
            return html

        soup = BeautifulSoup(html, 'html.parser')
        index = 0
        changed = False
        for img in soup.find_all('img', src=True):
            src = img['src']
            if not src.strip() or is_local(src):
                continue
            local = await self.download(src, f"{record_id}-content-{index}")
            if local != src:
                img['src'] = local
                changed = True
            index += 1
        return str(soup) if changed else html

    async def localize_blocks(self, blocks: List[Dict[str, Any]], record_id: str) -> List[Dict[str, Any]]:
        """
        Same as :meth:`localize_html` for the structured block list; image
        blocks are updated in place, depth first.
        """
        index = 0

        async def visit(items: List[Dict[str, Any]]):
            nonlocal index
            for item in items:
                if item.get('type') == 'image' and item.get('url') and not is_local(item['url']):
                    item['url'] = await self.download(item['url'], f"{record_id}-content-{index}")
                    index += 1
                await visit(item.get('items') or [])
                await visit(item.get('children') or [])

        await visit(blocks)
        return blocks
