"""
Maps raw Notion pages onto the flat Article / Project schema.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from portfolio_sync.core.properties import PropertyBag, page_cover, page_icon
from portfolio_sync.core.record import Article, Project, Record

READING_SPEED = 200  # words per minute


def record_id(page_id: Optional[str]) -> str:
    """Notion page id with the dashes removed."""
    return (page_id or '').replace('-', '')


def estimate_read_time(text: str) -> int:
    """Minutes to read ``text`` at READING_SPEED, never less than one."""
    words = len(text.split()) if text else 0
    return max(1, math.ceil(words / READING_SPEED))


def resolve_read_time(explicit: Optional[float], text: str) -> int:
    """
    An explicit value wins even when it is 0; only the estimate is
    clamped to at least one minute.
    """
    if explicit is not None:
        return max(0, math.ceil(explicit))
    return estimate_read_time(text)


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Notion date or date-time as an aware UTC datetime.

    Date-only values are taken as midnight UTC; values that do not parse
    are treated as missing.
    """
    if not value:
        return None
    # fromisoformat() only accepts a 'Z' suffix from Python 3.11
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def order_pages(pages: List[Dict[str, Any]], date_property) -> List[Dict[str, Any]]:
    """
    Sort pages newest first, breaking ties on record id.

    Pages without a (parseable) date go last.
    """
    def date_of(page):
        return parse_date(PropertyBag(page.get('properties')).date(date_property))

    by_id = sorted(pages, key=lambda page: record_id(page.get('id')))
    dated = [(date_of(page), page) for page in by_id]
    undated = [page for moment, page in dated if moment is None]
    dated = [(moment, page) for moment, page in dated if moment is not None]
    # stable sort keeps the id order among equal dates
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [page for _, page in dated] + undated


class RecordNormalizer:
    """
    Builds Article or Project records from raw pages.
    """
    def __init__(self, kind: str, properties: Dict[str, Any]):
        """
        Initialize the RecordNormalizer.

        Args:
            kind: 'articles' or 'projects'
            properties: Output field -> Notion property name(s)
        """
        if kind not in ('articles', 'projects'):
            raise ValueError(f"Unknown record kind: {kind}")
        self.kind = kind
        self.properties = properties

    def prop(self, field: str):
        return self.properties.get(field)

    def cover_url(self, page: Dict[str, Any]) -> Optional[str]:
        """
        Remote cover: the page cover, else the first file of the
        configured files property.
        """
        cover = page_cover(page)
        if cover:
            return cover
        return PropertyBag(page.get('properties')).first_file(self.prop('cover_files'))

    def normalize(
        self,
        page: Dict[str, Any],
        content_html: Optional[str] = None,
        content: Optional[List[Dict[str, Any]]] = None,
        text: str = '',
        cover: Optional[str] = None,
    ) -> Record:
        """
        Build the output record for one page.

        Args:
            page: Raw page object from the collection query
            content_html: Rendered body (HTML variant)
            content: Typed block list (structured variant)
            text: Plain text of the body, for the read-time estimate
            cover: Resolved cover; defaults to the remote cover URL

        Returns:
            Article or Project
        """
        bag = PropertyBag(page.get('properties'))
        common = dict(
            id=record_id(page.get('id')),
            title=bag.title(self.prop('title')),
            date=bag.date(self.prop('date')),
            cover=cover if cover is not None else self.cover_url(page),
            read_time=resolve_read_time(bag.number(self.prop('read_time')), text),
            featured=bag.checkbox(self.prop('featured')),
            content_html=content_html,
            content=content,
            url=page.get('url'),
            last_edited=page.get('last_edited_time'),
        )

        if self.kind == 'articles':
            return Article(
                title_en=bag.rich_text(self.prop('title_en')),
                description=bag.rich_text(self.prop('description')),
                category=bag.select(self.prop('category')),
                tags=bag.multi_select(self.prop('tags')),
                icon=page_icon(page),
                **common,
            )
        return Project(
            summary=bag.rich_text(self.prop('summary')),
            categories=bag.multi_select(self.prop('categories')),
            preview_link=bag.url(self.prop('preview_link')),
            **common,
        )
