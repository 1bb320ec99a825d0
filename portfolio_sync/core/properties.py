"""
Typed views over Notion's property bag.

Each supported property kind gets its own class with a total ``value()``;
anything unknown, missing or malformed parses to :class:`MissingProperty`.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar, Union

UNTITLED = 'Untitled'


def plain_text(rich_text: Any) -> str:
    """Concatenate the plain text of a list of rich-text runs."""
    if not isinstance(rich_text, list):
        return ''
    parts = []
    for run in rich_text:
        if not isinstance(run, dict):
            continue
        text = run.get('plain_text')
        if text is None:
            text = (run.get('text') or {}).get('content', '')
        parts.append(text or '')
    return ''.join(parts)


def file_url(entry: Any) -> Optional[str]:
    """URL of a Notion file object (uploaded ``file`` or ``external``)."""
    if not isinstance(entry, dict):
        return None
    kind = entry.get('type')
    if kind in ('file', 'external'):
        return (entry.get(kind) or {}).get('url') or None
    return None


@dataclass(frozen=True)
class MissingProperty:
    def value(self) -> None:
        return None


@dataclass(frozen=True)
class TitleProperty:
    text: str = ''

    def value(self) -> str:
        return self.text or UNTITLED


@dataclass(frozen=True)
class RichTextProperty:
    text: str = ''

    def value(self) -> str:
        return self.text


@dataclass(frozen=True)
class DateProperty:
    start: Optional[str] = None

    def value(self) -> Optional[str]:
        return self.start


@dataclass(frozen=True)
class SelectProperty:
    name: Optional[str] = None

    def value(self) -> Optional[str]:
        return self.name


@dataclass(frozen=True)
class MultiSelectProperty:
    names: List[str] = field(default_factory=list)

    def value(self) -> List[str]:
        return list(self.names)


@dataclass(frozen=True)
class NumberProperty:
    number: Optional[float] = None

    def value(self) -> Optional[float]:
        return self.number


@dataclass(frozen=True)
class CheckboxProperty:
    checked: bool = False

    def value(self) -> bool:
        return self.checked


@dataclass(frozen=True)
class FilesProperty:
    urls: List[str] = field(default_factory=list)

    def value(self) -> Optional[str]:
        """First file's URL, the only one the site ever shows."""
        return self.urls[0] if self.urls else None


@dataclass(frozen=True)
class UrlProperty:
    url: Optional[str] = None

    def value(self) -> Optional[str]:
        return self.url


Property = Union[
    MissingProperty,
    TitleProperty,
    RichTextProperty,
    DateProperty,
    SelectProperty,
    MultiSelectProperty,
    NumberProperty,
    CheckboxProperty,
    FilesProperty,
    UrlProperty,
]

P = TypeVar('P')


def _names(options: Any) -> List[str]:
    if not isinstance(options, list):
        return []
    return [o['name'] for o in options if isinstance(o, dict) and isinstance(o.get('name'), str)]


def parse_property(raw: Any) -> Property:
    """
    Turn one raw property object into its typed form.

    Args:
        raw: A value from ``page['properties']``

    Returns:
        The matching property class, or MissingProperty
    """
    if not isinstance(raw, dict):
        return MissingProperty()

    kind = raw.get('type')
    # Older payloads omit "type"; infer it from the single data key
    if kind is None:
        kind = next((k for k in raw if k not in ('id', 'name')), None)
    data = raw.get(kind)

    if kind == 'title':
        return TitleProperty(plain_text(data))
    if kind == 'rich_text':
        return RichTextProperty(plain_text(data))
    if kind == 'date':
        start = data.get('start') if isinstance(data, dict) else None
        return DateProperty(start if isinstance(start, str) else None)
    if kind == 'select':
        name = data.get('name') if isinstance(data, dict) else None
        return SelectProperty(name if isinstance(name, str) else None)
    if kind == 'multi_select':
        return MultiSelectProperty(_names(data))
    if kind == 'number':
        is_number = isinstance(data, (int, float)) and not isinstance(data, bool)
        return NumberProperty(data if is_number else None)
    if kind == 'checkbox':
        return CheckboxProperty(data is True)
    if kind == 'files':
        urls = [url for url in (file_url(f) for f in (data if isinstance(data, list) else [])) if url]
        return FilesProperty(urls)
    if kind == 'url':
        return UrlProperty(data if isinstance(data, str) and data else None)
    return MissingProperty()


class PropertyBag:
    """
    Null-safe accessors over a page's properties.

    Every accessor takes a property name or a list of candidate names; the
    first name that is present wins. A missing property, or one of the
    wrong kind, yields the accessor's default.
    """
    def __init__(self, properties: Any):
        self.properties = properties if isinstance(properties, dict) else {}

    def _lookup(self, names: Union[str, Sequence[str], None], kind: Type[P]) -> Optional[P]:
        if not names:
            return None
        if isinstance(names, str):
            names = [names]
        for name in names:
            if name in self.properties:
                prop = parse_property(self.properties[name])
                return prop if isinstance(prop, kind) else None
        return None

    def title(self, names) -> str:
        prop = self._lookup(names, TitleProperty)
        return prop.value() if prop else UNTITLED

    def rich_text(self, names) -> str:
        prop = self._lookup(names, RichTextProperty)
        return prop.value() if prop else ''

    def date(self, names) -> Optional[str]:
        prop = self._lookup(names, DateProperty)
        return prop.value() if prop else None

    def select(self, names) -> Optional[str]:
        prop = self._lookup(names, SelectProperty)
        return prop.value() if prop else None

    def multi_select(self, names) -> List[str]:
        prop = self._lookup(names, MultiSelectProperty)
        return prop.value() if prop else []

    def number(self, names) -> Optional[float]:
        prop = self._lookup(names, NumberProperty)
        return prop.value() if prop else None

    def checkbox(self, names) -> bool:
        prop = self._lookup(names, CheckboxProperty)
        return prop.value() if prop else False

    def first_file(self, names) -> Optional[str]:
        prop = self._lookup(names, FilesProperty)
        return prop.value() if prop else None

    def url(self, names) -> Optional[str]:
        prop = self._lookup(names, UrlProperty)
        return prop.value() if prop else None


def page_cover(page: Dict) -> Optional[str]:
    """URL of the page-level cover image."""
    return file_url(page.get('cover'))


def page_icon(page: Dict) -> Optional[str]:
    """Emoji or image URL of the page icon."""
    icon = page.get('icon')
    if isinstance(icon, dict) and icon.get('type') == 'emoji':
        return icon.get('emoji') or None
    return file_url(icon)
