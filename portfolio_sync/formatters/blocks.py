"""
Structured formatting of Notion block trees.

Produces a list of typed dicts the site renders directly instead of an
opaque HTML string. Inline text is pre-rendered to HTML in ``text``.
"""
from typing import Any, Dict, List, Optional

from portfolio_sync.core.properties import file_url, plain_text
from portfolio_sync.formatters.inline import rich_text_to_html
from portfolio_sync.formatters.markdown import expand_wrappers

# List item kind -> container kind
LIST_CONTAINERS = {
    'bulleted_list_item': 'bulleted_list',
    'numbered_list_item': 'numbered_list',
}

# Blocks that carry nothing but formatted text (and possibly children)
TEXT_BLOCK_TYPES = (
    'paragraph',
    'heading_1',
    'heading_2',
    'heading_3',
    'quote',
    'toggle',
    'bulleted_list_item',
    'numbered_list_item',
)


def group_list_runs(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Wrap runs of adjacent list items into list containers.

    Grouping is by adjacency only: a bulleted item directly followed by a
    numbered item yields two containers side by side, and two bulleted
    runs separated by any other block stay separate lists.
    """
    grouped = []
    for item in items:
        container = LIST_CONTAINERS.get(item['type'])
        if container is None:
            grouped.append(item)
            continue
        entry = {key: value for key, value in item.items() if key != 'type'}
        if grouped and grouped[-1]['type'] == container:
            grouped[-1]['items'].append(entry)
        else:
            grouped.append({'type': container, 'items': [entry]})
    return grouped


class BlockFormatter:
    """
    Converts Notion blocks into the site's typed block list.
    """
    def convert_block(self, block: Dict) -> Optional[Dict[str, Any]]:
        """
        Convert one block, returning None for unsupported kinds.
        """
        kind = block.get('type')
        data = block.get(kind) if kind else None
        if not isinstance(data, dict):
            return None
        children = block.get('children') or []

        if kind in TEXT_BLOCK_TYPES:
            item = {'type': kind, 'text': rich_text_to_html(data.get('rich_text'))}
            if kind.startswith('heading_') and data.get('is_toggleable'):
                item['toggleable'] = True
        elif kind == 'to_do':
            item = {
                'type': kind,
                'text': rich_text_to_html(data.get('rich_text')),
                'checked': data.get('checked') is True,
            }
        elif kind == 'code':
            item = {
                'type': kind,
                'language': data.get('language') or 'plain text',
                'text': plain_text(data.get('rich_text')),
            }
            children = []
        elif kind == 'callout':
            icon = data.get('icon') or {}
            item = {
                'type': kind,
                'icon': icon.get('emoji') if icon.get('type') == 'emoji' else file_url(icon),
                'text': rich_text_to_html(data.get('rich_text')),
            }
        elif kind == 'image':
            url = file_url(data)
            if not url:
                return None
            item = {'type': kind, 'url': url, 'caption': plain_text(data.get('caption'))}
        elif kind == 'divider':
            item = {'type': kind}
        elif kind == 'table':
            return {
                'type': kind,
                'has_column_header': data.get('has_column_header') is True,
                'rows': [
                    [plain_text(cell) for cell in (row.get('table_row') or {}).get('cells') or []]
                    for row in children if row.get('type') == 'table_row'
                ],
            }
        else:
            return None

        if children:
            nested = self.flatten(children)
            if nested:
                item['children'] = nested
        return item

    def flatten(self, blocks: List[Dict]) -> List[Dict[str, Any]]:
        """
        Convert sibling blocks and group adjacent list items.

        Args:
            blocks: Blocks as returned by the block-children endpoint

        Returns:
            Typed block list
        """
        items = []
        for block in expand_wrappers(blocks):
            item = self.convert_block(block)
            if item is not None:
                items.append(item)
        return group_list_runs(items)

    def plain_text(self, blocks: List[Dict]) -> str:
        """
        All readable text of a block tree, for word counting.
        """
        parts = []
        for block in blocks or []:
            if not isinstance(block, dict):
                continue
            kind = block.get('type')
            data = block.get(kind) if kind else None
            if isinstance(data, dict):
                parts.append(plain_text(data.get('rich_text')))
                parts.append(plain_text(data.get('caption')))
                for cell in data.get('cells') or []:
                    parts.append(plain_text(cell))
            if block.get('children'):
                parts.append(self.plain_text(block['children']))
        return ' '.join(part for part in parts if part)
