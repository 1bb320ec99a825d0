"""
Markdown formatting of Notion block trees.
"""
from typing import Any, Dict, List, Optional

from portfolio_sync.core.properties import file_url, plain_text
from portfolio_sync.formatters.inline import rich_text_to_html, run_link, run_text

LIST_ITEM_TYPES = ('bulleted_list_item', 'numbered_list_item', 'to_do')
# Layout-only blocks whose children are rendered in their place
WRAPPER_BLOCK_TYPES = ('column_list', 'column', 'synced_block')
NESTED_INDENT = '    '


def code_language(language: Optional[str]) -> str:
    """Notion's language names, as fenced-code info strings."""
    if not language or language == 'plain text':
        return ''
    return language.replace(' ', '-')


def expand_wrappers(blocks: List[Any]) -> List[Dict]:
    """Replace column and synced blocks by their children, recursively."""
    expanded = []
    for block in blocks or []:
        if not isinstance(block, dict):
            continue
        if block.get('type') in WRAPPER_BLOCK_TYPES:
            expanded.extend(expand_wrappers(block.get('children') or []))
        else:
            expanded.append(block)
    return expanded


def _split_edges(text: str):
    stripped = text.strip()
    lead = text[:len(text) - len(text.lstrip())]
    trail = text[len(text.rstrip()):]
    return lead, stripped, trail


class MarkdownFormatter:
    """
    Converts a Notion block tree into a Markdown string.
    """
    def __init__(self, indent: str = NESTED_INDENT):
        """
        Initialize the MarkdownFormatter.

        Args:
            indent: Indentation used for children of list items
        """
        self.indent = indent

    def format_run(self, run: Dict) -> str:
        """
        Apply a run's annotations as Markdown markers.

        Whitespace at the edges of a run stays outside the markers,
        otherwise ``**bold **`` would not render as bold.
        """
        text = run_text(run)
        lead, core, trail = _split_edges(text)
        if not core:
            return text

        annotations = run.get('annotations') or {}
        if annotations.get('code'):
            core = f"`{core}`"
        if annotations.get('strikethrough'):
            core = f"~~{core}~~"
        if annotations.get('italic'):
            core = f"*{core}*"
        if annotations.get('bold'):
            core = f"**{core}**"
        if annotations.get('underline'):
            core = f"<u>{core}</u>"

        href = run_link(run)
        if href:
            core = f"[{core}]({href})"
        return f"{lead}{core}{trail}"

    def rich_text(self, runs: Any) -> str:
        if not isinstance(runs, list):
            return ''
        return ''.join(self.format_run(run) for run in runs if isinstance(run, dict))

    def _indent(self, text: str, prefix: Optional[str] = None) -> str:
        prefix = self.indent if prefix is None else prefix
        return '\n'.join(prefix + line if line.strip() else line for line in text.split('\n'))

    def _list_item(self, marker: str, text: str, children: List[Dict]) -> str:
        # Continuation lines must line up with the item's content
        lines = text.split('\n')
        item = marker + ('\n' + self.indent).join(lines)
        if children:
            nested = self.blocks_to_markdown(children)
            if nested:
                item += '\n' + self._indent(nested)
        return item

    def _quote(self, text: str, children: List[Dict]) -> str:
        body = text
        if children:
            nested = self.blocks_to_markdown(children)
            if nested:
                body = f"{body}\n\n{nested}" if body else nested
        return '\n'.join(f"> {line}" if line else '>' for line in body.split('\n'))

    def _table(self, block: Dict) -> str:
        rows = []
        for row in block.get('children') or []:
            if row.get('type') != 'table_row':
                continue
            cells = (row.get('table_row') or {}).get('cells') or []
            rows.append([
                self.rich_text(cell).replace('|', '\\|').replace('\n', '<br>')
                for cell in cells
            ])
        if not rows:
            return ''

        width = max(len(row) for row in rows)
        rows = [row + [''] * (width - len(row)) for row in rows]
        # Pipe tables always need a header row; Notion tables without one
        # promote their first row, as Notion's own export does.
        header, body = rows[0], rows[1:]
        lines = [
            '| ' + ' | '.join(header) + ' |',
            '|' + '|'.join(' --- ' for _ in header) + '|',
        ]
        lines.extend('| ' + ' | '.join(row) + ' |' for row in body)
        return '\n'.join(lines)

    def _toggle(self, block: Dict, data: Dict) -> str:
        # Markdown is not parsed inside <summary>, so format it as HTML
        summary = rich_text_to_html(data.get('rich_text'))
        nested = self.blocks_to_markdown(block.get('children') or [])
        parts = ['<details>', f"<summary>{summary}</summary>"]
        if nested:
            parts.append(f"\n{nested}\n")
        parts.append('</details>')
        return '\n'.join(parts)

    def block_to_markdown(self, block: Dict) -> Optional[str]:
        """
        Convert one block to Markdown.

        Returns:
            The Markdown for the block, or None for unsupported kinds
        """
        kind = block.get('type')
        data = block.get(kind) if kind else None
        if not isinstance(data, dict):
            return None
        children = block.get('children') or []

        if kind == 'paragraph':
            text = self.rich_text(data.get('rich_text'))
            if children:
                nested = self.blocks_to_markdown(children)
                text = f"{text}\n\n{nested}" if text else nested
            return text
        if kind in ('heading_1', 'heading_2', 'heading_3'):
            level = int(kind[-1])
            heading = f"{'#' * level} {self.rich_text(data.get('rich_text'))}"
            # Toggleable headings keep their body expanded below the heading
            nested = self.blocks_to_markdown(children)
            return f"{heading}\n\n{nested}" if nested else heading
        if kind == 'bulleted_list_item':
            return self._list_item('- ', self.rich_text(data.get('rich_text')), children)
        if kind == 'numbered_list_item':
            return self._list_item('1. ', self.rich_text(data.get('rich_text')), children)
        if kind == 'to_do':
            box = '[x]' if data.get('checked') else '[ ]'
            return self._list_item(f"- {box} ", self.rich_text(data.get('rich_text')), children)
        if kind == 'code':
            code = plain_text(data.get('rich_text'))
            return f"```{code_language(data.get('language'))}\n{code}\n```"
        if kind == 'quote':
            return self._quote(self.rich_text(data.get('rich_text')), children)
        if kind == 'callout':
            icon = data.get('icon') or {}
            emoji = icon.get('emoji') if icon.get('type') == 'emoji' else None
            text = self.rich_text(data.get('rich_text'))
            return self._quote(f"{emoji} {text}" if emoji else text, children)
        if kind == 'image':
            url = file_url(data)
            if not url:
                return None
            caption = plain_text(data.get('caption')).replace('[', '').replace(']', '')
            target = f"<{url}>" if any(c in url for c in ' ()') else url
            return f"![{caption}]({target})"
        if kind == 'divider':
            return '---'
        if kind == 'toggle':
            return self._toggle(block, data)
        if kind == 'table':
            return self._table(block)
        return None

    def blocks_to_markdown(self, blocks: List[Dict]) -> str:
        """
        Convert a list of sibling blocks to one Markdown document.

        Items of the same list kind are joined by a single newline so they
        stay in one list; everything else is separated by a blank line.

        Args:
            blocks: Blocks as returned by the block-children endpoint

        Returns:
            Markdown string
        """
        chunks = []
        previous_kind = None
        for block in expand_wrappers(blocks):
            markdown = self.block_to_markdown(block)
            if not markdown:
                previous_kind = None
                continue
            kind = block.get('type')
            if chunks:
                same_list = kind in LIST_ITEM_TYPES and kind == previous_kind
                chunks.append('\n' if same_list else '\n\n')
            chunks.append(markdown)
            previous_kind = kind
        return ''.join(chunks)
