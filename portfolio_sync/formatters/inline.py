"""
Rich-text run helpers shared by the Markdown and structured formatters.
"""
from html import escape
from typing import Any, Dict, Optional


def run_text(run: Dict) -> str:
    """Text of a single rich-text run."""
    text = run.get('plain_text')
    if text is None:
        text = (run.get('text') or {}).get('content', '')
    return text or ''


def run_link(run: Dict) -> Optional[str]:
    """Link target of a rich-text run, if any."""
    href = run.get('href')
    if href:
        return href
    link = (run.get('text') or {}).get('link') or {}
    return link.get('url') or None


def format_run_html(run: Dict) -> str:
    """
    Render one run as HTML, nesting a tag for every active annotation.
    """
    text = run_text(run)
    if not text:
        return ''
    html = escape(text, quote=False).replace('\n', '<br>')

    annotations = run.get('annotations') or {}
    if annotations.get('code'):
        html = f"<code>{html}</code>"
    if annotations.get('strikethrough'):
        html = f"<s>{html}</s>"
    if annotations.get('underline'):
        html = f"<u>{html}</u>"
    if annotations.get('italic'):
        html = f"<em>{html}</em>"
    if annotations.get('bold'):
        html = f"<strong>{html}</strong>"

    href = run_link(run)
    if href:
        html = f'<a href="{escape(href)}">{html}</a>'
    return html


def rich_text_to_html(runs: Any) -> str:
    """Render a list of rich-text runs as inline HTML."""
    if not isinstance(runs, list):
        return ''
    return ''.join(format_run_html(run) for run in runs if isinstance(run, dict))
