"""
HTML conversion utilities for portfolio-sync.
"""
import mistune
from bs4 import BeautifulSoup

MARKDOWN_PLUGINS = ['table', 'strikethrough', 'task_lists']


class HtmlConverter:
    """
    Converts Markdown record bodies to HTML and inspects the result.
    """
    def __init__(self):
        """
        Initialize the HtmlConverter.

        Raw HTML in the Markdown (``<u>``, ``<details>``) is passed through
        and single newlines become ``<br>``.
        """
        self.markdown = mistune.create_markdown(
            escape=False,
            hard_wrap=True,
            plugins=MARKDOWN_PLUGINS,
        )

    def markdown_to_html(self, markdown_text: str) -> str:
        """
        Render Markdown to an HTML fragment.

        Args:
            markdown_text: Markdown produced by the MarkdownFormatter

        Returns:
            HTML string (empty for empty input)
        """
        if not markdown_text:
            return ''
        return self.markdown(markdown_text)

    @staticmethod
    def extract_text(html: str) -> str:
        """
        Visible text of an HTML fragment, tags replaced by spaces.
        """
        if not html:
            return ''
        soup = BeautifulSoup(html, 'html.parser')
        return ' '.join(soup.get_text(' ').split())

