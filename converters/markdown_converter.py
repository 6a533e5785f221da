"""Default HTML to Markdown strategy built on markdownify."""

import logging
import re
from typing import Any, Dict, Optional

from markdownify import MarkdownConverter as MarkdownifyConverter
from markdownify import chomp

from .base_converter import BaseHtmlConverter
from .html_cleaner import HtmlCleaner

logger = logging.getLogger('epub2md.converters.markdownconverter')

BLANK_LINES_PATTERN = re.compile(r'\n{3,}')
TRAILING_SPACE_PATTERN = re.compile(r'[ \t]+\n')


class MarkdownConverter(MarkdownifyConverter):
    """
    Converts EPUB chapter XHTML to Markdown.

    This class extends markdownify.MarkdownConverter to provide:
    - XHTML pre-cleaning (declarations, self-closing tags, head removal)
    - Anchors for element ids so ``#fragment`` links keep a target
    - Plain ``[text](href)`` and ``![alt](src)`` syntax the link rewriter expects
    """

    def __init__(self, logger: logging.Logger = None, config: Dict[str, Any] = None, **kwargs):
        """Initialize markdown converter with logger and configuration."""
        markdownify_options = {
            'heading_style': 'ATX',  # Use # for headings
            'bullets': '-',  # Use - for unordered lists
            'escape_asterisks': False,
            'escape_underscores': False,
            'autolinks': False,
            'wrap': False
        }
        markdownify_options.update(kwargs)
        super().__init__(**markdownify_options)

        self.logger = logger or logging.getLogger('epub2md.converters.markdownconverter')
        self.config = config or {}
        self.html_cleaner = HtmlCleaner(self.logger)

    def convert(self, html: str) -> str:
        """Convert one section's XHTML to Markdown."""
        if not html or not html.strip():
            return ''
        soup = self.html_cleaner.clean(html)
        markdown = self.convert_soup(soup)
        return self._post_process_markdown(markdown)

    def _post_process_markdown(self, markdown: str) -> str:
        markdown = TRAILING_SPACE_PATTERN.sub('\n', markdown)
        markdown = BLANK_LINES_PATTERN.sub('\n\n', markdown)
        return markdown.strip()

    def convert_a(self, el, text, parent_tags=None, **kwargs):
        """Handle links and in-document anchors."""
        anchor_id = el.get('id') or el.get('name')
        anchor = f'<a id="{anchor_id}"></a>' if anchor_id else ''

        if parent_tags and '_noformat' in parent_tags:
            return anchor + text

        prefix, suffix, text = chomp(text)
        href = el.get('href')
        if not href or not text:
            return f'{prefix}{anchor}{text}{suffix}'

        title = el.get('title')
        title_part = ' "%s"' % title.replace('"', r'\"') if title else ''
        return f'{prefix}{anchor}[{text}]({_escape_url(href)}{title_part}){suffix}'

    def convert_img(self, el, text, parent_tags=None, **kwargs):
        """Handle images, including inline ones inside headings and links."""
        src = el.get('src', '') or el.get('xlink:href', '')
        alt = el.get('alt', '')
        title = el.get('title', '')

        # Use title as alt if alt is missing
        if not alt and title:
            alt = title

        return f'![{alt}]({_escape_url(src)})'

    def convert_image(self, el, text, parent_tags=None, **kwargs):
        """SVG ``<image>`` elements used for cover pages."""
        return self.convert_img(el, text, parent_tags=parent_tags, **kwargs)


def _escape_url(url: str) -> str:
    """Percent-encode characters that would end a Markdown link target."""
    return url.strip().replace(' ', '%20').replace('(', '%28').replace(')', '%29')


BaseHtmlConverter.register(MarkdownConverter)


__all__ = ['MarkdownConverter']
