"""HTML cleaner for EPUB chapter documents before Markdown conversion."""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger('epub2md.converters.htmlcleaner')

XML_DECLARATION_PATTERN = re.compile(r'\s?<\?xml[^>]*\?>\s?')
DOCTYPE_PATTERN = re.compile(r'\s?<!DOCTYPE[^>]*>\s?', re.IGNORECASE)
NEWLINES_PATTERN = re.compile(r'\n+')
# XHTML allows <title/> or <div/>; the HTML parser would leave them open
SELF_CLOSING_PATTERN = re.compile(r'<([A-Za-z][\w:-]*)(\s[^<>]*?)?\s*/>')

VOID_ELEMENTS = {
    'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input',
    'link', 'meta', 'param', 'source', 'track', 'wbr'
}
REMOVED_ELEMENTS = ['head', 'script', 'style', 'title']
# ids on these cannot host an inline anchor child
ANCHOR_BEFORE = VOID_ELEMENTS | {'table', 'ul', 'ol', 'dl', 'pre'}
ANCHOR_SKIP = {'html', 'body', 'head', 'tr', 'thead', 'tbody', 'tfoot', 'colgroup'}


class HtmlCleaner:
    """Normalizes EPUB XHTML so the Markdown converter sees plain HTML."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize HTML cleaner with optional logger."""
        self.logger = logger or logging.getLogger('epub2md.converters.htmlcleaner')

    def clean_text(self, html: str) -> str:
        """
        Text-level cleanup applied before parsing.

        Drops the XML declaration and DOCTYPE, collapses newline runs,
        normalizes a few full-width punctuation pairs and expands XHTML
        self-closing tags that are not void elements.
        """
        html = html.replace('（）', '()').replace('：：', '::')
        html = XML_DECLARATION_PATTERN.sub('', html)
        html = DOCTYPE_PATTERN.sub('', html)
        html = NEWLINES_PATTERN.sub('\n', html)
        return SELF_CLOSING_PATTERN.sub(self._expand_self_closing, html)

    def clean(self, html: str) -> BeautifulSoup:
        """
        Main entry point to clean a chapter document.

        Args:
            html: Raw XHTML text of one section

        Returns:
            Cleaned BeautifulSoup object
        """
        soup = BeautifulSoup(self.clean_text(html), 'lxml')

        for element in soup.find_all(REMOVED_ELEMENTS):
            element.decompose()

        moved = self._hoist_ids(soup)
        if moved:
            self.logger.debug(f"Moved {moved} element ids into anchors")
        return soup

    def _hoist_ids(self, soup: BeautifulSoup) -> int:
        """
        Give every element id an ``<a id>`` anchor so fragment links survive.

        Markdown has no attribute syntax, so the anchor is placed inside the
        element (headings, paragraphs, list items) or right before it where
        an inline child is not allowed.
        """
        moved = 0
        for element in soup.find_all(id=True):
            if element.name == 'a' or element.name in ANCHOR_SKIP:
                continue
            anchor = soup.new_tag('a', id=element['id'])
            if element.name in ANCHOR_BEFORE:
                element.insert_before(anchor)
            else:
                element.insert(0, anchor)
            del element['id']
            moved += 1
        return moved

    @staticmethod
    def _expand_self_closing(match: re.Match) -> str:
        name = match.group(1)
        attrs = match.group(2) or ''
        if name.lower() in VOID_ELEMENTS:
            return match.group(0)
        return f'<{name}{attrs}></{name}>'


__all__ = ['HtmlCleaner']
